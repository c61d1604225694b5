
"""
Hyperparameter search.

``run_search`` and ``evaluate`` drive grid and random searches over any
training backend exposed as ``train_fn``/``eval_fn`` callables.
``OptunaSearch`` runs the same evaluation under an Optuna study.
"""

from .result import EvaluationStatus, TrainingResult, SearchResult
from .session import SearchSession
from .driver import check_space, evaluate, run_search
from .builder import TrainConfigBuilder
from .optuna_search import OptunaSearch
