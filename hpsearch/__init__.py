"""
hpsearch: grid and random hyperparameter search with early stopping.

The driver is independent of any ML library: it consumes a
``train_fn(candidate)`` and an ``eval_fn(model)``. A PyTorch backend for
tabular classifiers lives in ``hpsearch.backends``.
"""

from .errors import (
    SearchError,
    InvalidSpaceError,
    TrainingFailure,
    EvaluationCancelled,
    SearchExhaustedError,
)
from .config import StoppingPolicy, ModelConfig, OptimizerConfig, TrainConfig
from .space import (
    Categorical,
    IntRange,
    FloatRange,
    HyperparameterSpace,
    Candidate,
    GridMode,
    RandomMode,
    generate_candidates,
)
from .core import EarlyStopping, EvaluationStatus
from .search import (
    TrainingResult,
    SearchResult,
    SearchSession,
    TrainConfigBuilder,
    OptunaSearch,
    evaluate,
    run_search,
)

__version__ = "0.1.0"
