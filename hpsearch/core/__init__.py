from .callbacks import Callback, CallbackList, EarlyStopping, HistoryCallback
from .engine import Engine, EvaluationStatus
from .evaluator import CandidateEvaluator
