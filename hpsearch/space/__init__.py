"""
Hyperparameter spaces and candidate generation.
"""

from .params import Param, Categorical, IntRange, FloatRange
from .space import HyperparameterSpace
from .candidates import (
    Candidate,
    CandidateSequence,
    GridMode,
    RandomMode,
    generate_candidates,
)
