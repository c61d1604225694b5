from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from ..config.schema import StoppingPolicy
from ..space.candidates import Candidate


class EvaluationStatus(str, Enum):
    PENDING = "pending"
    TRAINING = "training"
    CONVERGED = "converged"
    STOPPED_EARLY = "stopped_early"
    FAILED = "failed"
    SCORED = "scored"
    CANCELLED = "cancelled"


_TRANSITIONS = {
    EvaluationStatus.PENDING: {EvaluationStatus.TRAINING, EvaluationStatus.CANCELLED},
    EvaluationStatus.TRAINING: {
        EvaluationStatus.CONVERGED,
        EvaluationStatus.STOPPED_EARLY,
        EvaluationStatus.FAILED,
        EvaluationStatus.CANCELLED,
    },
    EvaluationStatus.CONVERGED: {EvaluationStatus.SCORED},
    EvaluationStatus.STOPPED_EARLY: {EvaluationStatus.SCORED},
    EvaluationStatus.FAILED: {EvaluationStatus.SCORED},
    EvaluationStatus.SCORED: set(),
    EvaluationStatus.CANCELLED: set(),
}


@dataclass
class Engine:
    """Mutable state of one candidate evaluation, shared with callbacks."""

    candidate: Candidate
    policy: StoppingPolicy

    checkpoint: int = -1
    metric: float | None = None
    metric_values: Dict[str, float] = field(default_factory=dict)
    model: Any = None

    stop_training: bool = False

    state: EvaluationStatus = EvaluationStatus.PENDING
    # how training ended: CONVERGED, STOPPED_EARLY, FAILED or CANCELLED
    outcome: EvaluationStatus | None = None
    duration: float = 0.0

    def transition(self, state: EvaluationStatus) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid evaluation transition {self.state.value} -> {state.value}")
        self.state = state
        if state not in (EvaluationStatus.TRAINING, EvaluationStatus.SCORED):
            self.outcome = state

    def set_metrics(self, values: Dict[str, float], monitored: float) -> None:
        self.metric_values = values
        self.metric = monitored
