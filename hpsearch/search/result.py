"""
Records produced by a search.

A TrainingResult is frozen once built and carries only immutable
containers, so later evaluations can never alter an earlier record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple

from ..core.engine import EvaluationStatus
from ..errors import TrainingFailure
from ..space.candidates import Candidate

__all__ = ["EvaluationStatus", "TrainingResult", "SearchResult"]


@dataclass(frozen=True)
class TrainingResult:
    """A scored candidate."""

    candidate: Candidate
    score: float
    status: EvaluationStatus
    checkpoints: int
    history: Tuple[float, ...] = ()
    metrics: Mapping[str, float] = field(default_factory=dict)
    duration: float = 0.0
    stopped_at: int | None = None
    model: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "history", tuple(self.history))
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    @property
    def index(self) -> int:
        return self.candidate.index

    @property
    def params(self) -> Dict[str, Any]:
        return self.candidate.params

    def best_checkpoint_score(self, comparison: str = "maximize") -> float:
        pick = max if comparison == "maximize" else min
        return pick(self.history) if self.history else self.score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            **self.params,
            "score": self.score,
            "status": self.status.value,
            "checkpoints": self.checkpoints,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class SearchResult:
    """
    Outcome of a search: every successful evaluation in generation order,
    the isolated failures, the cancelled candidates, and the best record.
    """

    results: Tuple[TrainingResult, ...]
    metric: str
    comparison: str = "maximize"
    failures: Tuple[TrainingFailure, ...] = ()
    cancelled: Tuple[Candidate, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "results", tuple(sorted(self.results, key=lambda r: r.index))
        )
        object.__setattr__(
            self, "failures", tuple(sorted(self.failures, key=lambda f: f.candidate.index))
        )
        object.__setattr__(
            self, "cancelled", tuple(sorted(self.cancelled, key=lambda c: c.index))
        )

    def _rank_key(self, result: TrainingResult):
        score = -result.score if self.comparison == "maximize" else result.score
        return (score, result.index)

    @property
    def best(self) -> TrainingResult | None:
        if not self.results:
            return None
        return min(self.results, key=self._rank_key)

    @property
    def best_params(self) -> Dict[str, Any]:
        best = self.best
        return best.params if best is not None else {}

    @property
    def best_score(self) -> float | None:
        best = self.best
        return best.score if best is not None else None

    def ranked(self) -> List[TrainingResult]:
        """Results from best to worst; equal scores keep generation order."""
        return sorted(self.results, key=self._rank_key)

    def to_records(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.ranked()]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)
