from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .space.candidates import Candidate


class SearchError(Exception):
    """Base class for errors raised by hpsearch."""


class InvalidSpaceError(SearchError, ValueError):
    """A hyperparameter declaration is malformed or not accepted by the trainer."""


class TrainingFailure(SearchError):
    """
    A single candidate's training or evaluation raised.

    The original exception is available as ``__cause__``. ``checkpoint`` is
    the index of the scoring checkpoint reached before failing (-1 when
    training failed before the first checkpoint).
    """

    def __init__(self, candidate: "Candidate", message: str, checkpoint: int = -1):
        super().__init__(f"candidate #{candidate.index} {candidate.params}: {message}")
        self.candidate = candidate
        self.checkpoint = checkpoint
        self.reason = message


class EvaluationCancelled(SearchError):
    """An evaluation was cancelled before producing a result."""

    def __init__(self, candidate: "Candidate"):
        super().__init__(f"candidate #{candidate.index} cancelled")
        self.candidate = candidate


class SearchExhaustedError(SearchError):
    """Every candidate of a search failed."""

    def __init__(self, failures: Sequence[TrainingFailure]):
        self.failures = tuple(failures)
        super().__init__(
            f"all {len(self.failures)} candidates failed; no usable result"
        )
