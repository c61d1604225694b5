"""
Candidate generation for grid and random search.

``generate_candidates`` returns a lazy, finite and restartable sequence:
nothing is materialised up front, ``len()`` is known, and every call to
``iter()`` starts again from the first candidate with identical results.

Grid candidates are addressed by a mixed-radix counter whose digits are
the value indices of each parameter, the last parameter varying fastest.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Dict, Iterator, Mapping, Sequence, Tuple, Union

import numpy as np

from ..errors import InvalidSpaceError
from .space import HyperparameterSpace


@dataclass(frozen=True)
class Candidate:
    """One concrete assignment of a value to every parameter of a space."""

    values: Tuple[Tuple[str, Any], ...]
    index: int = field(default=0, compare=False)

    @property
    def params(self) -> Dict[str, Any]:
        """Fresh copy of the assignment, safe for the trainer to mutate."""
        return copy.deepcopy(dict(self.values))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.values)

    def __getitem__(self, name: str) -> Any:
        for key, value in self.values:
            if key == name:
                return copy.deepcopy(value)
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.values)


# ----------------------------------------------------------------------
# Modes
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class GridMode:
    """Exhaustive cross product of every parameter's grid values."""


@dataclass(frozen=True)
class RandomMode:
    """``n`` independent draws from the declared distributions."""

    n: int
    seed: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.n, bool) or not isinstance(self.n, (int, np.integer)) or self.n < 1:
            raise InvalidSpaceError(f"random search needs n >= 1 samples, got {self.n!r}")


SearchMode = Union[GridMode, RandomMode, str]


def coerce_mode(mode: SearchMode) -> GridMode | RandomMode:
    if isinstance(mode, (GridMode, RandomMode)):
        return mode
    if mode == "grid":
        return GridMode()
    if mode == "random":
        raise InvalidSpaceError("random mode needs a sample count; use RandomMode(n)")
    raise InvalidSpaceError(f"unknown search mode {mode!r}")


# ----------------------------------------------------------------------
# Sequences
# ----------------------------------------------------------------------
class CandidateSequence(Sequence[Candidate]):
    """Lazy, finite, restartable sequence of candidates."""

    def __init__(self, space: HyperparameterSpace) -> None:
        self.space = space
        self._names = space.names

    def _make(self, index: int, values: Sequence[Any]) -> Candidate:
        return Candidate(values=tuple(zip(self._names, values)), index=index)

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        n = len(self)
        if index < 0:
            index += n
        if not 0 <= index < n:
            raise IndexError("candidate index out of range")
        return self._get(index)

    def _get(self, index: int) -> Candidate:
        return next(islice(iter(self), index, None))


class GridCandidates(CandidateSequence):
    def __init__(self, space: HyperparameterSpace) -> None:
        space.check_enumerable()
        super().__init__(space)
        self._grids = tuple(p.grid_values() for p in space.params)
        self._radices = tuple(len(g) for g in self._grids)
        size = 1
        for r in self._radices:
            size *= r
        self._size = size

    def __len__(self) -> int:
        return self._size

    def _values(self, digits: Sequence[int]) -> list:
        return [grid[d] for grid, d in zip(self._grids, digits)]

    def _get(self, index: int) -> Candidate:
        digits = [0] * len(self._radices)
        rest = index
        for pos in range(len(self._radices) - 1, -1, -1):
            rest, digits[pos] = divmod(rest, self._radices[pos])
        return self._make(index, self._values(digits))

    def __iter__(self) -> Iterator[Candidate]:
        digits = [0] * len(self._radices)
        for index in range(self._size):
            yield self._make(index, self._values(digits))
            pos = len(digits) - 1
            while pos >= 0:
                digits[pos] += 1
                if digits[pos] < self._radices[pos]:
                    break
                digits[pos] = 0
                pos -= 1


class RandomCandidates(CandidateSequence):
    def __init__(self, space: HyperparameterSpace, n: int, seed: int | None = None) -> None:
        super().__init__(space)
        self._n = int(n)
        # fixed at construction so every iteration replays the same draws
        self.seed = seed if seed is not None else int(np.random.SeedSequence().entropy)

    def __len__(self) -> int:
        return self._n

    def __iter__(self) -> Iterator[Candidate]:
        rng = np.random.default_rng(self.seed)
        params = self.space.params
        for index in range(self._n):
            yield self._make(index, [p.sample(rng) for p in params])


def generate_candidates(
    space: HyperparameterSpace | Mapping[str, Any],
    mode: SearchMode = "grid",
) -> CandidateSequence:
    """
    Produce the candidates of ``space`` for the given search mode.

    Parameters
    ----------
    space:
        A HyperparameterSpace, or a mapping accepted by its constructor.
    mode:
        ``GridMode()`` (or ``"grid"``) for the full cross product, or
        ``RandomMode(n, seed)`` for ``n`` independent samples.

    Raises
    ------
    InvalidSpaceError
        If the space or mode is malformed, or a grid is requested over a
        continuous parameter without a point count.
    """
    if not isinstance(space, HyperparameterSpace):
        space = HyperparameterSpace(space)
    mode = coerce_mode(mode)
    if isinstance(mode, GridMode):
        return GridCandidates(space)
    return RandomCandidates(space, mode.n, mode.seed)
