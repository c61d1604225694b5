"""
Parameter declarations for a hyperparameter space.

Each declaration names one hyperparameter and describes its valid domain.
Declarations are validated when they are constructed, so a malformed space
is rejected before any training starts. Every declaration can

* enumerate its values for grid search (``grid_values``),
* draw a value from a numpy ``Generator`` for random search (``sample``),
* ask an Optuna trial for a value (``suggest``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence, Tuple

import numpy as np

from ..errors import InvalidSpaceError

# value types Optuna accepts for categorical choices
_OPTUNA_SCALARS = (type(None), bool, int, float, str)


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name:
        raise InvalidSpaceError(f"parameter name must be a non-empty string, got {name!r}")


class Param:
    """Base class of all parameter declarations."""

    name: str

    @property
    def enumerable(self) -> bool:
        return True

    def grid_values(self) -> Tuple[Any, ...]:
        raise NotImplementedError

    def sample(self, rng: np.random.Generator) -> Any:
        raise NotImplementedError

    def suggest(self, trial: Any) -> Any:
        raise NotImplementedError

    def optuna_grid(self) -> list:
        """Choices handed to ``optuna.samplers.GridSampler`` for this parameter."""
        return list(self.grid_values())


@dataclass(frozen=True)
class Categorical(Param):
    """An ordered set of discrete choices."""

    name: str
    values: Sequence[Any]

    def __post_init__(self) -> None:
        _check_name(self.name)
        if isinstance(self.values, (str, bytes)):
            raise InvalidSpaceError(
                f"parameter '{self.name}': values must be a sequence, not a string"
            )
        try:
            values = tuple(self.values)
        except TypeError as exc:
            raise InvalidSpaceError(
                f"parameter '{self.name}': values must be a sequence, "
                f"got {type(self.values).__name__}"
            ) from exc
        if not values:
            raise InvalidSpaceError(f"parameter '{self.name}' has no candidate values")
        for i, value in enumerate(values):
            if any(value == seen for seen in values[:i]):
                raise InvalidSpaceError(
                    f"parameter '{self.name}' repeats the value {value!r}"
                )
        object.__setattr__(self, "values", values)

    def grid_values(self) -> Tuple[Any, ...]:
        return self.values

    def sample(self, rng: np.random.Generator) -> Any:
        return self.values[int(rng.integers(len(self.values)))]

    @property
    def _scalar_choices(self) -> bool:
        return all(isinstance(v, _OPTUNA_SCALARS) for v in self.values)

    def suggest(self, trial: Any) -> Any:
        if self._scalar_choices:
            return trial.suggest_categorical(self.name, list(self.values))
        # lists such as hidden layer sizes are suggested by position
        idx = trial.suggest_categorical(self.name, list(range(len(self.values))))
        return self.values[idx]

    def optuna_grid(self) -> list:
        if self._scalar_choices:
            return list(self.values)
        return list(range(len(self.values)))


@dataclass(frozen=True)
class IntRange(Param):
    """Integers ``low, low + step, ...`` up to and including ``high``."""

    name: str
    low: int
    high: int
    step: int = 1

    def __post_init__(self) -> None:
        _check_name(self.name)
        for attr in ("low", "high", "step"):
            value = getattr(self, attr)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidSpaceError(f"parameter '{self.name}': {attr} must be an int")
        if self.low > self.high:
            raise InvalidSpaceError(
                f"parameter '{self.name}': low ({self.low}) > high ({self.high})"
            )
        if self.step < 1:
            raise InvalidSpaceError(f"parameter '{self.name}': step must be >= 1")

    def grid_values(self) -> Tuple[int, ...]:
        return tuple(range(int(self.low), int(self.high) + 1, int(self.step)))

    def sample(self, rng: np.random.Generator) -> int:
        n = (self.high - self.low) // self.step + 1
        return int(self.low + self.step * int(rng.integers(n)))

    def suggest(self, trial: Any) -> int:
        return trial.suggest_int(self.name, self.low, self.high, step=self.step)


@dataclass(frozen=True)
class FloatRange(Param):
    """
    A continuous interval ``[low, high]``.

    Random search draws uniformly, or log-uniformly when ``log`` is set.
    Grid search needs ``num``, the number of evenly spaced points to
    enumerate (geometrically spaced when ``log`` is set).
    """

    name: str
    low: float
    high: float
    log: bool = False
    num: int | None = None

    def __post_init__(self) -> None:
        _check_name(self.name)
        try:
            low, high = float(self.low), float(self.high)
        except (TypeError, ValueError) as exc:
            raise InvalidSpaceError(f"parameter '{self.name}': bounds must be numbers") from exc
        if not (math.isfinite(low) and math.isfinite(high)):
            raise InvalidSpaceError(f"parameter '{self.name}': bounds must be finite")
        if low > high:
            raise InvalidSpaceError(
                f"parameter '{self.name}': low ({low}) > high ({high})"
            )
        if self.log and low <= 0:
            raise InvalidSpaceError(
                f"parameter '{self.name}': log scale requires low > 0"
            )
        if self.num is not None and self.num < 1:
            raise InvalidSpaceError(f"parameter '{self.name}': num must be >= 1")
        if self.num is not None and self.num > 1 and low == high:
            raise InvalidSpaceError(
                f"parameter '{self.name}': {self.num} grid points on an empty interval"
            )

    @property
    def enumerable(self) -> bool:
        return self.num is not None

    def grid_values(self) -> Tuple[float, ...]:
        if self.num is None:
            raise InvalidSpaceError(
                f"parameter '{self.name}' is continuous; set num to enumerate it"
            )
        if self.log:
            points = np.geomspace(self.low, self.high, self.num)
        else:
            points = np.linspace(self.low, self.high, self.num)
        values = tuple(float(p) for p in points)
        if len(set(values)) != len(values):
            raise InvalidSpaceError(
                f"parameter '{self.name}': {self.num} grid points collide within [{self.low}, {self.high}]"
            )
        return values

    def sample(self, rng: np.random.Generator) -> float:
        if self.log:
            value = math.exp(rng.uniform(math.log(self.low), math.log(self.high)))
            # exp(log(x)) can round past the bounds
            return float(min(max(value, self.low), self.high))
        return float(rng.uniform(self.low, self.high))

    def suggest(self, trial: Any) -> float:
        return trial.suggest_float(self.name, self.low, self.high, log=self.log)
