from __future__ import annotations

import math
from typing import Any, Iterable, Iterator, Mapping, Sequence, Tuple, Union

from ..errors import InvalidSpaceError
from .params import Categorical, Param

SpaceSpec = Union[Mapping[str, Any], Iterable[Param]]


class HyperparameterSpace:
    """
    Ordered, name-unique collection of parameter declarations.

    A space can be built from parameter objects or from a mapping. In a
    mapping, plain sequences become ``Categorical`` declarations and
    ``Param`` values keep their own type; the mapping key must match the
    declaration's name.

    Examples
    --------
    >>> space = HyperparameterSpace({
    ...     "model_config.hidden": [[32], [64, 64]],
    ...     "optimizer_config.lr": FloatRange("optimizer_config.lr", 1e-4, 1e-2, log=True, num=3),
    ... })
    >>> space.grid_size()
    6
    """

    def __init__(self, params: SpaceSpec) -> None:
        if isinstance(params, Mapping):
            params = [self._coerce(name, value) for name, value in params.items()]
        params = tuple(params)
        if not params:
            raise InvalidSpaceError("hyperparameter space is empty")

        seen: set[str] = set()
        for p in params:
            if not isinstance(p, Param):
                raise InvalidSpaceError(f"not a parameter declaration: {p!r}")
            if p.name in seen:
                raise InvalidSpaceError(f"duplicate parameter '{p.name}'")
            seen.add(p.name)
        self._params: Tuple[Param, ...] = params

    @staticmethod
    def _coerce(name: str, value: Any) -> Param:
        if isinstance(value, Param):
            if value.name != name:
                raise InvalidSpaceError(
                    f"key '{name}' does not match parameter name '{value.name}'"
                )
            return value
        return Categorical(name, value)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def params(self) -> Tuple[Param, ...]:
        return self._params

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self._params)

    def __iter__(self) -> Iterator[Param]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __getitem__(self, name: str) -> Param:
        for p in self._params:
            if p.name == name:
                return p
        raise KeyError(name)

    def __repr__(self) -> str:
        return f"HyperparameterSpace({list(self._params)!r})"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def check_enumerable(self) -> None:
        """Raise InvalidSpaceError unless every parameter has a finite grid."""
        missing = [p.name for p in self._params if not p.enumerable]
        if missing:
            raise InvalidSpaceError(
                f"grid search needs finite values; continuous parameters: {missing}"
            )

    def check_contract(self, accepted: Iterable[str]) -> None:
        """
        Raise InvalidSpaceError if any parameter is not accepted by the
        training configuration.

        Parameters
        ----------
        accepted:
            Names the training function's configuration accepts, or any
            container supporting ``in``.
        """
        if not isinstance(accepted, (set, frozenset, Mapping)):
            accepted = set(accepted)
        unknown = [name for name in self.names if name not in accepted]
        if unknown:
            raise InvalidSpaceError(f"parameters not accepted by the trainer: {unknown}")

    def grid_size(self) -> int:
        self.check_enumerable()
        return math.prod(len(p.grid_values()) for p in self._params)

    def radices(self) -> Sequence[int]:
        self.check_enumerable()
        return tuple(len(p.grid_values()) for p in self._params)
