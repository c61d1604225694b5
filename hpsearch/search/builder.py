"""
Configuration builder utilities.

These helpers take a base configuration object and apply the values of a
candidate to it. Candidate parameter names are attribute paths on the
configuration, with dots for nested attributes, for example
"optimizer_config.lr". The builder also checks a space against the
configuration before a search starts, so a misspelled parameter is
reported up front instead of failing every candidate.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Generic, Tuple, TypeVar

from ..space.candidates import Candidate
from ..space.space import HyperparameterSpace

TConfig = TypeVar("TConfig")


def _resolve(root: Any, path: str) -> Tuple[Any, str]:
    """Return ``(owner, attribute)`` for a dotted path, or raise AttributeError."""
    *parents, leaf = path.split(".")
    owner = root
    for name in parents:
        owner = _step(root, owner, name, path)
    _step(root, owner, leaf, path)
    return owner, leaf


def _step(root: Any, owner: Any, name: str, path: str) -> Any:
    if not hasattr(owner, name):
        raise AttributeError(
            f"'{path}' does not resolve on {type(root).__name__}: "
            f"{type(owner).__name__} has no attribute '{name}'"
        )
    return getattr(owner, name)


class TrainConfigBuilder(Generic[TConfig]):
    """
    Build training configuration objects from candidates.

    Works with any attribute container: dataclasses, pydantic models or
    plain objects.

    Examples
    --------
    >>> builder = TrainConfigBuilder(TrainConfig(epochs=20))
    >>> cfg = builder.with_overrides({"epochs": 50, "optimizer_config.lr": 0.01})
    """

    def __init__(self, base_config: TConfig) -> None:
        self._base_config = base_config

    @property
    def base_config(self) -> TConfig:
        return self._base_config

    def with_overrides(self, params: Dict[str, Any]) -> TConfig:
        """
        Return a deep copy of the base configuration with ``params`` set.

        Keys may use dotted paths. An unknown path raises AttributeError
        and leaves the base configuration untouched.
        """
        cfg = copy.deepcopy(self._base_config)
        for key, value in params.items():
            owner, attr = _resolve(cfg, key)
            setattr(owner, attr, value)
        return cfg

    def with_candidate(self, candidate: Candidate) -> TConfig:
        return self.with_overrides(candidate.params)

    def accepts(self, key: str) -> bool:
        try:
            _resolve(self._base_config, key)
        except AttributeError:
            return False
        return True

    def validate_space(self, space: HyperparameterSpace) -> None:
        """
        Raise InvalidSpaceError if a parameter of ``space`` does not name an
        attribute of the base configuration.
        """
        space.check_contract(name for name in space.names if self.accepts(name))

    def wrap(self, fn: Callable[[TConfig], Any]) -> Callable[[Candidate], Any]:
        """
        Turn ``fn(config)`` into a ``train_fn(candidate)`` for the driver.

        The returned function carries ``validate_space``, so ``run_search``
        rejects parameters the configuration lacks before training.
        """

        def train_fn(candidate: Candidate) -> Any:
            return fn(self.with_candidate(candidate))

        train_fn.validate_space = self.validate_space
        return train_fn
