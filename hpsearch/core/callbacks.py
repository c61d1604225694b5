from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List

from ..config.schema import StoppingPolicy


class Callback:
    def on_train_begin(self, engine: "Engine") -> None: ...
    def on_checkpoint_end(self, engine: "Engine") -> None: ...
    def on_train_end(self, engine: "Engine") -> None: ...


@dataclass
class HistoryCallback(Callback):
    history: Dict[str, Any] = field(
        default_factory=lambda: {
            "checkpoint": [],
            "metric": [],
            "metrics": {},
        }
    )

    def on_checkpoint_end(self, engine: "Engine") -> None:
        h = self.history
        h["checkpoint"].append(engine.checkpoint)
        h["metric"].append(engine.metric)
        for name, value in engine.metric_values.items():
            h["metrics"].setdefault(name, []).append(value)


@dataclass
class EarlyStopping(Callback):
    """
    Stop once the moving average of the monitored metric stalls.

    The last ``window`` values are averaged at every checkpoint and the
    average is compared with the best average seen so far. A gain that
    does not exceed ``min_delta`` counts as a stalled checkpoint; any
    larger gain resets the count. Training stops when ``patience``
    consecutive checkpoints have stalled.
    """

    patience: int = 3
    min_delta: float = 0.0
    window: int = 1
    direction: str = "maximize"

    best: float | None = None
    wait: int = 0
    stopped_checkpoint: int | None = None

    _recent: Deque[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.window < 1:
            raise ValueError("window must be >= 1")
        self._recent = deque(maxlen=self.window)

    @classmethod
    def from_policy(cls, policy: StoppingPolicy) -> "EarlyStopping":
        return cls(
            patience=policy.patience,
            min_delta=policy.min_delta,
            window=policy.window,
            direction=policy.direction,
        )

    @property
    def moving_average(self) -> float | None:
        if not self._recent:
            return None
        return sum(self._recent) / len(self._recent)

    def _significant(self, gain: float) -> bool:
        # gains equal to min_delta up to float noise do not count
        return gain > self.min_delta and not math.isclose(
            gain, self.min_delta, rel_tol=1e-9, abs_tol=1e-12
        )

    def on_train_begin(self, engine: "Engine") -> None:
        self._recent.clear()
        self.best = None
        self.wait = 0
        self.stopped_checkpoint = None

    def on_checkpoint_end(self, engine: "Engine") -> None:
        if engine.metric is None:
            return
        self._recent.append(engine.metric)
        avg = self.moving_average

        if self.best is None:
            self.best = avg
            return

        if self.direction == "maximize":
            gain = avg - self.best
            self.best = max(self.best, avg)
        else:
            gain = self.best - avg
            self.best = min(self.best, avg)

        if self._significant(gain):
            self.wait = 0
        else:
            self.wait += 1

        if self.patience and self.wait >= self.patience:
            self.stopped_checkpoint = engine.checkpoint
            engine.stop_training = True


class CallbackList(Callback):
    def __init__(self, callbacks: List[Callback] | None = None):
        self.callbacks = callbacks or []

    def append(self, cb: Callback) -> None:
        self.callbacks.append(cb)

    def on_train_begin(self, engine: "Engine") -> None:
        for cb in self.callbacks:
            cb.on_train_begin(engine)

    def on_checkpoint_end(self, engine: "Engine") -> None:
        for cb in self.callbacks:
            cb.on_checkpoint_end(engine)

    def on_train_end(self, engine: "Engine") -> None:
        for cb in self.callbacks:
            cb.on_train_end(engine)
