from __future__ import annotations

import logging
import math
import time
from collections.abc import Generator, Iterator, Mapping
from typing import Any, Callable, Dict, List

from ..config.schema import StoppingPolicy
from ..errors import EvaluationCancelled, TrainingFailure
from ..space.candidates import Candidate
from .callbacks import Callback, CallbackList, EarlyStopping, HistoryCallback
from .engine import Engine, EvaluationStatus

logger = logging.getLogger(__name__)

TrainFn = Callable[[Candidate], Any]
EvalFn = Callable[[Any], Any]


class CandidateEvaluator:
    """
    Checkpoint loop for a single candidate.

    ``train_fn`` may return a model handle, which is scored once, or an
    iterator of handles, one per scoring checkpoint. Each handle is passed
    to ``eval_fn``; the monitored value drives early stopping. When
    training stops early the iterator is closed so the training loop can
    release its resources.
    """

    def __init__(
        self,
        candidate: Candidate,
        train_fn: TrainFn,
        eval_fn: EvalFn,
        policy: StoppingPolicy,
        callbacks: List[Callback] | None = None,
        should_abandon: Callable[[], bool] | None = None,
    ) -> None:
        self.candidate = candidate
        self.train_fn = train_fn
        self.eval_fn = eval_fn
        self.policy = policy
        self._should_abandon = should_abandon or (lambda: False)

        user_cbs = list(callbacks or [])
        self.early_stopping: EarlyStopping | None = None
        if policy.enabled:
            self.early_stopping = EarlyStopping.from_policy(policy)
            user_cbs.append(self.early_stopping)
        self.history_cb = HistoryCallback()
        user_cbs.append(self.history_cb)
        self.callbacks = CallbackList(user_cbs)

        self.engine = Engine(candidate=candidate, policy=policy)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self) -> Engine:
        engine = self.engine
        if self._should_abandon():
            engine.transition(EvaluationStatus.CANCELLED)
            raise EvaluationCancelled(self.candidate)

        engine.transition(EvaluationStatus.TRAINING)
        self.callbacks.on_train_begin(engine)
        start = time.perf_counter()
        try:
            self._train()
        except EvaluationCancelled:
            engine.model = None
            engine.transition(EvaluationStatus.CANCELLED)
            raise
        except Exception as exc:
            engine.model = None
            engine.transition(EvaluationStatus.FAILED)
            engine.transition(EvaluationStatus.SCORED)
            raise TrainingFailure(
                self.candidate, f"{type(exc).__name__}: {exc}", engine.checkpoint
            ) from exc
        finally:
            engine.duration = time.perf_counter() - start

        if engine.stop_training:
            engine.transition(EvaluationStatus.STOPPED_EARLY)
            logger.debug(
                "candidate #%d stopped early at checkpoint %d",
                self.candidate.index,
                engine.checkpoint,
            )
        else:
            engine.transition(EvaluationStatus.CONVERGED)
        self.callbacks.on_train_end(engine)
        engine.transition(EvaluationStatus.SCORED)
        return engine

    @property
    def history(self) -> Dict[str, Any]:
        return self.history_cb.history

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _train(self) -> None:
        engine = self.engine
        output = self.train_fn(self.candidate)
        checkpoints = output if isinstance(output, Iterator) else iter((output,))
        try:
            for model in checkpoints:
                engine.checkpoint += 1
                engine.model = model
                self._score(model)
                self.callbacks.on_checkpoint_end(engine)
                if self._should_abandon():
                    raise EvaluationCancelled(self.candidate)
                if engine.stop_training:
                    break
        finally:
            if isinstance(output, Generator):
                output.close()

        if engine.checkpoint < 0:
            raise RuntimeError("training produced no checkpoints")

    def _score(self, model: Any) -> None:
        raw = self.eval_fn(model)
        name = self.policy.metric
        if isinstance(raw, Mapping):
            values = {str(k): float(v) for k, v in raw.items()}
            if name not in values:
                raise KeyError(f"eval_fn did not report metric '{name}'")
            monitored = values[name]
        else:
            monitored = float(raw)
            values = {name: monitored}
        if math.isnan(monitored):
            raise ValueError(f"metric '{name}' is NaN")

        self.engine.set_metrics(values, monitored)
        logger.debug(
            "candidate #%d checkpoint %d: %s=%.6g",
            self.candidate.index,
            self.engine.checkpoint,
            name,
            monitored,
        )
