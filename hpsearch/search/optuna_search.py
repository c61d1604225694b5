
"""
Thin wrapper around Optuna studies.

OptunaSearch runs the same per-candidate evaluation as ``run_search``
(checkpoint loop, early stopping, failure isolation) but lets an Optuna
sampler choose the candidates. Every checkpoint value is reported to the
trial, so the study's intermediate values mirror the training curves.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional

import optuna
from optuna.study import Study
from optuna.trial import Trial

from ..config.schema import StoppingPolicy
from ..core.callbacks import Callback
from ..core.evaluator import EvalFn, TrainFn
from ..errors import SearchExhaustedError, TrainingFailure
from ..space.candidates import Candidate, GridMode, RandomMode, SearchMode, coerce_mode
from ..space.space import HyperparameterSpace
from .driver import SpaceContract, check_space, evaluate
from .result import SearchResult, TrainingResult

logger = logging.getLogger(__name__)


class _TrialReporter(Callback):
    def __init__(self, trial: Trial) -> None:
        self.trial = trial

    def on_checkpoint_end(self, engine) -> None:
        if engine.metric is not None:
            self.trial.report(engine.metric, step=engine.checkpoint)


@dataclass
class OptunaSearch:
    """
    Run the candidate evaluation loop inside an Optuna study.

    Each trial draws a candidate with ``param.suggest(trial)``, trains and
    scores it like ``evaluate`` and reports every checkpoint metric with
    ``trial.report``. The study stays available for direct use.
    """

    study: Study
    space: HyperparameterSpace
    train_fn: TrainFn
    eval_fn: EvalFn
    stopping_policy: StoppingPolicy = field(default_factory=StoppingPolicy)
    keep_models: bool = False

    _results: List[TrainingResult] = field(default_factory=list, init=False, repr=False)
    _failures: List[TrainingFailure] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def comparison(self) -> str:
        return self.study.direction.name.lower()

    def candidate_for(self, trial: Trial) -> Candidate:
        values = tuple((p.name, p.suggest(trial)) for p in self.space)
        return Candidate(values=values, index=trial.number)

    def objective(self, trial: Trial) -> float:
        """
        Optuna compatible objective function.

        Raises TrainingFailure for a failed candidate; ``run`` tells the
        study to record such trials as failed and carry on.
        """
        candidate = self.candidate_for(trial)
        try:
            result = evaluate(
                candidate,
                self.train_fn,
                self.eval_fn,
                self.stopping_policy,
                callbacks=[_TrialReporter(trial)],
                keep_model=self.keep_models,
            )
        except TrainingFailure as failure:
            logger.warning("trial %d failed: %s", trial.number, failure.reason)
            with self._lock:
                self._failures.append(failure)
            raise
        trial.set_user_attr("status", result.status.value)
        trial.set_user_attr("checkpoints", result.checkpoints)
        with self._lock:
            self._results.append(result)
        return result.score

    def run(
        self,
        n_trials: int,
        n_jobs: int = 1,
        timeout: Optional[float] = None,
        gc_after_trial: bool = True,
    ) -> SearchResult:
        """
        Run hyperparameter optimization.

        Parameters
        ----------
        n_trials:
            Maximum number of trials to run.
        n_jobs:
            Number of parallel workers.
        timeout:
            Maximum optimization time in seconds. If None there is no
            time limit.
        gc_after_trial:
            Whether to trigger garbage collection after each trial.

        Returns
        -------
        SearchResult
            The trials of this run, ranked in the study's direction.
        """
        with self._lock:
            self._results = []
            self._failures = []
        self.study.optimize(
            self.objective,
            n_trials=n_trials,
            n_jobs=n_jobs,
            timeout=timeout,
            catch=(TrainingFailure,),
            gc_after_trial=gc_after_trial,
        )
        if not self._results and self._failures:
            raise SearchExhaustedError(self._failures)
        return SearchResult(
            results=tuple(self._results),
            metric=self.stopping_policy.metric,
            comparison=self.comparison,
            failures=tuple(self._failures),
        )

    @property
    def best_params(self) -> dict:
        """
        Return the best hyperparameters found so far.
        """
        return self.candidate_for(optuna.trial.FixedTrial(self.study.best_params)).params

    @property
    def best_value(self) -> float:
        """
        Return the best objective value found so far.
        """
        return float(self.study.best_value)

    @classmethod
    def from_mode(
        cls,
        space: HyperparameterSpace,
        mode: SearchMode,
        train_fn: TrainFn,
        eval_fn: EvalFn,
        stopping_policy: StoppingPolicy | None = None,
        comparison: str = "maximize",
        study_name: str | None = None,
        storage: str | None = None,
        load_if_exists: bool = False,
        accepted: SpaceContract | None = None,
        **kwargs: Any,
    ) -> "OptunaSearch":
        """
        Create an OptunaSearch whose sampler follows a search mode.

        ``GridMode`` uses ``GridSampler`` over every parameter's grid
        values; ``RandomMode`` uses ``RandomSampler`` seeded from the mode.
        Pass ``storage="sqlite:///study.db"`` for a persistent study that
        supports parallel workers. ``accepted`` checks the space before
        the study is created, as in ``run_search``.
        """
        check_space(space, train_fn, accepted)
        mode = coerce_mode(mode)
        if isinstance(mode, GridMode):
            space.check_enumerable()
            sampler = optuna.samplers.GridSampler(
                {p.name: p.optuna_grid() for p in space}
            )
        else:
            assert isinstance(mode, RandomMode)
            sampler = optuna.samplers.RandomSampler(seed=mode.seed)

        study = optuna.create_study(
            study_name=study_name,
            storage=storage,
            direction=comparison,
            sampler=sampler,
            load_if_exists=load_if_exists,
        )
        policy = stopping_policy or StoppingPolicy(patience=0, direction=comparison)
        return cls(
            study=study,
            space=space,
            train_fn=train_fn,
            eval_fn=eval_fn,
            stopping_policy=policy,
            **kwargs,
        )
