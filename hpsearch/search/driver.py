"""
Search driver.

``evaluate`` trains and scores one candidate with early stopping;
``run_search`` generates the candidates of a space, evaluates each of
them (inline or on the session's worker pool), isolates per-candidate
failures and picks the best result.
"""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Future
from functools import partial
from typing import Any, Callable, Iterable, List, Mapping, Sequence, Tuple, Union

from ..config.schema import DIRECTIONS, StoppingPolicy
from ..core.callbacks import Callback
from ..core.evaluator import CandidateEvaluator, EvalFn, TrainFn
from ..errors import EvaluationCancelled, SearchExhaustedError, TrainingFailure
from ..space.candidates import Candidate, SearchMode, generate_candidates
from ..space.space import HyperparameterSpace
from .result import SearchResult, TrainingResult
from .session import SearchSession

logger = logging.getLogger(__name__)

SpaceContract = Union[Iterable[str], Callable[[HyperparameterSpace], None]]


def check_space(
    space: HyperparameterSpace,
    train_fn: TrainFn,
    accepted: SpaceContract | None = None,
) -> None:
    """
    Raise InvalidSpaceError if ``space`` names a parameter the training
    function does not accept.

    ``accepted`` is either the accepted names or a validator called with
    the space. Without it, a ``validate_space`` found on ``train_fn`` or
    on the object ``train_fn`` is bound to is used. Nothing is checked
    when neither is available.
    """
    if accepted is None:
        accepted = getattr(train_fn, "validate_space", None)
    if accepted is None:
        accepted = getattr(getattr(train_fn, "__self__", None), "validate_space", None)
    if accepted is None:
        return
    if callable(accepted):
        accepted(space)
    else:
        space.check_contract(accepted)


def evaluate(
    candidate: Candidate,
    train_fn: TrainFn,
    eval_fn: EvalFn,
    stopping_policy: StoppingPolicy | None = None,
    *,
    callbacks: Sequence[Callback] | None = None,
    keep_model: bool = True,
    should_abandon: Callable[[], bool] | None = None,
) -> TrainingResult:
    """
    Train and score a single candidate.

    Parameters
    ----------
    candidate:
        The hyperparameter assignment to train.
    train_fn:
        ``train_fn(candidate)`` returns a model handle, or an iterator
        yielding a handle at every scoring checkpoint.
    eval_fn:
        ``eval_fn(handle)`` returns the metric as a number, or a mapping
        of metric names to numbers from which ``stopping_policy.metric``
        is monitored.
    stopping_policy:
        Early stopping configuration. None trains to completion.

    Returns
    -------
    TrainingResult
        Status ``STOPPED_EARLY`` when the patience ran out, otherwise
        ``CONVERGED``.

    Raises
    ------
    TrainingFailure
        If ``train_fn`` or ``eval_fn`` raised, or the metric is missing or
        NaN. The failure carries the candidate and the original exception
        as ``__cause__``.
    """
    policy = stopping_policy or StoppingPolicy(patience=0)
    evaluator = CandidateEvaluator(
        candidate,
        train_fn,
        eval_fn,
        policy,
        callbacks=list(callbacks or []),
        should_abandon=should_abandon,
    )
    engine = evaluator.run()
    stopper = evaluator.early_stopping
    return TrainingResult(
        candidate=candidate,
        score=float(engine.metric),
        status=engine.outcome,
        checkpoints=engine.checkpoint + 1,
        history=tuple(evaluator.history["metric"]),
        metrics=dict(engine.metric_values),
        duration=engine.duration,
        stopped_at=stopper.stopped_checkpoint if stopper is not None else None,
        model=engine.model if keep_model else None,
    )


def _settle(
    session: SearchSession,
    cancelled: List[Candidate],
    candidate: Candidate,
    future: Future,
    wait: bool = False,
) -> bool:
    """Reap a finished dispatch; False while it is still running."""
    if not wait and not future.done():
        return False
    try:
        future.result()
    except CancelledError:
        session.collect(cancelled, candidate)
    return True


def run_search(
    space: HyperparameterSpace | Mapping[str, Any],
    mode: SearchMode,
    train_fn: TrainFn,
    eval_fn: EvalFn,
    stopping_policy: StoppingPolicy | None = None,
    comparison: str = "maximize",
    *,
    session: SearchSession | None = None,
    accepted: SpaceContract | None = None,
) -> SearchResult:
    """
    Evaluate every candidate of ``space`` and return the ranked results.

    Candidates whose training fails are logged and recorded on
    ``SearchResult.failures``; the search carries on with the rest. Ties
    on the best score go to the candidate generated first.

    Parameters
    ----------
    space:
        Hyperparameter space, or a mapping accepted by HyperparameterSpace.
    mode:
        ``GridMode()``/``"grid"`` or ``RandomMode(n, seed)``.
    train_fn, eval_fn:
        See ``evaluate``.
    stopping_policy:
        Per-candidate early stopping. None trains every candidate to
        completion and monitors the scalar returned by ``eval_fn``.
    comparison:
        ``"maximize"`` or ``"minimize"`` the monitored metric.
    session:
        Execution context. A sequential session is created (and closed)
        for the call when omitted.
    accepted:
        Parameter names the training function understands, or a callable
        raising InvalidSpaceError for a space it cannot train. Defaults to
        the ``validate_space`` of ``train_fn``'s owner when it has one,
        such as ``MLPBackend.train_fn``.

    Raises
    ------
    InvalidSpaceError
        Before any training, if the space or mode is malformed or names
        a parameter the training function does not accept.
    SearchExhaustedError
        If no candidate produced a result because every one failed.
    """
    if comparison not in DIRECTIONS:
        raise ValueError(f"comparison must be one of {DIRECTIONS}, got {comparison!r}")

    if not isinstance(space, HyperparameterSpace):
        space = HyperparameterSpace(space)
    check_space(space, train_fn, accepted)
    candidates = generate_candidates(space, mode)

    if stopping_policy is None:
        policy = StoppingPolicy(patience=0, direction=comparison)
    else:
        policy = stopping_policy
        if policy.direction != comparison:
            logger.warning(
                "stopping policy %s '%s' but the search will %s it",
                policy.direction,
                policy.metric,
                comparison,
            )

    owns_session = session is None
    if session is None:
        session = SearchSession()

    results: List[TrainingResult] = []
    failures: List[TrainingFailure] = []
    cancelled: List[Candidate] = []

    def task(candidate: Candidate) -> None:
        if session.cancelled:
            session.collect(cancelled, candidate)
            return
        try:
            result = evaluate(
                candidate,
                train_fn,
                eval_fn,
                policy,
                keep_model=session.keep_models,
                should_abandon=session.should_abandon,
            )
        except TrainingFailure as failure:
            logger.warning("candidate #%d failed: %s", candidate.index, failure.reason)
            session.collect(failures, failure)
            return
        except EvaluationCancelled:
            session.collect(cancelled, candidate)
            return
        logger.debug(
            "candidate #%d %s after %d checkpoints: %s=%.6g",
            candidate.index,
            result.status.value,
            result.checkpoints,
            policy.metric,
            result.score,
        )
        session.collect(results, result)

    logger.info(
        "starting %s search over %d candidates (%d workers)",
        type(mode).__name__ if not isinstance(mode, str) else mode,
        len(candidates),
        session.n_jobs,
    )
    try:
        # only unfinished futures are held, at most the session's dispatch window
        pending: List[Tuple[Candidate, Future]] = []
        for candidate in candidates:
            if session.cancelled:
                session.collect(cancelled, candidate)
                continue
            pending.append((candidate, session.submit(partial(task, candidate))))
            pending = [(c, f) for c, f in pending if not _settle(session, cancelled, c, f)]
        for candidate, future in pending:
            _settle(session, cancelled, candidate, future, wait=True)
    finally:
        if owns_session:
            session.close()

    if not results and failures and not cancelled:
        raise SearchExhaustedError(failures)

    search_result = SearchResult(
        results=tuple(results),
        metric=policy.metric,
        comparison=comparison,
        failures=tuple(failures),
        cancelled=tuple(cancelled),
    )
    best = search_result.best
    logger.info(
        "search finished: %d scored, %d failed, %d cancelled%s",
        len(results),
        len(failures),
        len(cancelled),
        f"; best #{best.index} {policy.metric}={best.score:.6g}" if best else "",
    )
    return search_result
