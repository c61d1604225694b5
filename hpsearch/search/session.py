"""
Search session: the explicit context a search runs in.

The session owns everything that outlives a single candidate evaluation:
the optional worker pool, the cancellation flag, and the lock that
serialises result collection. It is scoped to the lifetime of a search
and releases its pool deterministically when closed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchSession:
    """
    Execution context for ``run_search``.

    Parameters
    ----------
    n_jobs:
        Number of candidates evaluated concurrently. ``1`` evaluates
        candidates one after another in the calling thread.
    keep_models:
        Whether trained model handles are kept on the results. Disable
        for large searches where only the scores are needed.
    abandon_inflight:
        What ``cancel()`` does to evaluations already running. When false
        they are allowed to finish; when true they stop at their next
        checkpoint and their partially trained models are discarded.

    Examples
    --------
    >>> with SearchSession(n_jobs=4) as session:
    ...     result = run_search(space, GridMode(), train_fn, eval_fn, session=session)
    """

    def __init__(
        self,
        n_jobs: int = 1,
        keep_models: bool = True,
        abandon_inflight: bool = False,
    ) -> None:
        if n_jobs < 1:
            raise ValueError("n_jobs must be >= 1")
        self.n_jobs = n_jobs
        self.keep_models = keep_models
        self.abandon_inflight = abandon_inflight

        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._slots: threading.BoundedSemaphore | None = None
        self._closed = False

        if n_jobs > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=n_jobs, thread_name_prefix="hpsearch"
            )
            # dispatch runs at most this far ahead of the workers
            self._slots = threading.BoundedSemaphore(2 * n_jobs)

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------
    def __enter__(self) -> "SearchSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        logger.debug("search session closed")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pooled(self) -> bool:
        return self._executor is not None

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Stop dispatching candidates. Safe to call from any thread."""
        if not self._cancel.is_set():
            logger.info("search cancelled")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def should_abandon(self) -> bool:
        return self.abandon_inflight and self._cancel.is_set()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def submit(self, fn: Callable[[], T]) -> Future:
        """
        Run ``fn`` on the pool, blocking only while the dispatch window is
        full. Without a pool ``fn`` runs inline and a finished future is
        returned.
        """
        if self._closed:
            raise RuntimeError("search session is closed")
        if self._executor is None:
            future: Future = Future()
            try:
                future.set_result(fn())
            except Exception as exc:
                future.set_exception(exc)
            return future

        assert self._slots is not None
        self._slots.acquire()
        try:
            future = self._executor.submit(fn)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def collect(self, target: List[T], item: T) -> None:
        """Append ``item`` to ``target`` under the session lock."""
        with self._lock:
            target.append(item)
