# src/moveobject/engine/pool.py
"""Fixed-size pool of worker threads applying one strategy to queued tasks.

The pool never owns a thread per task: ``concurrency`` workers share the
task queue of a PipelineState and run until it is closed or the run is
cancelled.

Worker loop, per task:
1. Re-check the key filter (mismatch is a failure; the store is not contacted)
2. strategy.execute(task, ctx)
3. Emit the outcome, then bump exactly one counter

Nothing raised by a strategy escapes a worker: OperationCancelled ends the
worker without an outcome, any other exception becomes a failure.
"""

from __future__ import annotations

import threading

import structlog

from moveobject.contracts import OperationCancelled, OperationResult, Outcome, Task
from moveobject.core.filters import ACCEPT_ALL, KeyFilter
from moveobject.core.logging import thread_log_context
from moveobject.engine.state import PipelineState
from moveobject.operations.base import OperationContext, OperationStrategy

logger = structlog.get_logger(__name__)


class WorkerPool:
    """``concurrency`` non-daemon threads draining one task queue.

    Usage:
        pool = WorkerPool(state, strategy, concurrency=8)
        pool.start()
        ...  # producer enqueues, then state.close_tasks(pool.size)
        pool.join()
    """

    def __init__(
        self,
        state: PipelineState,
        strategy: OperationStrategy,
        *,
        concurrency: int,
        key_filter: KeyFilter = ACCEPT_ALL,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._state = state
        self._strategy = strategy
        self._key_filter = key_filter
        self._size = concurrency
        self._threads: list[threading.Thread] = []

    @property
    def size(self) -> int:
        return self._size

    @property
    def alive(self) -> int:
        return sum(1 for t in self._threads if t.is_alive())

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("WorkerPool already started")
        for i in range(self._size):
            name = f"moveobject-worker-{i}"
            ctx = OperationContext(cancel_event=self._state.cancel_event, worker_name=name)
            thread = threading.Thread(target=self._work, args=(ctx,), name=name, daemon=False)
            self._threads.append(thread)
            thread.start()

    def join(self) -> None:
        """Wait until every worker has exited."""
        for thread in self._threads:
            thread.join()

    def _work(self, ctx: OperationContext) -> None:
        with thread_log_context(operation=self._strategy.name, worker=ctx.worker_name):
            while (task := self._state.next_task()) is not None:
                try:
                    result = self._run_one(task, ctx)
                except OperationCancelled:
                    logger.debug("Worker cancelled mid-task", key=task.key)
                    return
                self._record(task, result)

    def _run_one(self, task: Task, ctx: OperationContext) -> OperationResult:
        if not self._key_filter.matches(task.key):
            return OperationResult.error(
                {"reason": "pattern_mismatch", "error": f"{task.key!r} does not match {self._key_filter.pattern!r}"}
            )
        logger.debug("Processing object", key=task.key)
        try:
            return self._strategy.execute(task, ctx)
        except OperationCancelled:
            raise
        except Exception as e:
            logger.exception("Unexpected error processing object", key=task.key)
            return OperationResult.error(
                {"reason": "unexpected_error", "error": str(e), "error_type": type(e).__name__}
            )

    def _record(self, task: Task, result: OperationResult) -> None:
        counters = self._state.counters
        if not result.ok:
            logger.warning("Object failed", key=task.key, **(result.reason or {}))
            if self._state.emit(Outcome.failure(task.key)):
                counters.increment_failed()
            return
        if self._strategy.records_success and not self._state.emit(Outcome.success(task.key)):
            return
        counters.increment_processed()
