# src/moveobject/engine/pipeline.py
"""Pipeline wires an entry source, a worker pool and an outcome router.

Lifecycle:
    start()   open logs, start router, start workers
    submit()  filter + enqueue one task (producer side, main thread)
    finish()  grace delay, close tasks, join workers, close outcomes,
              join router, emit summary

``run(source)`` does all three. Any exception raised while producing (a
malformed listing line, a broken remote listing, Ctrl-C) cancels the run,
waits for every thread and then propagates unchanged. The source's reader is
closed on every exit path. A pipeline runs once; a second finish() raises.

The pipeline holds no module-level state: everything comes from an
immutable PipelineConfig and the strategy instance, whose dry_run must
agree with the config's.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Self

import structlog

from moveobject.contracts import Outcome, OutcomeLogError, Task
from moveobject.core.filters import ACCEPT_ALL, KeyFilter
from moveobject.engine.pool import WorkerPool
from moveobject.engine.router import OutcomeRouter, outcome_log_paths
from moveobject.engine.state import PipelineState
from moveobject.operations.base import OperationStrategy

if TYPE_CHECKING:
    from moveobject.core.config import MoveObjectSettings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable run configuration shared by every component of a run.

    Attributes:
        concurrency: Number of worker threads
        queue_size: Bound of the task queue and of each outcome queue
        data_dir: Directory the outcome logs are written to
        dry_run: Log intended effects only; no log files are created
        key_filter: Predicate every key must satisfy
        timestamp_logs: Suffix log names with the run start time
        close_grace_seconds: Delay before the task queue is closed
        poll_interval: How often blocked threads re-check cancellation
    """

    concurrency: int
    queue_size: int
    data_dir: Path = Path(".")
    dry_run: bool = False
    key_filter: KeyFilter = ACCEPT_ALL
    timestamp_logs: bool = True
    close_grace_seconds: float = 0.1
    poll_interval: float = 0.05

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {self.queue_size}")
        if self.close_grace_seconds < 0:
            raise ValueError(f"close_grace_seconds must be >= 0, got {self.close_grace_seconds}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")

    @classmethod
    def from_settings(cls, settings: MoveObjectSettings) -> Self:
        return cls(
            concurrency=settings.pool.resolved_concurrency(),
            queue_size=settings.pool.resolved_queue_size(),
            data_dir=settings.data_dir,
            dry_run=settings.dry_run,
            key_filter=KeyFilter(settings.key_pattern),
            timestamp_logs=settings.timestamp_logs,
            close_grace_seconds=settings.pool.close_grace_seconds,
            poll_interval=settings.pool.poll_interval_seconds,
        )


@dataclass(frozen=True)
class RunSummary:
    """Counters and log locations of a finished run."""

    operation: str
    processed: int
    failed: int
    submitted: int
    cancelled: bool
    dry_run: bool
    success_log: Path | None
    failure_log: Path | None
    elapsed_seconds: float

    @property
    def completed(self) -> int:
        return self.processed + self.failed


class Pipeline:
    """One bulk operation run over a stream of tasks.

    Example:
        pipeline = Pipeline(CopyStrategy(client, "photos"), PipelineConfig(concurrency=8, queue_size=8))
        summary = pipeline.run(FileEntrySource(Path("object_listing.txt")))
    """

    def __init__(
        self,
        strategy: OperationStrategy,
        config: PipelineConfig,
        *,
        cancel_event: threading.Event | None = None,
        started_at: datetime | None = None,
    ) -> None:
        if strategy.dry_run != config.dry_run:
            raise ValueError(
                f"strategy dry_run={strategy.dry_run} disagrees with run configuration dry_run={config.dry_run}"
            )
        self._strategy = strategy
        self._config = config
        self._state = PipelineState(config.queue_size, cancel_event=cancel_event, poll_interval=config.poll_interval)
        self._started_at = started_at
        self._pool = WorkerPool(
            self._state,
            strategy,
            concurrency=config.concurrency,
            key_filter=config.key_filter,
        )
        self._router: OutcomeRouter | None = None
        self._started = False
        self._finished = False
        self._clock_start = 0.0

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def router(self) -> OutcomeRouter | None:
        return self._router

    def cancel(self) -> None:
        """Signal every thread of the run to stop promptly."""
        self._state.cancel_event.set()

    def start(self) -> None:
        """Open the outcome logs, then start the router and the workers.

        Raises:
            OutcomeLogError: If the log files cannot be created
        """
        if self._started:
            raise RuntimeError("Pipeline already started")
        started_at = self._started_at or datetime.now()
        success_path: Path | None = None
        failure_path: Path | None = None
        if not self._config.dry_run:
            success_path, failure_path = outcome_log_paths(
                self._config.data_dir,
                self._strategy.log_name,
                timestamp=started_at if self._config.timestamp_logs else None,
            )
            if not self._strategy.records_success:
                success_path = None

        router = OutcomeRouter(self._state, success_path, failure_path)
        router.open()
        self._router = router
        self._clock_start = time.monotonic()
        router.start()
        self._pool.start()
        self._started = True
        logger.info(
            "Run started",
            operation=self._strategy.name,
            concurrency=self._config.concurrency,
            dry_run=self._config.dry_run,
            success_log=str(success_path) if success_path else None,
            failure_log=str(failure_path) if failure_path else None,
        )

    def submit(self, task: Task) -> bool:
        """Filter and enqueue one task.

        A key rejected by the filter is recorded as a failure right away.

        Returns:
            False once the run is cancelled; the caller should stop producing
        """
        if not self._config.key_filter.matches(task.key):
            logger.warning("Object does not match key pattern", key=task.key, pattern=self._config.key_filter.pattern)
            if not self._state.emit(Outcome.failure(task.key)):
                return False
            self._state.counters.increment_failed()
            return True
        return self._state.enqueue(task)

    def finish(self) -> RunSummary:
        """Three-phase shutdown, then report.

        Raises:
            OutcomeLogError: If an outcome log could not be written
        """
        if self._finished:
            raise RuntimeError("Pipeline already finished")
        if not self._started:
            raise RuntimeError("Pipeline not started")
        self._finished = True
        self._shutdown()
        summary = self._summary()
        if not summary.dry_run:
            logger.info(
                f"{self._strategy.summary_verb} {summary.processed} objects, {summary.failed} failures",
                operation=summary.operation,
                processed=summary.processed,
                failed=summary.failed,
                cancelled=summary.cancelled,
                elapsed_seconds=round(summary.elapsed_seconds, 3),
            )
        return summary

    def run(self, source: Iterable[Task]) -> RunSummary:
        """Start, feed every task from ``source``, finish.

        Raises:
            Whatever the source raises (after the run has been cancelled and
            all threads have exited), or OutcomeLogError from finish()
        """
        # Opening the source first: an unreadable listing fails before any thread starts
        tasks = iter(source)
        try:
            self.start()
            try:
                for task in tasks:
                    if not self.submit(task):
                        break
            except BaseException:
                self._abort()
                raise
            try:
                return self.finish()
            except KeyboardInterrupt:
                self._abort()
                raise
        finally:
            _close_source(tasks)

    def _shutdown(self) -> None:
        if not self._started:
            raise RuntimeError("Pipeline not started")
        assert self._router is not None
        if not self._state.cancelled and self._config.close_grace_seconds:
            time.sleep(self._config.close_grace_seconds)
        self._state.close_tasks(self._pool.size)
        self._pool.join()
        self._state.close_outcomes(reader_alive=self._router.is_alive)
        self._router.join()

    def _abort(self) -> None:
        self._finished = True
        self.cancel()
        try:
            self._shutdown()
        except OutcomeLogError as e:
            logger.error("Outcome logs incomplete after abort", error=str(e))

    def _summary(self) -> RunSummary:
        counts = self._state.counters.snapshot()
        router = self._router
        return RunSummary(
            operation=self._strategy.name,
            processed=counts["processed"],
            failed=counts["failed"],
            submitted=self._state.enqueued,
            cancelled=self._state.cancelled,
            dry_run=self._config.dry_run,
            success_log=router.success_path if router else None,
            failure_log=router.failure_path if router else None,
            elapsed_seconds=time.monotonic() - self._clock_start,
        )


def _close_source(tasks: Iterator[Task]) -> None:
    """Release the source's file or listing even when it was never fully consumed."""
    close = getattr(tasks, "close", None)
    if close is not None:
        close()
