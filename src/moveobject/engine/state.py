# src/moveobject/engine/state.py
"""Queues and counters shared by the producer, the workers and the router.

PipelineState is constructed before any thread starts. Shutdown happens in
three phases, driven by Pipeline.finish():

1. close_tasks(): one sentinel per worker - no more input
2. workers drain the task queue and exit (joined by the WorkerPool)
3. close_outcomes(): one close marker per outcome queue - the router drains
   what is left and exits

Thread Safety:
    Every blocking put/get polls the shared cancellation event so that no
    producer or worker can stay blocked on a full or empty queue after
    cancellation. Outcome close markers are the exception: they are delivered
    for as long as the router is alive, so the router records every outcome
    a worker managed to emit.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from typing import Any

from moveobject.contracts import Outcome, OutcomeKind, Task
from moveobject.engine.counters import ProgressCounters

# End-of-stream marker; compared with "is"
_CLOSED: Any = object()


def _put_while(
    q: queue.Queue[Any],
    item: Any,
    keep_trying: Callable[[], bool],
    poll_interval: float,
) -> bool:
    """Blocking put that gives up as soon as keep_trying() turns False.

    Returns:
        True if the item was queued, False if it was abandoned
    """
    while keep_trying():
        try:
            q.put(item, timeout=poll_interval)
            return True
        except queue.Full:
            continue
    return False


def _put_until_cancelled(
    q: queue.Queue[Any],
    item: Any,
    cancel_event: threading.Event,
    poll_interval: float,
) -> bool:
    return _put_while(q, item, lambda: not cancel_event.is_set(), poll_interval)


class OutcomeChannels:
    """Success and failure queues read through one fair multiplexer.

    Writers put into the queue matching the outcome kind and then release a
    semaphore, so the single reader can block on "anything available" instead
    of polling each queue. The reader rotates which queue it tries first so a
    burst of one kind cannot starve the other.

    Only one thread (the router) may read.
    """

    def __init__(self, maxsize: int) -> None:
        self._queues: dict[OutcomeKind, queue.Queue[Any]] = {
            OutcomeKind.SUCCESS: queue.Queue(maxsize=maxsize),
            OutcomeKind.FAILURE: queue.Queue(maxsize=maxsize),
        }
        self._available = threading.Semaphore(0)
        # Reader-side state
        self._order: list[OutcomeKind] = [OutcomeKind.SUCCESS, OutcomeKind.FAILURE]
        self._open: set[OutcomeKind] = set(self._queues)

    def put(self, outcome: Outcome, cancel_event: threading.Event, poll_interval: float) -> bool:
        if not _put_until_cancelled(self._queues[outcome.kind], outcome, cancel_event, poll_interval):
            return False
        self._available.release()
        return True

    def close(self, keep_trying: Callable[[], bool], poll_interval: float) -> None:
        """Send one close marker per queue (writer side, once).

        Close markers are delivered even after cancellation; ``keep_trying``
        should report whether the reader is still alive.
        """
        for q in self._queues.values():
            if _put_while(q, _CLOSED, keep_trying, poll_interval):
                self._available.release()

    @property
    def closed(self) -> bool:
        """True once the reader has consumed both close markers."""
        return not self._open

    def next_outcome(self, timeout: float) -> Outcome | None:
        """Return the next outcome from either queue.

        Returns None when nothing arrived within ``timeout`` seconds
        (``0`` = don't wait) or when a close marker was consumed; check
        ``closed`` to tell them apart.
        """
        if timeout == 0:
            acquired = self._available.acquire(blocking=False)
        else:
            acquired = self._available.acquire(timeout=timeout)
        if not acquired:
            return None

        # Every release follows a put, so at least one queue holds an item
        for kind in list(self._order):
            try:
                item = self._queues[kind].get_nowait()
            except queue.Empty:
                continue
            self._order.remove(kind)
            self._order.append(kind)
            if item is _CLOSED:
                self._open.discard(kind)
                return None
            outcome: Outcome = item
            return outcome
        return None

    def qsize(self, kind: OutcomeKind) -> int:
        return self._queues[kind].qsize()


class PipelineState:
    """Task queue, outcome channels and counters for one run.

    Attributes:
        counters: Processed/failed counters, read after finish()
        cancel_event: Shared cancellation signal
    """

    def __init__(
        self,
        queue_size: int,
        *,
        cancel_event: threading.Event | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self._tasks: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._outcomes = OutcomeChannels(queue_size)
        self._poll_interval = poll_interval
        self._enqueued = 0
        self.counters = ProgressCounters()
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    @property
    def outcomes(self) -> OutcomeChannels:
        return self._outcomes

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def enqueued(self) -> int:
        """Tasks accepted into the queue (producer thread only)."""
        return self._enqueued

    def enqueue(self, task: Task) -> bool:
        """Queue a task, blocking while the queue is full.

        Returns:
            False if the run was cancelled before the task could be queued
        """
        if not _put_until_cancelled(self._tasks, task, self.cancel_event, self._poll_interval):
            return False
        self._enqueued += 1
        return True

    def next_task(self) -> Task | None:
        """Block until a task is available.

        Returns:
            The next task, or None when the queue is closed or the run is
            cancelled
        """
        while not self.cancel_event.is_set():
            try:
                item = self._tasks.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if item is _CLOSED:
                return None
            task: Task = item
            return task
        return None

    def close_tasks(self, worker_count: int) -> None:
        """Signal end of input: one sentinel per worker."""
        for _ in range(worker_count):
            if not _put_until_cancelled(self._tasks, _CLOSED, self.cancel_event, self._poll_interval):
                return

    def emit(self, outcome: Outcome) -> bool:
        """Hand an outcome to the router.

        Returns:
            False if the run was cancelled before the outcome could be queued
        """
        return self._outcomes.put(outcome, self.cancel_event, self._poll_interval)

    def close_outcomes(self, reader_alive: Callable[[], bool] | None = None) -> None:
        """Signal that no worker will emit again. Call only after all workers exited.

        Args:
            reader_alive: Liveness check for the outcome reader; without one the
                close markers are abandoned once the run is cancelled
        """
        keep_trying = reader_alive if reader_alive is not None else (lambda: not self.cancelled)
        self._outcomes.close(keep_trying, self._poll_interval)
