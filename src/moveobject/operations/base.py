# src/moveobject/operations/base.py
"""Base class for operation strategies.

A strategy is the only variant-specific piece of a run. The worker pool is
generic: it pulls a Task, calls ``strategy.execute(task, ctx)`` and routes
the OperationResult to the success or failure log.

Contract:
- Expected remote conditions (missing object, access denied, transport
  failure, routing miss, rewrite miss) are returned as
  ``OperationResult.error(...)``, never raised.
- ``ctx.raise_if_cancelled()`` is called between remote calls; the
  OperationCancelled it raises is handled by the worker, which then exits
  without recording an outcome for the task.
- In dry-run mode a strategy logs the intended effect and returns
  ``OperationResult.success("dry_run")`` without touching the remote store.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from moveobject.contracts import (
    OperationCancelled,
    OperationErrorReason,
    OperationKind,
    OperationResult,
    RemoteStoreError,
    Task,
)


@dataclass(frozen=True)
class OperationContext:
    """Per-run context handed to every execute() call.

    Attributes:
        cancel_event: Shared cancellation signal for the run
        worker_name: Name of the calling worker thread, for log context
    """

    cancel_event: threading.Event = field(default_factory=threading.Event)
    worker_name: str = ""

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        """Cancellation checkpoint.

        Raises:
            OperationCancelled: If the run has been cancelled
        """
        if self.cancel_event.is_set():
            raise OperationCancelled("run cancelled")


class OperationStrategy(ABC):
    """Base class for migrate, move, copy and delete.

    Subclasses set the class attributes and implement execute().

    Attributes:
        kind: Which operation this is
        log_name: Stem of the outcome log files (``<log_name>_success.txt``)
        summary_verb: Past tense used in the final summary line
        records_success: False if successful keys are not written to a log
        requires_version: True if file input lines must be ``versionID,key``
    """

    kind: ClassVar[OperationKind]
    log_name: ClassVar[str]
    summary_verb: ClassVar[str]
    records_success: ClassVar[bool] = True
    requires_version: ClassVar[bool] = False

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        """Apply the operation to one task.

        Raises:
            OperationCancelled: Only from ctx.raise_if_cancelled()
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dry_run={self.dry_run})"


def remote_failure(reason: str, exc: RemoteStoreError, *, destination: str | None = None) -> OperationResult:
    """Build an error result from a RemoteStoreError."""
    payload: OperationErrorReason = {
        "reason": reason,
        "error": str(exc),
        "error_type": type(exc).__name__,
        "code": exc.code,
    }
    if destination is not None:
        payload["destination"] = destination
    return OperationResult.error(payload)


def local_failure(reason: str, exc: Exception) -> OperationResult:
    """Build an error result from a routing/rewrite error."""
    return OperationResult.error({"reason": reason, "error": str(exc), "error_type": type(exc).__name__})
