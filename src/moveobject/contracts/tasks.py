# src/moveobject/contracts/tasks.py
"""Task, Outcome and OperationResult value types.

A Task is created by an entry source and consumed by exactly one worker.
An Outcome is created by a worker (or by the producer for keys rejected
before enqueue) and consumed by the outcome router.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from moveobject.contracts.enums import OutcomeKind
from moveobject.contracts.errors import OperationErrorReason


@dataclass(frozen=True, slots=True)
class Task:
    """One object key, plus optional version, awaiting an operation."""

    key: str
    version_id: str | None = None


@dataclass(frozen=True, slots=True)
class Outcome:
    """Recorded result for one task key."""

    kind: OutcomeKind
    key: str

    @classmethod
    def success(cls, key: str) -> Outcome:
        return cls(OutcomeKind.SUCCESS, key)

    @classmethod
    def failure(cls, key: str) -> Outcome:
        return cls(OutcomeKind.FAILURE, key)


@dataclass(frozen=True)
class OperationResult:
    """Result of running an operation strategy against one task.

    Use the factory methods to create instances. Expected remote conditions
    (missing object, access denied, routing miss) are reported as error
    results rather than raised.

    Attributes:
        status: "success" or "error"
        action: What the strategy did on success (e.g. "copied", "dry_run")
        reason: Structured reason on error, None on success
    """

    status: Literal["success", "error"]
    action: str | None = None
    reason: OperationErrorReason | None = None

    def __post_init__(self) -> None:
        if self.status == "success" and self.action is None:
            raise ValueError("OperationResult with status='success' MUST provide an action")
        if self.status == "error" and self.reason is None:
            raise ValueError("OperationResult with status='error' MUST provide a reason")

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, action: str) -> OperationResult:
        """Create a successful result.

        Args:
            action: Short verb describing the effect, e.g. "moved"
        """
        return cls(status="success", action=action)

    @classmethod
    def error(cls, reason: OperationErrorReason) -> OperationResult:
        """Create an error result.

        Args:
            reason: Structured reason; must include at least 'reason'
        """
        return cls(status="error", reason=reason)
