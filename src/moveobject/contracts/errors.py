# src/moveobject/contracts/errors.py
"""Exception taxonomy and error-reason payloads.

Fatal errors (configuration, input format, listing, outcome logs) abort a run.
Per-task errors (remote, routing, rewrite) are converted into failure outcomes
at the strategy/worker boundary and never stop the run.
"""

from __future__ import annotations

from typing import NotRequired, TypedDict


class OperationErrorReason(TypedDict):
    """Structured reason attached to a failed OperationResult."""

    reason: str
    error: NotRequired[str]
    error_type: NotRequired[str]
    code: NotRequired[str | None]
    destination: NotRequired[str]


class MoveObjectError(Exception):
    """Base class for all moveobject errors."""


class ConfigurationError(MoveObjectError):
    """Settings are missing or inconsistent for the requested operation."""


class InputFormatError(MoveObjectError):
    """A line of the object listing file cannot be parsed.

    Attributes:
        line_number: 1-based line number in the input file
        line: The offending raw line
    """

    def __init__(self, line_number: int, line: str, message: str) -> None:
        super().__init__(f"line {line_number}: {message}: {line!r}")
        self.line_number = line_number
        self.line = line


class ListingError(MoveObjectError):
    """The remote listing failed part-way; its completeness is unknown."""


class OutcomeLogError(MoveObjectError):
    """Success/failure log files could not be opened or written."""


class RemoteStoreError(MoveObjectError):
    """A remote object-store call failed.

    Raised by client adapters only. Strategies convert it into an error
    OperationResult.

    Attributes:
        operation: Client operation name (get, put, copy, remove, stat, list)
        bucket: Bucket the call targeted
        key: Object key, if the call was per-object
        code: Service error code (e.g. NoSuchKey, AccessDenied), if known
    """

    def __init__(
        self,
        operation: str,
        bucket: str,
        key: str | None,
        message: str,
        *,
        code: str | None = None,
    ) -> None:
        target = f"{bucket}/{key}" if key is not None else bucket
        super().__init__(f"{operation} {target} failed: {message}")
        self.operation = operation
        self.bucket = bucket
        self.key = key
        self.code = code


class RoutingError(MoveObjectError):
    """No destination bucket is configured for the key's numeric prefix."""


class RewriteError(MoveObjectError):
    """The key-rewrite policy cannot produce a destination key."""


class OperationCancelled(MoveObjectError):
    """Raised at a cancellation checkpoint once the run has been cancelled."""
