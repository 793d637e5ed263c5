"""Status codes and kinds shared across subsystem boundaries."""

from enum import StrEnum


class OperationKind(StrEnum):
    """Operation a run applies to every listed object."""

    MIGRATE = "migrate"
    MOVE = "move"
    COPY = "copy"
    DELETE = "delete"


class OutcomeKind(StrEnum):
    """Recorded result of executing one task.

    Determines which outcome log the key is written to.
    """

    SUCCESS = "success"
    FAILURE = "failure"


class StatFailurePolicy(StrEnum):
    """How migrate treats a source object whose size cannot be read."""

    SUCCESS = "success"
    FAILURE = "failure"
