"""Shared types crossing subsystem boundaries.

Everything here is dependency-free: value objects, enums, protocols and
the exception taxonomy.
"""

from moveobject.contracts.enums import OperationKind, OutcomeKind, StatFailurePolicy
from moveobject.contracts.errors import (
    ConfigurationError,
    InputFormatError,
    ListingError,
    MoveObjectError,
    OperationCancelled,
    OperationErrorReason,
    OutcomeLogError,
    RemoteStoreError,
    RewriteError,
    RoutingError,
)
from moveobject.contracts.store import ObjectEntry, ObjectStat, ObjectStoreClient, ObjectStream
from moveobject.contracts.tasks import OperationResult, Outcome, Task

__all__ = [
    "ConfigurationError",
    "InputFormatError",
    "ListingError",
    "MoveObjectError",
    "ObjectEntry",
    "ObjectStat",
    "ObjectStoreClient",
    "ObjectStream",
    "OperationCancelled",
    "OperationErrorReason",
    "OperationKind",
    "OperationResult",
    "Outcome",
    "OutcomeKind",
    "OutcomeLogError",
    "RemoteStoreError",
    "RewriteError",
    "RoutingError",
    "StatFailurePolicy",
    "Task",
]
