# src/moveobject/operations/__init__.py
"""Operation strategies applied by the worker pool.

Build strategies from settings with moveobject.operations.factory.
"""

from moveobject.operations.base import OperationContext, OperationStrategy
from moveobject.operations.copy import CopyStrategy
from moveobject.operations.delete import DeleteStrategy
from moveobject.operations.migrate import MigrateStrategy
from moveobject.operations.move import MoveStrategy

__all__ = [
    "CopyStrategy",
    "DeleteStrategy",
    "MigrateStrategy",
    "MoveStrategy",
    "OperationContext",
    "OperationStrategy",
]
