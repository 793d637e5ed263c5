# src/moveobject/operations/delete.py
"""Delete the current version of each object."""

from __future__ import annotations

import structlog

from moveobject.contracts import ObjectStoreClient, OperationKind, OperationResult, RemoteStoreError, Task
from moveobject.operations.base import OperationContext, OperationStrategy, remote_failure

logger = structlog.get_logger(__name__)


class DeleteStrategy(OperationStrategy):
    """Stat the object to resolve its current version, then remove exactly that version.

    A missing object is a failure, so a second run over the same listing
    records every key in the fails log. Successful deletes are counted but
    not written to a log.
    """

    kind = OperationKind.DELETE
    log_name = "delete"
    summary_verb = "Deleted"
    records_success = False

    def __init__(self, client: ObjectStoreClient, bucket: str, *, dry_run: bool = False) -> None:
        super().__init__(dry_run=dry_run)
        self._client = client
        self._bucket = bucket

    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        if self.dry_run:
            logger.info("Dry run: would delete object", target=f"{self._bucket}/{task.key}")
            return OperationResult.success("dry_run")

        ctx.raise_if_cancelled()
        try:
            stat = self._client.stat_object(self._bucket, task.key)
        except RemoteStoreError as e:
            return remote_failure("stat_failed", e)

        ctx.raise_if_cancelled()
        try:
            self._client.remove_object(self._bucket, task.key, stat.version_id)
        except RemoteStoreError as e:
            return remote_failure("remove_failed", e)

        logger.debug("Deleted object", key=task.key, version_id=stat.version_id)
        return OperationResult.success("deleted")
