# src/moveobject/operations/move.py
"""Move object versions within one endpoint: server-side copy, then remove."""

from __future__ import annotations

import structlog

from moveobject.contracts import (
    ObjectStoreClient,
    OperationKind,
    OperationResult,
    RemoteStoreError,
    RewriteError,
    Task,
)
from moveobject.core.rewrite import KeyRewrite, identity
from moveobject.operations.base import OperationContext, OperationStrategy, local_failure, remote_failure

logger = structlog.get_logger(__name__)


class MoveStrategy(OperationStrategy):
    """Copy ``bucket/key@version`` to its rewritten location, then remove that version.

    The two steps are not atomic. If the remove fails the task is a failure
    even though the copy exists; a rerun then copies again (idempotent) and
    retries the remove.

    A rewrite that maps a key onto itself in the same bucket is refused,
    otherwise the remove step would delete the only copy.
    """

    kind = OperationKind.MOVE
    log_name = "move"
    summary_verb = "Moved"
    requires_version = True

    def __init__(
        self,
        client: ObjectStoreClient,
        bucket: str,
        *,
        destination_bucket: str | None = None,
        rewrite: KeyRewrite = identity,
        dry_run: bool = False,
    ) -> None:
        super().__init__(dry_run=dry_run)
        self._client = client
        self._bucket = bucket
        self._destination_bucket = destination_bucket or bucket
        self._rewrite = rewrite

    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        try:
            dst_key = self._rewrite(task.key)
        except RewriteError as e:
            return local_failure("rewrite_failed", e)
        if self._destination_bucket == self._bucket and dst_key == task.key:
            return OperationResult.error(
                {"reason": "same_destination", "destination": f"{self._destination_bucket}/{dst_key}"}
            )
        destination = f"{self._destination_bucket}/{dst_key}"

        if self.dry_run:
            logger.info(
                "Dry run: would move object",
                source=f"{self._bucket}/{task.key}",
                version_id=task.version_id,
                destination=destination,
            )
            return OperationResult.success("dry_run")

        ctx.raise_if_cancelled()
        try:
            self._client.copy_object(self._bucket, task.key, task.version_id, self._destination_bucket, dst_key)
        except RemoteStoreError as e:
            return remote_failure("copy_failed", e, destination=destination)

        ctx.raise_if_cancelled()
        try:
            self._client.remove_object(self._bucket, task.key, task.version_id)
        except RemoteStoreError as e:
            return remote_failure("remove_failed", e, destination=destination)

        logger.debug("Moved object", key=task.key, version_id=task.version_id, destination=destination)
        return OperationResult.success("moved")
