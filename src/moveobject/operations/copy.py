# src/moveobject/operations/copy.py
"""Server-side copy within one endpoint."""

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


class CopyStrategy(OperationStrategy):
    """Copy ``bucket/key[@version]`` to ``destination_bucket/rewrite(key)``.

    Re-running a copy overwrites the destination with the same content, so
    the operation is idempotent. Copying a key onto itself is allowed
    (it refreshes the object's metadata timestamp).
    """

    kind = OperationKind.COPY
    log_name = "copy"
    summary_verb = "Copied"

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
        destination = f"{self._destination_bucket}/{dst_key}"

        if self.dry_run:
            logger.info("Dry run: would copy object", source=f"{self._bucket}/{task.key}", destination=destination)
            return OperationResult.success("dry_run")

        ctx.raise_if_cancelled()
        try:
            self._client.copy_object(self._bucket, task.key, task.version_id, self._destination_bucket, dst_key)
        except RemoteStoreError as e:
            return remote_failure("copy_failed", e, destination=destination)

        logger.debug("Copied object", key=task.key, destination=destination)
        return OperationResult.success("copied")
