# src/moveobject/operations/migrate.py
"""Migrate objects from a source endpoint into a target endpoint.

Each object is streamed: GET from the source bucket, then PUT to the
destination with the size reported by the source. The destination bucket is
either fixed or chosen by a BucketRoutingTable keyed on the numeric first
path segment of the source key.

Unreadable sources:
    get_object() is lazy, so an object that vanished or is not readable only
    surfaces when the stream is inspected. By default such a task counts as
    a success (the intended destination is logged and nothing is copied);
    set stat_failure_policy=failure to record it in the fails log instead.
"""

from __future__ import annotations

import structlog

from moveobject.contracts import (
    ConfigurationError,
    ObjectStoreClient,
    OperationKind,
    OperationResult,
    RemoteStoreError,
    RewriteError,
    RoutingError,
    StatFailurePolicy,
    Task,
)
from moveobject.core.rewrite import KeyRewrite, identity
from moveobject.core.routing import BucketRoutingTable
from moveobject.operations.base import OperationContext, OperationStrategy, local_failure, remote_failure

logger = structlog.get_logger(__name__)


class MigrateStrategy(OperationStrategy):
    """Copy objects across endpoints, optionally fanning out over buckets."""

    kind = OperationKind.MIGRATE
    log_name = "migration"
    summary_verb = "Migrated"

    def __init__(
        self,
        source_client: ObjectStoreClient,
        source_bucket: str,
        target_client: ObjectStoreClient,
        *,
        destination_bucket: str | None = None,
        routing_table: BucketRoutingTable | None = None,
        rewrite: KeyRewrite = identity,
        stat_failure_policy: StatFailurePolicy = StatFailurePolicy.SUCCESS,
        dry_run: bool = False,
    ) -> None:
        super().__init__(dry_run=dry_run)
        if (destination_bucket is None) == (routing_table is None):
            raise ConfigurationError("migrate needs exactly one of destination_bucket or routing_table")
        self._source = source_client
        self._source_bucket = source_bucket
        self._target = target_client
        self._destination_bucket = destination_bucket
        self._routing_table = routing_table
        self._rewrite = rewrite
        self._stat_failure_policy = stat_failure_policy

    def destination(self, key: str) -> tuple[str, str]:
        """Return (bucket, key) the source key migrates to.

        Raises:
            RoutingError: Key has no routable numeric prefix
            RewriteError: Rewrite policy rejects the key
        """
        if self._routing_table is not None:
            bucket = self._routing_table.bucket_for_key(key)
        else:
            assert self._destination_bucket is not None
            bucket = self._destination_bucket
        return bucket, self._rewrite(key)

    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        try:
            dst_bucket, dst_key = self.destination(task.key)
        except RoutingError as e:
            return local_failure("routing_failed", e)
        except RewriteError as e:
            return local_failure("rewrite_failed", e)
        destination = f"{dst_bucket}/{dst_key}"

        if self.dry_run:
            logger.info(
                "Dry run: would migrate object",
                source=f"{self._source_bucket}/{task.key}",
                destination=destination,
            )
            return OperationResult.success("dry_run")

        ctx.raise_if_cancelled()
        try:
            stream = self._source.get_object(self._source_bucket, task.key)
        except RemoteStoreError as e:
            return remote_failure("get_failed", e, destination=destination)

        try:
            try:
                stat = stream.stat()
            except RemoteStoreError as e:
                if self._stat_failure_policy is StatFailurePolicy.FAILURE:
                    return remote_failure("stat_failed", e, destination=destination)
                logger.warning(
                    "Source object unreadable, not migrated",
                    key=task.key,
                    destination=destination,
                    error=str(e),
                )
                return OperationResult.success("skipped_unreadable")

            ctx.raise_if_cancelled()
            try:
                self._target.put_object(dst_bucket, dst_key, stream, stat.size)
            except RemoteStoreError as e:
                return remote_failure("put_failed", e, destination=destination)
        finally:
            stream.close()

        logger.debug("Migrated object", key=task.key, destination=destination, size=stat.size)
        return OperationResult.success("migrated")
