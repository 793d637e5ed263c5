# src/moveobject/operations/factory.py
"""Build operation strategies from validated settings.

MoveObjectSettings only validates shape; the checks here decide whether the
settings are complete for the requested operation. Every problem is reported
as ConfigurationError before any thread is started.
"""

from __future__ import annotations

from collections.abc import Callable

from moveobject.contracts import ConfigurationError, ObjectStoreClient, OperationKind
from moveobject.core.config import EndpointSettings, MoveObjectSettings
from moveobject.operations.base import OperationStrategy
from moveobject.operations.copy import CopyStrategy
from moveobject.operations.delete import DeleteStrategy
from moveobject.operations.migrate import MigrateStrategy
from moveobject.operations.move import MoveStrategy

ClientFactory = Callable[[EndpointSettings], ObjectStoreClient]


def minio_client_factory(settings: MoveObjectSettings) -> ClientFactory:
    """Client factory creating one MinIO client per distinct endpoint.

    The connection pool of each client is sized to the worker count.
    """
    from moveobject.clients.minio import build_client

    max_connections = settings.pool.resolved_concurrency()
    clients: dict[tuple[str, str], ObjectStoreClient] = {}

    def factory(endpoint: EndpointSettings) -> ObjectStoreClient:
        cache_key = (endpoint.endpoint, endpoint.access_key)
        if cache_key not in clients:
            clients[cache_key] = build_client(endpoint, max_connections=max_connections)
        return clients[cache_key]

    return factory


def require_endpoint(settings: MoveObjectSettings, name: str) -> EndpointSettings:
    endpoint: EndpointSettings | None = getattr(settings, name)
    if endpoint is None:
        env = "MINIO_SOURCE_*" if name == "source" else "MINIO_*"
        raise ConfigurationError(f"{name} endpoint is not configured (settings '{name}:' or {env} variables)")
    return endpoint


def require_bucket(settings: MoveObjectSettings) -> str:
    if not settings.bucket:
        raise ConfigurationError("bucket is not configured (settings 'bucket:' or MINIO_BUCKET)")
    return settings.bucket


def build_strategy(
    kind: OperationKind,
    settings: MoveObjectSettings,
    *,
    client_factory: ClientFactory | None = None,
) -> OperationStrategy:
    """Create the strategy for ``kind`` with its remote clients.

    Args:
        kind: Operation to build
        settings: Validated settings (CLI overrides already applied)
        client_factory: Creates a client per endpoint; defaults to MinIO clients

    Raises:
        ConfigurationError: If the settings are incomplete or inconsistent
            for the operation
    """
    make_client = client_factory if client_factory is not None else minio_client_factory(settings)

    if kind is OperationKind.MIGRATE:
        return _build_migrate(settings, make_client)
    if kind is OperationKind.MOVE:
        return _build_move(settings, make_client)
    if kind is OperationKind.COPY:
        return _build_copy(settings, make_client)
    if kind is OperationKind.DELETE:
        return _build_delete(settings, make_client)
    raise ConfigurationError(f"unknown operation: {kind!r}")


def _build_migrate(settings: MoveObjectSettings, make_client: ClientFactory) -> MigrateStrategy:
    source = require_endpoint(settings, "source")
    target = require_endpoint(settings, "target")
    if not settings.source_bucket:
        raise ConfigurationError("migrate needs source_bucket (or MINIO_SOURCE_BUCKET)")
    routing_table = settings.routing_table()
    destination_bucket = settings.destination_bucket or (None if routing_table else settings.bucket)
    if routing_table is not None and settings.destination_bucket:
        raise ConfigurationError("migrate takes either destination_bucket or routes, not both")
    if routing_table is None and not destination_bucket:
        raise ConfigurationError("migrate needs routes or a destination_bucket/bucket")
    return MigrateStrategy(
        make_client(source),
        settings.source_bucket,
        make_client(target),
        destination_bucket=destination_bucket,
        routing_table=routing_table,
        rewrite=settings.rewrite.build(),
        stat_failure_policy=settings.stat_failure_policy,
        dry_run=settings.dry_run,
    )


def _build_move(settings: MoveObjectSettings, make_client: ClientFactory) -> MoveStrategy:
    target = require_endpoint(settings, "target")
    bucket = require_bucket(settings)
    same_bucket = settings.destination_bucket in (None, bucket)
    if same_bucket and settings.rewrite.kind == "identity":
        raise ConfigurationError("move within one bucket needs a rewrite policy; identity would delete every object")
    return MoveStrategy(
        make_client(target),
        bucket,
        destination_bucket=settings.destination_bucket,
        rewrite=settings.rewrite.build(),
        dry_run=settings.dry_run,
    )


def _build_copy(settings: MoveObjectSettings, make_client: ClientFactory) -> CopyStrategy:
    target = require_endpoint(settings, "target")
    return CopyStrategy(
        make_client(target),
        require_bucket(settings),
        destination_bucket=settings.destination_bucket,
        rewrite=settings.rewrite.build(),
        dry_run=settings.dry_run,
    )


def _build_delete(settings: MoveObjectSettings, make_client: ClientFactory) -> DeleteStrategy:
    target = require_endpoint(settings, "target")
    if settings.rewrite.kind != "identity" or settings.destination_bucket:
        raise ConfigurationError("delete does not take a rewrite policy or destination_bucket")
    return DeleteStrategy(make_client(target), require_bucket(settings), dry_run=settings.dry_run)
