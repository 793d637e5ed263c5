# src/moveobject/clients/minio.py
"""ObjectStoreClient adapter for MinIO and other S3-compatible endpoints.

Wraps the ``minio`` SDK. Every SDK or transport exception is translated to
RemoteStoreError so strategies never depend on the SDK's exception types.

get_object() is lazy: it returns a MinioObjectStream that issues a HEAD on
stat() and opens the GET on the first read(). A missing or unreadable source
therefore surfaces at stat(), which is where the migrate strategy applies its
stat-failure policy.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
import urllib3
from minio import Minio
from minio.commonconfig import CopySource
from minio.error import MinioException, S3Error

from moveobject.contracts import ObjectEntry, ObjectStat, ObjectStream, RemoteStoreError

if TYPE_CHECKING:
    from moveobject.core.config import EndpointSettings

logger = structlog.get_logger(__name__)

_RETRYABLE_STATUS = (500, 502, 503, 504)


@contextmanager
def translate_errors(operation: str, bucket: str, key: str | None = None) -> Iterator[None]:
    """Re-raise SDK/transport errors as RemoteStoreError."""
    try:
        yield
    except S3Error as e:
        raise RemoteStoreError(operation, bucket, key, e.message or str(e), code=e.code) from e
    except (MinioException, urllib3.exceptions.HTTPError) as e:
        raise RemoteStoreError(operation, bucket, key, str(e), code=getattr(e, "code", None)) from e


def _is_latest(value: Any) -> bool:
    # The SDK reports "true"/"false" strings for versioned listings and None otherwise
    if value is None:
        return True
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


class MinioObjectStream:
    """Lazy handle on one remote object.

    Not thread-safe; a stream belongs to the worker that opened it.
    """

    def __init__(self, store: MinioObjectStore, bucket: str, key: str) -> None:
        self._store = store
        self._bucket = bucket
        self._key = key
        self._stat: ObjectStat | None = None
        self._response: Any = None

    def stat(self) -> ObjectStat:
        if self._stat is None:
            self._stat = self._store.stat_object(self._bucket, self._key)
        return self._stat

    def read(self, size: int = -1) -> bytes:
        if self._response is None:
            # Pin the GET to the version that stat() saw
            version_id = self._stat.version_id if self._stat is not None else None
            with translate_errors("get", self._bucket, self._key):
                self._response = self._store.sdk.get_object(
                    bucket_name=self._bucket,
                    object_name=self._key,
                    version_id=version_id,
                )
        with translate_errors("get", self._bucket, self._key):
            data: bytes = self._response.read(size if size >= 0 else None)
        return data

    def close(self) -> None:
        if self._response is not None:
            response, self._response = self._response, None
            response.close()
            response.release_conn()


class MinioObjectStore:
    """ObjectStoreClient backed by a ``minio.Minio`` client.

    Thread Safety:
        The SDK client and its urllib3 pool are safe to share between
        workers; size the pool (max_connections) to the worker count.
    """

    def __init__(self, sdk: Minio, *, endpoint: str = "") -> None:
        self._sdk = sdk
        self._endpoint = endpoint

    @property
    def sdk(self) -> Minio:
        return self._sdk

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        recursive: bool = True,
        with_versions: bool = False,
    ) -> Iterator[ObjectEntry]:
        with translate_errors("list", bucket, prefix or None):
            for obj in self._sdk.list_objects(
                bucket_name=bucket,
                prefix=prefix or None,
                recursive=recursive,
                include_version=with_versions,
            ):
                yield ObjectEntry(
                    key=obj.object_name,
                    version_id=obj.version_id,
                    is_latest=_is_latest(obj.is_latest),
                    is_delete_marker=bool(obj.is_delete_marker),
                    size=obj.size or 0,
                )

    def get_object(self, bucket: str, key: str) -> ObjectStream:
        return MinioObjectStream(self, bucket, key)

    def put_object(self, bucket: str, key: str, stream: ObjectStream, size: int) -> None:
        with translate_errors("put", bucket, key):
            self._sdk.put_object(bucket_name=bucket, object_name=key, data=stream, length=size)

    def copy_object(
        self,
        src_bucket: str,
        src_key: str,
        src_version_id: str | None,
        dst_bucket: str,
        dst_key: str,
    ) -> None:
        with translate_errors("copy", src_bucket, src_key):
            self._sdk.copy_object(
                bucket_name=dst_bucket,
                object_name=dst_key,
                source=CopySource(src_bucket, src_key, version_id=src_version_id),
            )

    def remove_object(self, bucket: str, key: str, version_id: str | None = None) -> None:
        with translate_errors("remove", bucket, key):
            self._sdk.remove_object(bucket_name=bucket, object_name=key, version_id=version_id)

    def stat_object(self, bucket: str, key: str) -> ObjectStat:
        with translate_errors("stat", bucket, key):
            obj = self._sdk.stat_object(bucket_name=bucket, object_name=key)
        return ObjectStat(key=key, size=obj.size or 0, version_id=obj.version_id)

    def __repr__(self) -> str:
        return f"MinioObjectStore({self._endpoint!r})"


def build_http_client(settings: EndpointSettings, *, max_connections: int = 10) -> urllib3.PoolManager:
    """urllib3 pool with the endpoint's timeouts, TLS policy and a small retry budget."""
    return urllib3.PoolManager(
        timeout=urllib3.Timeout(connect=settings.connect_timeout_seconds, read=settings.read_timeout_seconds),
        maxsize=max_connections,
        cert_reqs="CERT_NONE" if settings.insecure else "CERT_REQUIRED",
        retries=urllib3.Retry(total=5, backoff_factor=0.2, status_forcelist=_RETRYABLE_STATUS),
    )


def build_client(settings: EndpointSettings, *, max_connections: int = 10) -> MinioObjectStore:
    """Create a MinioObjectStore for one configured endpoint."""
    if settings.insecure:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    sdk = Minio(
        settings.host,
        access_key=settings.access_key,
        secret_key=settings.secret_key.get_secret_value(),
        secure=settings.secure,
        region=settings.region,
        http_client=build_http_client(settings, max_connections=max_connections),
    )
    logger.debug("Object store client created", endpoint=settings.endpoint, region=settings.region)
    return MinioObjectStore(sdk, endpoint=settings.endpoint)
