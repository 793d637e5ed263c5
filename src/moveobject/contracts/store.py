# src/moveobject/contracts/store.py
"""Protocol definitions for the remote object-store client.

The pipeline never talks to a storage SDK directly. Strategies and entry
sources depend on ObjectStoreClient; adapters (MinIO, in-memory) implement it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ObjectEntry:
    """One entry of a remote listing.

    With versioned listings a key appears once per version; only the entry
    with is_latest=True and is_delete_marker=False is the live object.
    """

    key: str
    version_id: str | None = None
    is_latest: bool = True
    is_delete_marker: bool = False
    size: int = 0


@dataclass(frozen=True, slots=True)
class ObjectStat:
    """Metadata of the current version of an object."""

    key: str
    size: int
    version_id: str | None = None


@runtime_checkable
class ObjectStream(Protocol):
    """Lazy readable handle returned by ObjectStoreClient.get_object().

    stat() may fail even though get_object() succeeded: adapters defer the
    remote request until the object is first inspected or read.
    """

    def stat(self) -> ObjectStat:
        """Return size/version of the object.

        Raises:
            RemoteStoreError: If the object cannot be inspected
        """
        ...

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


@runtime_checkable
class ObjectStoreClient(Protocol):
    """Operations the pipeline needs from an S3-compatible store.

    Error handling:
        Every method raises RemoteStoreError for remote failures (missing
        object, access denied, transport errors). list_objects() raises it
        lazily, from the iterator, when the listing breaks part-way.
    """

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        recursive: bool = True,
        with_versions: bool = False,
    ) -> Iterator[ObjectEntry]: ...

    def get_object(self, bucket: str, key: str) -> ObjectStream: ...

    def put_object(self, bucket: str, key: str, stream: ObjectStream, size: int) -> None: ...

    def copy_object(
        self,
        src_bucket: str,
        src_key: str,
        src_version_id: str | None,
        dst_bucket: str,
        dst_key: str,
    ) -> None: ...

    def remove_object(self, bucket: str, key: str, version_id: str | None = None) -> None: ...

    def stat_object(self, bucket: str, key: str) -> ObjectStat: ...
