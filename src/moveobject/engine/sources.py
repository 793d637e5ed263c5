# src/moveobject/engine/sources.py
"""Entry sources: turn an object listing into a lazy stream of Tasks.

Two modes, yielding the same Task shape:

- FileEntrySource reads a newline-delimited listing file (``key`` or
  ``versionID,key`` per line) and supports skipping the first K lines to
  resume a previous run.
- ListingEntrySource lists the bucket remotely, one ``<n>/`` prefix at a time
  across a numeric range, keeping only live latest versions.

Both are fail-fast: a malformed line or a broken listing raises and aborts the
run; neither is a per-task failure.
"""

from __future__ import annotations

from collections.abc import Generator, Iterable, Iterator
from pathlib import Path
from typing import IO

import structlog

from moveobject.contracts import InputFormatError, ListingError, ObjectStoreClient, RemoteStoreError, Task
from moveobject.core.filters import ACCEPT_ALL, KeyFilter

logger = structlog.get_logger(__name__)

VERSION_SEPARATOR = ","


def parse_entry(line: str, *, line_number: int, require_version: bool = False) -> Task:
    """Parse one listing line into a Task.

    The line is split on the FIRST comma only; a key that itself contains a
    comma is ambiguous in this format and is read as ``version,key``.

    Args:
        line: Raw line without its trailing newline
        line_number: 1-based line number, for error messages
        require_version: Reject lines without a ``versionID,`` prefix

    Raises:
        InputFormatError: Missing separator when a version is required, or empty key
    """
    version_id, sep, key = line.partition(VERSION_SEPARATOR)
    if not sep:
        if require_version:
            raise InputFormatError(line_number, line, "expected 'versionID,key'")
        key, version_id = line, ""
    if not key:
        raise InputFormatError(line_number, line, "empty object key")
    return Task(key=key, version_id=version_id or None)


class ListingReader:
    """Iterator over an open listing file; ``close()`` releases the file even if never advanced."""

    def __init__(self, handle: IO[bytes], tasks: Generator[Task, None, None]) -> None:
        self._handle = handle
        self._tasks = tasks

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def __iter__(self) -> ListingReader:
        return self

    def __next__(self) -> Task:
        return next(self._tasks)

    def close(self) -> None:
        self._tasks.close()
        self._handle.close()


class FileEntrySource:
    """Tasks read line by line from an object listing file.

    The file is opened when iteration starts, so ``iter(source)`` raises
    immediately (FileNotFoundError, PermissionError) if the file is
    unreadable - before any worker is started.

    Attributes:
        skipped: Lines discarded by ``skip`` during the last iteration
    """

    def __init__(self, path: Path, *, skip: int = 0, require_version: bool = False) -> None:
        if skip < 0:
            raise ValueError(f"skip must be >= 0, got {skip}")
        self._path = path
        self._skip = skip
        self._require_version = require_version
        self.skipped = 0

    @property
    def path(self) -> Path:
        return self._path

    def __iter__(self) -> ListingReader:
        handle = self._path.open("rb")
        return ListingReader(handle, self._read(handle))

    def _read(self, handle: IO[bytes]) -> Generator[Task, None, None]:
        self.skipped = 0
        with handle:
            for line_number, data in enumerate(handle, start=1):
                if self.skipped < self._skip:
                    self.skipped += 1
                    continue
                try:
                    raw = data.decode("utf-8")
                except UnicodeDecodeError as e:
                    bad = data.decode("utf-8", errors="replace").rstrip("\r\n")
                    raise InputFormatError(line_number, bad, f"not valid UTF-8 ({e.reason})") from e
                line = raw.rstrip("\r\n")
                if not line:
                    continue
                yield parse_entry(line, line_number=line_number, require_version=self._require_version)
        if self.skipped < self._skip:
            logger.warning(
                "Skip count exceeds listing length",
                path=str(self._path),
                skip=self._skip,
                lines=self.skipped,
            )


def iter_live_entries(
    client: ObjectStoreClient,
    bucket: str,
    prefix: str,
    key_filter: KeyFilter = ACCEPT_ALL,
) -> Iterator[Task]:
    """Yield the live (latest, not deleted) version of every object under ``prefix``.

    Raises:
        ListingError: If the remote listing fails at any point
    """
    try:
        for entry in client.list_objects(bucket, prefix, recursive=True, with_versions=True):
            if entry.is_delete_marker or not entry.is_latest:
                continue
            if not key_filter.matches(entry.key):
                continue
            yield Task(key=entry.key, version_id=entry.version_id)
    except RemoteStoreError as e:
        raise ListingError(f"listing {bucket}/{prefix} failed: {e}") from e


class ListingEntrySource:
    """Tasks produced by listing ``<n>/`` prefixes for ``n`` in ``[start, end]``.

    Entries failing the key filter are skipped here, not recorded as failures.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        bucket: str,
        prefix_start: int,
        prefix_end: int,
        *,
        key_filter: KeyFilter = ACCEPT_ALL,
    ) -> None:
        if prefix_start < 0 or prefix_end < prefix_start:
            raise ValueError(f"invalid prefix range [{prefix_start}, {prefix_end}]")
        self._client = client
        self._bucket = bucket
        self._start = prefix_start
        self._end = prefix_end
        self._key_filter = key_filter

    def __iter__(self) -> Iterator[Task]:
        for n in range(self._start, self._end + 1):
            prefix = f"{n}/"
            logger.debug("Listing prefix", bucket=self._bucket, prefix=prefix)
            yield from iter_live_entries(self._client, self._bucket, prefix, self._key_filter)


def write_version_listing(
    tasks: Iterable[Task],
    path: Path,
) -> int:
    """Write ``versionID,key`` lines, the input format for versioned operations.

    Returns:
        Number of lines written
    """
    count = 0
    with path.open("w", encoding="utf-8", newline="\n") as f:
        for task in tasks:
            f.write(f"{task.version_id or ''}{VERSION_SEPARATOR}{task.key}\n")
            count += 1
    return count
