# src/moveobject/core/routing.py
"""Bucket-routing table for migrations that fan out across buckets.

Keys are expected to look like ``<n>/<rest>`` where ``n`` is a non-negative
integer. Each route owns a closed range ``[start, end]`` of prefixes and names
the destination bucket for keys in that range.

Invariant: routes are sorted, disjoint and contiguous. A key whose prefix is
missing, non-numeric or outside every range raises RoutingError; it is never
silently dropped.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass

from moveobject.contracts.errors import ConfigurationError, RoutingError


@dataclass(frozen=True, slots=True)
class BucketRoute:
    """Closed range of numeric key prefixes mapped to one bucket."""

    start: int
    end: int
    bucket: str

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ConfigurationError(f"route start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ConfigurationError(f"route end ({self.end}) is below start ({self.start})")
        if not self.bucket:
            raise ConfigurationError("route bucket must not be empty")

    def contains(self, prefix: int) -> bool:
        return self.start <= prefix <= self.end


def numeric_prefix(key: str) -> int:
    """Parse the leading ``<n>/`` path segment of a key.

    Raises:
        RoutingError: If the key has no ``/`` or the segment is not an integer
    """
    head, sep, _ = key.partition("/")
    if not sep:
        raise RoutingError(f"unable to get prefix for object: {key}")
    digits = head[1:] if head[:1] in ("+", "-") else head
    if not (digits.isascii() and digits.isdigit()):
        raise RoutingError(f"prefix {head!r} of object {key} is not numeric")
    return int(head)


class BucketRoutingTable:
    """Ordered set of contiguous prefix ranges, each naming a bucket.

    Usage:
        table = BucketRoutingTable.evenly_spaced(["b1", "b2", "b3", "b4"], span=250)
        table.bucket_for_key("260/photo.jpg")  # "b2"
    """

    def __init__(self, routes: Sequence[BucketRoute]) -> None:
        if not routes:
            raise ConfigurationError("bucket routing table needs at least one route")
        ordered = sorted(routes, key=lambda r: r.start)
        for previous, current in zip(ordered, ordered[1:], strict=False):
            if current.start <= previous.end:
                raise ConfigurationError(
                    f"routes overlap: [{previous.start}, {previous.end}] and [{current.start}, {current.end}]"
                )
            if current.start != previous.end + 1:
                raise ConfigurationError(
                    f"routes leave a gap between {previous.end} and {current.start}"
                )
        self._routes: tuple[BucketRoute, ...] = tuple(ordered)
        self._starts = [r.start for r in self._routes]

    @classmethod
    def evenly_spaced(cls, buckets: Sequence[str], *, span: int = 250, start: int = 0) -> BucketRoutingTable:
        """Build ``len(buckets)`` consecutive ranges of ``span`` prefixes each."""
        if span < 1:
            raise ConfigurationError(f"span must be >= 1, got {span}")
        routes = [
            BucketRoute(start=start + i * span, end=start + (i + 1) * span - 1, bucket=bucket)
            for i, bucket in enumerate(buckets)
        ]
        return cls(routes)

    @property
    def routes(self) -> tuple[BucketRoute, ...]:
        return self._routes

    @property
    def buckets(self) -> tuple[str, ...]:
        return tuple(r.bucket for r in self._routes)

    def bucket_for_prefix(self, prefix: int) -> str:
        """Return the bucket owning ``prefix``.

        Raises:
            RoutingError: If no route covers the prefix
        """
        idx = bisect_right(self._starts, prefix) - 1
        if idx >= 0 and self._routes[idx].contains(prefix):
            return self._routes[idx].bucket
        raise RoutingError(f"no destination bucket for prefix {prefix}")

    def bucket_for_key(self, key: str) -> str:
        """Return the destination bucket for ``key``'s numeric prefix.

        Raises:
            RoutingError: If the prefix is missing, non-numeric or unrouted
        """
        return self.bucket_for_prefix(numeric_prefix(key))

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        ranges = ", ".join(f"[{r.start},{r.end}]->{r.bucket}" for r in self._routes)
        return f"BucketRoutingTable({ranges})"
