# src/moveobject/core/filters.py
"""Key filter applied before enqueue and re-checked by every worker."""

from __future__ import annotations

import re

from moveobject.contracts.errors import ConfigurationError


class KeyFilter:
    """Pure predicate over object keys.

    The pattern is a regular expression that must match the WHOLE key.
    ``None`` accepts every key.

    Example:
        KeyFilter(r"\\d+/.+\\.jpg").matches("12/a.jpg")  # True
    """

    __slots__ = ("_pattern",)

    def __init__(self, pattern: str | None = None) -> None:
        if pattern is None:
            self._pattern: re.Pattern[str] | None = None
            return
        try:
            self._pattern = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"invalid key pattern {pattern!r}: {e}") from e

    @property
    def pattern(self) -> str | None:
        return self._pattern.pattern if self._pattern is not None else None

    def matches(self, key: str) -> bool:
        if self._pattern is None:
            return True
        return self._pattern.fullmatch(key) is not None

    def __call__(self, key: str) -> bool:
        return self.matches(key)

    def __repr__(self) -> str:
        return f"KeyFilter({self.pattern!r})"


ACCEPT_ALL = KeyFilter()
