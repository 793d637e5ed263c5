# tests/core/test_filters.py
"""Tests for KeyFilter."""

import pytest

from moveobject.contracts import ConfigurationError
from moveobject.core.filters import ACCEPT_ALL, KeyFilter


class TestKeyFilter:
    def test_none_accepts_everything(self) -> None:
        assert ACCEPT_ALL.matches("anything/at/all")
        assert ACCEPT_ALL.pattern is None

    def test_pattern_must_match_whole_key(self) -> None:
        key_filter = KeyFilter(r"\d+/.+\.jpg")
        assert key_filter.matches("12/a.jpg")
        assert not key_filter.matches("12/a.jpg.bak")
        assert not key_filter.matches("x12/a.jpg")

    def test_callable(self) -> None:
        assert KeyFilter("a.*")("abc")

    def test_invalid_pattern(self) -> None:
        with pytest.raises(ConfigurationError, match="invalid key pattern"):
            KeyFilter("(")

    def test_repr_shows_pattern(self) -> None:
        assert repr(KeyFilter("x")) == "KeyFilter('x')"
