# src/moveobject/core/rewrite.py
"""Source-to-destination key rewrite policies.

A policy is any pure callable ``(key) -> key``. Callers may supply their own;
the built-ins below are the ones selectable from configuration.

Policies raise RewriteError when a key cannot be rewritten. Strategies turn
that into a per-task failure.
"""

from __future__ import annotations

from collections.abc import Callable

from moveobject.contracts.errors import ConfigurationError, RewriteError

KeyRewrite = Callable[[str], str]


def identity(key: str) -> str:
    return key


def strip_leading_segment(key: str) -> str:
    """Move an object up one level: ``a/b/c`` becomes ``b/c``."""
    _, sep, rest = key.partition("/")
    if not sep or not rest:
        raise RewriteError(f"cannot strip leading segment from {key!r}")
    return rest


def add_prefix(prefix: str) -> KeyRewrite:
    if not prefix:
        raise ConfigurationError("add_prefix requires a non-empty prefix")

    def rewrite(key: str) -> str:
        return prefix + key

    return rewrite


def replace_prefix(prefix: str, replacement: str) -> KeyRewrite:
    if not prefix:
        raise ConfigurationError("replace_prefix requires a non-empty prefix")

    def rewrite(key: str) -> str:
        if not key.startswith(prefix):
            raise RewriteError(f"key {key!r} does not start with {prefix!r}")
        new_key = replacement + key[len(prefix) :]
        if not new_key:
            raise RewriteError(f"rewriting {key!r} produced an empty key")
        return new_key

    return rewrite


def build_rewrite(kind: str, *, prefix: str | None = None, replacement: str | None = None) -> KeyRewrite:
    """Build a built-in rewrite policy by name.

    Args:
        kind: identity, strip_leading_segment, add_prefix or replace_prefix
        prefix: Prefix for add_prefix / replace_prefix
        replacement: Replacement for replace_prefix (may be empty)

    Raises:
        ConfigurationError: Unknown kind or missing arguments
    """
    if kind == "identity":
        return identity
    if kind == "strip_leading_segment":
        return strip_leading_segment
    if kind == "add_prefix":
        return add_prefix(prefix or "")
    if kind == "replace_prefix":
        return replace_prefix(prefix or "", replacement or "")
    raise ConfigurationError(f"unknown rewrite policy: {kind!r}")
