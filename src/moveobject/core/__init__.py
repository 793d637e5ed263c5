# src/moveobject/core/__init__.py
"""Core infrastructure: Configuration, Logging, Key filtering, Rewrite, Routing."""

from moveobject.core.config import (
    EndpointSettings,
    MoveObjectSettings,
    PoolSettings,
    RewriteSettings,
    RouteSettings,
    default_concurrency,
    load_settings,
    with_overrides,
)
from moveobject.core.filters import ACCEPT_ALL, KeyFilter
from moveobject.core.rewrite import KeyRewrite, build_rewrite, identity, strip_leading_segment
from moveobject.core.routing import BucketRoute, BucketRoutingTable, numeric_prefix

__all__ = [
    "ACCEPT_ALL",
    "BucketRoute",
    "BucketRoutingTable",
    "EndpointSettings",
    "KeyFilter",
    "KeyRewrite",
    "MoveObjectSettings",
    "PoolSettings",
    "RewriteSettings",
    "RouteSettings",
    "build_rewrite",
    "default_concurrency",
    "identity",
    "load_settings",
    "numeric_prefix",
    "strip_leading_segment",
    "with_overrides",
]
