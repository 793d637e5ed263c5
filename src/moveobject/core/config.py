# src/moveobject/core/config.py
"""
Configuration schema and loading for moveobject runs.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction and are turned into a
PipelineConfig plus strategy constructor arguments; nothing is kept in
module-level state.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Self
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from moveobject.contracts.enums import StatFailurePolicy
from moveobject.contracts.errors import ConfigurationError
from moveobject.core.rewrite import KeyRewrite, build_rewrite
from moveobject.core.routing import BucketRoute, BucketRoutingTable

# Floor for the default worker count. Remote calls are I/O bound, so the pool
# is sized well above the CPU count.
MIN_DEFAULT_CONCURRENCY = 100

ENV_PREFIX = "MOVEOBJECT"

# Environment variables understood by earlier releases of the tool. They seed
# the settings at the lowest precedence so existing deployments keep working.
_LEGACY_ENV: dict[str, tuple[str, ...]] = {
    "MINIO_ENDPOINT": ("target", "endpoint"),
    "MINIO_ACCESS_KEY": ("target", "access_key"),
    "MINIO_SECRET_KEY": ("target", "secret_key"),
    "MINIO_BUCKET": ("bucket",),
    "MINIO_SOURCE_ENDPOINT": ("source", "endpoint"),
    "MINIO_SOURCE_ACCESS_KEY": ("source", "access_key"),
    "MINIO_SOURCE_SECRET_KEY": ("source", "secret_key"),
    "MINIO_SOURCE_BUCKET": ("source_bucket",),
}

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def default_concurrency() -> int:
    """Worker count used when none is configured: max(100, CPU count)."""
    return max(MIN_DEFAULT_CONCURRENCY, os.cpu_count() or 1)


class EndpointSettings(BaseModel):
    """Connection settings for one S3-compatible endpoint.

    Example YAML:
        target:
          endpoint: "https://minio:9000"
          access_key: "${MINIO_ACCESS_KEY}"
          secret_key: "${MINIO_SECRET_KEY}"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    endpoint: str = Field(..., description="Endpoint URL, e.g. https://minio:9000")
    access_key: str = Field(..., min_length=1, description="Access key")
    secret_key: SecretStr = Field(..., description="Secret key")
    region: str = Field(default="us-east-1", description="Signing region")
    insecure: bool = Field(default=False, description="Skip TLS certificate verification")
    connect_timeout_seconds: float = Field(default=30.0, gt=0, description="TCP connect timeout")
    read_timeout_seconds: float = Field(default=300.0, gt=0, description="Socket read timeout")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"endpoint must be an http(s) URL with a host, got {v!r}")
        return v

    @property
    def host(self) -> str:
        """host[:port] part of the endpoint URL."""
        return urlsplit(self.endpoint).netloc

    @property
    def secure(self) -> bool:
        return urlsplit(self.endpoint).scheme == "https"


class RouteSettings(BaseModel):
    """One ``[start, end] -> bucket`` entry of a bucket-routing table."""

    model_config = {"frozen": True, "extra": "forbid"}

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    bucket: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_range(self) -> Self:
        if self.end < self.start:
            raise ValueError(f"route end ({self.end}) cannot be below start ({self.start})")
        return self

    def to_route(self) -> BucketRoute:
        return BucketRoute(start=self.start, end=self.end, bucket=self.bucket)


class RewriteSettings(BaseModel):
    """Destination key rewrite policy.

    Example YAML:
        rewrite:
          kind: replace_prefix
          prefix: "incoming/"
          replacement: "archive/"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    kind: Literal["identity", "strip_leading_segment", "add_prefix", "replace_prefix"] = "identity"
    prefix: str | None = None
    replacement: str | None = None

    @model_validator(mode="after")
    def validate_arguments(self) -> Self:
        if self.kind in ("add_prefix", "replace_prefix") and not self.prefix:
            raise ValueError(f"rewrite kind {self.kind!r} requires a non-empty prefix")
        if self.kind != "replace_prefix" and self.replacement is not None:
            raise ValueError("replacement is only valid for kind 'replace_prefix'")
        return self

    def build(self) -> KeyRewrite:
        return build_rewrite(self.kind, prefix=self.prefix, replacement=self.replacement)


class PoolSettings(BaseModel):
    """Worker pool sizing and shutdown timing."""

    model_config = {"frozen": True, "extra": "forbid"}

    concurrency: int | None = Field(default=None, ge=1, description="Worker threads (default max(100, CPUs))")
    queue_size: int | None = Field(default=None, ge=1, description="Task/outcome queue bound (default concurrency)")
    close_grace_seconds: float = Field(default=0.1, ge=0, description="Delay before closing the task queue")
    poll_interval_seconds: float = Field(default=0.05, gt=0, description="Cancellation polling interval")

    def resolved_concurrency(self) -> int:
        return self.concurrency if self.concurrency is not None else default_concurrency()

    def resolved_queue_size(self) -> int:
        return self.queue_size if self.queue_size is not None else self.resolved_concurrency()


class MoveObjectSettings(BaseModel):
    """Top-level settings for one moveobject run.

    Which fields are required depends on the operation; see
    moveobject.operations.factory for the per-operation checks.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    target: EndpointSettings | None = Field(default=None, description="Endpoint operated on / migrated into")
    source: EndpointSettings | None = Field(default=None, description="Endpoint migrated from")
    bucket: str | None = Field(default=None, description="Bucket operated on (move/copy/delete/list)")
    source_bucket: str | None = Field(default=None, description="Bucket migrated from")
    destination_bucket: str | None = Field(default=None, description="Destination bucket for migrate/copy")
    routes: list[RouteSettings] = Field(default_factory=list, description="Migrate bucket-routing table")
    key_pattern: str | None = Field(default=None, description="Regex every key must fully match")
    rewrite: RewriteSettings = Field(default_factory=RewriteSettings)
    data_dir: Path = Field(default=Path("."), description="Directory holding input and outcome logs")
    input_file: str = Field(default="object_listing.txt", description="Object listing file name")
    skip: int = Field(default=0, ge=0, description="Leading input lines to skip")
    dry_run: bool = Field(default=False, description="Log intended effects without mutating anything")
    stat_failure_policy: StatFailurePolicy = Field(
        default=StatFailurePolicy.SUCCESS,
        description="Outcome for migrate tasks whose source object cannot be read",
    )
    timestamp_logs: bool = Field(default=True, description="Suffix outcome log names with the run timestamp")
    pool: PoolSettings = Field(default_factory=PoolSettings)

    @field_validator("key_pattern")
    @classmethod
    def validate_key_pattern(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid key pattern: {e}") from e
        return v

    @model_validator(mode="after")
    def validate_routes(self) -> Self:
        if self.routes:
            try:
                self.routing_table()
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return self

    def routing_table(self) -> BucketRoutingTable | None:
        if not self.routes:
            return None
        return BucketRoutingTable([r.to_route() for r in self.routes])

    @property
    def input_path(self) -> Path:
        return self.data_dir / self.input_file


def _set_nested(config: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    node = config
    for part in path[:-1]:
        node = node.setdefault(part, {})
    node[path[-1]] = value


def _legacy_env_settings(environ: Mapping[str, str]) -> dict[str, Any]:
    """Seed settings from the MINIO_* environment variables."""
    config: dict[str, Any] = {}
    for name, path in _LEGACY_ENV.items():
        value = environ.get(name)
        if value:
            _set_nested(config, path, value)
    return config


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested dicts merge, other values replace."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _lowercase_keys(value: Any) -> Any:
    """Lowercase mapping keys recursively (Dynaconf uppercases them)."""
    if isinstance(value, Mapping):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lowercase_keys(item) for item in value]
    return value


def _expand_env_vars(config: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def replacer(match: re.Match[str]) -> str:
        env_value = environ.get(match.group(1))
        if env_value is not None:
            return env_value
        if match.group(2) is not None:
            return match.group(2)
        # No env var and no default - keep original so validation reports it
        return match.group(0)

    def expand(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(replacer, value)
        if isinstance(value, dict):
            return {k: expand(v) for k, v in value.items()}
        if isinstance(value, list):
            return [expand(item) for item in value]
        return value

    return {k: expand(v) for k, v in config.items()}


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> MoveObjectSettings:
    """Load settings from an optional YAML file and the environment.

    Precedence (highest first):
    1. MOVEOBJECT_* environment variables (MOVEOBJECT_POOL__CONCURRENCY for nesting)
    2. Settings file
    3. Legacy MINIO_* environment variables
    4. Defaults from the Pydantic schema

    Args:
        config_path: Path to a YAML settings file, or None for environment only
        environ: Environment used for legacy variables and ${VAR} expansion
            (defaults to os.environ)

    Returns:
        Validated MoveObjectSettings instance

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ValidationError: If the merged configuration is invalid
    """
    from dynaconf import Dynaconf

    env = os.environ if environ is None else environ

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix=ENV_PREFIX,
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    loaded = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _deep_merge(_legacy_env_settings(env), _lowercase_keys(loaded))
    raw_config = _expand_env_vars(raw_config, env)
    return MoveObjectSettings(**raw_config)


def with_overrides(
    settings: MoveObjectSettings,
    *,
    concurrency: int | None = None,
    **fields: Any,
) -> MoveObjectSettings:
    """Return a copy of ``settings`` with command-line overrides applied.

    ``None`` values are ignored so unset CLI options keep the loaded value.
    The result is re-validated.
    """
    data = settings.model_dump()
    data.update({k: v for k, v in fields.items() if v is not None})
    if concurrency is not None:
        data["pool"] = {**data["pool"], "concurrency": concurrency}
    return MoveObjectSettings.model_validate(data)
