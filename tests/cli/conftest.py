# tests/cli/conftest.py
"""Shared fixtures for CLI tests."""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from moveobject.testing import InMemoryObjectStore

SETTINGS_TEMPLATE = """
target:
  endpoint: "https://minio:9000"
  access_key: "ak"
  secret_key: "${{MINIO_SECRET_KEY:-sk}}"
bucket: photos
{extra}
pool:
  concurrency: 2
  close_grace_seconds: 0
  poll_interval_seconds: 0.01
"""


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """The CLI points the root handler at the runner's stderr; put the old handlers back."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    def write(extra: str = "") -> Path:
        path = tmp_path / "settings.yaml"
        path.write_text(SETTINGS_TEMPLATE.format(extra=extra), encoding="utf-8")
        return path

    return write


@pytest.fixture
def patched_store(
    store: InMemoryObjectStore,
    clean_env: pytest.MonkeyPatch,
) -> InMemoryObjectStore:
    """Route every client the CLI builds to the in-memory store."""
    clean_env.setattr("moveobject.cli.minio_client_factory", lambda settings: (lambda endpoint: store))
    return store
