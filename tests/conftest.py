# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Remote stores are always InMemoryObjectStore instances; nothing in the suite
talks to a real endpoint. The MinIO adapter is tested against a mocked SDK.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

from moveobject.engine.pipeline import PipelineConfig
from moveobject.testing import InMemoryObjectStore

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Thread scheduling makes timings vary
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Environment isolation
# =============================================================================

_CONFIG_ENV_PREFIXES = ("MINIO_", "MOVEOBJECT_")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every MINIO_* / MOVEOBJECT_* variable for the duration of a test."""
    for name in list(os.environ):
        if name.startswith(_CONFIG_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Stores, listings and pipeline configuration
# =============================================================================


@pytest.fixture
def store() -> InMemoryObjectStore:
    """Empty versioned store with a 'photos' bucket."""
    s = InMemoryObjectStore()
    s.create_bucket("photos")
    return s


@pytest.fixture
def write_listing(tmp_path: Path) -> Callable[[str], Path]:
    """Write raw listing text to tmp_path/object_listing.txt and return its path."""

    def write(content: str, name: str = "object_listing.txt") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def fast_config(tmp_path: Path) -> PipelineConfig:
    """Small pool, fixed log names, no grace delay."""
    return PipelineConfig(
        concurrency=2,
        queue_size=2,
        data_dir=tmp_path,
        timestamp_logs=False,
        close_grace_seconds=0,
        poll_interval=0.01,
    )


def read_log(path: Path) -> list[str]:
    """Lines of an outcome log, or [] if the file was never created."""
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def log_lines() -> Callable[[Path], list[str]]:
    return read_log


@pytest.fixture
def no_threads_left() -> Iterator[None]:
    """Fail the test if it leaves moveobject threads running."""
    yield
    leftover = [t.name for t in threading.enumerate() if t.name.startswith("moveobject-")]
    assert leftover == []
