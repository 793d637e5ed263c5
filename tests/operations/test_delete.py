# tests/operations/test_delete.py
"""Tests for DeleteStrategy."""

import threading

import pytest

from moveobject.contracts import OperationCancelled, Task
from moveobject.operations import DeleteStrategy, OperationContext
from moveobject.testing import InMemoryObjectStore


@pytest.fixture
def ctx() -> OperationContext:
    return OperationContext(cancel_event=threading.Event())


class TestDeleteStrategy:
    def test_success_not_logged(self, store: InMemoryObjectStore) -> None:
        strategy = DeleteStrategy(store, "photos")
        assert not strategy.records_success
        assert strategy.log_name == "delete"

    def test_removes_current_version(self, store: InMemoryObjectStore, ctx: OperationContext) -> None:
        old = store.put_bytes("photos", "a", b"1")
        store.put_bytes("photos", "a", b"2")

        result = DeleteStrategy(store, "photos").execute(Task("a"), ctx)

        assert result.action == "deleted"
        assert store.versions("photos", "a") == [old]
        assert store.data("photos", "a") == b"1"
        assert [c[0] for c in store.calls] == ["stat", "remove"]

    def test_listing_version_ignored(self, store: InMemoryObjectStore, ctx: OperationContext) -> None:
        old = store.put_bytes("photos", "a", b"1")
        store.put_bytes("photos", "a", b"2")

        assert DeleteStrategy(store, "photos").execute(Task("a", version_id=old), ctx).ok
        assert store.versions("photos", "a") == [old]

    def test_missing_object(self, store: InMemoryObjectStore, ctx: OperationContext) -> None:
        result = DeleteStrategy(store, "photos").execute(Task("gone.txt"), ctx)

        assert result.reason is not None
        assert result.reason["reason"] == "stat_failed"
        assert result.reason["code"] == "NoSuchKey"
        assert store.calls_for("remove") == []

    def test_remove_failure(self, store: InMemoryObjectStore, ctx: OperationContext) -> None:
        store.put_bytes("photos", "a", b"1")
        store.inject_failure("remove", "a", code="AccessDenied")

        result = DeleteStrategy(store, "photos").execute(Task("a"), ctx)

        assert result.reason is not None
        assert result.reason["reason"] == "remove_failed"
        assert store.live_keys("photos") == ["a"]

    def test_dry_run_skips_stat(self, store: InMemoryObjectStore, ctx: OperationContext) -> None:
        result = DeleteStrategy(store, "photos", dry_run=True).execute(Task("gone.txt"), ctx)

        assert result.action == "dry_run"
        assert store.calls == []

    def test_cancelled(self, store: InMemoryObjectStore) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelled):
            DeleteStrategy(store, "photos").execute(Task("a"), OperationContext(cancel_event=cancel))
