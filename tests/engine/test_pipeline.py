# tests/engine/test_pipeline.py
"""End-to-end pipeline runs against the in-memory store."""

import dataclasses
import threading
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path

import pytest

from moveobject.contracts import InputFormatError, OperationKind, OperationResult, OutcomeLogError, Task
from moveobject.core.filters import KeyFilter
from moveobject.core.rewrite import add_prefix
from moveobject.core.routing import BucketRoutingTable
from moveobject.engine.pipeline import Pipeline, PipelineConfig
from moveobject.engine.sources import FileEntrySource, ListingReader
from moveobject.operations import (
    CopyStrategy,
    DeleteStrategy,
    MigrateStrategy,
    MoveStrategy,
    OperationContext,
    OperationStrategy,
)
from moveobject.testing import InMemoryObjectStore

pytestmark = pytest.mark.usefixtures("no_threads_left")


class RecordingStrategy(OperationStrategy):
    """Succeeds for every key except those listed in ``fail``."""

    kind = OperationKind.COPY
    log_name = "copy"
    summary_verb = "Copied"

    def __init__(self, fail: frozenset[str] = frozenset(), raise_for: frozenset[str] = frozenset()) -> None:
        super().__init__()
        self.fail = fail
        self.raise_for = raise_for
        self.seen: list[str] = []
        self._lock = threading.Lock()

    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        with self._lock:
            self.seen.append(task.key)
        if task.key in self.raise_for:
            raise RuntimeError("boom")
        if task.key in self.fail:
            return OperationResult.error({"reason": "test_failure"})
        return OperationResult.success("recorded")


class BlockingStrategy(OperationStrategy):
    """Blocks every task until released, honouring cancellation."""

    kind = OperationKind.COPY
    log_name = "copy"
    summary_verb = "Copied"

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()

    def execute(self, task: Task, ctx: OperationContext) -> OperationResult:
        self.started.set()
        while not ctx.cancel_event.wait(0.01):
            pass
        ctx.raise_if_cancelled()
        return OperationResult.success("unreachable")


class TrackingSource:
    """Keeps the reader handed out by the wrapped listing source."""

    def __init__(self, source: FileEntrySource) -> None:
        self._source = source
        self.reader: ListingReader | None = None

    def __iter__(self) -> ListingReader:
        self.reader = iter(self._source)
        return self.reader


def _logs(config: PipelineConfig, name: str = "copy") -> tuple[Path, Path]:
    return config.data_dir / f"{name}_success.txt", config.data_dir / f"{name}_fails.txt"


class TestCopyScenario:
    def test_two_objects_two_workers(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        v1 = store.put_bytes("photos", "0/a.txt", b"a")
        store.put_bytes("photos", "0/b.txt", b"b")
        path = write_listing(f"{v1},0/a.txt\n0/b.txt\n")

        strategy = CopyStrategy(store, "photos", rewrite=add_prefix("backup/"))
        summary = Pipeline(strategy, fast_config).run(FileEntrySource(path))

        success, failure = _logs(fast_config)
        assert sorted(log_lines(success)) == ["0/a.txt", "0/b.txt"]
        assert log_lines(failure) == []
        assert summary.processed == 2
        assert summary.failed == 0
        assert store.live_keys("photos") == ["0/a.txt", "0/b.txt", "backup/0/a.txt", "backup/0/b.txt"]

    def test_copy_is_idempotent(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        store.put_bytes("photos", "0/a.txt", b"a")
        path = write_listing("0/a.txt\n")
        strategy = CopyStrategy(store, "photos", destination_bucket="archive")

        first = Pipeline(strategy, fast_config).run(FileEntrySource(path))
        second = Pipeline(strategy, fast_config).run(FileEntrySource(path))

        assert (first.processed, first.failed) == (1, 0)
        assert (second.processed, second.failed) == (1, 0)
        assert store.data("archive", "0/a.txt") == b"a"


class TestDeleteScenario:
    def test_stat_failure_is_recorded(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        path = write_listing("gone.txt\n")
        summary = Pipeline(DeleteStrategy(store, "photos"), fast_config).run(FileEntrySource(path))

        success, failure = _logs(fast_config, "delete")
        assert log_lines(failure) == ["gone.txt"]
        assert not success.exists()
        assert (summary.processed, summary.failed) == (0, 1)
        assert summary.success_log is None

    def test_second_run_fails_every_object(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
    ) -> None:
        for key in ("0/a", "0/b", "0/c"):
            store.put_bytes("photos", key, b"x")
        path = write_listing("0/a\n0/b\n0/c\n")

        first = Pipeline(DeleteStrategy(store, "photos"), fast_config).run(FileEntrySource(path))
        second = Pipeline(DeleteStrategy(store, "photos"), fast_config).run(FileEntrySource(path))

        assert (first.processed, first.failed) == (3, 0)
        assert (second.processed, second.failed) == (0, 3)
        assert store.live_keys("photos") == []


class TestMoveScenario:
    def test_second_run_fails_every_object(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        tmp_path: Path,
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        lines = [f"{store.put_bytes('photos', f'0/{n}.jpg', b'x')},0/{n}.jpg" for n in range(5)]
        path = tmp_path / "object_listing.txt"
        path.write_text("\n".join(lines) + "\n")

        strategy = MoveStrategy(store, "photos", destination_bucket="moved")
        first = Pipeline(strategy, fast_config).run(FileEntrySource(path, require_version=True))
        second = Pipeline(strategy, fast_config).run(FileEntrySource(path, require_version=True))

        assert (first.processed, first.failed) == (5, 0)
        assert (second.processed, second.failed) == (0, 5)
        assert store.live_keys("photos") == []
        assert len(store.live_keys("moved")) == 5
        assert len(log_lines(fast_config.data_dir / "move_fails.txt")) == 5


class TestOutcomeAccounting:
    def test_every_task_recorded_exactly_once(
        self,
        fast_config: PipelineConfig,
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        keys = [f"{n}/obj" for n in range(200)]
        failing = frozenset(keys[::7])
        strategy = RecordingStrategy(fail=failing)
        config = dataclasses.replace(fast_config, concurrency=8, queue_size=4)

        summary = Pipeline(strategy, config).run(Task(k) for k in keys)

        success, failure = _logs(config)
        assert sorted(log_lines(success) + log_lines(failure)) == sorted(keys)
        assert set(log_lines(failure)) == failing
        assert summary.processed == len(keys) - len(failing)
        assert summary.failed == len(failing)
        assert summary.submitted == len(keys)
        assert sorted(strategy.seen) == sorted(keys)

    def test_unexpected_exception_becomes_failure(
        self,
        fast_config: PipelineConfig,
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        strategy = RecordingStrategy(raise_for=frozenset({"bad"}))
        summary = Pipeline(strategy, fast_config).run([Task("good"), Task("bad")])

        assert (summary.processed, summary.failed) == (1, 1)
        assert log_lines(_logs(fast_config)[1]) == ["bad"]

    def test_skip_never_touches_first_lines(
        self,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        path = write_listing("".join(f"k{n}\n" for n in range(10)))
        strategy = RecordingStrategy()

        summary = Pipeline(strategy, fast_config).run(FileEntrySource(path, skip=4))

        success, failure = _logs(fast_config)
        recorded = set(log_lines(success) + log_lines(failure))
        assert summary.submitted == 6
        assert recorded == {f"k{n}" for n in range(4, 10)}
        assert not {"k0", "k1", "k2", "k3"} & set(strategy.seen)


class TestKeyFilter:
    def test_source_side_rejection_is_a_failure(
        self,
        fast_config: PipelineConfig,
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        config = dataclasses.replace(fast_config, key_filter=KeyFilter(r"\d+/.+"))
        strategy = RecordingStrategy()

        summary = Pipeline(strategy, config).run([Task("1/a"), Task("nope"), Task("2/b")])

        assert log_lines(_logs(config)[1]) == ["nope"]
        assert (summary.processed, summary.failed) == (2, 1)
        assert summary.submitted == 2
        assert "nope" not in strategy.seen

    def test_worker_rechecks_filter(self, fast_config: PipelineConfig, log_lines: Callable[[Path], list[str]]) -> None:
        config = dataclasses.replace(fast_config, key_filter=KeyFilter(r"\d+/.+"))
        strategy = RecordingStrategy()
        pipeline = Pipeline(strategy, config)
        pipeline.start()
        # Bypass submit() to put a non-matching key straight on the queue
        assert pipeline.state.enqueue(Task("sneaky"))
        summary = pipeline.finish()

        assert strategy.seen == []
        assert summary.failed == 1
        assert log_lines(_logs(config)[1]) == ["sneaky"]


class TestDryRun:
    def test_no_mutations_and_no_files(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
    ) -> None:
        for key in ("0/a", "0/b"):
            store.put_bytes("photos", key, b"x")
        path = write_listing("0/a\n0/b\nmissing\n")
        config = dataclasses.replace(fast_config, dry_run=True)

        before = set(config.data_dir.iterdir())
        for strategy in (
            CopyStrategy(store, "photos", rewrite=add_prefix("c/"), dry_run=True),
            DeleteStrategy(store, "photos", dry_run=True),
        ):
            summary = Pipeline(strategy, config).run(FileEntrySource(path))
            assert summary.processed == 3
            assert summary.success_log is None and summary.failure_log is None

        assert store.calls == []
        assert store.live_keys("photos") == ["0/a", "0/b"]
        assert set(config.data_dir.iterdir()) == before

    def test_migrate_dry_run_still_routes(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
    ) -> None:
        store.put_bytes("photos", "0/a", b"x")
        path = write_listing("0/a\n260/b\nnope\n")
        config = dataclasses.replace(fast_config, dry_run=True)
        table = BucketRoutingTable.evenly_spaced(["bucket1", "bucket2", "bucket3", "bucket4"])
        strategy = MigrateStrategy(store, "photos", store, routing_table=table, dry_run=True)

        summary = Pipeline(strategy, config).run(FileEntrySource(path))

        assert (summary.processed, summary.failed) == (2, 1)
        assert store.calls == []
        assert list(config.data_dir.iterdir()) == [path]

    @pytest.mark.parametrize(("strategy_dry_run", "config_dry_run"), [(False, True), (True, False)])
    def test_disagreeing_dry_run_flags_rejected(
        self,
        store: InMemoryObjectStore,
        fast_config: PipelineConfig,
        strategy_dry_run: bool,
        config_dry_run: bool,
    ) -> None:
        config = dataclasses.replace(fast_config, dry_run=config_dry_run)

        with pytest.raises(ValueError, match="dry_run"):
            Pipeline(CopyStrategy(store, "photos", rewrite=add_prefix("c/"), dry_run=strategy_dry_run), config)
        assert store.calls == []


class TestLogNaming:
    def test_timestamped_names_by_default(self, fast_config: PipelineConfig) -> None:
        config = dataclasses.replace(fast_config, timestamp_logs=True)
        started = datetime(2024, 1, 2, 15, 4, 5)

        summary = Pipeline(RecordingStrategy(), config, started_at=started).run([Task("a")])

        assert summary.success_log == config.data_dir / "copy_success.txt.01-02-2024-15-04-05"
        assert summary.success_log.read_text() == "a\n"
        assert summary.failure_log == config.data_dir / "copy_fails.txt.01-02-2024-15-04-05"

    def test_unwritable_data_dir_fails_before_workers_start(self, fast_config: PipelineConfig, tmp_path: Path) -> None:
        config = dataclasses.replace(fast_config, data_dir=tmp_path / "missing")
        strategy = RecordingStrategy()

        with pytest.raises(OutcomeLogError):
            Pipeline(strategy, config).run([Task("a")])
        assert strategy.seen == []

    def test_listing_closed_when_logs_cannot_be_opened(
        self,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
        tmp_path: Path,
    ) -> None:
        source = TrackingSource(FileEntrySource(write_listing("a\nb\n")))
        config = dataclasses.replace(fast_config, data_dir=tmp_path / "missing")

        with pytest.raises(OutcomeLogError):
            Pipeline(RecordingStrategy(), config).run(source)
        assert source.reader is not None
        assert source.reader.closed


class TestLifecycle:
    def test_finish_twice_rejected(self, fast_config: PipelineConfig) -> None:
        pipeline = Pipeline(RecordingStrategy(), fast_config)
        pipeline.start()
        assert pipeline.submit(Task("a"))
        assert pipeline.finish().processed == 1

        with pytest.raises(RuntimeError, match="already finished"):
            pipeline.finish()

    def test_finish_after_run_rejected(self, fast_config: PipelineConfig) -> None:
        pipeline = Pipeline(RecordingStrategy(), fast_config)
        pipeline.run([Task("a")])

        with pytest.raises(RuntimeError, match="already finished"):
            pipeline.finish()

    def test_finish_before_start_rejected(self, fast_config: PipelineConfig) -> None:
        with pytest.raises(RuntimeError, match="not started"):
            Pipeline(RecordingStrategy(), fast_config).finish()

    def test_listing_closed_after_cancelled_run(
        self,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
    ) -> None:
        cancel = threading.Event()
        cancel.set()
        source = TrackingSource(FileEntrySource(write_listing("a\nb\nc\n")))

        summary = Pipeline(RecordingStrategy(), fast_config, cancel_event=cancel).run(source)

        assert summary.cancelled
        assert source.reader is not None
        assert source.reader.closed


class TestAbort:
    def test_malformed_line_aborts_run(
        self,
        fast_config: PipelineConfig,
        write_listing: Callable[..., Path],
    ) -> None:
        path = write_listing("v1,0/a\n0/b\n")
        pipeline = Pipeline(RecordingStrategy(), fast_config)

        with pytest.raises(InputFormatError):
            pipeline.run(FileEntrySource(path, require_version=True))
        assert pipeline.state.cancelled

    def test_missing_listing_fails_before_logs_exist(self, fast_config: PipelineConfig) -> None:
        with pytest.raises(FileNotFoundError):
            Pipeline(RecordingStrategy(), fast_config).run(FileEntrySource(fast_config.data_dir / "nope.txt"))
        assert list(fast_config.data_dir.iterdir()) == []

    def test_keyboard_interrupt_cancels_and_joins(
        self,
        fast_config: PipelineConfig,
        log_lines: Callable[[Path], list[str]],
    ) -> None:
        strategy = BlockingStrategy()

        def interrupted() -> Iterator[Task]:
            yield Task("a")
            yield Task("b")
            assert strategy.started.wait(2)
            raise KeyboardInterrupt

        pipeline = Pipeline(strategy, fast_config)
        with pytest.raises(KeyboardInterrupt):
            pipeline.run(interrupted())

        # Interrupted tasks record no outcome and count nowhere
        success, failure = _logs(fast_config)
        assert log_lines(success) == []
        assert log_lines(failure) == []
        assert pipeline.state.counters.snapshot() == {"processed": 0, "failed": 0}

    def test_external_cancel_stops_producer(self, fast_config: PipelineConfig) -> None:
        cancel = threading.Event()
        strategy = BlockingStrategy()
        pipeline = Pipeline(strategy, fast_config, cancel_event=cancel)

        def endless() -> Iterator[Task]:
            n = 0
            while True:
                if n == 4:
                    cancel.set()
                yield Task(f"k{n}")
                n += 1

        summary = pipeline.run(endless())

        assert summary.cancelled
        assert summary.completed == 0
