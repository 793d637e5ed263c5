# src/moveobject/engine/router.py
"""OutcomeRouter drains outcome channels into append-only log files.

One router thread per run. It is started before the worker pool so the
outcome queues are always being drained and slow disk I/O never blocks a
remote call for longer than a full queue allows.

Design principles:
- Log files are opened (created/truncated) before any worker starts, so an
  unwritable data directory is a startup failure
- A path of None disables that log (dry-run disables both)
- The router runs until both channels are closed, also after cancellation,
  so every emitted outcome reaches its log
- A write failure is fatal: the router cancels the run, keeps draining so no
  worker blocks, and re-raises the error from join()
"""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import IO

import structlog

from moveobject.contracts import Outcome, OutcomeKind, OutcomeLogError
from moveobject.engine.state import PipelineState

logger = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = ".%m-%d-%Y-%H-%M-%S"


def outcome_log_paths(
    data_dir: Path,
    log_name: str,
    *,
    timestamp: datetime | None = None,
) -> tuple[Path, Path]:
    """Return (success_path, failure_path) for an operation.

    Args:
        data_dir: Directory the logs are written to
        log_name: Operation log name, e.g. "migration" or "move"
        timestamp: Run start time; appended as ``.MM-DD-YYYY-HH-MM-SS`` so
            successive runs never clobber each other. None gives fixed names.
    """
    suffix = timestamp.strftime(TIMESTAMP_FORMAT) if timestamp is not None else ""
    return (
        data_dir / f"{log_name}_success.txt{suffix}",
        data_dir / f"{log_name}_fails.txt{suffix}",
    )


class OutcomeRouter:
    """Single consumer writing Success/Failure keys to their log files.

    Example:
        >>> router = OutcomeRouter(state, success_path, failure_path)
        >>> router.open()
        >>> router.start()
        >>> ...  # workers emit outcomes, then state.close_outcomes()
        >>> router.join()
    """

    def __init__(
        self,
        state: PipelineState,
        success_path: Path | None,
        failure_path: Path | None,
    ) -> None:
        self._state = state
        self._paths: dict[OutcomeKind, Path | None] = {
            OutcomeKind.SUCCESS: success_path,
            OutcomeKind.FAILURE: failure_path,
        }
        self._files: dict[OutcomeKind, IO[str]] = {}
        self._written: dict[OutcomeKind, int] = {OutcomeKind.SUCCESS: 0, OutcomeKind.FAILURE: 0}
        self._error: OutcomeLogError | None = None
        self._thread = threading.Thread(target=self._drain_loop, name="moveobject-outcome-router", daemon=False)

    @property
    def success_path(self) -> Path | None:
        return self._paths[OutcomeKind.SUCCESS]

    @property
    def failure_path(self) -> Path | None:
        return self._paths[OutcomeKind.FAILURE]

    @property
    def written(self) -> dict[str, int]:
        """Lines written per log; only stable after join()."""
        return {kind.value: count for kind, count in self._written.items()}

    def open(self) -> None:
        """Create/truncate the configured log files.

        Raises:
            OutcomeLogError: If a file cannot be created
        """
        for kind, path in self._paths.items():
            if path is None:
                continue
            try:
                self._files[kind] = path.open("w", encoding="utf-8", newline="\n")
            except OSError as e:
                self._close_files()
                raise OutcomeLogError(f"could not create {path}: {e}") from e

    def start(self) -> None:
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self) -> None:
        """Wait for the router to drain and exit, then close the logs.

        Raises:
            OutcomeLogError: If writing a log line failed during the run
        """
        if self._thread.is_alive():
            self._thread.join()
        self._close_files()
        if self._error is not None:
            raise self._error

    def _drain_loop(self) -> None:
        channels = self._state.outcomes
        poll = self._state.poll_interval
        try:
            while not channels.closed:
                outcome = channels.next_outcome(timeout=poll)
                if outcome is not None:
                    self._write(outcome)
        except Exception as e:
            # Workers would block on full queues with nobody reading
            logger.exception("Outcome router failed")
            self._error = OutcomeLogError(f"outcome router failed: {e}")
            self._state.cancel_event.set()
        finally:
            self._close_files()

    def _write(self, outcome: Outcome) -> None:
        if self._error is not None:
            return
        handle = self._files.get(outcome.kind)
        if handle is None:
            return
        try:
            handle.write(outcome.key + "\n")
        except OSError as e:
            path = self._paths[outcome.kind]
            self._error = OutcomeLogError(f"error writing to {path} for {outcome.key}: {e}")
            logger.error("Outcome log write failed, cancelling run", path=str(path), key=outcome.key, error=str(e))
            self._state.cancel_event.set()
            return
        self._written[outcome.kind] += 1

    def _close_files(self) -> None:
        while self._files:
            kind, handle = self._files.popitem()
            try:
                handle.close()
            except OSError as e:
                if self._error is None:
                    self._error = OutcomeLogError(f"error flushing {self._paths[kind]}: {e}")
