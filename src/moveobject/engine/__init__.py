# src/moveobject/engine/__init__.py
"""Pipeline engine: entry sources, queues, worker pool, outcome router."""

from moveobject.engine.counters import ProgressCounters
from moveobject.engine.pipeline import Pipeline, PipelineConfig, RunSummary
from moveobject.engine.pool import WorkerPool
from moveobject.engine.router import OutcomeRouter, outcome_log_paths
from moveobject.engine.sources import (
    FileEntrySource,
    ListingEntrySource,
    iter_live_entries,
    parse_entry,
    write_version_listing,
)
from moveobject.engine.state import OutcomeChannels, PipelineState

__all__ = [
    "FileEntrySource",
    "ListingEntrySource",
    "OutcomeChannels",
    "OutcomeRouter",
    "Pipeline",
    "PipelineConfig",
    "PipelineState",
    "ProgressCounters",
    "RunSummary",
    "WorkerPool",
    "iter_live_entries",
    "outcome_log_paths",
    "parse_entry",
    "write_version_listing",
]
