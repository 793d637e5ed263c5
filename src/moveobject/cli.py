# src/moveobject/cli.py
"""moveobject Command Line Interface.

Entry point for the moveobject CLI tool.
"""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from moveobject import __version__
from moveobject.contracts import (
    ConfigurationError,
    InputFormatError,
    ListingError,
    OperationKind,
    OutcomeLogError,
    Task,
)
from moveobject.core.config import MoveObjectSettings, load_settings, with_overrides
from moveobject.core.filters import KeyFilter
from moveobject.operations.factory import build_strategy, minio_client_factory, require_bucket, require_endpoint

if TYPE_CHECKING:
    from collections.abc import Iterable

    from moveobject.engine.pipeline import RunSummary

__all__ = ["app"]

VERSION_LISTING_FILE = "version_listing.txt"

app = typer.Typer(
    name="moveobject",
    help="moveobject: bulk migrate, move, copy and delete objects in S3-compatible storage.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"moveobject version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging (one line per object).",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """moveobject: bulk operations over S3-compatible object storage."""
    from moveobject.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _echo_validation_error(e: ValidationError) -> None:
    typer.echo("Configuration errors:", err=True)
    for error in e.errors():
        loc = ".".join(str(x) for x in error["loc"])
        typer.echo(f"  - {loc}: {error['msg']}", err=True)


def _load_run_settings(
    settings: str | None,
    *,
    data_dir: Path | None = None,
    input_file: Path | None = None,
    skip: int | None = None,
    dry_run: bool | None = None,
    concurrency: int | None = None,
    pattern: str | None = None,
    fixed_log_names: bool = False,
) -> MoveObjectSettings:
    """Load settings and apply command-line overrides; exit 1 on any problem."""
    settings_path = Path(settings).expanduser() if settings else None
    try:
        loaded = load_settings(settings_path)
        return with_overrides(
            loaded,
            concurrency=concurrency,
            data_dir=data_dir,
            input_file=str(input_file) if input_file is not None else None,
            skip=skip,
            dry_run=True if dry_run else None,
            key_pattern=pattern,
            timestamp_logs=False if fixed_log_names else None,
        )
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        _echo_validation_error(e)
        raise typer.Exit(1) from None


def _run_operation(
    kind: OperationKind,
    config: MoveObjectSettings,
    *,
    prefix_range: tuple[int, int] | None = None,
) -> RunSummary:
    """Build the strategy and entry source, run the pipeline, map errors to exit codes."""
    from moveobject.engine.pipeline import Pipeline, PipelineConfig
    from moveobject.engine.sources import FileEntrySource, ListingEntrySource

    client_factory = minio_client_factory(config)
    try:
        strategy = build_strategy(kind, config, client_factory=client_factory)
        source: Iterable[Task]
        if prefix_range is not None:
            source = ListingEntrySource(
                client_factory(require_endpoint(config, "target")),
                require_bucket(config),
                prefix_range[0],
                prefix_range[1],
                key_filter=KeyFilter(config.key_pattern),
            )
        else:
            source = FileEntrySource(config.input_path, skip=config.skip, require_version=strategy.requires_version)
    except (ConfigurationError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    cancel_event = threading.Event()
    pipeline = Pipeline(
        strategy,
        PipelineConfig.from_settings(config),
        cancel_event=cancel_event,
        started_at=datetime.now(),
    )
    try:
        summary = pipeline.run(source)
    except KeyboardInterrupt:
        typer.echo("Interrupted, outcome logs are complete up to the last finished object.", err=True)
        raise typer.Exit(130) from None
    except InputFormatError as e:
        typer.echo(f"Error: malformed object listing {config.input_path}: {e}", err=True)
        raise typer.Exit(1) from None
    except ListingError as e:
        typer.echo(f"Error: listing failed: {e}", err=True)
        raise typer.Exit(1) from None
    except OutcomeLogError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if summary.failed and summary.failure_log is not None:
        typer.echo(f"{summary.failed} failures logged to {summary.failure_log}", err=True)
    return summary


_SETTINGS_HELP = "Path to settings YAML file (optional; MINIO_* / MOVEOBJECT_* environment also work)."
_DATA_DIR_HELP = "Directory holding the object listing and the outcome logs."
_INPUT_HELP = "Object listing file, relative to --data-dir (default object_listing.txt)."
_SKIP_HELP = "Skip the first N lines of the object listing."
_FAKE_HELP = "Log what would happen without changing anything."
_CONCURRENCY_HELP = "Worker threads (default max(100, CPU count))."
_PATTERN_HELP = "Regular expression every object key must match in full."
_FIXED_LOGS_HELP = "Write fixed log names instead of timestamp-suffixed ones."


@app.command()
def migrate(
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help=_DATA_DIR_HELP),
    input_file: Path | None = typer.Option(None, "--input", help=_INPUT_HELP),
    skip: int | None = typer.Option(None, "--skip", min=0, help=_SKIP_HELP),
    fake: bool | None = typer.Option(None, "--fake", "--dry-run", help=_FAKE_HELP),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help=_CONCURRENCY_HELP),
    pattern: str | None = typer.Option(None, "--pattern", help=_PATTERN_HELP),
    fixed_log_names: bool = typer.Option(False, "--fixed-log-names", help=_FIXED_LOGS_HELP),
) -> None:
    """Migrate listed objects from the source endpoint to the target endpoint."""
    config = _load_run_settings(
        settings,
        data_dir=data_dir,
        input_file=input_file,
        skip=skip,
        dry_run=fake,
        concurrency=concurrency,
        pattern=pattern,
        fixed_log_names=fixed_log_names,
    )
    _run_operation(OperationKind.MIGRATE, config)


@app.command()
def move(
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help=_DATA_DIR_HELP),
    input_file: Path | None = typer.Option(None, "--input", help=_INPUT_HELP),
    skip: int | None = typer.Option(None, "--skip", min=0, help=_SKIP_HELP),
    fake: bool | None = typer.Option(None, "--fake", "--dry-run", help=_FAKE_HELP),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help=_CONCURRENCY_HELP),
    pattern: str | None = typer.Option(None, "--pattern", help=_PATTERN_HELP),
    fixed_log_names: bool = typer.Option(False, "--fixed-log-names", help=_FIXED_LOGS_HELP),
    prefix_start: int | None = typer.Option(
        None,
        "--prefix-start",
        min=0,
        help="List the bucket from prefix <n>/ instead of reading the object listing.",
    ),
    prefix_end: int | None = typer.Option(
        None,
        "--prefix-end",
        min=0,
        help="Last numeric prefix to list (inclusive).",
    ),
) -> None:
    """Move object versions (copy, then remove) within the target endpoint.

    The object listing must contain versionID,key lines (see 'moveobject list').
    """
    if (prefix_start is None) != (prefix_end is None):
        typer.echo("Error: --prefix-start and --prefix-end must be given together.", err=True)
        raise typer.Exit(1)
    prefix_range = (prefix_start, prefix_end) if prefix_start is not None and prefix_end is not None else None
    if prefix_range is not None and skip:
        typer.secho("Warning: --skip ignored when listing by prefix.", fg=typer.colors.YELLOW, err=True)

    config = _load_run_settings(
        settings,
        data_dir=data_dir,
        input_file=input_file,
        skip=skip,
        dry_run=fake,
        concurrency=concurrency,
        pattern=pattern,
        fixed_log_names=fixed_log_names,
    )
    _run_operation(OperationKind.MOVE, config, prefix_range=prefix_range)


@app.command()
def copy(
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help=_DATA_DIR_HELP),
    input_file: Path | None = typer.Option(None, "--input", help=_INPUT_HELP),
    skip: int | None = typer.Option(None, "--skip", min=0, help=_SKIP_HELP),
    fake: bool | None = typer.Option(None, "--fake", "--dry-run", help=_FAKE_HELP),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help=_CONCURRENCY_HELP),
    pattern: str | None = typer.Option(None, "--pattern", help=_PATTERN_HELP),
    fixed_log_names: bool = typer.Option(False, "--fixed-log-names", help=_FIXED_LOGS_HELP),
) -> None:
    """Server-side copy listed objects within the target endpoint."""
    config = _load_run_settings(
        settings,
        data_dir=data_dir,
        input_file=input_file,
        skip=skip,
        dry_run=fake,
        concurrency=concurrency,
        pattern=pattern,
        fixed_log_names=fixed_log_names,
    )
    _run_operation(OperationKind.COPY, config)


@app.command()
def delete(
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help=_DATA_DIR_HELP),
    input_file: Path | None = typer.Option(None, "--input", help=_INPUT_HELP),
    skip: int | None = typer.Option(None, "--skip", min=0, help=_SKIP_HELP),
    fake: bool | None = typer.Option(None, "--fake", "--dry-run", help=_FAKE_HELP),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", min=1, help=_CONCURRENCY_HELP),
    pattern: str | None = typer.Option(None, "--pattern", help=_PATTERN_HELP),
    fixed_log_names: bool = typer.Option(False, "--fixed-log-names", help=_FIXED_LOGS_HELP),
) -> None:
    """Delete the current version of every listed object."""
    config = _load_run_settings(
        settings,
        data_dir=data_dir,
        input_file=input_file,
        skip=skip,
        dry_run=fake,
        concurrency=concurrency,
        pattern=pattern,
        fixed_log_names=fixed_log_names,
    )
    _run_operation(OperationKind.DELETE, config)


@app.command("list")
def list_versions(
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    data_dir: Path | None = typer.Option(None, "--data-dir", "-d", help=_DATA_DIR_HELP),
    pattern: str | None = typer.Option(None, "--pattern", help=_PATTERN_HELP),
    prefix: str = typer.Option("", "--prefix", help="Only list keys under this prefix."),
) -> None:
    """Write version_listing.txt (versionID,key) for every live object in the bucket.

    The output is the input format expected by 'moveobject move'.
    """
    from moveobject.engine.sources import iter_live_entries, write_version_listing

    config = _load_run_settings(settings, data_dir=data_dir, pattern=pattern)
    try:
        client = minio_client_factory(config)(require_endpoint(config, "target"))
        bucket = require_bucket(config)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    output = config.data_dir / VERSION_LISTING_FILE
    try:
        count = write_version_listing(iter_live_entries(client, bucket, prefix, KeyFilter(config.key_pattern)), output)
    except ListingError as e:
        typer.echo(f"Error: listing failed: {e}", err=True)
        raise typer.Exit(1) from None
    except OSError as e:
        typer.echo(f"Error: could not write {output}: {e}", err=True)
        raise typer.Exit(1) from None

    typer.echo(f"Listed {count} objects to {output}")


if __name__ == "__main__":
    app()
