"""CLI entry point for the audio relocator (audio-relocate command)."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from loguru import logger
from pydantic import ValidationError as SettingsValidationError

from .audit_log import JsonlLogSink
from .config import RelocatorConfig
from .models import BatchReport, ConflictDecision, PolicyKind, RunStatus, RunSummary
from .orchestrator import RelocateOrchestrator, RelocateWorker

log = logger.bind(stage="cli")

LOG_FILE_NAME = "relocate-log.jsonl"


def _prompt_conflict(path: Path, target: str) -> ConflictDecision:
    """Ask on the terminal how to settle one destination collision."""
    answer = click.prompt(
        f"Destination {target} already exists: {path}\nOverwrite, keep both, or skip?",
        type=click.Choice([d.value for d in ConflictDecision]),
        default=ConflictDecision.SKIP.value,
    )
    return ConflictDecision(answer)


def _echo_batch(report: BatchReport) -> None:
    click.echo(
        f"  Batch {report.index}: {report.file_count} files "
        f"({report.total_bytes / 1048576:.1f} MB) -> "
        f"{report.moved} moved, {report.skipped} skipped, {report.failed} failed"
    )


def _print_summary(summary: RunSummary, log_file: Path) -> None:
    click.echo("\nRelocation Summary")
    click.echo("=" * 50)
    click.echo(f"Status:    {summary.status}")
    click.echo(f"Batches:   {summary.batches}")
    click.echo(f"Files:     {summary.files_found}")
    click.echo(f"Moved:     {summary.moved}")
    click.echo(f"Skipped:   {summary.skipped}")
    click.echo(f"Failed:    {summary.failed}")
    click.echo(f"Elapsed:   {summary.elapsed_seconds:.1f}s")
    if summary.error:
        click.echo(f"Error:     {summary.error}")
    click.echo(f"\nLog saved to {log_file}")


@click.command()
@click.argument("source_dir", type=click.Path(path_type=Path))
@click.argument("dest_dir", type=click.Path(path_type=Path))
@click.option(
    "--backup-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Copy matching source files here before moving anything.",
)
@click.option(
    "--replace-terms",
    "replace_terms_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Comma-separated terms to strip from filenames.",
)
@click.option(
    "--append-terms",
    "append_terms_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Comma-separated terms to append to filenames.",
)
@click.option(
    "--conflict",
    "conflict_policy",
    type=click.Choice([k.value for k in PolicyKind]),
    default=None,
    help="What to do when a destination folder or file exists.",
)
@click.option(
    "--similarity",
    "similarity_mode",
    type=click.IntRange(1, 100),
    default=None,
    help="1 = shared words, 100 = exact names, otherwise minimum % similarity.",
)
@click.option(
    "--batch-size",
    "batch_size_mb",
    type=click.IntRange(10, 1000),
    default=None,
    help="Batch size in MB (default 300).",
)
@click.option(
    "--quality/--no-quality",
    "quality_selection",
    default=None,
    help="Keep only the best-quality file of each duplicate group.",
)
@click.option(
    "--dup-check/--no-dup-check",
    "duplicate_check",
    default=None,
    help="Group files with similar names.",
)
@click.option("--transitive", is_flag=True, help="Merge groups through shared members.")
@click.option("--probe-bitrate", is_flag=True, help="Read bitrates with ffprobe.")
@click.option("--tags", "rename_from_tags", is_flag=True, help="Name files from their tags.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"JSONL audit log (default: DEST_DIR/{LOG_FILE_NAME}).",
)
@click.option("--dry-run", is_flag=True, help="Show what would happen without doing it.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to .env file.",
)
def main(
    source_dir: Path,
    dest_dir: Path,
    backup_dir: Path | None,
    replace_terms_file: Path | None,
    append_terms_file: Path | None,
    conflict_policy: str | None,
    similarity_mode: int | None,
    batch_size_mb: int | None,
    quality_selection: bool | None,
    duplicate_check: bool | None,
    transitive: bool,
    probe_bitrate: bool,
    rename_from_tags: bool,
    log_file: Path | None,
    dry_run: bool,
    verbose: bool,
    config_file: str | None,
) -> None:
    """Move, rename, and deduplicate audio files from SOURCE_DIR into DEST_DIR."""
    # CLI flags override .env/env values only when given
    overrides = {
        "source_dir": source_dir.resolve(),
        "dest_dir": dest_dir.resolve(),
        "backup_dir": backup_dir.resolve() if backup_dir else None,
        "replace_terms_file": replace_terms_file,
        "append_terms_file": append_terms_file,
        "conflict_policy": conflict_policy,
        "similarity_mode": similarity_mode,
        "batch_size_mb": batch_size_mb,
        "quality_selection": quality_selection,
        "duplicate_check": duplicate_check,
    }
    config_kwargs = {k: v for k, v in overrides.items() if v is not None}
    for flag, key in (
        (transitive, "transitive_grouping"),
        (probe_bitrate, "probe_bitrate"),
        (rename_from_tags, "rename_from_tags"),
        (dry_run, "dry_run"),
        (verbose, "verbose"),
    ):
        if flag:
            config_kwargs[key] = True
    if config_file:
        config_kwargs["_env_file"] = config_file

    try:
        config = RelocatorConfig(**config_kwargs)  # type: ignore[arg-type]
    except SettingsValidationError as e:
        raise click.UsageError(f"Invalid configuration: {e}") from e
    config.setup_logging()

    log_path = log_file or (config.dest_dir / LOG_FILE_NAME)
    if not log_path.parent.exists():
        log_path = Path.cwd() / LOG_FILE_NAME

    log.info(
        f"Starting relocation: source={config.source_dir} dest={config.dest_dir} "
        f"dry_run={config.dry_run}"
    )
    if config.dry_run:
        click.echo("[DRY-RUN] No changes will be made")

    with JsonlLogSink(log_path) as sink:
        orchestrator = RelocateOrchestrator(
            config,
            sink,
            prompt=_prompt_conflict,
            on_batch=_echo_batch,
        )
        worker = RelocateWorker(orchestrator)
        worker.start()
        try:
            while worker.running:
                worker.join(timeout=0.5)
        except KeyboardInterrupt:
            click.echo("\nCancelling after the current file...")
            worker.cancel()
        summary = worker.join()

    _print_summary(summary, log_path)
    if summary.status != RunStatus.COMPLETED:
        sys.exit(1)
