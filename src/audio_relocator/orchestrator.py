"""Batch orchestrator -- sequences a full relocation run.

State machine:

    IDLE -> VALIDATING -> BACKING_UP (optional) -> PREPARING -> ENUMERATING
         -> PROCESSING[i] -> ... -> SUMMARIZING -> IDLE

CANCELLING is entered from any in-progress state once the cancel event is
observed (between files, never mid-move); the audit log for completed work
is flushed and no further batches start.

Batches are processed strictly one at a time. Within a batch every entry is
named and grouped before the first move, because grouping looks at the whole
batch. Process memory is sampled before each batch and an explicit reclaim
point runs when it is above the configured threshold.
"""

from __future__ import annotations

import gc
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path

import psutil
from loguru import logger

from .audit_log import LogSink, record
from .config import RelocatorConfig
from .errors import AccessError, ConfigError, ValidationError
from .ffprobe import get_tags, name_from_tags, probe_bitrate
from .models import (
    Batch,
    BatchReport,
    FileEntry,
    LogEntry,
    LogStatus,
    MoveStatus,
    RunState,
    RunStatus,
    RunSummary,
    ScanProgress,
    SimilarityGroup,
)
from .ops.backup import backup_path_for, backup_tree
from .ops.grouping import group_entries
from .ops.move import ConflictPolicy, MoveResolver, PromptCallback
from .quality import format_priority, pick_best
from .sanitize import clean_name, load_terms, sanitize_name
from .scanner import iter_batches
from .similarity import SimilaritySettings

log = logger.bind(stage="orchestrator")

StatusCallback = Callable[[RunState, str], None]
BEST_SUFFIX = "_BEST"


def _is_within(path: Path, parent: Path) -> bool:
    return path == parent or parent in path.parents


def _name_from_file_tags(path: Path) -> str:
    return name_from_tags(get_tags(path))


class RelocateOrchestrator:
    """Runs one relocation from a validated config.

    Callbacks are invoked on the calling thread (the worker thread when run
    through RelocateWorker); a presentation layer marshals them itself.
    """

    def __init__(
        self,
        config: RelocatorConfig,
        sink: LogSink,
        prompt: PromptCallback | None = None,
        bitrate_probe: Callable[[Path], int] | None = None,
        tag_namer: Callable[[Path], str] | None = None,
        on_status: StatusCallback | None = None,
        on_progress: Callable[[ScanProgress], None] | None = None,
        on_batch: Callable[[BatchReport], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.prompt = prompt
        if bitrate_probe is None and config.probe_bitrate:
            bitrate_probe = probe_bitrate
        self.bitrate_probe = bitrate_probe
        if tag_namer is None and config.rename_from_tags:
            tag_namer = _name_from_file_tags
        self.tag_namer = tag_namer
        self.on_status = on_status
        self.on_progress = on_progress
        self.on_batch = on_batch
        self.cancel_event = cancel or threading.Event()
        self.settings = SimilaritySettings.from_legacy(config.similarity_mode)
        self.state = RunState.IDLE
        self._replace_terms: list[str] = []
        self._append_terms: list[str] = []
        self._process = psutil.Process(os.getpid())

    # -- control -----------------------------------------------------------

    def cancel(self) -> None:
        """Request cooperative cancellation. Safe from any thread."""
        log.info("Cancellation requested")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _set_state(self, state: RunState, message: str = "") -> None:
        self.state = state
        log.debug(f"State -> {state}{': ' + message if message else ''}")
        if self.on_status:
            self.on_status(state, message)

    # -- run ---------------------------------------------------------------

    def run(self) -> RunSummary:
        """Execute the whole run and return its summary.

        Validation and environment failures end the run with status FAILED
        before any file is touched; per-file problems never abort it.
        Anything unexpected escaping the run also ends it FAILED, without a
        completion summary.
        """
        started = time.monotonic()
        summary = RunSummary()
        try:
            self._set_state(RunState.VALIDATING)
            policy = self._validate()

            if self.config.backup_dir is not None:
                self._set_state(RunState.BACKING_UP, str(self.config.backup_dir))
                self._backup()

            if not self.cancelled:
                self._set_state(RunState.PREPARING, str(self.config.dest_dir))
                self._prepare()
                self._process_all(policy, summary)
        except (ValidationError, ConfigError, AccessError) as e:
            summary.status = RunStatus.FAILED
            summary.error = str(e)
            log.error(f"Run aborted: {e}")
            record(
                self.sink,
                LogEntry(message=f"Run aborted: {e}", status=LogStatus.ERROR, action="run"),
            )
        except Exception as e:
            summary.status = RunStatus.FAILED
            summary.error = f"{type(e).__name__}: {e}"
            log.exception(f"Run crashed: {e}")
            record(
                self.sink,
                LogEntry(
                    message=f"Run crashed: {summary.error}",
                    status=LogStatus.ERROR,
                    action="run",
                ),
            )
        finally:
            if self.cancelled and summary.status != RunStatus.FAILED:
                self._set_state(RunState.CANCELLING, "finishing audit log")
                summary.status = RunStatus.CANCELLED
            summary.elapsed_seconds = time.monotonic() - started
            if summary.status != RunStatus.FAILED:
                self._set_state(RunState.SUMMARIZING)
                self._summarize(summary)
            self.sink.flush()
            self._set_state(RunState.IDLE)
        return summary

    def _validate(self) -> ConflictPolicy:
        cfg = self.config
        source = cfg.source_dir
        if source is None:
            raise ValidationError("No source directory configured")
        if not source.exists():
            raise ValidationError(f"Source directory does not exist: {source}", source)
        if not source.is_dir():
            raise ValidationError(f"Source is not a directory: {source}", source)

        dest = cfg.dest_dir
        if dest is None:
            raise ValidationError("No destination directory configured")
        if _is_within(dest.resolve(), source.resolve()):
            raise ValidationError(f"Destination {dest} is inside source {source}", dest)

        if cfg.backup_dir is not None:
            if not cfg.backup_dir.parent.is_dir():
                raise ValidationError(
                    f"Backup directory parent does not exist: {cfg.backup_dir.parent}",
                    cfg.backup_dir,
                )
            if _is_within(cfg.backup_dir.resolve(), source.resolve()):
                raise ValidationError(
                    f"Backup directory {cfg.backup_dir} is inside source {source}",
                    cfg.backup_dir,
                )

        self._replace_terms = self._read_terms(cfg.replace_terms_file)
        self._append_terms = self._read_terms(cfg.append_terms_file)
        if not cfg.normalized_extensions:
            raise ValidationError("No file extensions configured")

        policy = ConflictPolicy.from_kind(cfg.conflict_policy, self.prompt)
        log.info(
            f"Validated: source={source} dest={dest} policy={policy.kind} "
            f"mode={self.settings.mode} threshold={self.settings.threshold:.2f} "
            f"batch={cfg.batch_size_mb}MB"
        )
        return policy

    @staticmethod
    def _read_terms(path: Path | None) -> list[str]:
        if path is None:
            return []
        if not path.is_file():
            raise ValidationError(f"Terms file does not exist: {path}", path)
        try:
            return load_terms(path)
        except (OSError, UnicodeDecodeError) as e:
            raise ValidationError(f"Cannot read terms file {path}: {e}", path) from e

    def _backup(self) -> None:
        copied, failed = backup_tree(
            self.config.source_dir,
            self.config.backup_dir,
            self.config.normalized_extensions,
            self.sink,
            cancel=self.cancel_event,
            dry_run=self.config.dry_run,
        )
        record(
            self.sink,
            LogEntry(
                message=f"Backup: {copied} copied, {failed} failed",
                status=LogStatus.ERROR if failed else LogStatus.INFO,
                action="backup",
                backup_path=str(self.config.backup_dir),
            ),
        )

    def _prepare(self) -> None:
        dest = self.config.dest_dir
        if self.config.dry_run:
            return
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ValidationError(f"Cannot create destination {dest}: {e}", dest) from e
        if not os.access(dest, os.W_OK):
            raise ValidationError(f"Destination is not writable: {dest}", dest)

    def _process_all(self, policy: ConflictPolicy, summary: RunSummary) -> None:
        cfg = self.config
        resolver = MoveResolver(
            policy,
            self.sink,
            max_path_length=cfg.max_path_length,
            attempts=cfg.move_attempts,
            retry_delay=cfg.retry_delay_ms / 1000.0,
            dry_run=cfg.dry_run,
            cancel=self.cancel_event,
        )
        self._set_state(RunState.ENUMERATING, str(cfg.source_dir))
        batches = iter_batches(
            cfg.source_dir,
            cfg.normalized_extensions,
            cfg.batch_bytes,
            on_progress=self.on_progress,
            cancel=self.cancel_event,
            flush_pause=cfg.flush_pause_ms / 1000.0,
        )
        for batch in batches:
            self.check_memory()
            self._set_state(RunState.PROCESSING, f"batch {batch.index}")
            report = self.process_batch(batch, resolver)
            resolver.end_batch()
            batch.entries.clear()

            summary.batches += 1
            summary.files_found += report.file_count
            summary.moved += report.moved
            summary.skipped += report.skipped
            summary.failed += report.failed
            if self.on_batch:
                self.on_batch(report)
            self.sink.flush()

            if self.cancelled:
                break
            self._set_state(RunState.ENUMERATING)

    def check_memory(self) -> int:
        """Sample RSS; run a reclaim point above the threshold. Returns RSS."""
        rss = self._process.memory_info().rss
        if rss > self.config.memory_threshold_bytes:
            collected = gc.collect()
            after = self._process.memory_info().rss
            log.info(
                f"Memory {rss / 1048576:.0f}MB above {self.config.memory_threshold_mb}MB "
                f"threshold: reclaimed {collected} objects, now {after / 1048576:.0f}MB"
            )
            return after
        return rss

    # -- per batch ---------------------------------------------------------

    def prepare_entry(self, entry: FileEntry) -> None:
        """Fill in names, format priority, and (optionally) bitrate."""
        raw = entry.original_path.stem
        if self.tag_namer is not None:
            raw = self.tag_namer(entry.original_path) or raw
        entry.raw_name = raw
        entry.cleaned_name = clean_name(raw, self._replace_terms, self._append_terms)
        entry.sanitized_name = sanitize_name(entry.cleaned_name)
        entry.format_priority = format_priority(entry.extension)
        if self.bitrate_probe is not None and entry.bitrate_bps == 0:
            entry.bitrate_bps = self.bitrate_probe(entry.original_path)

    def process_batch(self, batch: Batch, resolver: MoveResolver) -> BatchReport:
        """Name, group, rank and move one batch. Stops between files on cancel."""
        cfg = self.config
        report = BatchReport(
            index=batch.index, file_count=len(batch), total_bytes=batch.total_bytes
        )
        log.info(
            f"Batch {batch.index}: {report.file_count} files, "
            f"{report.total_bytes / 1048576:.1f}MB"
        )

        for entry in batch.entries:
            self.prepare_entry(entry)
        groups = group_entries(
            batch.entries,
            cfg.duplicate_check,
            self.settings,
            self._replace_terms,
            transitive=cfg.transitive_grouping,
        )
        report.groups = len(groups)

        for group in groups:
            for entry, filename, reason in self._plan_group(group):
                if self.cancelled:
                    log.info(f"Batch {batch.index} interrupted by cancellation")
                    self._log_report(report)
                    return report
                if reason:
                    self._skip_duplicate(entry, reason)
                    report.skipped += 1
                    continue
                folder = cfg.dest_dir / entry.extension / group.name
                outcome = resolver.relocate(entry, folder, filename, self._backup_path(entry))
                if outcome.status == MoveStatus.MOVED:
                    report.moved += 1
                elif outcome.status == MoveStatus.SKIPPED:
                    report.skipped += 1
                else:
                    report.failed += 1

        self._log_report(report)
        return report

    def _plan_group(self, group: SimilarityGroup) -> list[tuple[FileEntry, str, str]]:
        """(entry, destination filename, skip reason) for each member.

        With quality selection on a multi-member group only the best copy
        moves, renamed "<group>_BEST"; the others stay where they are.
        """
        if not (self.config.quality_selection and group.is_multi):
            return [
                (e, f"{e.sanitized_name}.{e.extension}", "") for e in group.members
            ]
        best = pick_best(group.members)
        plan = []
        for e in group.members:
            if e is best:
                plan.append((e, f"{group.name}{BEST_SUFFIX}.{e.extension}", ""))
            else:
                plan.append((e, "", f"lower-quality duplicate of {best.original_path.name}"))
        return plan

    def _skip_duplicate(self, entry: FileEntry, reason: str) -> None:
        record(
            self.sink,
            LogEntry(
                message=f"Skipped {entry.original_path.name}: {reason}",
                status=LogStatus.WARNING,
                action=MoveStatus.SKIPPED.value,
                old_name=entry.original_path.name,
                new_name="",
                file_type=entry.extension,
            ),
        )

    def _backup_path(self, entry: FileEntry) -> Path | None:
        if self.config.backup_dir is None:
            return None
        return backup_path_for(self.config.source_dir, self.config.backup_dir, entry.original_path)

    def _log_report(self, report: BatchReport) -> None:
        record(
            self.sink,
            LogEntry(
                message=(
                    f"Batch {report.index}: {report.file_count} files, "
                    f"{report.total_bytes} bytes, {report.groups} groups, "
                    f"{report.moved} moved, {report.skipped} skipped, {report.failed} failed"
                ),
                status=LogStatus.ERROR if report.failed else LogStatus.INFO,
                action="batch",
            ),
        )

    def _summarize(self, summary: RunSummary) -> None:
        message = (
            f"Run {summary.status}: {summary.files_found} files in {summary.batches} batches, "
            f"{summary.moved} moved, {summary.skipped} skipped, {summary.failed} failed "
            f"({summary.elapsed_seconds:.1f}s)"
        )
        log.info(message)
        record(
            self.sink,
            LogEntry(
                message=message,
                status=LogStatus.ERROR if summary.failed else LogStatus.INFO,
                action="run",
            ),
        )


class RelocateWorker:
    """Runs an orchestrator on one dedicated background thread."""

    def __init__(self, orchestrator: RelocateOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.summary: RunSummary | None = None
        self.error: BaseException | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Relocation already running")
        self.summary = None
        self.error = None
        self._thread = threading.Thread(
            target=self._target, name="audio-relocator", daemon=True
        )
        self._thread.start()

    def _target(self) -> None:
        try:
            self.summary = self.orchestrator.run()
        except Exception as e:
            log.exception(f"Worker crashed: {e}")
            self.error = e

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def cancel(self) -> None:
        self.orchestrator.cancel()

    def join(self, timeout: float | None = None) -> RunSummary | None:
        """Wait for the run. Re-raises an unexpected worker exception."""
        if self._thread is not None:
            self._thread.join(timeout)
        if self.error is not None:
            raise self.error
        return self.summary
