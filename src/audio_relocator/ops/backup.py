"""Pre-move backup of the source tree using buffered chunked copies."""

from __future__ import annotations

import os
import shutil
import threading
from pathlib import Path

from loguru import logger

from ..audit_log import LogSink, record
from ..models import LogEntry, LogStatus

log = logger.bind(stage="backup")

COPY_BUFFER_SIZE = 1024 * 1024


def backup_root_for(source_root: Path, backup_dir: Path) -> Path:
    return backup_dir / source_root.name


def backup_path_for(source_root: Path, backup_dir: Path, file: Path) -> Path:
    """Where file is (or will be) copied under backup_dir."""
    return backup_root_for(source_root, backup_dir) / file.relative_to(source_root)


def copy_buffered(source: Path, dest: Path, buffer_size: int = COPY_BUFFER_SIZE) -> None:
    """Copy file contents in fixed-size chunks, then copy timestamps/mode."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(source, "rb") as src, open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst, buffer_size)
    shutil.copystat(source, dest)


def backup_tree(
    source_root: Path,
    backup_dir: Path,
    extensions: frozenset[str],
    sink: LogSink,
    cancel: threading.Event | None = None,
    dry_run: bool = False,
) -> tuple[int, int]:
    """Copy every matching file under source_root into backup_dir.

    Returns (copied, failed). Unreadable files and directories are logged
    and skipped. Stops between files once cancel is set.
    """
    copied = 0
    failed = 0

    def _on_walk_error(e: OSError) -> None:
        log.warning(f"Backup cannot read {e.filename}: {e.strerror}")

    for dirpath, dirnames, filenames in os.walk(source_root, onerror=_on_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            if cancel is not None and cancel.is_set():
                log.info(f"Backup cancelled after {copied} files")
                return copied, failed
            if os.path.splitext(name)[1].lower().lstrip(".") not in extensions:
                continue
            source = Path(dirpath) / name
            dest = backup_path_for(source_root, backup_dir, source)
            if dry_run:
                copied += 1
                continue
            try:
                copy_buffered(source, dest)
            except OSError as e:
                failed += 1
                record(
                    sink,
                    LogEntry(
                        message=f"Backup failed for {source}: {e}",
                        status=LogStatus.ERROR,
                        action="backup",
                        old_name=name,
                        file_type=source.suffix.lower().lstrip("."),
                        backup_path=str(dest),
                    ),
                )
                continue
            copied += 1

    log.info(f"Backup complete: {copied} copied, {failed} failed -> {backup_root_for(source_root, backup_dir)}")
    return copied, failed
