"""Incremental source-tree enumeration into size-bounded batches.

The walk is depth-first over an explicit directory stack so very deep trees
cannot exhaust the interpreter's recursion limit. Matching files are
accumulated into a Batch until the next file would push the batch past
batch_bytes; the batch is then handed to the consumer before the walk
continues. Only the batch being consumed and the one being accumulated are
alive at any time.
"""

import gc
import os
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from loguru import logger

from .errors import AccessError
from .models import Batch, FileEntry, ScanProgress

log = logger.bind(stage="scanner")

ProgressCallback = Callable[[ScanProgress], None]

# Report liveness at least this often inside large directories
_PROGRESS_EVERY = 500


def _settle(pause_seconds: float) -> None:
    """Backpressure point after a flush: let the working set shrink."""
    time.sleep(pause_seconds)
    collected = gc.collect()
    log.debug(f"Post-flush reclaim: {collected} objects collected")


def _scan_dir(
    directory: str,
    extensions: frozenset[str],
    progress: ScanProgress,
    on_progress: ProgressCallback | None,
) -> tuple[list[FileEntry], list[str]]:
    """List one directory. Returns (matching files, subdirectories).

    Raises OSError when the directory itself cannot be read.
    """
    files: list[FileEntry] = []
    subdirs: list[str] = []
    with os.scandir(directory) as it:
        for de in it:
            try:
                if de.is_dir(follow_symlinks=False):
                    subdirs.append(de.path)
                    continue
                if not de.is_file():
                    continue
                progress.files_seen += 1
                if on_progress and progress.files_seen % _PROGRESS_EVERY == 0:
                    on_progress(progress)
                ext = os.path.splitext(de.name)[1].lower().lstrip(".")
                if ext not in extensions:
                    continue
                size = de.stat().st_size
            except OSError as e:
                log.warning(f"Skipping unreadable entry {de.path}: {e}")
                continue
            files.append(FileEntry.from_path(Path(de.path), size))
    return files, subdirs


def iter_batches(
    root: Path,
    extensions: frozenset[str],
    batch_bytes: int,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    flush_pause: float = 0.1,
) -> Iterator[Batch]:
    """Walk root and yield batches whose total size stays within batch_bytes.

    A single file larger than batch_bytes is yielded as its own batch.
    Within each directory files are taken largest first. Unreadable
    directories are logged and skipped. Stops early, without yielding the
    partial batch, once cancel is set.

    Raises AccessError if root is not a readable directory.
    """
    if not root.is_dir():
        raise AccessError(root, "not a directory")

    def cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    progress = ScanProgress()
    stack: list[str] = [str(root)]
    pending: list[FileEntry] = []
    pending_bytes = 0
    index = 0

    while stack:
        if cancelled():
            log.info("Enumeration cancelled")
            return
        current = stack.pop()
        progress.dirs_seen += 1
        try:
            files, subdirs = _scan_dir(current, extensions, progress, on_progress)
        except OSError as e:
            log.warning(f"{AccessError(Path(current), str(e))} -- subtree skipped")
            continue

        # Reverse-sorted push so subdirectories pop in name order
        stack.extend(sorted(subdirs, reverse=True))
        files.sort(key=lambda f: f.size_bytes, reverse=True)

        for entry in files:
            if cancelled():
                log.info("Enumeration cancelled")
                return
            if pending and pending_bytes + entry.size_bytes > batch_bytes:
                log.debug(
                    f"Flush batch {index}: {len(pending)} files, {pending_bytes:,} bytes"
                )
                yield Batch(index=index, entries=pending)
                index += 1
                pending = []
                pending_bytes = 0
                _settle(flush_pause)
                if cancelled():
                    log.info("Enumeration cancelled")
                    return
            pending.append(entry)
            pending_bytes += entry.size_bytes
            progress.matched += 1

        if on_progress:
            on_progress(progress)

    if pending:
        log.debug(f"Flush final batch {index}: {len(pending)} files, {pending_bytes:,} bytes")
        yield Batch(index=index, entries=pending)

    log.info(
        f"Enumeration complete: {progress.matched} matching of {progress.files_seen} "
        f"files in {progress.dirs_seen} directories"
    )


def enumerate_files(
    root: Path,
    extensions: frozenset[str],
    batch_bytes: int,
    on_batch: Callable[[Batch], None],
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    flush_pause: float = 0.1,
) -> int:
    """Callback form of iter_batches. Returns the number of files batched."""
    total = 0
    for batch in iter_batches(root, extensions, batch_bytes, on_progress, cancel, flush_pause):
        total += len(batch)
        on_batch(batch)
    return total
