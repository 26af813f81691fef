"""Destination resolution, conflict handling, and moves with retry.

For each selected file the resolver:

1. resolves the destination folder -- an existing folder not created by
   this run is a conflict (overwrite / keep both as "<name>_duplicate<N>" /
   skip),
2. shortens the filename against the resolved folder in a bounded loop,
3. resolves the destination file -- an existing or already claimed path is a
   conflict (overwrite / keep both as "<stem>_<N>.<ext>" / skip) -- and
   rejects paths still over the length limit,
4. rejects sources that cannot be opened for reading (locked),
5. moves the file, retrying only the move itself.

Exactly one audit LogEntry is recorded per relocate() call.
"""

from __future__ import annotations

import shutil
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from ..audit_log import LogSink, record
from ..errors import AccessError, CapacityError, ConfigError, MoveError
from ..models import (
    MAX_PATH_LENGTH,
    ConflictDecision,
    FileEntry,
    LogEntry,
    LogStatus,
    MoveOutcome,
    MoveStatus,
    PolicyKind,
)

log = logger.bind(stage="move")

# (conflicting path, "folder" or "file") -> decision
PromptCallback = Callable[[Path, str], ConflictDecision]

MAX_SHORTEN_ATTEMPTS = 5


@dataclass(frozen=True)
class ConflictPolicy:
    """How a destination collision is settled.

    Static variants answer directly; PROMPT asks the callback each time.
    """

    kind: PolicyKind
    prompt: PromptCallback | None = None

    @classmethod
    def overwrite(cls) -> ConflictPolicy:
        return cls(PolicyKind.OVERWRITE)

    @classmethod
    def skip(cls) -> ConflictPolicy:
        return cls(PolicyKind.SKIP)

    @classmethod
    def keep_both(cls) -> ConflictPolicy:
        return cls(PolicyKind.KEEP_BOTH)

    @classmethod
    def prompt_via(cls, callback: PromptCallback) -> ConflictPolicy:
        return cls(PolicyKind.PROMPT, callback)

    @classmethod
    def from_kind(
        cls, kind: PolicyKind, prompt: PromptCallback | None = None
    ) -> ConflictPolicy:
        if kind == PolicyKind.PROMPT and prompt is None:
            raise ConfigError("Conflict policy 'prompt' needs a prompt callback")
        return cls(kind, prompt if kind == PolicyKind.PROMPT else None)

    def decide(self, path: Path, target: str) -> ConflictDecision:
        """Raises ValueError when a prompt answers with an unknown decision."""
        if self.kind == PolicyKind.PROMPT:
            decision = ConflictDecision(self.prompt(path, target))
            log.debug(f"Prompted {target} conflict at {path}: {decision}")
            return decision
        return ConflictDecision(self.kind.value)


def unique_folder(folder: Path, taken: set[Path] | None = None) -> Path:
    """First free "<name>_duplicate<N>" sibling, N >= 1."""
    taken = taken or set()
    n = 1
    while True:
        candidate = folder.with_name(f"{folder.name}_duplicate{n}")
        if not candidate.exists() and candidate not in taken:
            return candidate
        n += 1


def unique_file(path: Path, taken: set[Path] | None = None) -> Path:
    """First free "<stem>_<N><suffix>" sibling, N >= 1."""
    taken = taken or set()
    n = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{n}{path.suffix}")
        if not candidate.exists() and candidate not in taken:
            return candidate
        n += 1


def fit_filename(folder: Path, filename: str, limit: int = MAX_PATH_LENGTH) -> str:
    """Shorten the filename stem until folder/filename fits within limit.

    Bounded to MAX_SHORTEN_ATTEMPTS passes. Raises CapacityError when the
    path cannot be brought under the limit.
    """
    path = folder / filename
    for _ in range(MAX_SHORTEN_ATTEMPTS):
        excess = len(str(path)) - limit
        if excess <= 0:
            return path.name
        stem, suffix = path.stem, path.suffix
        if len(stem) <= 1:
            break
        shorter = stem[: max(1, len(stem) - excess)].rstrip(" ._") or stem[:1]
        log.debug(f"Shortened '{stem}' -> '{shorter}' ({excess} chars over)")
        path = folder / f"{shorter}{suffix}"
    if len(str(path)) <= limit:
        return path.name
    raise CapacityError(path, limit)


def check_readable(path: Path) -> None:
    """Raise AccessError unless path can be opened for shared reading."""
    try:
        with open(path, "rb"):
            pass
    except OSError as e:
        raise AccessError(path, f"locked or unreadable ({e.strerror or e})") from e


class MoveResolver:
    """Resolves destinations and performs moves for one run.

    Tracks folders this run created (so later files of the same group are
    not treated as conflicts) and paths claimed in the current batch.
    """

    def __init__(
        self,
        policy: ConflictPolicy,
        sink: LogSink,
        max_path_length: int = MAX_PATH_LENGTH,
        attempts: int = 3,
        retry_delay: float = 0.5,
        dry_run: bool = False,
        cancel: threading.Event | None = None,
    ) -> None:
        self.policy = policy
        self.sink = sink
        self.max_path_length = max_path_length
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.dry_run = dry_run
        self.cancel = cancel
        # nominal folder -> resolved folder (None = skipped by decision)
        self._folders: dict[Path, Path | None] = {}
        self._claimed: set[Path] = set()

    def end_batch(self) -> None:
        """Forget per-batch claims; moved files now exist on disk."""
        self._claimed.clear()

    # -- resolution --------------------------------------------------------

    def resolve_folder(self, folder: Path) -> tuple[Path | None, bool]:
        """Return (folder to use or None to skip, whether it is new).

        An existing folder from before this run is a conflict.
        """
        if folder in self._folders:
            return self._folders[folder], False
        if not folder.exists():
            self._folders[folder] = folder
            return folder, True

        decision = self.policy.decide(folder, "folder")
        if decision == ConflictDecision.SKIP:
            log.info(f"Folder exists, skipping: {folder}")
            self._folders[folder] = None
            return None, False
        if decision == ConflictDecision.OVERWRITE:
            log.info(f"Folder exists, overwriting: {folder}")
            if not self.dry_run:
                shutil.rmtree(folder)
            self._folders[folder] = folder
            return folder, True
        renamed = unique_folder(folder, set(self._folders.values()) - {None})
        log.info(f"Folder exists, keeping both: {folder.name} -> {renamed.name}")
        self._folders[folder] = renamed
        return renamed, True

    def resolve_file(self, path: Path) -> Path | None:
        """Return the destination file path, or None to skip."""
        if not path.exists() and path not in self._claimed:
            self._claimed.add(path)
            return path

        decision = self.policy.decide(path, "file")
        if decision == ConflictDecision.SKIP:
            log.info(f"File exists, skipping: {path}")
            return None
        if decision == ConflictDecision.OVERWRITE:
            log.info(f"File exists, overwriting: {path}")
            self._claimed.add(path)
            return path
        renamed = unique_file(path, self._claimed)
        excess = len(str(renamed)) - self.max_path_length
        if excess > 0 and len(path.stem) > excess:
            # Make room for the "_<N>" suffix
            stem = path.stem[:-excess].rstrip(" ._") or path.stem[:1]
            shorter = path.with_name(f"{stem}{path.suffix}")
            renamed = unique_file(shorter, self._claimed)
        log.info(f"File exists, keeping both: {path.name} -> {renamed.name}")
        self._claimed.add(renamed)
        return renamed

    # -- execution ---------------------------------------------------------

    def move_with_retry(self, source: Path, dest: Path) -> None:
        """Move source to dest, retrying failed attempts after retry_delay.

        Raises MoveError once attempts are exhausted or cancel is set
        between attempts.
        """
        last_error = ""
        for attempt in range(1, self.attempts + 1):
            try:
                if dest.exists() and dest.is_file():
                    dest.unlink()
                shutil.move(str(source), str(dest))
                if attempt > 1:
                    log.debug(f"Move succeeded on attempt {attempt}: {source.name}")
                return
            except OSError as e:
                last_error = str(e)
                log.warning(f"Move attempt {attempt}/{self.attempts} failed for {source.name}: {e}")
            if attempt < self.attempts:
                time.sleep(self.retry_delay)
                if self.cancel is not None and self.cancel.is_set():
                    raise MoveError(source, dest, attempt, f"cancelled during retry ({last_error})")
        raise MoveError(source, dest, self.attempts, last_error)

    def relocate(
        self,
        entry: FileEntry,
        folder: Path,
        filename: str,
        backup_path: Path | None = None,
    ) -> MoveOutcome:
        """Resolve and move one entry into folder/filename.

        Never raises for per-file problems; the outcome and its audit entry
        carry the status instead.
        """
        source = entry.original_path
        outcome, message = self._relocate(entry, folder, filename)

        new_name = outcome.destination.name if outcome.destination else filename
        status = {
            MoveStatus.MOVED: LogStatus.SUCCESS,
            MoveStatus.SKIPPED: LogStatus.WARNING,
            MoveStatus.FAILED: LogStatus.ERROR,
        }[outcome.status]
        record(
            self.sink,
            LogEntry(
                message=message,
                status=status,
                action=outcome.status.value,
                old_name=source.name,
                new_name=new_name,
                file_type=entry.extension,
                result_path=str(outcome.destination or ""),
                backup_path=str(backup_path or ""),
                new_folder=outcome.new_folder,
            ),
        )
        return outcome

    def _relocate(
        self, entry: FileEntry, folder: Path, filename: str
    ) -> tuple[MoveOutcome, str]:
        source = entry.original_path
        try:
            target_folder, new_folder = self.resolve_folder(folder)
            if target_folder is None:
                msg = f"Skipped {source.name}: destination folder {folder} exists"
                return MoveOutcome(MoveStatus.SKIPPED, entry), msg
            # Shorten against the folder actually used ("_duplicate<N>" included)
            filename = fit_filename(target_folder, filename, self.max_path_length)
            dest = self.resolve_file(target_folder / filename)
        except CapacityError as e:
            return MoveOutcome(MoveStatus.FAILED, entry, error=str(e)), str(e)
        except (OSError, ValueError) as e:
            err = f"Cannot resolve destination for {source.name} in {folder}: {e}"
            return MoveOutcome(MoveStatus.FAILED, entry, error=err), err

        if dest is None:
            msg = f"Skipped {source.name}: destination file {target_folder / filename} exists"
            return MoveOutcome(MoveStatus.SKIPPED, entry, new_folder=new_folder), msg

        if len(str(dest)) > self.max_path_length:
            err = CapacityError(dest, self.max_path_length)
            return MoveOutcome(MoveStatus.FAILED, entry, error=str(err)), str(err)

        try:
            check_readable(source)
        except AccessError as e:
            return MoveOutcome(MoveStatus.FAILED, entry, error=str(e)), str(e)

        if self.dry_run:
            msg = f"[DRY-RUN] Would move {source} -> {dest}"
            return MoveOutcome(MoveStatus.MOVED, entry, dest, new_folder), msg

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            self.move_with_retry(source, dest)
        except MoveError as e:
            return MoveOutcome(MoveStatus.FAILED, entry, error=str(e)), str(e)
        except OSError as e:
            err = f"Cannot create {dest.parent}: {e}"
            return MoveOutcome(MoveStatus.FAILED, entry, error=err), err

        return (
            MoveOutcome(MoveStatus.MOVED, entry, dest, new_folder),
            f"Moved {source} -> {dest}",
        )
