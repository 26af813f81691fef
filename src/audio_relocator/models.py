"""Core enums, constants, and data types for the audio relocator.

Enums:
    ConflictDecision -- Per-occurrence answer to a destination collision
                        (overwrite, keep_both, skip).
    PolicyKind       -- Static conflict policy selected for a run. PROMPT defers
                        to a caller-supplied callback.
    MoveStatus       -- Outcome of processing one file (moved, skipped, failed).
    LogStatus        -- Severity of an audit log entry.
    RunState         -- Orchestrator state machine positions.
    RunStatus        -- Terminal status of a run (completed, cancelled, failed).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path


class ConflictDecision(StrEnum):
    OVERWRITE = "overwrite"
    KEEP_BOTH = "keep_both"
    SKIP = "skip"


class PolicyKind(StrEnum):
    OVERWRITE = "overwrite"
    KEEP_BOTH = "keep_both"
    SKIP = "skip"
    PROMPT = "prompt"


class MoveStatus(StrEnum):
    MOVED = "moved"
    SKIPPED = "skipped"
    FAILED = "failed"


class LogStatus(StrEnum):
    INFO = "Info"
    SUCCESS = "Success"
    ERROR = "Error"
    WARNING = "Warning"


class RunState(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    BACKING_UP = "backing_up"
    PREPARING = "preparing"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    SUMMARIZING = "summarizing"
    CANCELLING = "cancelling"


class RunStatus(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        "mp3",
        "flac",
        "wav",
        "aiff",
        "ogg",
        "wma",
        "m4a",
    }
)

# Lower value = higher quality. Extensions not listed rank after all of these.
FORMAT_PRIORITY: dict[str, int] = {
    "flac": 1,
    "wav": 2,
    "aiff": 3,
    "mp3": 4,
    "ogg": 5,
    "wma": 6,
}

UNKNOWN_FORMAT_PRIORITY = 99

MAX_NAME_LENGTH = 200
MAX_PATH_LENGTH = 260


@dataclass
class FileEntry:
    """One discovered audio file.

    original_path is fixed at discovery. The name fields, bitrate and
    priority are filled in while the owning batch is processed.
    """

    original_path: Path
    size_bytes: int
    extension: str
    raw_name: str = ""
    cleaned_name: str = ""
    sanitized_name: str = ""
    bitrate_bps: int = 0
    format_priority: int = UNKNOWN_FORMAT_PRIORITY

    @classmethod
    def from_path(cls, path: Path, size_bytes: int) -> "FileEntry":
        return cls(
            original_path=path,
            size_bytes=size_bytes,
            extension=path.suffix.lower().lstrip("."),
            raw_name=path.stem,
        )


@dataclass
class Batch:
    """Size-bounded slice of discovered files, in traversal order."""

    index: int
    entries: list[FileEntry] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(e.size_bytes for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class SimilarityGroup:
    """Entries judged to be the same song, keyed by the shortest sanitized name."""

    name: str
    members: list[FileEntry] = field(default_factory=list)

    @property
    def is_multi(self) -> bool:
        return len(self.members) > 1


@dataclass
class MoveOutcome:
    status: MoveStatus
    entry: FileEntry
    destination: Path | None = None
    new_folder: bool = False
    error: str = ""


@dataclass
class LogEntry:
    """One append-only audit record consumed by the reporting collaborator."""

    message: str
    status: LogStatus
    action: str
    old_name: str = ""
    new_name: str = ""
    file_type: str = ""
    result_path: str = ""
    backup_path: str = ""
    new_folder: bool = False
    timestamp: str = field(
        default_factory=lambda: datetime.now().isoformat(timespec="seconds")
    )


@dataclass
class ScanProgress:
    """Liveness counters reported while walking the source tree."""

    files_seen: int = 0
    dirs_seen: int = 0
    matched: int = 0


@dataclass
class BatchReport:
    """Per-batch summary emitted after the move phase."""

    index: int
    file_count: int
    total_bytes: int
    groups: int = 0
    moved: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class RunSummary:
    """Result summary from a full relocation run."""

    status: RunStatus = RunStatus.COMPLETED
    batches: int = 0
    files_found: int = 0
    moved: int = 0
    skipped: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    error: str = ""
