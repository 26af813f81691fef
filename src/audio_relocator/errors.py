"""Exception hierarchy for the audio relocator."""

from pathlib import Path


class RelocatorError(Exception):
    """Base exception for all relocator errors."""


class ConfigError(RelocatorError):
    """Invalid or missing configuration."""


class ValidationError(RelocatorError):
    """A run input failed pre-run validation. Fatal, raised before any mutation."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class AccessError(RelocatorError):
    """A file or directory is locked or unreadable. The item is skipped."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot access {path}: {reason}")
        self.path = path
        self.reason = reason


class MoveError(RelocatorError):
    """A move still failed after every retry attempt."""

    def __init__(self, source: Path, dest: Path, attempts: int, cause: str) -> None:
        super().__init__(
            f"Move {source} -> {dest} failed after {attempts} attempts: {cause}"
        )
        self.source = source
        self.dest = dest
        self.attempts = attempts
        self.cause = cause


class CapacityError(RelocatorError):
    """Destination path exceeds the filesystem length limit. Never retried."""

    def __init__(self, path: Path, limit: int) -> None:
        super().__init__(f"Destination path is {len(str(path))} chars (limit {limit}): {path}")
        self.path = path
        self.limit = limit
