"""Format quality ranking -- pick the best copy among duplicates."""

from collections.abc import Mapping

from loguru import logger

from .models import FORMAT_PRIORITY, UNKNOWN_FORMAT_PRIORITY, FileEntry

log = logger.bind(stage="quality")


def format_priority(
    extension: str, table: Mapping[str, int] = FORMAT_PRIORITY
) -> int:
    """Priority class for an extension. Lower is better; unknown ranks last."""
    return table.get(extension.lower().lstrip("."), UNKNOWN_FORMAT_PRIORITY)


def quality_key(entry: FileEntry) -> tuple[int, int, int]:
    """Sort key where a smaller tuple is a better file.

    Lossless class first, then higher bitrate, then larger file.
    """
    return (entry.format_priority, -entry.bitrate_bps, -entry.size_bytes)


def pick_best(entries: list[FileEntry]) -> FileEntry:
    """Return the highest-quality entry. Exact ties go to the earliest entry."""
    if not entries:
        raise ValueError("pick_best() needs at least one entry")
    # min() keeps the first of equal keys
    best = min(entries, key=quality_key)
    log.debug(
        f"pick_best: {best.original_path.name} of {len(entries)} "
        f"(priority={best.format_priority}, bitrate={best.bitrate_bps}, "
        f"size={best.size_bytes})"
    )
    return best


def rank(entries: list[FileEntry]) -> list[FileEntry]:
    """All entries ordered best first (stable for ties)."""
    return sorted(entries, key=quality_key)
