"""FFprobe subprocess wrappers for optional bitrate and tag probing."""

import json
import subprocess
from pathlib import Path

from loguru import logger

log = logger.bind(stage="ffprobe")


def _run_ffprobe(args: list[str]) -> subprocess.CompletedProcess:
    """Run ffprobe with common flags."""
    return subprocess.run(
        ["ffprobe", "-v", "error"] + args,
        capture_output=True,
        text=True,
    )


def get_bitrate(file: Path) -> int:
    """Get bitrate in bits/sec."""
    result = _run_ffprobe([
        "-show_entries", "format=bit_rate",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(file),
    ])
    output = result.stdout.strip()
    if not output or output == "N/A":
        raise ValueError(f"ffprobe returned empty bitrate for {file}")
    return int(output)


def probe_bitrate(file: Path) -> int:
    """Bitrate in bits/sec, or 0 when it cannot be determined."""
    try:
        return get_bitrate(file)
    except (ValueError, OSError) as e:
        log.debug(f"Bitrate probe failed for {file.name}: {e}")
        return 0


def get_tags(file: Path) -> dict:
    """Get format-level metadata tags from an audio file.

    Returns dict with lowercase keys. Common keys: artist, album_artist,
    title, album, genre, date.
    """
    try:
        result = _run_ffprobe(["-show_entries", "format_tags", "-of", "json", str(file)])
    except OSError as e:
        log.debug(f"Tag probe failed for {file.name}: {e}")
        return {}
    if result.returncode != 0:
        return {}
    try:
        data = json.loads(result.stdout)
        raw = data.get("format", {}).get("tags", {})
        return {k.lower(): v for k, v in raw.items()}
    except (json.JSONDecodeError, AttributeError):
        return {}


# Placeholder values that are worse than the filename
_USELESS_TAGS = frozenset({"unknown", "unknown artist", "various artists", "untitled", "n/a"})


def name_from_tags(tags: dict) -> str:
    """Build an "Artist - Title" rename source from tags.

    Returns empty string when there is no usable title.
    """
    title = str(tags.get("title", "")).strip()
    if not title or title.lower() in _USELESS_TAGS:
        return ""
    artist = str(tags.get("artist") or tags.get("album_artist") or "").strip()
    if artist and artist.lower() not in _USELESS_TAGS:
        return f"{artist} - {title}"
    return title
