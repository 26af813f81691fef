"""Filename sanitization and name-rewriting terms."""

import re
from pathlib import Path

from loguru import logger

from .models import MAX_NAME_LENGTH

log = logger.bind(stage="sanitize")

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\[\]()\x00-\x1f\x7f]')
_WHITESPACE = re.compile(r"\s+")

UNNAMED = "unnamed"


def sanitize_name(name: str) -> str:
    """Turn arbitrary text into a filesystem-safe name component.

    Normalizes the typographic apostrophe, collapses whitespace, drops
    unsafe characters and surrounding dots/spaces, and truncates to
    MAX_NAME_LENGTH characters. Never raises; returns "unnamed" when
    nothing usable is left. Idempotent.
    """
    s = name.replace("\u2019", "'")
    s = _WHITESPACE.sub(" ", s)
    s = s.rstrip(".")
    s = _UNSAFE_CHARS.sub("", s)
    # Removing characters can leave doubled spaces behind
    s = _WHITESPACE.sub(" ", s)
    s = s.strip(" .")
    if len(s) > MAX_NAME_LENGTH:
        s = s[:MAX_NAME_LENGTH].strip(" .")
    return s or UNNAMED


def remove_terms(name: str, terms: list[str]) -> str:
    """Remove every term from name (literal, case-insensitive)."""
    for term in terms:
        if term:
            name = re.sub(re.escape(term), "", name, flags=re.IGNORECASE)
    return name


def clean_name(raw: str, replace: list[str], append: list[str]) -> str:
    """Apply replacement and append terms to a raw file stem.

    The result is not yet filesystem-safe; pass it through sanitize_name.
    """
    cleaned = remove_terms(raw, replace)
    if append:
        cleaned = " ".join([cleaned.strip(), *append])
    if cleaned != raw:
        log.debug(f"clean_name: '{raw}' -> '{cleaned}'")
    return cleaned


def load_terms(path: Path) -> list[str]:
    """Read a comma-separated terms file. Empty terms are dropped."""
    text = path.read_text(encoding="utf-8-sig")
    terms = [t.strip() for t in text.replace("\n", ",").split(",")]
    terms = [t for t in terms if t]
    log.debug(f"Loaded {len(terms)} terms from {path}")
    return terms
