"""Name similarity scoring for duplicate detection.

Three modes, historically selected by one integer that doubled as the
threshold percentage:

    1    word-based  -- shared significant words, all-or-nothing score
    100  exact       -- string equality
    else graded      -- normalized Levenshtein similarity, threshold = value/100

SimilaritySettings.from_legacy() translates that integer into an explicit
mode plus threshold; everything else works with the split form.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from rapidfuzz.distance import Levenshtein

from .sanitize import remove_terms

# Words shorter than this carry no signal ("a", "of", "mp")
_MIN_TOKEN_LEN = 3
# More than this many shared words counts as the same title
_COMMON_TOKEN_FLOOR = 2
_WORD_SEPARATORS = re.compile(r"[\s_.\-]+")


class SimilarityMode(StrEnum):
    WORD_BASED = "word_based"
    EXACT = "exact"
    GRADED = "graded"


@dataclass(frozen=True)
class SimilaritySettings:
    mode: SimilarityMode
    threshold: float

    @classmethod
    def from_legacy(cls, value: int) -> "SimilaritySettings":
        """Translate the saved 1-100 integer control into mode + threshold."""
        if value == 1:
            mode = SimilarityMode.WORD_BASED
        elif value == 100:
            mode = SimilarityMode.EXACT
        else:
            mode = SimilarityMode.GRADED
        return cls(mode=mode, threshold=value / 100.0)

    def matches(self, a: str, b: str, terms: list[str] | None = None) -> bool:
        return similarity(a, b, self.mode, terms) >= self.threshold


def _tokens(name: str, terms: list[str] | None) -> list[str]:
    stripped = remove_terms(name.lower(), terms or [])
    return sorted(t for t in _WORD_SEPARATORS.split(stripped) if len(t) >= _MIN_TOKEN_LEN)


def word_similarity(a: str, b: str, terms: list[str] | None = None) -> float:
    """1.0 when the names share more than two significant words, else 0.0.

    A name whose significant words all appear in the other name also
    scores 1.0 ("Song" vs "Song (copy)").
    """
    tokens_a = set(_tokens(a, terms))
    tokens_b = set(_tokens(b, terms))
    common = tokens_a & tokens_b
    if len(common) > _COMMON_TOKEN_FLOOR:
        return 1.0
    smaller, larger = sorted([tokens_a, tokens_b], key=len)
    if smaller and smaller <= larger:
        return 1.0
    return 0.0


def graded_similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)), clamped to [0, 1]."""
    if not a or not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return max(0.0, 1.0 - distance / max(len(a), len(b)))


def similarity(
    a: str,
    b: str,
    mode: SimilarityMode | int,
    terms: list[str] | None = None,
) -> float:
    """Score two names in [0, 1] under the given mode.

    Accepts the legacy integer control as well as a SimilarityMode.
    """
    if isinstance(mode, int):
        mode = SimilaritySettings.from_legacy(mode).mode
    if mode == SimilarityMode.WORD_BASED:
        return word_similarity(a, b, terms)
    if mode == SimilarityMode.EXACT:
        return 1.0 if a == b else 0.0
    return graded_similarity(a, b)
