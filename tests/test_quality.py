"""Tests for quality.py -- format priority and best-copy selection."""

from pathlib import Path

import pytest

from audio_relocator.models import UNKNOWN_FORMAT_PRIORITY, FileEntry
from audio_relocator.quality import format_priority, pick_best, rank


def _entry(name: str, size: int = 1000, bitrate: int = 0) -> FileEntry:
    path = Path("/music") / name
    ext = path.suffix.lstrip(".").lower()
    return FileEntry(
        original_path=path,
        size_bytes=size,
        extension=ext,
        bitrate_bps=bitrate,
        format_priority=format_priority(ext),
    )


class TestFormatPriority:
    @pytest.mark.parametrize("lossless", ["flac", "wav", "aiff"])
    @pytest.mark.parametrize("lossy", ["mp3", "ogg", "wma"])
    def test_lossless_beats_lossy(self, lossless, lossy):
        assert format_priority(lossless) < format_priority(lossy)

    def test_unknown_ranks_last(self):
        assert format_priority("xyz") == UNKNOWN_FORMAT_PRIORITY
        assert format_priority("xyz") > format_priority("wma")

    def test_normalizes_extension(self):
        assert format_priority(".FLAC") == format_priority("flac")

    def test_custom_table(self):
        assert format_priority("mp3", {"mp3": 0}) == 0


class TestPickBest:
    def test_format_first(self):
        flac = _entry("a.flac", size=100, bitrate=128_000)
        mp3 = _entry("a.mp3", size=9000, bitrate=320_000)
        assert pick_best([mp3, flac]) is flac

    def test_bitrate_second(self):
        low = _entry("a.mp3", size=9000, bitrate=128_000)
        high = _entry("b.mp3", size=100, bitrate=320_000)
        assert pick_best([low, high]) is high

    def test_size_third(self):
        small = _entry("a.mp3", size=100, bitrate=320_000)
        large = _entry("b.mp3", size=200, bitrate=320_000)
        assert pick_best([small, large]) is large

    def test_tie_returns_first(self):
        first = _entry("first.mp3", size=500, bitrate=192_000)
        second = _entry("second.mp3", size=500, bitrate=192_000)
        assert pick_best([first, second]) is first
        assert pick_best([second, first]) is second

    def test_unknown_format_loses(self):
        unknown = _entry("a.xyz", size=10**9, bitrate=10**6)
        wma = _entry("a.wma", size=10, bitrate=10)
        assert pick_best([unknown, wma]) is wma

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            pick_best([])

    def test_rank_orders_best_first(self):
        mp3 = _entry("a.mp3")
        flac = _entry("a.flac")
        ogg = _entry("a.ogg")
        assert rank([ogg, mp3, flac]) == [flac, mp3, ogg]
