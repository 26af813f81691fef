"""Tests for ffprobe subprocess wrappers."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from audio_relocator.ffprobe import get_bitrate, get_tags, name_from_tags, probe_bitrate


def _mock_result(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr="",
    )


class TestGetBitrate:
    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_parses_int(self, mock_run):
        mock_run.return_value = _mock_result("320000\n")
        assert get_bitrate(Path("test.mp3")) == 320000

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_empty_raises(self, mock_run):
        mock_run.return_value = _mock_result("")
        with pytest.raises(ValueError):
            get_bitrate(Path("test.mp3"))

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_not_available_raises(self, mock_run):
        mock_run.return_value = _mock_result("N/A\n")
        with pytest.raises(ValueError):
            get_bitrate(Path("test.mp3"))


class TestProbeBitrate:
    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_returns_value(self, mock_run):
        mock_run.return_value = _mock_result("128000\n")
        assert probe_bitrate(Path("test.mp3")) == 128000

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_missing_binary_returns_zero(self, mock_run):
        mock_run.side_effect = FileNotFoundError("ffprobe")
        assert probe_bitrate(Path("test.mp3")) == 0

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_garbage_returns_zero(self, mock_run):
        mock_run.return_value = _mock_result("")
        assert probe_bitrate(Path("test.mp3")) == 0


class TestGetTags:
    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_lowercases_keys(self, mock_run):
        mock_run.return_value = _mock_result('{"format": {"tags": {"TITLE": "Song", "Artist": "Band"}}}')
        assert get_tags(Path("a.mp3")) == {"title": "Song", "artist": "Band"}

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_error_returns_empty(self, mock_run):
        mock_run.return_value = _mock_result(returncode=1)
        assert get_tags(Path("a.mp3")) == {}

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_invalid_json(self, mock_run):
        mock_run.return_value = _mock_result("not json")
        assert get_tags(Path("a.mp3")) == {}

    @patch("audio_relocator.ffprobe._run_ffprobe")
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError("ffprobe")
        assert get_tags(Path("a.mp3")) == {}


class TestNameFromTags:
    def test_artist_and_title(self):
        assert name_from_tags({"artist": "Band", "title": "Song"}) == "Band - Song"

    def test_album_artist_fallback(self):
        assert name_from_tags({"album_artist": "Band", "title": "Song"}) == "Band - Song"

    def test_title_only(self):
        assert name_from_tags({"title": "Song"}) == "Song"

    def test_placeholder_artist_dropped(self):
        assert name_from_tags({"artist": "Unknown Artist", "title": "Song"}) == "Song"

    @pytest.mark.parametrize("tags", [{}, {"title": ""}, {"title": "Untitled"}, {"artist": "Band"}])
    def test_no_usable_title(self, tags):
        assert name_from_tags(tags) == ""
