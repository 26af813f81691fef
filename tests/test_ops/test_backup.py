"""Tests for ops/backup.py -- pre-move copies of the source tree."""

import os
import threading
from pathlib import Path

from audio_relocator.audit_log import MemoryLogSink
from audio_relocator.models import LogStatus
from audio_relocator.ops.backup import backup_path_for, backup_tree, copy_buffered

EXTS = frozenset({"mp3", "flac"})


def _tree(tmp_path: Path) -> Path:
    src = tmp_path / "Music"
    (src / "sub").mkdir(parents=True)
    (src / "a.mp3").write_bytes(b"aaa")
    (src / "sub" / "b.flac").write_bytes(b"bbbb")
    (src / "notes.txt").write_text("skip me")
    return src


class TestBackupPath:
    def test_mirrors_relative_path(self):
        path = backup_path_for(Path("/src/Music"), Path("/bk"), Path("/src/Music/x/a.mp3"))
        assert path == Path("/bk/Music/x/a.mp3")


class TestCopyBuffered:
    def test_copies_content_and_mtime(self, tmp_path):
        src = tmp_path / "a.mp3"
        src.write_bytes(b"x" * 5000)
        os.utime(src, (1_000_000, 1_000_000))
        dest = tmp_path / "out" / "deep" / "a.mp3"
        copy_buffered(src, dest, buffer_size=1024)
        assert dest.read_bytes() == b"x" * 5000
        assert dest.stat().st_mtime == 1_000_000


class TestBackupTree:
    def test_copies_matching_files(self, tmp_path):
        src = _tree(tmp_path)
        sink = MemoryLogSink()
        copied, failed = backup_tree(src, tmp_path / "bk", EXTS, sink)
        assert (copied, failed) == (2, 0)
        assert (tmp_path / "bk" / "Music" / "a.mp3").read_bytes() == b"aaa"
        assert (tmp_path / "bk" / "Music" / "sub" / "b.flac").read_bytes() == b"bbbb"
        assert not (tmp_path / "bk" / "Music" / "notes.txt").exists()
        assert (src / "a.mp3").exists()
        assert sink.entries == []

    def test_dry_run_copies_nothing(self, tmp_path):
        src = _tree(tmp_path)
        copied, failed = backup_tree(src, tmp_path / "bk", EXTS, MemoryLogSink(), dry_run=True)
        assert (copied, failed) == (2, 0)
        assert not (tmp_path / "bk").exists()

    def test_failure_recorded(self, tmp_path, monkeypatch):
        src = _tree(tmp_path)

        def failing(source, dest, buffer_size=0):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("audio_relocator.ops.backup.copy_buffered", failing)
        sink = MemoryLogSink()
        copied, failed = backup_tree(src, tmp_path / "bk", EXTS, sink)
        assert (copied, failed) == (0, 2)
        assert [e.action for e in sink.entries] == ["backup", "backup"]
        assert all(e.status == LogStatus.ERROR for e in sink.entries)

    def test_cancelled(self, tmp_path):
        src = _tree(tmp_path)
        cancel = threading.Event()
        cancel.set()
        assert backup_tree(src, tmp_path / "bk", EXTS, MemoryLogSink(), cancel=cancel) == (0, 0)
