"""Tests for ops/grouping.py -- seed-based and transitive duplicate groups."""

from pathlib import Path

from audio_relocator.models import FileEntry
from audio_relocator.ops.grouping import group_entries
from audio_relocator.similarity import SimilarityMode, SimilaritySettings

GRADED_75 = SimilaritySettings(SimilarityMode.GRADED, 0.75)
WORDS = SimilaritySettings.from_legacy(1)
EXACT = SimilaritySettings.from_legacy(100)


def _entries(*names: str) -> list[FileEntry]:
    entries = []
    for name in names:
        entry = FileEntry.from_path(Path(f"/music/{name}.mp3"), 1000)
        entry.sanitized_name = name
        entries.append(entry)
    return entries


def _names(groups) -> list[list[str]]:
    return [[m.sanitized_name for m in g.members] for g in groups]


class TestSeedGroups:
    def test_not_transitive(self):
        # A~B (0.8), B~C (0.8), A!~C (0.6)
        groups = group_entries(_entries("abcdefghij", "abcdefghXY", "abcdefWZXY"), True, GRADED_75)
        assert _names(groups) == [["abcdefghij", "abcdefghXY"], ["abcdefWZXY"]]

    def test_representative_is_shortest_name(self):
        groups = group_entries(_entries("Song Live", "Song", "Song Remix"), True, WORDS)
        assert groups[0].name == "Song"
        assert _names(groups)[0] == ["Song Live", "Song"]

    def test_representative_tie_keeps_first(self):
        groups = group_entries(_entries("abcdefghij", "abcdefghXY"), True, GRADED_75)
        assert groups[0].name == "abcdefghij"

    def test_exact_mode(self):
        groups = group_entries(_entries("Song", "Song", "song"), True, EXACT)
        assert _names(groups) == [["Song", "Song"], ["song"]]

    def test_every_entry_in_exactly_one_group(self):
        entries = _entries("Alpha Beta Gamma", "alpha beta gamma live", "Delta", "Delta", "Omega")
        groups = group_entries(entries, True, WORDS)
        members = [id(m) for g in groups for m in g.members]
        assert sorted(members) == sorted(id(e) for e in entries)

    def test_terms_ignored_when_comparing(self):
        entries = _entries("Song Remastered Edition", "Song Live")
        assert len(group_entries(entries, True, WORDS)) == 2
        groups = group_entries(entries, True, WORDS, terms=["remastered", "edition"])
        assert len(groups) == 1


class TestTransitiveGroups:
    def test_chains_merge(self):
        groups = group_entries(
            _entries("abcdefghij", "abcdefghXY", "abcdefWZXY"), True, GRADED_75, transitive=True
        )
        assert len(groups) == 1
        assert groups[0].name == "abcdefghij"

    def test_word_chain(self):
        groups = group_entries(_entries("Song Live", "Song", "Song Remix"), True, WORDS, transitive=True)
        assert _names(groups) == [["Song Live", "Song", "Song Remix"]]

    def test_unrelated_stay_apart(self):
        groups = group_entries(_entries("Alpha", "Omega", "Alpha"), True, EXACT, transitive=True)
        assert _names(groups) == [["Alpha", "Alpha"], ["Omega"]]


class TestDisabled:
    def test_each_entry_alone(self):
        groups = group_entries(_entries("Song", "Song"), False, EXACT)
        assert _names(groups) == [["Song"], ["Song"]]
        assert all(not g.is_multi for g in groups)

    def test_empty(self):
        assert group_entries([], True, WORDS) == []
