"""Tests for filename sanitization and name-rewriting terms."""

import pytest

from audio_relocator.sanitize import (
    clean_name,
    load_terms,
    remove_terms,
    sanitize_name,
)

FORBIDDEN = set('<>:"/\\|?*[]()')

TRICKY_INPUTS = [
    "",
    "   ",
    "...",
    "???",
    "a ( b",
    " x . ",
    "dots. . .",
    "Song (Live) [2010]...",
    "Don\u2019t Stop",
    "\u2019\u2019",
    "tab\there\nnewline",
    "\x00nul\x1fctl",
    "a" * 150 + " (x) " + "b" * 100,
    "a" * 199 + " " + "b" * 10,
    "." * 300,
    "C:\\Music\\Artist/Track?.mp3",
]


class TestSanitizeName:
    def test_normalizes_typographic_apostrophe(self):
        assert sanitize_name("Don\u2019t Stop") == "Don't Stop"

    def test_collapses_whitespace(self):
        assert sanitize_name("a   b\t\nc") == "a b c"

    def test_strips_trailing_dots(self):
        assert sanitize_name("name...") == "name"

    def test_removes_forbidden_chars(self):
        assert sanitize_name('a<b>c:d"e/f\\g|h?i*j[k]l(m)n') == "abcdefghijklmn"

    def test_removal_does_not_leave_double_spaces(self):
        assert sanitize_name("Song (Live) Version") == "Song Live Version"

    def test_trims_leading_dots_and_spaces(self):
        assert sanitize_name(" ..hidden. ") == "hidden"

    def test_preserves_normal_names(self):
        assert sanitize_name("Artist - Track_01") == "Artist - Track_01"

    @pytest.mark.parametrize("value", ["", "   ", "...", "???", "()[]"])
    def test_empty_result_is_unnamed(self, value):
        assert sanitize_name(value) == "unnamed"

    def test_truncates_to_200(self):
        assert len(sanitize_name("x" * 500)) == 200

    def test_trims_after_truncation(self):
        result = sanitize_name("a" * 199 + " " + "b" * 10)
        assert result == "a" * 199

    @pytest.mark.parametrize("value", TRICKY_INPUTS)
    def test_idempotent(self, value):
        once = sanitize_name(value)
        assert sanitize_name(once) == once

    @pytest.mark.parametrize("value", TRICKY_INPUTS)
    def test_bounded_and_safe(self, value):
        result = sanitize_name(value)
        assert 0 < len(result) <= 200
        assert not FORBIDDEN & set(result)
        assert result == result.strip(" .")


class TestTerms:
    def test_remove_terms_case_insensitive(self):
        assert remove_terms("Song (OFFICIAL Video)", ["official video"]) == "Song ()"

    def test_remove_terms_is_literal(self):
        assert remove_terms("a.c abc", ["a.c"]) == " abc"

    def test_remove_terms_ignores_empty(self):
        assert remove_terms("Song", [""]) == "Song"

    def test_clean_name_appends_terms(self):
        assert clean_name("Song", [], ["Remastered"]) == "Song Remastered"

    def test_clean_name_remove_then_append(self):
        cleaned = clean_name("Song [HQ]", ["[hq]"], ["2024"])
        assert cleaned == "Song 2024"

    def test_clean_then_sanitize(self):
        cleaned = clean_name("Song (Official Video)", ["official video"], [])
        assert sanitize_name(cleaned) == "Song"

    def test_load_terms(self, tmp_path):
        f = tmp_path / "terms.txt"
        f.write_text(" live , ,remix,\nofficial \n")
        assert load_terms(f) == ["live", "remix", "official"]

    def test_load_terms_empty_file(self, tmp_path):
        f = tmp_path / "terms.txt"
        f.write_text("")
        assert load_terms(f) == []
