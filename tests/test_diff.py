"""Tests for the line diff engine."""

from __future__ import annotations

import random

import pytest

from writeoff.utils.diff import (
    DiffMarker,
    apply_hunks,
    compute_edits,
    compute_hunks,
    format_range,
    split_lines,
    unified_diff,
)


def _edit_markers(a: list[str], b: list[str]) -> str:
    return "".join(str(e.marker) for e in compute_edits(a, b))


# ---------------------------------------------------------------------------
# Edit script
# ---------------------------------------------------------------------------


class TestComputeEdits:
    def test_identical_is_all_context(self):
        assert _edit_markers(["a", "b"], ["a", "b"]) == "  "

    def test_both_empty(self):
        assert compute_edits([], []) == []

    def test_pure_insert(self):
        assert _edit_markers([], ["x", "y"]) == "++"

    def test_pure_delete(self):
        assert _edit_markers(["x", "y"], []) == "--"

    def test_replacement_lists_removal_before_addition(self):
        edits = compute_edits(["a", "b", "c"], ["a", "x", "c"])
        assert [(str(e.marker), e.text) for e in edits] == [
            (" ", "a"),
            ("-", "b"),
            ("+", "x"),
            (" ", "c"),
        ]

    def test_edit_script_is_minimal(self):
        a = list("abcabba")
        b = list("cbabac")
        edits = compute_edits(a, b)
        changes = [e for e in edits if e.marker is not DiffMarker.CONTEXT]
        assert len(changes) == 5

    def test_positions_count_consumed_lines(self):
        edits = compute_edits(["a", "b"], ["b", "c"])
        assert [(e.old_pos, e.new_pos) for e in edits] == [(0, 0), (1, 0), (2, 1)]

    def test_deterministic(self):
        a = ["x", "y", "x", "y"]
        b = ["y", "x", "y", "x"]
        assert compute_edits(a, b) == compute_edits(a, b)

    def test_large_input_does_not_recurse(self):
        a = [f"line {i}" for i in range(600)]
        b = [f"line {i}" for i in range(600) if i % 7] + ["tail"]
        edits = compute_edits(a, b)
        rebuilt = [e.text for e in edits if e.marker is not DiffMarker.REMOVED]
        assert rebuilt == b


# ---------------------------------------------------------------------------
# Hunks
# ---------------------------------------------------------------------------


class TestComputeHunks:
    def test_no_changes_no_hunks(self):
        assert compute_hunks(compute_edits(["a"], ["a"])) == []

    def test_context_padding(self):
        a = [str(i) for i in range(10)]
        b = list(a)
        b[5] = "five"
        [hunk] = compute_hunks(compute_edits(a, b), context=2)
        assert hunk.old_start == 4
        assert hunk.old_length == 5
        assert hunk.new_length == 5
        assert [text for _, text in hunk.lines] == ["3", "4", "5", "five", "6", "7"]

    def test_touching_ranges_merge(self):
        a = [str(i) for i in range(10)]
        b = list(a)
        b[2] = "two"
        b[5] = "five"
        # two context lines between changes, context=1: padded ranges touch
        assert len(compute_hunks(compute_edits(a, b), context=1)) == 1

    def test_separate_ranges_stay_apart(self):
        a = [str(i) for i in range(20)]
        b = list(a)
        b[2] = "two"
        b[15] = "fifteen"
        assert len(compute_hunks(compute_edits(a, b), context=3)) == 2

    def test_negative_context_rejected(self):
        with pytest.raises(ValueError):
            compute_hunks([], context=-1)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestUnifiedDiff:
    def test_identical_returns_empty_string(self):
        assert unified_diff("a\n", "a\n") == ""

    def test_crlf_equivalent_to_lf(self):
        assert unified_diff("a\r\nb\r\n", "a\nb\n") == ""

    def test_renders_headers_and_markers(self):
        patch = unified_diff("a\nb\n", "a\nc\n", from_file="old", to_file="new", context=1)
        assert patch == "--- old\n+++ new\n@@ -1,3 +1,3 @@\n a\n-b\n+c\n \n"

    def test_default_labels(self):
        patch = unified_diff("x", "y")
        assert patch.startswith("--- a\n+++ b\n")
        assert "@@ -1 +1 @@\n-x\n+y\n" in patch

    def test_zero_length_side(self):
        patch = unified_diff("a", "a\nb", context=0)
        assert "@@ -2,0 +2 @@" in patch

    def test_trailing_newline_is_a_change(self):
        assert unified_diff("a", "a\n") != ""

    def test_negative_context_rejected(self):
        with pytest.raises(ValueError):
            unified_diff("a", "b", context=-1)

    @pytest.mark.parametrize(
        "old, new",
        [
            ("one\ntwo\nthree\n", "one\n2\nthree\nfour\n"),
            ("", "first line\nsecond\n"),
            ("keep\n" * 12 + "drop\n" + "keep\n" * 12, "keep\n" * 25),
            ("a\nb\nc\nd\ne\nf\ng", "b\nc\nX\ne\nf\ng\nh"),
        ],
    )
    def test_hunks_rebuild_new_text(self, old, new):
        hunks = compute_hunks(compute_edits(split_lines(old), split_lines(new)), context=2)
        assert apply_hunks(old, hunks) == new

    @pytest.mark.parametrize("context", [0, 1, 3])
    @pytest.mark.parametrize("seed", range(20))
    def test_random_texts_rebuild(self, seed, context):
        rng = random.Random(seed)

        def text() -> str:
            lines = [rng.choice("abc") for _ in range(rng.randint(0, 8))]
            return "\n".join(lines) + ("\n" if lines and rng.random() < 0.5 else "")

        for _ in range(10):
            old, new = text(), text()
            hunks = compute_hunks(compute_edits(split_lines(old), split_lines(new)), context)
            assert apply_hunks(old, hunks) == new
            assert (unified_diff(old, new, context=context) == "") == (old == new)


class TestFormatRange:
    def test_zero_length(self):
        assert format_range(4, 0) == "4,0"

    def test_single_line(self):
        assert format_range(4, 1) == "4"

    def test_multi_line(self):
        assert format_range(4, 3) == "4,3"
