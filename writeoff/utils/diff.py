"""Line-level unified diff.

Myers' O((N+M)D) greedy shortest-edit-script search over lines, rendered
as unified-format hunks. Used to record what changed between flywheel
iterations.

The forward pass keeps one layer per edit distance d: a list of the
furthest-reaching x on each diagonal k = -d, -d+2, ..., d (stored at
index (k + d) // 2). Backtracking walks those layers from the last one
down to zero, so no recursion is involved however long the inputs are.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum


class DiffMarker(StrEnum):
    CONTEXT = " "
    ADDED = "+"
    REMOVED = "-"


@dataclass(frozen=True)
class Edit:
    """One line of the edit script.

    ``old_pos``/``new_pos`` count the lines of each side consumed before
    this edit.
    """

    marker: DiffMarker
    text: str
    old_pos: int
    new_pos: int


@dataclass(frozen=True)
class DiffHunk:
    old_start: int
    old_length: int
    new_start: int
    new_length: int
    lines: tuple[tuple[DiffMarker, str], ...] = field(default_factory=tuple)

    def header(self) -> str:
        return (
            f"@@ -{format_range(self.old_start, self.old_length)} "
            f"+{format_range(self.new_start, self.new_length)} @@"
        )


def split_lines(text: str) -> list[str]:
    """Split on newlines after normalizing CRLF.

    A trailing newline yields a trailing empty line, so "a\\n" and "a"
    compare as different.
    """
    return text.replace("\r\n", "\n").split("\n")


# ---------------------------------------------------------------------------
# Shortest edit script
# ---------------------------------------------------------------------------


def _at(layer: list[int], d: int, k: int) -> int:
    return layer[(k + d) // 2]


def _came_down(layer: list[int] | None, d: int, k: int) -> bool:
    """Whether diagonal k at distance d is reached by an insertion.

    ``layer`` is the previous generation (distance d - 1). Ties go to
    the deletion branch.
    """
    if k == -d:
        return True
    if k == d:
        return False
    return _at(layer, d - 1, k - 1) < _at(layer, d - 1, k + 1)


def _search(a: Sequence[str], b: Sequence[str]) -> list[list[int]]:
    n, m = len(a), len(b)
    trace: list[list[int]] = []
    for d in range(n + m + 1):
        prev = trace[-1] if trace else None
        layer: list[int] = []
        for k in range(-d, d + 1, 2):
            if d == 0:
                x = 0
            elif _came_down(prev, d, k):
                x = _at(prev, d - 1, k + 1)
            else:
                x = _at(prev, d - 1, k - 1) + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            layer.append(x)
            if x >= n and y >= m:
                trace.append(layer)
                return trace
        trace.append(layer)
    return trace


def compute_edits(a: Sequence[str], b: Sequence[str]) -> list[Edit]:
    """Minimal edit script turning ``a`` into ``b``.

    Deterministic: among equally short scripts the same one is always
    chosen, with removals listed before additions inside a change run.
    """
    trace = _search(a, b)
    reversed_ops: list[tuple[DiffMarker, str]] = []
    x, y = len(a), len(b)

    for d in range(len(trace) - 1, 0, -1):
        prev = trace[d - 1]
        k = x - y
        if _came_down(prev, d, k):
            prev_k = k + 1
            prev_x = _at(prev, d - 1, prev_k)
            mid_x, mid_y = prev_x, prev_x - prev_k + 1
        else:
            prev_k = k - 1
            prev_x = _at(prev, d - 1, prev_k)
            mid_x, mid_y = prev_x + 1, prev_x - prev_k
        while x > mid_x and y > mid_y:
            x -= 1
            y -= 1
            reversed_ops.append((DiffMarker.CONTEXT, a[x]))
        if mid_x == prev_x:
            y -= 1
            reversed_ops.append((DiffMarker.ADDED, b[y]))
        else:
            x -= 1
            reversed_ops.append((DiffMarker.REMOVED, a[x]))

    while x > 0 and y > 0:
        x -= 1
        y -= 1
        reversed_ops.append((DiffMarker.CONTEXT, a[x]))

    edits: list[Edit] = []
    old_pos = new_pos = 0
    for marker, text in reversed(reversed_ops):
        edits.append(Edit(marker, text, old_pos, new_pos))
        if marker is not DiffMarker.ADDED:
            old_pos += 1
        if marker is not DiffMarker.REMOVED:
            new_pos += 1
    return edits


# ---------------------------------------------------------------------------
# Hunks and rendering
# ---------------------------------------------------------------------------


def compute_hunks(edits: Sequence[Edit], context: int = 3) -> list[DiffHunk]:
    """Group changes into hunks padded by ``context`` lines per side.

    Change runs whose padded ranges overlap or touch share one hunk.
    """
    if context < 0:
        raise ValueError(f"context must be >= 0, got {context}")
    changes = [i for i, e in enumerate(edits) if e.marker is not DiffMarker.CONTEXT]
    if not changes:
        return []

    groups: list[tuple[int, int]] = []
    first = last = changes[0]
    for index in changes[1:]:
        if index - last <= 2 * context + 1:
            last = index
            continue
        groups.append((first, last))
        first = last = index
    groups.append((first, last))

    hunks: list[DiffHunk] = []
    for first, last in groups:
        start = max(0, first - context)
        end = min(len(edits) - 1, last + context)
        window = edits[start : end + 1]
        old_length = sum(1 for e in window if e.marker is not DiffMarker.ADDED)
        new_length = sum(1 for e in window if e.marker is not DiffMarker.REMOVED)
        hunks.append(
            DiffHunk(
                old_start=edits[start].old_pos + 1,
                old_length=old_length,
                new_start=edits[start].new_pos + 1,
                new_length=new_length,
                lines=tuple((e.marker, e.text) for e in window),
            )
        )
    return hunks


def format_range(start: int, length: int) -> str:
    if length == 0:
        return f"{start},0"
    if length == 1:
        return str(start)
    return f"{start},{length}"


def unified_diff(
    old: str,
    new: str,
    *,
    from_file: str = "a",
    to_file: str = "b",
    context: int = 3,
) -> str:
    """Render the unified diff between two texts, or "" if they match."""
    if context < 0:
        raise ValueError(f"context must be >= 0, got {context}")
    a = split_lines(old)
    b = split_lines(new)
    if a == b:
        return ""

    hunks = compute_hunks(compute_edits(a, b), context)
    out = [f"--- {from_file}\n", f"+++ {to_file}\n"]
    for hunk in hunks:
        out.append(hunk.header() + "\n")
        for marker, text in hunk.lines:
            out.append(f"{marker}{text}\n")
    return "".join(out)


def apply_hunks(old: str, hunks: Sequence[DiffHunk]) -> str:
    """Rebuild the new text from the old text and its hunks."""
    a = split_lines(old)
    result: list[str] = []
    cursor = 0
    for hunk in hunks:
        begin = hunk.old_start - 1
        result.extend(a[cursor:begin])
        cursor = begin
        for marker, text in hunk.lines:
            if marker is DiffMarker.ADDED:
                result.append(text)
                continue
            if a[cursor] != text:
                raise ValueError(f"hunk does not apply at old line {cursor + 1}")
            if marker is DiffMarker.CONTEXT:
                result.append(text)
            cursor += 1
    result.extend(a[cursor:])
    return "\n".join(result)
