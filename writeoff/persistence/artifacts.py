"""On-disk artifacts for generate, judge and refine runs.

Each function takes the run's output root, creates a fresh directory
under it and returns that directory. JSON documents are written with
pydantic's ``model_dump_json(indent=2)``.

Layouts:
  generate: <id>/prompt.md, posts/<writer>.md,
            judgments/<judge>--<writer>.json, failures.json, summary.json
  judge:    <ts>/input.md, judgments/<judge>.json, failures.json, summary.json
  refine:   <ts>-refine/original.md, iterations/<n>.md,
            iterations/<n>-judgments.json, diffs/<n-1>-to-<n>.diff,
            final.md, summary.json
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import TypeAdapter

from writeoff.schemas.flywheel import FlywheelSession
from writeoff.schemas.results import (
    AggregatedResult,
    EvaluationFailure,
    JudgmentResult,
    WriteoffSession,
)
from writeoff.utils.diff import unified_diff

logger = structlog.get_logger(__name__)

_judgment_list = TypeAdapter(list[JudgmentResult])
_failure_list = TypeAdapter(list[EvaluationFailure])


def sanitize_filename(name: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to '-', trim dashes."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "unnamed"


def timestamp_slug(now: datetime | None = None) -> str:
    """UTC timestamp safe for directory names, e.g. 2026-10-19T08-30-00."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S")


def new_session_id(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d-%H%M%S")


def unique_name(name: str, taken: set[str]) -> str:
    """Return ``name``, or ``name-2``, ``name-3``... if already in ``taken``.

    The returned name is added to ``taken``.
    """
    candidate = name
    suffix = 2
    while candidate in taken:
        candidate = f"{name}-{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _write_failures(directory: Path, failures: Sequence[EvaluationFailure]) -> None:
    if failures:
        (directory / "failures.json").write_bytes(
            _failure_list.dump_json(list(failures), indent=2)
        )


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


def save_writeoff_session(session: WriteoffSession, output_dir: str | Path) -> Path:
    """Write a generate run's posts, judgments and summary."""
    session_dir = Path(output_dir) / session.id
    (session_dir / "posts").mkdir(parents=True, exist_ok=True)
    (session_dir / "judgments").mkdir(parents=True, exist_ok=True)

    (session_dir / "prompt.md").write_text(session.prompt, encoding="utf-8")

    names: dict[str, str] = {}
    post_files: set[str] = set()
    for post in session.posts:
        name = unique_name(sanitize_filename(post.friendly_name), post_files)
        names.setdefault(post.subject_id, name)
        (session_dir / "posts" / f"{name}.md").write_text(post.content, encoding="utf-8")

    judgment_files: set[str] = set()
    for judgment in session.judgments:
        judge = sanitize_filename(judgment.evaluator_name)
        writer = names.get(judgment.subject_id, sanitize_filename(judgment.subject_id))
        name = unique_name(f"{judge}--{writer}", judgment_files)
        (session_dir / "judgments" / f"{name}.json").write_text(
            judgment.model_dump_json(indent=2), encoding="utf-8"
        )

    _write_failures(session_dir, session.failures)
    (session_dir / "summary.json").write_text(
        session.model_dump_json(indent=2), encoding="utf-8"
    )
    logger.info("writeoff_session_saved", path=str(session_dir))
    return session_dir


# ---------------------------------------------------------------------------
# judge
# ---------------------------------------------------------------------------


def save_judge_run(
    content: str,
    input_file: str,
    judgments: Sequence[JudgmentResult],
    failures: Sequence[EvaluationFailure],
    result: AggregatedResult,
    output_dir: str | Path,
    *,
    now: datetime | None = None,
) -> Path:
    """Write a judge run: the input post, one JSON per judge, and a summary."""
    run_dir = Path(output_dir) / timestamp_slug(now)
    (run_dir / "judgments").mkdir(parents=True, exist_ok=True)

    (run_dir / "input.md").write_text(content, encoding="utf-8")
    judgment_files: set[str] = set()
    for judgment in judgments:
        name = unique_name(sanitize_filename(judgment.evaluator_name), judgment_files)
        (run_dir / "judgments" / f"{name}.json").write_text(
            judgment.model_dump_json(indent=2), encoding="utf-8"
        )
    _write_failures(run_dir, failures)

    summary = {
        "input_file": input_file,
        "overall_average": result.overall_average,
        "per_criterion_average": result.per_criterion_average,
        "judgments": len(judgments),
        "failures": len(failures),
    }
    (run_dir / "summary.json").write_bytes(TypeAdapter(dict).dump_json(summary, indent=2))
    logger.info("judge_run_saved", path=str(run_dir))
    return run_dir


# ---------------------------------------------------------------------------
# refine
# ---------------------------------------------------------------------------


def save_flywheel_session(
    session: FlywheelSession,
    output_dir: str | Path,
    *,
    write_diffs: bool = True,
    diff_context: int = 3,
    now: datetime | None = None,
) -> Path:
    """Write every iteration, the diffs between them, the final post and summary."""
    session_dir = Path(output_dir) / f"{timestamp_slug(now)}-refine"
    iterations_dir = session_dir / "iterations"
    iterations_dir.mkdir(parents=True, exist_ok=True)

    (session_dir / "original.md").write_text(session.original_text, encoding="utf-8")

    for iteration in session.iterations:
        n = iteration.index
        (iterations_dir / f"{n}.md").write_text(iteration.candidate_text, encoding="utf-8")
        (iterations_dir / f"{n}-judgments.json").write_bytes(
            _judgment_list.dump_json(list(iteration.judgments), indent=2)
        )

    if write_diffs:
        diffs_dir = session_dir / "diffs"
        for previous, current in zip(session.iterations, session.iterations[1:]):
            patch = unified_diff(
                previous.candidate_text,
                current.candidate_text,
                from_file=f"iterations/{previous.index}.md",
                to_file=f"iterations/{current.index}.md",
                context=diff_context,
            )
            if not patch:
                continue
            diffs_dir.mkdir(exist_ok=True)
            (diffs_dir / f"{previous.index}-to-{current.index}.diff").write_text(
                patch, encoding="utf-8"
            )

    (session_dir / "final.md").write_text(session.final_text, encoding="utf-8")
    (session_dir / "summary.json").write_text(
        session.model_dump_json(indent=2), encoding="utf-8"
    )
    logger.info("flywheel_session_saved", path=str(session_dir))
    return session_dir
