"""Writer Agent: drafts posts and rewrites them from judge feedback."""

from __future__ import annotations

import math
from collections.abc import Sequence
from functools import partial

import structlog

from writeoff.models import generate
from writeoff.prompts.templates import (
    FEEDBACK_CLOSING,
    REFINEMENT_SYSTEM,
    REFINEMENT_TASK,
    WRITER_EXPAND_TASK,
    WRITER_SYSTEM,
    WRITER_TASK,
)
from writeoff.schemas.model_config import ModelConfig
from writeoff.schemas.results import JudgmentResult, WriterResult
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric
from writeoff.utils.limit import BoundedTaskScheduler, TaskObserver

logger = structlog.get_logger(__name__)


def build_writer_prompt(topic: str, existing_content: str | None = None) -> str:
    if existing_content:
        return WRITER_EXPAND_TASK.format(topic=topic, existing_content=existing_content)
    return WRITER_TASK.format(topic=topic)


async def generate_post(
    model: ModelConfig,
    prompt: str,
    existing_content: str | None = None,
) -> WriterResult:
    """Generate one post with ``model``."""
    content = await generate(model, WRITER_SYSTEM, build_writer_prompt(prompt, existing_content))
    return WriterResult(
        model_id=model.model_id,
        friendly_name=model.friendly_name,
        content=content,
    )


async def generate_posts_from_models(
    models: Sequence[ModelConfig],
    prompt: str,
    scheduler: BoundedTaskScheduler,
    existing_content: str | None = None,
    on_progress: TaskObserver | None = None,
) -> list[WriterResult]:
    """Generate a post from each model; writers that fail are logged and dropped."""
    factories = [partial(generate_post, model, prompt, existing_content) for model in models]
    outcomes = await scheduler.run(
        factories,
        labels=[model.friendly_name for model in models],
        on_event=on_progress,
    )
    posts: list[WriterResult] = []
    for outcome in outcomes:
        if outcome.ok:
            posts.append(outcome.result)
        else:
            logger.error(
                "writer_failed",
                model=models[outcome.index].friendly_name,
                error=str(outcome.error),
            )
    return posts


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------


def format_feedback_for_writer(
    judgments: Sequence[JudgmentResult],
    computed_overall: float,
    rubric: Rubric = DEFAULT_RUBRIC,
) -> str:
    """Summarize an iteration's judgments as instructions for the writer.

    Per criterion: average and range of scores, then every judge's
    non-empty feedback tagged with the judge's name.
    """
    if not judgments:
        return "No feedback available."

    sections: list[str] = []
    for key in rubric.keys:
        scores: list[float] = []
        notes: list[str] = []
        for judgment in judgments:
            score = judgment.score_for(key)
            if score is None:
                continue
            scores.append(score.score)
            if score.feedback.strip():
                notes.append(f"[{judgment.evaluator_name}]: {score.feedback.strip()}")
        if not scores:
            continue
        average = math.fsum(scores) / len(scores)
        section = (
            f"## {rubric.label(key)}\n"
            f"Average Score: {average:.1f}/100 (range: {min(scores):g}-{max(scores):g})\n"
        )
        if notes:
            section += "\nFeedback:\n" + "".join(f"- {note}\n" for note in notes)
        sections.append(section)

    return (
        "# Judge Feedback Summary\n\n"
        f"Overall Score: {computed_overall:.1f}/100\n\n"
        + "\n".join(sections)
        + "\n---\n\n"
        + FEEDBACK_CLOSING
    )


async def refine_post(post: str, writer_model: ModelConfig, feedback: str) -> str:
    """Ask the writer for a complete improved version of ``post``."""
    logger.info("refine_start", writer=writer_model.friendly_name, chars=len(post))
    return await generate(
        writer_model,
        REFINEMENT_SYSTEM,
        REFINEMENT_TASK.format(post=post, feedback=feedback),
    )
