"""Judge Agent: scores posts against the rubric.

judge_post: one judge, one post. Raises if the judge cannot produce a
valid judgment within the repair budget.

judge_all_posts / judge_post_with_multiple_judges: one wave of judge
calls through the bounded scheduler. Never raises for a single failed
pair; failures are returned alongside the judgments.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import partial

import structlog

from writeoff.prompts.templates import JUDGE_SYSTEM, build_judge_prompt, judge_schema_hint
from writeoff.schemas.model_config import ModelConfig
from writeoff.schemas.results import (
    EvaluationBatch,
    EvaluationFailure,
    JudgmentResult,
    WriterResult,
)
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric
from writeoff.utils.judgment_parser import parse_judgment_response
from writeoff.utils.limit import BoundedTaskScheduler, TaskObserver
from writeoff.utils.structured_output import invoke_structured_with_fix

logger = structlog.get_logger(__name__)


def judgment_label(judge: ModelConfig, post: WriterResult) -> str:
    return f"{judge.friendly_name} → {post.friendly_name}"


async def judge_post(
    judge: ModelConfig,
    post: WriterResult,
    *,
    rubric: Rubric = DEFAULT_RUBRIC,
    max_repairs: int = 1,
    divergence_tolerance: float = 5.0,
) -> JudgmentResult:
    """Have one judge score one post.

    Raises:
        StructuredOutputError: If the judge's reply is still invalid after
            ``max_repairs`` repair requests.
    """
    logger.info("judge_start", judge=judge.friendly_name, post=post.friendly_name)
    parse = partial(
        parse_judgment_response,
        judge=judge,
        subject_id=post.subject_id,
        rubric=rubric,
        divergence_tolerance=divergence_tolerance,
    )
    judgment = await invoke_structured_with_fix(
        model=judge,
        system_prompt=JUDGE_SYSTEM,
        user_prompt=build_judge_prompt(post.content, rubric),
        parse=parse,
        schema_hint=judge_schema_hint(rubric),
        max_repairs=max_repairs,
    )
    logger.info(
        "judge_done",
        judge=judge.friendly_name,
        post=post.friendly_name,
        computed_overall=round(judgment.computed_overall, 2),
        warnings=len(judgment.warnings),
    )
    return judgment


async def judge_all_posts(
    judges: Sequence[ModelConfig],
    posts: Sequence[WriterResult],
    scheduler: BoundedTaskScheduler,
    *,
    rubric: Rubric = DEFAULT_RUBRIC,
    max_repairs: int = 1,
    divergence_tolerance: float = 5.0,
    on_progress: TaskObserver | None = None,
) -> EvaluationBatch:
    """Run every judge against every post as one wave.

    The wave is awaited in full before returning. Each judge/post pair
    that fails becomes an EvaluationFailure; the rest are unaffected.
    """
    pairs = [(judge, post) for post in posts for judge in judges]
    factories = [
        partial(
            judge_post,
            judge,
            post,
            rubric=rubric,
            max_repairs=max_repairs,
            divergence_tolerance=divergence_tolerance,
        )
        for judge, post in pairs
    ]
    labels = [judgment_label(judge, post) for judge, post in pairs]
    outcomes = await scheduler.run(factories, labels=labels, on_event=on_progress)

    judgments: list[JudgmentResult] = []
    failures: list[EvaluationFailure] = []
    for outcome in outcomes:
        judge, post = pairs[outcome.index]
        if outcome.ok:
            judgments.append(outcome.result)
            continue
        logger.warning(
            "evaluation_failed",
            judge=judge.friendly_name,
            post=post.friendly_name,
            error=str(outcome.error),
        )
        failures.append(
            EvaluationFailure(
                evaluator_id=judge.model_id,
                evaluator_name=judge.friendly_name,
                subject_id=post.subject_id,
                error_description=str(outcome.error) or type(outcome.error).__name__,
            )
        )

    logger.info("judge_wave_done", judgments=len(judgments), failures=len(failures))
    return EvaluationBatch(judgments=tuple(judgments), failures=tuple(failures))


async def judge_post_with_multiple_judges(
    judges: Sequence[ModelConfig],
    post: WriterResult,
    scheduler: BoundedTaskScheduler,
    **kwargs,
) -> EvaluationBatch:
    """Run every judge against a single post."""
    return await judge_all_posts(judges, [post], scheduler, **kwargs)
