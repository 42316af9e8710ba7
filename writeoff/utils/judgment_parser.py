"""Parse and validate raw judge output into a JudgmentResult.

Any problem with the judge's text (bad JSON, wrong shape, unknown,
duplicate or missing criteria, out-of-range scores) raises
JudgmentValidationError so the caller can ask the judge for a repair.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

import structlog
from langchain_core.utils.json import parse_json_markdown

from writeoff.schemas.model_config import ModelConfig
from writeoff.schemas.results import CriterionScore, JudgmentResult
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric
from writeoff.utils.scoring import compute_overall_from_scores

logger = structlog.get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

SCORE_MIN = 1
SCORE_MAX = 100


class JudgmentValidationError(ValueError):
    """Judge output that cannot be turned into a valid judgment."""


def extract_json_text(response: str) -> str:
    """Trim, and unwrap the first fenced code block if there is one."""
    text = response.strip()
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_range(value: Any, what: str) -> float:
    if not _is_number(value):
        raise JudgmentValidationError(f"{what} must be a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError:
        # integer literal too large for a float
        raise JudgmentValidationError(
            f"{what} must be between {SCORE_MIN} and {SCORE_MAX}, got an oversized integer"
        ) from None
    if not math.isfinite(number):
        raise JudgmentValidationError(f"{what} must be a number, got {value!r}")
    if not SCORE_MIN <= number <= SCORE_MAX:
        raise JudgmentValidationError(
            f"{what} must be between {SCORE_MIN} and {SCORE_MAX}, got {value}"
        )
    return number


def parse_judgment_response(
    response: str,
    judge: ModelConfig,
    subject_id: str,
    rubric: Rubric = DEFAULT_RUBRIC,
    *,
    divergence_tolerance: float = 5.0,
) -> JudgmentResult:
    """Validate a judge's raw reply.

    Args:
        response: Raw text returned by the judge model.
        judge: Identity of the judge.
        subject_id: Id of the post being judged.
        rubric: Criteria, weights and aliases to validate against.
        divergence_tolerance: Gap between the judge's reported overall and
            the recomputed one at which a warning is recorded.

    Raises:
        JudgmentValidationError: If the reply is not a complete, in-range
            score set for ``rubric``.
    """
    text = extract_json_text(response)
    if not text:
        raise JudgmentValidationError("empty response")
    try:
        data = parse_json_markdown(text, parser=json.loads)
    except ValueError as exc:
        raise JudgmentValidationError(f"response is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise JudgmentValidationError("response must be a JSON object")
    raw_scores = data.get("scores")
    if not isinstance(raw_scores, list):
        raise JudgmentValidationError('"scores" must be an array')
    reported = _check_range(data.get("overallScore"), '"overallScore"')

    warnings: list[str] = []
    by_key: dict[str, CriterionScore] = {}
    for position, entry in enumerate(raw_scores):
        if not isinstance(entry, dict):
            raise JudgmentValidationError(f"scores[{position}] must be an object")
        name = entry.get("criterion")
        if not isinstance(name, str):
            raise JudgmentValidationError(f"scores[{position}] is missing a criterion name")
        key = rubric.resolve(name)
        if key is None:
            raise JudgmentValidationError(f"unknown criterion: {name!r}")
        if key in by_key:
            raise JudgmentValidationError(f"duplicate criterion: {key}")
        score = _check_range(entry.get("score"), f"score for {key}")
        if "feedback" not in entry or entry["feedback"] is None:
            raise JudgmentValidationError(f"missing feedback for criterion: {key}")
        feedback = entry["feedback"]
        if not isinstance(feedback, str):
            raise JudgmentValidationError(f"feedback for {key} must be a string")
        if not feedback.strip():
            warnings.append(f"empty feedback for criterion: {key}")
        by_key[key] = CriterionScore(criterion=key, score=score, feedback=feedback)

    for key in rubric.keys:
        if key not in by_key:
            raise JudgmentValidationError(f"missing criterion: {key}")

    scores = tuple(by_key[key] for key in rubric.keys)
    computed = compute_overall_from_scores(scores, rubric)
    if abs(computed - reported) >= divergence_tolerance:
        warnings.append(
            f"reported overall {reported:g} differs from computed {computed:.1f}"
        )
        logger.debug(
            "judge_overall_divergence",
            judge=judge.friendly_name,
            reported=reported,
            computed=round(computed, 2),
        )

    return JudgmentResult(
        evaluator_id=judge.model_id,
        evaluator_name=judge.friendly_name,
        subject_id=subject_id,
        scores=scores,
        evaluator_reported_overall=reported,
        computed_overall=computed,
        warnings=tuple(warnings),
    )
