"""Weighted score aggregation.

The overall score of a post is always recomputed here from per-criterion
scores and the rubric weights. A judge's self-reported total is kept for
diagnostics only.

Both formulas normalize by the weights of the criteria actually present,
so a missing criterion lowers the denominator instead of dragging the
result toward zero.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

from writeoff.schemas.results import (
    AggregatedResult,
    CriterionScore,
    JudgmentResult,
    WriterResult,
)
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric


def weighted_average(values: Mapping[str, float], rubric: Rubric = DEFAULT_RUBRIC) -> float:
    """Weighted mean of per-criterion values over the rubric keys present."""
    pairs = [(rubric.weight(key), values[key]) for key in rubric.keys if key in values]
    total_weight = math.fsum(w for w, _ in pairs)
    if total_weight <= 0:
        return 0.0
    return math.fsum(w * v for w, v in pairs) / total_weight


def compute_overall_from_scores(
    scores: Iterable[CriterionScore],
    rubric: Rubric = DEFAULT_RUBRIC,
) -> float:
    """Single-judgment overall: weighted average of that judgment's scores."""
    return weighted_average({s.criterion: s.score for s in scores}, rubric)


def average_criterion_scores(
    judgments: Sequence[JudgmentResult],
    rubric: Rubric = DEFAULT_RUBRIC,
) -> dict[str, float]:
    """Mean score per rubric key across judgments (0 where nobody scored it)."""
    collected: dict[str, list[float]] = {key: [] for key in rubric.keys}
    for judgment in judgments:
        for score in judgment.scores:
            if score.criterion in collected:
                collected[score.criterion].append(score.score)
    return {
        key: (math.fsum(values) / len(values) if values else 0.0)
        for key, values in collected.items()
    }


def aggregate_subject(
    subject_id: str,
    subject_name: str,
    judgments: Sequence[JudgmentResult],
    rubric: Rubric = DEFAULT_RUBRIC,
) -> AggregatedResult:
    """Multi-judgment overall for one subject.

    Criteria are averaged across judgments first, then weighted. This is
    not the same as averaging each judgment's overall.
    """
    per_criterion = average_criterion_scores(judgments, rubric)
    scored = {score.criterion for judgment in judgments for score in judgment.scores}
    overall = weighted_average({k: v for k, v in per_criterion.items() if k in scored}, rubric)
    return AggregatedResult(
        subject_id=subject_id,
        subject_name=subject_name,
        per_criterion_average=per_criterion,
        overall_average=overall,
        contributing_judgments=tuple(judgments),
    )


def aggregate_results(
    posts: Sequence[WriterResult],
    judgments: Sequence[JudgmentResult],
    rubric: Rubric = DEFAULT_RUBRIC,
) -> list[AggregatedResult]:
    """Rank posts by aggregated overall score, best first.

    Ties keep input order.
    """
    results = [
        aggregate_subject(
            post.subject_id,
            post.subject_name,
            [j for j in judgments if j.subject_id == post.subject_id],
            rubric,
        )
        for post in posts
    ]
    return sorted(results, key=lambda r: r.overall_average, reverse=True)


def determine_winner(results: Sequence[AggregatedResult]) -> AggregatedResult | None:
    return results[0] if results else None


def average_reported_overall(judgments: Sequence[JudgmentResult]) -> float:
    """Mean of the judges' self-reported totals (diagnostic only)."""
    if not judgments:
        return 0.0
    return math.fsum(j.evaluator_reported_overall for j in judgments) / len(judgments)
