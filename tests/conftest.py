"""Shared test fixtures."""

from __future__ import annotations

import json
import os

import pytest

# Ensure tests don't accidentally call real APIs
os.environ.setdefault("OPENROUTER_API_KEY", "test-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("WRITEOFF_CONFIG", os.path.join(os.path.dirname(__file__), "missing.toml"))

from writeoff.schemas.model_config import parse_model_string  # noqa: E402
from writeoff.schemas.results import CriterionScore, JudgmentResult  # noqa: E402
from writeoff.utils.scoring import compute_overall_from_scores  # noqa: E402

DEFAULT_SCORES = {
    "narrative": 80,
    "structure": 70,
    "audienceFit": 60,
    "accuracy": 90,
    "aiDetection": 50,
}


def judge_json(scores: dict[str, float] | None = None, overall: float = 71, **extra) -> str:
    """Build a judge reply in the expected JSON shape."""
    scores = DEFAULT_SCORES if scores is None else scores
    payload = {
        "scores": [
            {"criterion": name, "score": value, "feedback": f"{name} feedback"}
            for name, value in scores.items()
        ],
        "overallScore": overall,
    }
    payload.update(extra)
    return json.dumps(payload)


def make_judgment(
    scores: dict[str, float] | None = None,
    evaluator: str = "judge-a",
    subject_id: str = "post-1",
    reported: float = 70,
) -> JudgmentResult:
    scores = DEFAULT_SCORES if scores is None else scores
    entries = tuple(
        CriterionScore(criterion=name, score=value, feedback=f"{name} note")
        for name, value in scores.items()
    )
    return JudgmentResult(
        evaluator_id=evaluator,
        evaluator_name=evaluator.title(),
        subject_id=subject_id,
        scores=entries,
        evaluator_reported_overall=reported,
        computed_overall=compute_overall_from_scores(entries),
    )


@pytest.fixture
def judge_model():
    return parse_model_string("openrouter:openai/gpt-5.2")


@pytest.fixture
def other_judge_model():
    return parse_model_string("openrouter:google/gemini-2.5-flash")
