"""Evidence records produced by writers, judges and the aggregator.

Everything here is frozen: a judgment or failure is produced once and
never edited afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())


class WriterResult(_Record):
    """A subject: one candidate post from one writer."""

    model_id: str
    friendly_name: str
    content: str
    generated_at: datetime = Field(default_factory=utc_now)

    @property
    def subject_id(self) -> str:
        return self.model_id

    @property
    def subject_name(self) -> str:
        return self.friendly_name


class CriterionScore(_Record):
    criterion: str
    score: float = Field(..., ge=1, le=100)
    feedback: str = ""


class JudgmentResult(_Record):
    evaluator_id: str
    evaluator_name: str
    subject_id: str
    scores: tuple[CriterionScore, ...]
    evaluator_reported_overall: float
    computed_overall: float
    warnings: tuple[str, ...] = ()
    timestamp: datetime = Field(default_factory=utc_now)

    def score_for(self, criterion: str) -> CriterionScore | None:
        for score in self.scores:
            if score.criterion == criterion:
                return score
        return None


class EvaluationFailure(_Record):
    evaluator_id: str
    evaluator_name: str
    subject_id: str
    error_description: str
    timestamp: datetime = Field(default_factory=utc_now)


class EvaluationBatch(_Record):
    """Outcome of one wave of judge calls."""

    judgments: tuple[JudgmentResult, ...] = ()
    failures: tuple[EvaluationFailure, ...] = ()


class AggregatedResult(_Record):
    subject_id: str
    subject_name: str
    per_criterion_average: dict[str, float]
    overall_average: float
    contributing_judgments: tuple[JudgmentResult, ...] = ()


class WriteoffSession(_Record):
    """Outcome of a generate run: posts, judgments, rankings and winner."""

    id: str
    prompt: str
    input_file: str | None = None
    posts: tuple[WriterResult, ...] = ()
    judgments: tuple[JudgmentResult, ...] = ()
    failures: tuple[EvaluationFailure, ...] = ()
    results: tuple[AggregatedResult, ...] = ()
    winner: AggregatedResult | None = None
    created_at: datetime = Field(default_factory=utc_now)
