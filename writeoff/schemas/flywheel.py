"""Flywheel (iterative refine/judge loop) options and session records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from writeoff.schemas.results import EvaluationFailure, JudgmentResult, utc_now
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric


class StopReason(StrEnum):
    THRESHOLD = "threshold"
    NO_IMPROVEMENT = "no_improvement"
    MAX_ITERATIONS = "max_iterations"


class FlywheelOptions(BaseModel):
    """Validated inputs for one flywheel run.

    Invalid values raise pydantic.ValidationError where the options are
    built, before any model is called.
    """

    initial_text: str = Field(..., min_length=1)
    writer_model: str
    judge_models: list[str] = Field(..., min_length=1)
    max_iterations: int = Field(default=100, ge=1)
    threshold: float = Field(default=90, ge=1, le=100)
    keep_best: bool = False
    min_improvement: float = Field(default=0, ge=0)
    patience: int = Field(default=0, ge=0)
    max_repairs: int = Field(default=1, ge=0)
    divergence_tolerance: float = Field(default=5.0, gt=0)
    rubric: Rubric = Field(default_factory=lambda: DEFAULT_RUBRIC)

    @field_validator("initial_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("initial text must not be blank")
        return value


class FlywheelIteration(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1)
    candidate_text: str
    judgments: tuple[JudgmentResult, ...] = ()
    failures: tuple[EvaluationFailure, ...] = ()
    computed_score: float
    evaluator_reported_score_average: float


class FlywheelSession(BaseModel):
    id: str
    original_text: str
    writer_model: str
    judge_models: list[str] = Field(default_factory=list)
    iterations: list[FlywheelIteration] = Field(default_factory=list)
    best_score: float = 0
    best_iteration_index: int = 0
    final_text: str = ""
    final_score: float = 0
    stop_reason: StopReason
    keep_best: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime = Field(default_factory=utc_now)

    @property
    def starting_score(self) -> float:
        return self.iterations[0].computed_score if self.iterations else 0
