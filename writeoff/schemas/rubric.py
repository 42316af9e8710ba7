"""Scoring rubric: the named, weighted criteria every judge scores against.

The rubric is passed explicitly to the judgment parser and the score
aggregator, so alternate rubrics can be used side by side.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Criterion(StrEnum):
    NARRATIVE = "narrative"
    STRUCTURE = "structure"
    AUDIENCE_FIT = "audienceFit"
    ACCURACY = "accuracy"
    AI_DETECTION = "aiDetection"


CRITERION_LABELS: dict[str, str] = {
    Criterion.NARRATIVE: "Narrative Flow",
    Criterion.STRUCTURE: "Structure",
    Criterion.AUDIENCE_FIT: "Audience Fit",
    Criterion.ACCURACY: "Accuracy",
    Criterion.AI_DETECTION: "AI Detection",
}

DEFAULT_WEIGHTS: dict[str, float] = {
    Criterion.NARRATIVE.value: 30,
    Criterion.STRUCTURE.value: 20,
    Criterion.AUDIENCE_FIT.value: 20,
    Criterion.ACCURACY.value: 15,
    Criterion.AI_DETECTION.value: 15,
}

# Normalized alias -> rubric key. Canonical keys and their display labels
# resolve on their own; these are the extra names judges have been seen to use.
DEFAULT_SYNONYMS: dict[str, str] = {
    "flow": Criterion.NARRATIVE.value,
    "narrativeflow": Criterion.NARRATIVE.value,
    "audience": Criterion.AUDIENCE_FIT.value,
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(name: str) -> str:
    """Lower-case and strip everything except letters and digits."""
    return _NON_ALNUM.sub("", name.lower())


class Rubric(BaseModel):
    """Weighted criteria plus the alias table used to recognize them."""

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    synonyms: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SYNONYMS))

    @model_validator(mode="after")
    def _check(self) -> Rubric:
        if not self.weights:
            raise ValueError("rubric must define at least one criterion")
        for key, weight in self.weights.items():
            if not weight > 0:
                raise ValueError(f"weight for {key!r} must be positive, got {weight}")
        for alias, key in self.synonyms.items():
            if key not in self.weights:
                raise ValueError(f"synonym {alias!r} points at unknown criterion {key!r}")
        return self

    @property
    def keys(self) -> list[str]:
        return list(self.weights)

    def weight(self, key: str) -> float:
        return self.weights[key]

    def label(self, key: str) -> str:
        return CRITERION_LABELS.get(key, key[:1].upper() + key[1:])

    def resolve(self, name: str) -> str | None:
        """Map a judge-supplied criterion name to a rubric key, or None."""
        normalized = normalize_name(name)
        if not normalized:
            return None
        for key in self.weights:
            if normalize_name(key) == normalized or normalize_name(self.label(key)) == normalized:
                return key
        target = self.synonyms.get(normalized)
        if target is None:
            # Aliases may be written in any case in writeoff.toml
            for alias, key in self.synonyms.items():
                if normalize_name(alias) == normalized:
                    return key
        return target


DEFAULT_RUBRIC = Rubric()
