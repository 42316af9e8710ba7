"""Tests for prompt templates and the rubric they are built from."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from writeoff.prompts.templates import (
    CRITERION_GUIDANCE,
    JUDGE_TASK,
    REPAIR_TASK,
    build_judge_prompt,
    format_criteria,
    judge_schema_hint,
)
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric, normalize_name


class TestRubric:
    def test_default_keys_in_order(self):
        assert DEFAULT_RUBRIC.keys == ["narrative", "structure", "audienceFit", "accuracy", "aiDetection"]

    @pytest.mark.parametrize(
        "name, key",
        [
            ("narrative", "narrative"),
            ("Narrative Flow", "narrative"),
            ("flow", "narrative"),
            ("audience_fit", "audienceFit"),
            ("Audience", "audienceFit"),
            ("AI Detection", "aiDetection"),
        ],
    )
    def test_resolve(self, name, key):
        assert DEFAULT_RUBRIC.resolve(name) == key

    @pytest.mark.parametrize("name", ["humor", "", "  "])
    def test_unresolved(self, name):
        assert DEFAULT_RUBRIC.resolve(name) is None

    def test_normalize_name(self):
        assert normalize_name(" Audience-Fit ") == "audiencefit"

    @pytest.mark.parametrize(
        "weights, synonyms",
        [
            ({}, {}),
            ({"a": 0}, {}),
            ({"a": 1}, {"b": "missing"}),
        ],
    )
    def test_invalid_rubric(self, weights, synonyms):
        with pytest.raises(ValidationError):
            Rubric(weights=weights, synonyms=synonyms)

    def test_label_for_custom_key(self):
        assert Rubric(weights={"clarity": 1}, synonyms={}).label("clarity") == "Clarity"


class TestJudgePrompt:
    def test_criteria_listed_with_weights(self):
        text = format_criteria(DEFAULT_RUBRIC)
        assert text.startswith("1. **Narrative Flow (weight: 30%)**")
        assert "5. **AI Detection (weight: 15%)**" in text

    def test_weights_shown_as_shares(self):
        text = format_criteria(Rubric(weights={"clarity": 1, "depth": 3}, synonyms={}))
        assert "Clarity (weight: 25%)" in text
        assert "Depth (weight: 75%)" in text

    def test_every_default_criterion_has_guidance(self):
        assert set(CRITERION_GUIDANCE) == set(DEFAULT_RUBRIC.keys)

    def test_build_judge_prompt(self):
        prompt = build_judge_prompt("The post body", DEFAULT_RUBRIC)
        assert "The post body" in prompt
        assert "an array of 5 objects" in prompt
        assert '"aiDetection"' in prompt
        assert "{post}" in JUDGE_TASK

    def test_schema_hint_names_criteria(self):
        hint = judge_schema_hint(DEFAULT_RUBRIC)
        assert '"overallScore"' in hint
        assert '"narrative", "structure"' in hint

    def test_repair_template_fields(self):
        text = REPAIR_TASK.format(
            instruction="INSTR", invalid_response="BAD", error="ERR", schema_hint="HINT"
        )
        for part in ("INSTR", "BAD", "ERR", "HINT"):
            assert part in text
