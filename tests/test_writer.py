"""Tests for the writer agent (generation mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from conftest import DEFAULT_SCORES, make_judgment
from writeoff.agents.writer import (
    build_writer_prompt,
    format_feedback_for_writer,
    generate_posts_from_models,
    refine_post,
)
from writeoff.prompts.templates import FEEDBACK_CLOSING, REFINEMENT_SYSTEM
from writeoff.schemas.results import CriterionScore, JudgmentResult
from writeoff.utils.limit import BoundedTaskScheduler


class TestBuildWriterPrompt:
    def test_topic_only(self):
        assert "Write a blog post about: tide pools" in build_writer_prompt("tide pools")

    def test_expand_existing_draft(self):
        prompt = build_writer_prompt("tide pools", existing_content="Draft body")
        assert "Draft body" in prompt
        assert '"tide pools"' in prompt


class TestGeneratePosts:
    @pytest.mark.asyncio
    async def test_failed_writer_dropped(self, judge_model, other_judge_model):
        async def fake_generate(model, system_prompt, user_prompt):
            if model.model_id == other_judge_model.model_id:
                raise RuntimeError("provider down")
            return "A finished post."

        with patch("writeoff.agents.writer.generate", AsyncMock(side_effect=fake_generate)):
            posts = await generate_posts_from_models(
                [judge_model, other_judge_model], "tide pools", BoundedTaskScheduler(2)
            )
        assert len(posts) == 1
        assert posts[0].model_id == judge_model.model_id
        assert posts[0].friendly_name == "GPT 5.2"
        assert posts[0].content == "A finished post."

    @pytest.mark.asyncio
    async def test_all_writers_in_input_order(self, judge_model, other_judge_model):
        mock_generate = AsyncMock(side_effect=["first", "second"])
        with patch("writeoff.agents.writer.generate", mock_generate):
            posts = await generate_posts_from_models(
                [judge_model, other_judge_model], "topic", BoundedTaskScheduler(1)
            )
        assert [p.content for p in posts] == ["first", "second"]


# ---------------------------------------------------------------------------
# Feedback synthesis
# ---------------------------------------------------------------------------


class TestFormatFeedback:
    def test_no_judgments(self):
        assert format_feedback_for_writer([], 0.0) == "No feedback available."

    def test_average_range_and_attribution(self):
        first = make_judgment({**DEFAULT_SCORES, "narrative": 60}, evaluator="alpha")
        second = make_judgment(evaluator="beta")
        text = format_feedback_for_writer([first, second], 68.5)

        assert text.startswith("# Judge Feedback Summary\n\nOverall Score: 68.5/100\n\n")
        assert "## Narrative Flow\nAverage Score: 70.0/100 (range: 60-80)\n" in text
        assert "- [Alpha]: narrative note\n" in text
        assert "- [Beta]: narrative note\n" in text
        assert text.endswith(FEEDBACK_CLOSING)

    def test_sections_follow_rubric_order(self):
        text = format_feedback_for_writer([make_judgment()], 71.0)
        positions = [
            text.index(f"## {label}")
            for label in ("Narrative Flow", "Structure", "Audience Fit", "Accuracy", "AI Detection")
        ]
        assert positions == sorted(positions)

    def test_blank_feedback_omitted(self):
        judgment = JudgmentResult(
            evaluator_id="judge-a",
            evaluator_name="Judge A",
            subject_id="post-1",
            scores=(CriterionScore(criterion="narrative", score=75, feedback="   "),),
            evaluator_reported_overall=75,
            computed_overall=75,
        )
        text = format_feedback_for_writer([judgment], 75.0)
        assert "## Narrative Flow\nAverage Score: 75.0/100 (range: 75-75)\n" in text
        assert "Feedback:" not in text
        assert "## Structure" not in text


class TestRefinePost:
    @pytest.mark.asyncio
    async def test_sends_post_and_feedback(self, judge_model):
        mock_generate = AsyncMock(return_value="Improved post")
        with patch("writeoff.agents.writer.generate", mock_generate):
            result = await refine_post("Old post", judge_model, "Fix the intro")
        assert result == "Improved post"
        model, system_prompt, user_prompt = mock_generate.await_args.args
        assert model is judge_model
        assert system_prompt == REFINEMENT_SYSTEM
        assert "Old post" in user_prompt
        assert "Fix the intro" in user_prompt
