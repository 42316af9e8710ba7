"""Tests for weighted score aggregation."""

from __future__ import annotations

import itertools

import pytest

from conftest import DEFAULT_SCORES, make_judgment
from writeoff.schemas.results import CriterionScore, WriterResult
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric
from writeoff.utils.scoring import (
    aggregate_results,
    aggregate_subject,
    average_criterion_scores,
    average_reported_overall,
    compute_overall_from_scores,
    determine_winner,
    weighted_average,
)


def _post(model_id: str) -> WriterResult:
    return WriterResult(model_id=model_id, friendly_name=model_id.upper(), content="text")


class TestSingleJudgment:
    def test_documented_example(self):
        scores = [CriterionScore(criterion=k, score=v) for k, v in DEFAULT_SCORES.items()]
        assert compute_overall_from_scores(scores) == pytest.approx(71.0)

    def test_uniform_scores(self):
        scores = [CriterionScore(criterion=k, score=88) for k in DEFAULT_RUBRIC.keys]
        assert compute_overall_from_scores(scores) == pytest.approx(88.0)

    def test_missing_criterion_renormalizes(self):
        # narrative (30) and structure (20) only: (80*30 + 70*20) / 50
        values = {"narrative": 80, "structure": 70}
        assert weighted_average(values) == pytest.approx(76.0)

    def test_no_scores(self):
        assert compute_overall_from_scores([]) == 0.0

    def test_unknown_keys_ignored(self):
        assert weighted_average({"humor": 100, "accuracy": 50}) == pytest.approx(50.0)

    def test_weights_need_not_sum_to_100(self):
        rubric = Rubric(weights={"a": 1, "b": 1}, synonyms={})
        assert weighted_average({"a": 60, "b": 90}, rubric) == pytest.approx(75.0)


class TestAggregateSubject:
    def test_criterion_average_first(self):
        flat = {k: 50 for k in DEFAULT_SCORES}
        first = make_judgment({**flat, "narrative": 100, "structure": 1})
        second = make_judgment(flat, evaluator="judge-b")
        result = aggregate_subject("post-1", "Post", [first, second])
        assert result.per_criterion_average["narrative"] == pytest.approx(75.0)
        assert result.per_criterion_average["structure"] == pytest.approx(25.5)
        expected = (75 * 30 + 25.5 * 20 + 50 * 20 + 50 * 15 + 50 * 15) / 100
        assert result.overall_average == pytest.approx(expected)
        assert len(result.contributing_judgments) == 2

    def test_permutation_invariant(self):
        judgments = [
            make_judgment({k: v + i * 2 for k, v in DEFAULT_SCORES.items()}, evaluator=f"j{i}")
            for i in range(4)
        ]
        baseline = aggregate_subject("p", "P", judgments).overall_average
        for perm in itertools.permutations(judgments):
            assert aggregate_subject("p", "P", list(perm)).overall_average == baseline

    def test_zero_judgments_is_zero(self):
        result = aggregate_subject("p", "P", [])
        assert result.overall_average == 0.0
        assert set(result.per_criterion_average.values()) == {0.0}

    def test_unscored_criterion_excluded_from_weights(self):
        partial = make_judgment({"narrative": 80, "structure": 70})
        result = aggregate_subject("p", "P", [partial])
        assert result.per_criterion_average["accuracy"] == 0.0
        assert result.overall_average == pytest.approx(76.0)

    def test_average_criterion_scores_covers_rubric(self):
        averages = average_criterion_scores([make_judgment()])
        assert list(averages) == DEFAULT_RUBRIC.keys


class TestRanking:
    def test_sorted_descending(self):
        posts = [_post("low"), _post("high"), _post("mid")]
        judgments = [
            make_judgment({k: 40 for k in DEFAULT_SCORES}, subject_id="low"),
            make_judgment({k: 90 for k in DEFAULT_SCORES}, subject_id="high"),
            make_judgment({k: 70 for k in DEFAULT_SCORES}, subject_id="mid"),
        ]
        results = aggregate_results(posts, judgments)
        assert [r.subject_id for r in results] == ["high", "mid", "low"]
        assert determine_winner(results).subject_id == "high"

    def test_ties_keep_input_order(self):
        posts = [_post("first"), _post("second")]
        judgments = [
            make_judgment(subject_id="second"),
            make_judgment(subject_id="first"),
        ]
        results = aggregate_results(posts, judgments)
        assert [r.subject_id for r in results] == ["first", "second"]

    def test_post_without_judgments_ranks_last(self):
        posts = [_post("silent"), _post("judged")]
        results = aggregate_results(posts, [make_judgment(subject_id="judged")])
        assert [r.subject_id for r in results] == ["judged", "silent"]
        assert results[1].overall_average == 0.0

    def test_no_subjects_no_winner(self):
        assert aggregate_results([], []) == []
        assert determine_winner([]) is None


class TestReportedOverall:
    def test_average(self):
        judgments = [make_judgment(reported=60), make_judgment(reported=80)]
        assert average_reported_overall(judgments) == pytest.approx(70.0)

    def test_empty(self):
        assert average_reported_overall([]) == 0.0
