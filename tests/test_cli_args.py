"""Tests for CLI argument parsing and command exit codes."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import judge_json
from run import parse_args, run


class TestGenerateArgs:
    def test_prompt_positional(self):
        args = parse_args(["generate", "Why standups fail"])
        assert args.command == "generate"
        assert args.prompt == "Why standups fail"
        assert args.input is None
        assert args.output == "./results"

    def test_model_overrides(self):
        args = parse_args(["generate", "-i", "brief.md", "-w", "openrouter:a/b", "-j", "anthropic:c"])
        assert args.prompt is None
        assert args.input == "brief.md"
        assert args.writers == "openrouter:a/b"
        assert args.judges == "anthropic:c"


class TestRefineArgs:
    def test_defaults_left_to_config(self):
        args = parse_args(["refine", "draft.md"])
        assert args.max_iterations is None
        assert args.threshold is None
        assert args.keep_best is None
        assert args.patience is None
        assert args.no_diff is False

    def test_all_flags(self):
        args = parse_args(
            [
                "refine",
                "draft.md",
                "--writer",
                "anthropic:claude-opus-4-0520",
                "--max-iterations",
                "5",
                "--threshold",
                "85",
                "--keep-best",
                "--min-improvement",
                "1.5",
                "--patience",
                "2",
                "--no-diff",
            ]
        )
        assert args.max_iterations == 5
        assert args.threshold == 85
        assert args.keep_best is True
        assert args.min_improvement == 1.5
        assert args.patience == 2
        assert args.no_diff is True

    @pytest.mark.parametrize(
        "flags",
        [["--threshold", "0"], ["--threshold", "101"], ["--max-iterations", "0"]],
    )
    def test_out_of_range_rejected(self, flags):
        with pytest.raises(SystemExit):
            parse_args(["refine", "draft.md", *flags])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


# ---------------------------------------------------------------------------
# Exit codes (model calls mocked)
# ---------------------------------------------------------------------------


class TestRunExitCodes:
    @pytest.mark.asyncio
    async def test_generate_without_prompt(self):
        assert await run(["generate"]) == 1

    @pytest.mark.asyncio
    async def test_invalid_concurrency_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WRITEOFF_MAX_CONCURRENCY", "0")
        mock_generate = AsyncMock(return_value=judge_json())
        with patch("writeoff.utils.structured_output.generate", mock_generate):
            assert await run(["generate", "topic", "-o", str(tmp_path)]) == 1
        mock_generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        assert await run(["judge", str(tmp_path / "missing.md")]) == 1

    @pytest.mark.asyncio
    async def test_bad_model_string(self, tmp_path):
        post = tmp_path / "post.md"
        post.write_text("A post.", encoding="utf-8")
        assert await run(["judge", str(post), "-j", "nowhere:model"]) == 1

    @pytest.mark.asyncio
    async def test_judge_success_writes_artifacts(self, tmp_path):
        post = tmp_path / "post.md"
        post.write_text("A post.", encoding="utf-8")
        out = tmp_path / "out"
        mock_generate = AsyncMock(return_value=judge_json())
        with patch("writeoff.utils.structured_output.generate", mock_generate):
            code = await run(["judge", str(post), "-j", "openrouter:openai/gpt-5.2", "-o", str(out)])
        assert code == 0
        (run_dir,) = out.iterdir()
        summary = json.loads((run_dir / "summary.json").read_text())
        assert summary["overall_average"] == pytest.approx(71.0)
        assert (run_dir / "judgments" / "gpt-5-2.json").exists()

    @pytest.mark.asyncio
    async def test_judge_all_failed(self, tmp_path):
        post = tmp_path / "post.md"
        post.write_text("A post.", encoding="utf-8")
        out = tmp_path / "out"
        mock_generate = AsyncMock(return_value="not json")
        with patch("writeoff.utils.structured_output.generate", mock_generate):
            code = await run(["judge", str(post), "-j", "openrouter:openai/gpt-5.2", "-o", str(out)])
        assert code == 1
        (run_dir,) = out.iterdir()
        assert (run_dir / "failures.json").exists()
