"""CLI entry point for Writeoff.

Usage:
    python run.py generate "Why we stopped doing standups"    # All writers, all judges
    python run.py generate -i brief.md -w openrouter:openai/gpt-5.2
    python run.py judge results/20261019-120000/posts/gpt-5-2.md
    python run.py refine draft.md --threshold 85 --keep-best --patience 3
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from writeoff.agents.judge import judge_all_posts, judge_post_with_multiple_judges
from writeoff.agents.writer import generate_posts_from_models
from writeoff.config import Settings, WriteoffSettings, get_settings, get_writeoff_settings
from writeoff.graphs.flywheel import run_flywheel
from writeoff.logging_config import setup_logging
from writeoff.persistence.artifacts import (
    new_session_id,
    save_flywheel_session,
    save_judge_run,
    save_writeoff_session,
)
from writeoff.schemas.flywheel import FlywheelIteration, FlywheelOptions
from writeoff.schemas.model_config import parse_model_list, parse_model_string
from writeoff.schemas.results import WriteoffSession, WriterResult
from writeoff.utils.console import (
    WaveProgress,
    print_error,
    print_flywheel_summary,
    print_header,
    print_info,
    print_iteration,
    print_judge_summary,
    print_langsmith_status,
    print_writeoff_summary,
)
from writeoff.utils.limit import BoundedTaskScheduler
from writeoff.utils.scoring import aggregate_results, aggregate_subject, determine_winner

logger = structlog.get_logger(__name__)


def _threshold(raw: str) -> float:
    value = float(raw)
    if not 1 <= value <= 100:
        raise argparse.ArgumentTypeError("threshold must be between 1 and 100")
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Writeoff: pit writing models against each other and let models judge.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ---- generate ----
    gen = sub.add_parser("generate", help="Generate posts with every writer and judge them.")
    gen.add_argument("prompt", nargs="?", default=None, help="Writing prompt or topic.")
    gen.add_argument("-i", "--input", default=None, help="Read the prompt from a markdown file.")
    gen.add_argument(
        "-w",
        "--writers",
        default=None,
        help="Comma-separated writer models (provider:model-id). Default: WRITER_MODELS.",
    )
    gen.add_argument(
        "-j",
        "--judges",
        default=None,
        help="Comma-separated judge models (provider:model-id). Default: JUDGE_MODELS.",
    )
    gen.add_argument("-o", "--output", default="./results", help="Output directory.")

    # ---- judge ----
    jud = sub.add_parser("judge", help="Judge an existing post.")
    jud.add_argument("file", help="Markdown file with the post to judge.")
    jud.add_argument("-j", "--judges", default=None, help="Comma-separated judge models.")
    jud.add_argument("-o", "--output", default="./results", help="Output directory.")

    # ---- refine ----
    ref = sub.add_parser("refine", help="Iteratively improve a post from judge feedback.")
    ref.add_argument("file", help="Markdown file with the starting post.")
    ref.add_argument("--writer", default=None, help="Writer model used for refinement.")
    ref.add_argument("-j", "--judges", default=None, help="Comma-separated judge models.")
    ref.add_argument(
        "--max-iterations", type=_positive_int, default=None, help="Iteration ceiling."
    )
    ref.add_argument(
        "--threshold", type=_threshold, default=None, help="Stop once the score reaches this (1-100)."
    )
    ref.add_argument(
        "--keep-best",
        action="store_true",
        default=None,
        help="Output the best-scoring iteration instead of the last one.",
    )
    ref.add_argument(
        "--min-improvement",
        type=float,
        default=None,
        help="Points a new iteration must gain over the best to count as better.",
    )
    ref.add_argument(
        "--patience",
        type=int,
        default=None,
        help="Stop after this many iterations without improvement (0 = off).",
    )
    ref.add_argument(
        "--no-diff",
        action="store_true",
        default=False,
        help="Do not write diffs between consecutive iterations.",
    )
    ref.add_argument("-o", "--output", default="./results", help="Output directory.")

    return parser.parse_args(argv)


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8").strip()


def _pick(value, fallback):  # noqa: ANN001, ANN202
    return fallback if value is None else value


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def cmd_generate(
    args: argparse.Namespace, settings: Settings, run_settings: WriteoffSettings
) -> int:
    input_file = None
    if args.input:
        input_file = str(Path(args.input).resolve())
        prompt = _read_text(args.input)
    else:
        prompt = (args.prompt or "").strip()
    if not prompt:
        print_error("A prompt is required. Pass it as an argument or use --input <file>.")
        return 1

    writers = parse_model_list(args.writers or settings.writer_model_list)
    judges = parse_model_list(args.judges or settings.judge_model_list)
    if not writers or not judges:
        raise ValueError("at least one writer and one judge model are required")
    rubric = run_settings.get_rubric()
    scheduler = BoundedTaskScheduler(settings.max_concurrency)

    print_header(
        "Writeoff",
        {
            "Prompt": prompt if len(prompt) <= 100 else prompt[:100] + "...",
            "Writers": ", ".join(w.friendly_name for w in writers),
            "Judges": ", ".join(j.friendly_name for j in judges),
            "Concurrency": str(settings.max_concurrency),
        },
    )
    print_langsmith_status(settings.langchain_tracing_v2)

    with WaveProgress("Writing", total=len(writers)) as progress:
        posts = await generate_posts_from_models(
            writers, prompt, scheduler, on_progress=progress.on_event
        )
    if not posts:
        print_error("Every writer failed; nothing to judge.")
        return 1

    with WaveProgress("Judging", total=len(posts) * len(judges)) as progress:
        batch = await judge_all_posts(
            judges,
            posts,
            scheduler,
            rubric=rubric,
            max_repairs=run_settings.judging.max_repairs,
            divergence_tolerance=run_settings.judging.divergence_tolerance,
            on_progress=progress.on_event,
        )

    results = aggregate_results(posts, batch.judgments, rubric)
    session = WriteoffSession(
        id=new_session_id(),
        prompt=prompt,
        input_file=input_file,
        posts=tuple(posts),
        judgments=batch.judgments,
        failures=batch.failures,
        results=tuple(results),
        winner=determine_winner(results),
    )
    path = save_writeoff_session(session, args.output)
    print_writeoff_summary(session, str(path), rubric)
    return 0


async def cmd_judge(
    args: argparse.Namespace, settings: Settings, run_settings: WriteoffSettings
) -> int:
    content = _read_text(args.file)
    if not content:
        print_error(f"{args.file} is empty.")
        return 1
    judges = parse_model_list(args.judges or settings.judge_model_list)
    if not judges:
        raise ValueError("at least one judge model is required")
    rubric = run_settings.get_rubric()
    scheduler = BoundedTaskScheduler(settings.max_concurrency)
    post = WriterResult(model_id=Path(args.file).stem, friendly_name=Path(args.file).name, content=content)

    print_header(
        "Writeoff: judge",
        {"File": args.file, "Judges": ", ".join(j.friendly_name for j in judges)},
    )
    with WaveProgress("Judging", total=len(judges)) as progress:
        batch = await judge_post_with_multiple_judges(
            judges,
            post,
            scheduler,
            rubric=rubric,
            max_repairs=run_settings.judging.max_repairs,
            divergence_tolerance=run_settings.judging.divergence_tolerance,
            on_progress=progress.on_event,
        )

    result = aggregate_subject(post.subject_id, post.subject_name, batch.judgments, rubric)
    path = save_judge_run(
        content, str(Path(args.file).resolve()), batch.judgments, batch.failures, result, args.output
    )
    print_judge_summary(result, batch.judgments, batch.failures, str(path), rubric)
    return 0 if batch.judgments else 1


async def cmd_refine(
    args: argparse.Namespace, settings: Settings, run_settings: WriteoffSettings
) -> int:
    content = _read_text(args.file)
    fw = run_settings.flywheel
    options = FlywheelOptions(
        initial_text=content,
        writer_model=args.writer or fw.writer,
        judge_models=[str(j) for j in parse_model_list(args.judges or settings.judge_model_list)],
        max_iterations=_pick(args.max_iterations, fw.max_iterations),
        threshold=_pick(args.threshold, fw.threshold),
        keep_best=_pick(args.keep_best, fw.keep_best),
        min_improvement=_pick(args.min_improvement, fw.min_improvement),
        patience=_pick(args.patience, fw.patience),
        max_repairs=run_settings.judging.max_repairs,
        divergence_tolerance=run_settings.judging.divergence_tolerance,
        rubric=run_settings.get_rubric(),
    )
    writer = parse_model_string(options.writer_model)

    print_header(
        "Writeoff: refine",
        {
            "File": args.file,
            "Writer": writer.friendly_name,
            "Judges": ", ".join(m.split(":", 1)[-1] for m in options.judge_models),
            "Max Iterations": str(options.max_iterations),
            "Threshold": f"{options.threshold:g}",
            "Keep Best": "yes" if options.keep_best else "no",
            "Patience": str(options.patience) if options.patience else "off",
        },
    )

    def on_iteration(iteration: FlywheelIteration, best_score: float, best_index: int) -> None:
        print_iteration(iteration, best_score, best_index, options.max_iterations)

    session = await run_flywheel(
        options,
        on_iteration=on_iteration,
        scheduler=BoundedTaskScheduler(settings.max_concurrency),
    )
    path = save_flywheel_session(
        session,
        args.output,
        write_diffs=fw.diff and not args.no_diff,
        diff_context=fw.diff_context,
    )
    print_flywheel_summary(session, str(path))
    return 0


COMMANDS = {
    "generate": cmd_generate,
    "judge": cmd_judge,
    "refine": cmd_refine,
}


async def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        # pydantic ValidationError is a ValueError
        settings = get_settings()
        setup_logging(settings.log_level, json_logs=settings.log_json)
        run_settings = get_writeoff_settings()
        settings.validate_api_keys()
        for key in settings.missing_api_keys():
            print_info(f"{key} is not set; models from that provider will fail.")
        return await COMMANDS[args.command](args, settings, run_settings)
    except OSError as exc:
        print_error(f"Could not read input: {exc}")
        return 1
    except ValueError as exc:
        logger.debug("configuration_error", error=str(exc))
        print_error(str(exc))
        return 1


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
