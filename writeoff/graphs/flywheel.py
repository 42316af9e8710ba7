"""Flywheel Graph: iterative judge → refine loop for a single post.

  START → evaluate → decide ──→ END (stop_reason set)
              ↑          │
              └─ refine ←┘

evaluate: fan the current candidate out to every judge (one wave) and
          score it with the multi-judge aggregate.
decide:   update best-seen tracking, then check stop conditions in order:
          threshold, no_improvement (patience), max_iterations.
refine:   turn the iteration's judgments into feedback and ask the writer
          for a new candidate.

Iterations run strictly one after another; the iteration log in the graph
state is append-only and only the evaluate node adds to it.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Literal

import structlog
from langgraph.graph import END, START, StateGraph

from writeoff.agents.judge import judge_post_with_multiple_judges
from writeoff.agents.writer import format_feedback_for_writer, refine_post
from writeoff.config import get_settings
from writeoff.schemas.flywheel import (
    FlywheelIteration,
    FlywheelOptions,
    FlywheelSession,
    StopReason,
)
from writeoff.schemas.model_config import ModelConfig, parse_model_list, parse_model_string
from writeoff.schemas.results import WriterResult
from writeoff.schemas.state import FlywheelState
from writeoff.utils.limit import BoundedTaskScheduler, TaskObserver
from writeoff.utils.scoring import aggregate_subject, average_reported_overall

logger = structlog.get_logger(__name__)

IterationCallback = Callable[[FlywheelIteration, float, int], None]
Route = Literal["refine", "done"]


# ---------------------------------------------------------------------------
# Pure decision helpers
# ---------------------------------------------------------------------------


def update_best(
    best_score: float,
    best_iteration_index: int,
    stale_count: int,
    score: float,
    index: int,
    min_improvement: float = 0,
) -> tuple[float, int, int]:
    """Return (best_score, best_iteration_index, stale_count) after ``score``.

    The first iteration always becomes the best. Later ones replace it only
    when they beat ``best_score + min_improvement``.
    """
    if best_iteration_index == 0 or score > best_score + min_improvement:
        return score, index, 0
    return best_score, best_iteration_index, stale_count + 1


def check_stop(
    score: float,
    index: int,
    stale_count: int,
    *,
    threshold: float,
    patience: int,
    max_iterations: int,
) -> StopReason | None:
    if score >= threshold:
        return StopReason.THRESHOLD
    if patience > 0 and stale_count >= patience:
        return StopReason.NO_IMPROVEMENT
    if index >= max_iterations:
        return StopReason.MAX_ITERATIONS
    return None


def flywheel_router(state: FlywheelState) -> Route:
    return "done" if state.get("stop_reason") else "refine"


_FLYWHEEL_EDGES = {"refine": "refine", "done": END}


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def build_flywheel_graph(
    options: FlywheelOptions,
    writer: ModelConfig,
    judges: list[ModelConfig],
    scheduler: BoundedTaskScheduler,
    on_iteration: IterationCallback | None = None,
    on_judge_progress: TaskObserver | None = None,
):
    """Build and compile the flywheel graph for one run.

    Args:
        options: Validated run options (thresholds, patience, rubric, ...).
        writer: Model that rewrites the post.
        judges: Models that score each candidate.
        scheduler: Shared concurrency ceiling for judge calls.
        on_iteration: Called synchronously after each iteration is scored,
            with (iteration, best_score, best_iteration_index).
        on_judge_progress: Per-judge-call observer passed to the scheduler.
    """
    rubric = options.rubric

    async def evaluate_node(state: FlywheelState) -> dict:
        index = state["iteration_index"]
        text = state["candidate_text"]
        subject = WriterResult(
            model_id=f"iteration-{index}",
            friendly_name=f"Iteration {index}",
            content=text,
        )
        batch = await judge_post_with_multiple_judges(
            judges,
            subject,
            scheduler,
            rubric=rubric,
            max_repairs=options.max_repairs,
            divergence_tolerance=options.divergence_tolerance,
            on_progress=on_judge_progress,
        )
        aggregate = aggregate_subject(
            subject.subject_id, subject.subject_name, batch.judgments, rubric
        )
        iteration = FlywheelIteration(
            index=index,
            candidate_text=text,
            judgments=batch.judgments,
            failures=batch.failures,
            computed_score=aggregate.overall_average,
            evaluator_reported_score_average=average_reported_overall(batch.judgments),
        )
        logger.info(
            "flywheel_iteration_scored",
            iteration=index,
            score=round(iteration.computed_score, 2),
            judgments=len(batch.judgments),
            failures=len(batch.failures),
        )
        return {"iterations": [iteration], "last_score": iteration.computed_score}

    def decide_node(state: FlywheelState) -> dict:
        iteration = state["iterations"][-1]
        best_score, best_index, stale = update_best(
            state.get("best_score", 0.0),
            state.get("best_iteration_index", 0),
            state.get("stale_count", 0),
            iteration.computed_score,
            iteration.index,
            options.min_improvement,
        )
        reason = check_stop(
            iteration.computed_score,
            iteration.index,
            stale,
            threshold=options.threshold,
            patience=options.patience,
            max_iterations=options.max_iterations,
        )
        if on_iteration:
            on_iteration(iteration, best_score, best_index)
        if reason:
            logger.info(
                "flywheel_stopped",
                reason=str(reason),
                iteration=iteration.index,
                best_score=round(best_score, 2),
                best_iteration=best_index,
            )
        return {
            "best_score": best_score,
            "best_iteration_index": best_index,
            "stale_count": stale,
            "stop_reason": reason.value if reason else None,
        }

    async def refine_node(state: FlywheelState) -> dict:
        iteration = state["iterations"][-1]
        feedback = format_feedback_for_writer(
            iteration.judgments, iteration.computed_score, rubric
        )
        new_text = await refine_post(iteration.candidate_text, writer, feedback)
        return {"candidate_text": new_text, "iteration_index": iteration.index + 1}

    builder = StateGraph(FlywheelState)

    # ---- Nodes ----
    # No graph-level retry: transient provider errors are retried in models.py
    builder.add_node("evaluate", evaluate_node)
    builder.add_node("decide", decide_node)
    builder.add_node("refine", refine_node)

    # ---- Edges ----
    builder.add_edge(START, "evaluate")
    builder.add_edge("evaluate", "decide")
    builder.add_conditional_edges("decide", flywheel_router, _FLYWHEEL_EDGES)
    builder.add_edge("refine", "evaluate")

    return builder.compile()


def _new_session_id() -> str:
    stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace("+00-00", "Z")
    return f"flywheel-{stamp}"


async def run_flywheel(
    options: FlywheelOptions,
    *,
    on_iteration: IterationCallback | None = None,
    on_judge_progress: TaskObserver | None = None,
    scheduler: BoundedTaskScheduler | None = None,
) -> FlywheelSession:
    """Refine ``options.initial_text`` until a stop condition is met.

    Raises:
        ValueError: If the writer or judge model strings are invalid.
        Exception: Whatever the writer raises during refinement; judge
            failures do not abort the run.
    """
    writer = parse_model_string(options.writer_model)
    judges = parse_model_list(options.judge_models)
    if not judges:
        raise ValueError("at least one judge model is required")
    if scheduler is None:
        scheduler = BoundedTaskScheduler(get_settings().max_concurrency)

    started_at = datetime.now(timezone.utc)
    session_id = _new_session_id()
    logger.info(
        "flywheel_started",
        session_id=session_id,
        writer=writer.friendly_name,
        judges=[j.friendly_name for j in judges],
        max_iterations=options.max_iterations,
        threshold=options.threshold,
    )

    graph = build_flywheel_graph(
        options, writer, judges, scheduler, on_iteration, on_judge_progress
    )
    initial_state: FlywheelState = {
        "candidate_text": options.initial_text,
        "iteration_index": 1,
        "best_score": 0.0,
        "best_iteration_index": 0,
        "stale_count": 0,
        "stop_reason": None,
        "iterations": [],
    }
    final_state = await graph.ainvoke(
        initial_state, {"recursion_limit": 3 * options.max_iterations + 10}
    )

    iterations = list(final_state["iterations"])
    best_index = final_state["best_iteration_index"]
    chosen = iterations[best_index - 1] if options.keep_best else iterations[-1]

    return FlywheelSession(
        id=session_id,
        original_text=options.initial_text,
        writer_model=str(writer),
        judge_models=[str(j) for j in judges],
        iterations=iterations,
        best_score=final_state["best_score"],
        best_iteration_index=best_index,
        final_text=chosen.candidate_text,
        final_score=chosen.computed_score,
        stop_reason=StopReason(final_state["stop_reason"]),
        keep_best=options.keep_best,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )
