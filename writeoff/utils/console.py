"""Rich console output: banners, wave progress bars and run summaries."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from writeoff.schemas.flywheel import FlywheelIteration, FlywheelSession
from writeoff.schemas.results import (
    AggregatedResult,
    EvaluationFailure,
    JudgmentResult,
    WriteoffSession,
)
from writeoff.schemas.rubric import DEFAULT_RUBRIC, Rubric
from writeoff.utils.limit import TaskStatus

console = Console()

STATUS_STYLES = {
    "start": "yellow",
    "done": "green",
    "error": "red",
}


def print_header(title: str, fields: dict[str, str]) -> None:
    """Print the startup banner for a command."""
    body = "\n".join(f"  {name}: [cyan]{value}[/cyan]" for name, value in fields.items())
    console.print()
    console.print(
        Panel(
            f"[bold]{title}[/bold]\n\n{body}",
            border_style="bright_blue",
            padding=(1, 2),
        )
    )
    console.print()


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"  [dim]{message}[/dim]")


def print_error(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_langsmith_status(enabled: bool) -> None:
    """Print LangSmith tracing status."""
    if enabled:
        console.print("  [green]LangSmith tracing: enabled[/green]")
    else:
        console.print("  [dim]LangSmith tracing: disabled[/dim]")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class WaveProgress:
    """Progress bar for one wave of concurrent calls.

    Use as a context manager and pass ``on_event`` to the scheduler:

        with WaveProgress("Judging", total=6) as progress:
            await scheduler.run(factories, labels, on_event=progress.on_event)
    """

    def __init__(self, description: str, total: int) -> None:
        self._description = description
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("{task.fields[status]}"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id = self._progress.add_task(description, total=total, status="")
        self.errors = 0

    def __enter__(self) -> WaveProgress:
        self._progress.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._progress.stop()

    def on_event(self, label: str, status: TaskStatus) -> None:
        style = STATUS_STYLES.get(status, "white")
        text = f"[{style}]{label}: {status}[/{style}]"
        if status == "start":
            self._progress.update(self._task_id, status=text)
            return
        if status == "error":
            self.errors += 1
        self._progress.update(self._task_id, advance=1, status=text)


def print_iteration(
    iteration: FlywheelIteration,
    best_score: float,
    best_iteration_index: int,
    max_iterations: int,
) -> None:
    """One line per flywheel iteration."""
    marker = " [green]★ best[/green]" if best_iteration_index == iteration.index else ""
    failures = (
        f" [red]({len(iteration.failures)} judge failures)[/red]" if iteration.failures else ""
    )
    console.print(
        f"  Iteration {iteration.index}/{max_iterations}: "
        f"[bold]{iteration.computed_score:.1f}[/bold]/100 "
        f"(best {best_score:.1f} @ {best_iteration_index}){marker}{failures}"
    )


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def _failures_table(failures: Sequence[EvaluationFailure]) -> Table:
    table = Table(title="Failed evaluations", title_style="bold red")
    table.add_column("Judge")
    table.add_column("Subject")
    table.add_column("Error", overflow="fold")
    for failure in failures:
        table.add_row(failure.evaluator_name, failure.subject_id, failure.error_description)
    return table


def _breakdown_table(result: AggregatedResult, rubric: Rubric) -> Table:
    total = sum(rubric.weights.values())
    table = Table(title=f"Breakdown: {result.subject_name}")
    table.add_column("Criterion")
    table.add_column("Weight", justify="right")
    table.add_column("Average", justify="right")
    for key in rubric.keys:
        table.add_row(
            rubric.label(key),
            f"{rubric.weight(key) / total * 100:.0f}%",
            f"{result.per_criterion_average.get(key, 0.0):.1f}",
        )
    table.add_row("[bold]Overall[/bold]", "", f"[bold]{result.overall_average:.1f}[/bold]")
    return table


def print_writeoff_summary(
    session: WriteoffSession,
    output_path: str,
    rubric: Rubric = DEFAULT_RUBRIC,
) -> None:
    """Rankings, the winner's per-criterion breakdown, and any failures."""
    rankings = Table(title="Rankings")
    rankings.add_column("#", justify="right")
    rankings.add_column("Writer")
    rankings.add_column("Score", justify="right")
    rankings.add_column("Judgments", justify="right")
    for position, result in enumerate(session.results, start=1):
        rankings.add_row(
            str(position),
            result.subject_name,
            f"{result.overall_average:.1f}",
            str(len(result.contributing_judgments)),
        )

    console.print()
    console.print(rankings)
    if session.winner is not None:
        console.print()
        console.print(
            f"  [bold green]Winner: {session.winner.subject_name} "
            f"({session.winner.overall_average:.1f}/100)[/bold green]"
        )
        console.print(_breakdown_table(session.winner, rubric))
    else:
        console.print("  [yellow]No posts were generated.[/yellow]")
    if session.failures:
        console.print(_failures_table(session.failures))
    console.print()
    print_info(f"Results saved to {output_path}")


def print_judge_summary(
    result: AggregatedResult,
    judgments: Sequence[JudgmentResult],
    failures: Sequence[EvaluationFailure],
    output_path: str,
    rubric: Rubric = DEFAULT_RUBRIC,
) -> None:
    """Per-judge overalls and the aggregated breakdown for one post."""
    table = Table(title="Judgments")
    table.add_column("Judge")
    table.add_column("Computed", justify="right")
    table.add_column("Reported", justify="right")
    table.add_column("Warnings", overflow="fold")
    for judgment in judgments:
        table.add_row(
            judgment.evaluator_name,
            f"{judgment.computed_overall:.1f}",
            f"{judgment.evaluator_reported_overall:g}",
            "; ".join(judgment.warnings),
        )
    console.print()
    console.print(table)
    console.print(_breakdown_table(result, rubric))
    if failures:
        console.print(_failures_table(failures))
    console.print()
    print_info(f"Results saved to {output_path}")


def print_flywheel_summary(session: FlywheelSession, output_path: str) -> None:
    """Starting, final and best scores plus why the loop stopped."""
    final_source = "best" if session.keep_best else "last"
    console.print()
    console.print(
        Panel(
            f"  Starting Score: [cyan]{session.starting_score:.1f}/100[/cyan]\n"
            f"  Final Score:    [cyan]{session.final_score:.1f}/100[/cyan] ({final_source} iteration)\n"
            f"  Best Score:     [cyan]{session.best_score:.1f}/100[/cyan] "
            f"(iteration {session.best_iteration_index})\n"
            f"  Iterations:     [cyan]{len(session.iterations)}[/cyan]\n"
            f"  Stop Reason:    [cyan]{session.stop_reason}[/cyan]\n"
            f"  Output:         [cyan]{output_path}[/cyan]",
            title="[bold green]Refinement Complete[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()
