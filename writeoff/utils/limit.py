"""Bounded-concurrency task runner.

Uses an asyncio.Semaphore as the concurrency ceiling. Waiters on a
semaphore are woken in FIFO order, so tasks start in submission order
once the ceiling is saturated.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import structlog

logger = structlog.get_logger(__name__)

TaskStatus = Literal["start", "done", "error"]
TaskFactory = Callable[[], Awaitable[Any]]
TaskObserver = Callable[[str, TaskStatus], None]


@dataclass(frozen=True)
class TaskOutcome:
    """Result or failure of a single submitted task."""

    index: int
    label: str
    result: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedTaskScheduler:
    """Run independent async tasks with at most ``max_concurrency`` in flight.

    A failing task never cancels or blocks its siblings; every task's
    outcome is returned, in submission order.

    Args:
        max_concurrency: Ceiling on in-flight tasks. Must be a positive int.

    Raises:
        ValueError: If ``max_concurrency`` is not a positive integer.
    """

    def __init__(self, max_concurrency: int) -> None:
        if (
            isinstance(max_concurrency, bool)
            or not isinstance(max_concurrency, int)
            or max_concurrency < 1
        ):
            raise ValueError(f"Invalid concurrency: {max_concurrency!r}")
        self._max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._active = 0
        self._peak = 0

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def active_count(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._active

    @property
    def peak_count(self) -> int:
        """Highest number of simultaneously running tasks seen so far."""
        return self._peak

    async def _run_one(
        self,
        index: int,
        label: str,
        factory: TaskFactory,
        on_event: TaskObserver | None,
    ) -> TaskOutcome:
        async with self._semaphore:
            self._active += 1
            self._peak = max(self._peak, self._active)
            if on_event:
                on_event(label, "start")
            try:
                result = await factory()
            except Exception as exc:
                logger.debug("task_failed", label=label, error=str(exc))
                if on_event:
                    on_event(label, "error")
                return TaskOutcome(index=index, label=label, error=exc)
            finally:
                self._active -= 1
            if on_event:
                on_event(label, "done")
            return TaskOutcome(index=index, label=label, result=result)

    async def run(
        self,
        factories: Sequence[TaskFactory],
        labels: Sequence[str] | None = None,
        on_event: TaskObserver | None = None,
    ) -> list[TaskOutcome]:
        """Run every factory and wait for all of them to settle.

        Args:
            factories: Zero-argument callables returning awaitables.
            labels: Optional display label per factory (defaults to the index).
            on_event: Called synchronously with (label, status) when a task
                starts and when it settles.
        """
        if labels is not None and len(labels) != len(factories):
            raise ValueError("labels must match factories one-to-one")
        tasks = [
            self._run_one(
                index,
                labels[index] if labels is not None else str(index),
                factory,
                on_event,
            )
            for index, factory in enumerate(factories)
        ]
        return list(await asyncio.gather(*tasks))
