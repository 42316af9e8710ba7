"""Strict structured output with bounded repair round-trips."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import structlog

from writeoff.models import generate
from writeoff.prompts.templates import REPAIR_SYSTEM, REPAIR_TASK
from writeoff.schemas.model_config import ModelConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class StructuredOutputError(ValueError):
    """Output still failed validation after every allowed repair."""

    def __init__(self, message: str, attempts: int, last_error: Exception) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


async def invoke_structured_with_fix(
    *,
    model: ModelConfig,
    system_prompt: str,
    user_prompt: str,
    parse: Callable[[str], T],
    schema_hint: str = "a single valid JSON object",
    max_repairs: int = 1,
) -> T:
    """Call ``model`` and enforce a parseable reply with repair requests.

    Strategy:
    1) Primary model call
    2) Parse + validate with ``parse`` (raises ValueError on bad output)
    3) If invalid, send the original instruction, the rejected reply and
       the error back to the same model, and parse again, at most
       ``max_repairs`` times

    Transport errors from ``generate`` are not repaired; they propagate.

    Raises:
        StructuredOutputError: When the last allowed attempt is still invalid.
    """
    if max_repairs < 0:
        raise ValueError(f"max_repairs must be >= 0, got {max_repairs}")

    content = await generate(model, system_prompt, user_prompt)
    attempts = max_repairs + 1

    for attempt in range(1, attempts + 1):
        try:
            return parse(content)
        except ValueError as exc:
            err = str(exc)
            if attempt >= attempts:
                raise StructuredOutputError(
                    f"{model.friendly_name} failed structured parsing after "
                    f"{attempts} attempt(s). Last error: {err}",
                    attempts=attempts,
                    last_error=exc,
                ) from exc

            logger.info(
                "structured_repair_requested",
                model=model.friendly_name,
                attempt=attempt,
                error=err,
            )
            repair_prompt = REPAIR_TASK.format(
                instruction=user_prompt,
                invalid_response=content,
                error=err,
                schema_hint=schema_hint,
            )
            content = await generate(model, REPAIR_SYSTEM, repair_prompt)
