"""Chat model factory and the single text-generation call.

Providers:
  openrouter: ChatOpenAI pointed at the OpenRouter API
  anthropic:  ChatAnthropic

Each model is piped with an empty-response validator and wrapped in
``with_retry()`` over the provider SDKs' transient errors (rate limits,
timeouts, connection drops, 5xx), with exponential jitter backoff.
Everything else propagates to the caller on the first failure.
"""

from __future__ import annotations

import anthropic
import openai
import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import Runnable, RunnableLambda
from langchain_openai import ChatOpenAI

from writeoff.config import Settings, get_settings, get_writeoff_settings
from writeoff.schemas.model_config import ModelConfig

logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class EmptyResponseError(ValueError):
    """The model returned no text."""


# ---------------------------------------------------------------------------
# Response validator
# ---------------------------------------------------------------------------


def message_text(response) -> str:  # noqa: ANN001
    """Flatten an AIMessage's content (str or content blocks) into text."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


def _make_empty_validator(model: ModelConfig) -> RunnableLambda:
    """Create a Runnable that raises if the model produced no text."""

    def _validate(response):  # noqa: ANN001
        if not message_text(response).strip():
            raise EmptyResponseError(f"{model.friendly_name} returned an empty response")
        return response

    return RunnableLambda(_validate)


# ---------------------------------------------------------------------------
# LLM factory
# ---------------------------------------------------------------------------


def create_llm(
    model: ModelConfig,
    temperature: float | None = None,
    max_tokens: int | None = None,
    settings: Settings | None = None,
) -> Runnable:
    """Create a chat model chain for ``model`` with transient-error retry.

    Args:
        model: Provider and model id to call.
        temperature: Sampling temperature. None = writeoff.toml default,
            or the provider's own default when that is unset too.
        max_tokens: Maximum tokens in response. None = writeoff.toml default.
        settings: Optional Settings instance; loads from env if not provided.

    Returns:
        ``(llm | validator).with_retry(...)``
    """
    if settings is None:
        settings = get_settings()
    defaults = get_writeoff_settings().defaults
    if temperature is None:
        temperature = defaults.temperature
    if max_tokens is None:
        max_tokens = defaults.max_tokens

    if model.provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        kwargs = dict(
            model=model.model_id,
            api_key=settings.anthropic_api_key,
            max_tokens=max_tokens,
            timeout=defaults.timeout,
            max_retries=0,
        )
        if temperature is not None:
            kwargs["temperature"] = temperature
        llm = ChatAnthropic(**kwargs)
    else:
        kwargs = dict(
            model=model.model_id,
            openai_api_key=settings.openrouter_api_key,
            openai_api_base=settings.openrouter_base_url,
            max_tokens=max_tokens,
            timeout=defaults.timeout,
            max_retries=0,
        )
        if temperature is not None:
            kwargs["temperature"] = temperature
        llm = ChatOpenAI(**kwargs)

    chain: Runnable = llm | _make_empty_validator(model)
    return chain.with_retry(
        retry_if_exception_type=TRANSIENT_ERRORS,
        wait_exponential_jitter=True,
        stop_after_attempt=settings.max_retries + 1,
    )


async def generate(model: ModelConfig, system_prompt: str, user_prompt: str) -> str:
    """Run one system+user exchange against ``model`` and return the text."""
    llm = create_llm(model)
    logger.debug("generate_start", model=str(model))
    response = await llm.ainvoke(
        [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
    )
    text = message_text(response)
    logger.debug("generate_done", model=str(model), chars=len(text))
    return text
