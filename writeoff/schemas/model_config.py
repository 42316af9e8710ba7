"""Model identity: "provider:model-id" strings and their display names."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

Provider = Literal["openrouter", "anthropic"]

SUPPORTED_PROVIDERS: tuple[str, ...] = ("openrouter", "anthropic")

# Short name -> full model id for models we know by a nicer name
MODEL_ID_MAP: dict[str, str] = {
    "gemini-flash": "google/gemini-2.5-flash",
    "kimi-k2": "moonshotai/kimi-k2-thinking",
    "gpt-5.2": "openai/gpt-5.2",
    "claude-opus-4": "claude-opus-4-0520",
}

_REVERSE_MODEL_MAP = {model_id: short for short, model_id in MODEL_ID_MAP.items()}
_UPPERCASE_PARTS = {"gpt", "ai", "k2"}
_DATE_SUFFIX = re.compile(r"-\d{4}$")


class ModelConfig(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    provider: Provider
    model_id: str
    friendly_name: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.model_id}"


def _format_parts(name: str) -> str:
    parts = []
    for part in name.split("-"):
        if not part:
            continue
        if part[0].isdigit():
            parts.append(part)
        elif part.lower() in _UPPERCASE_PARTS:
            parts.append(part.upper())
        else:
            parts.append(part[0].upper() + part[1:])
    return " ".join(parts)


def get_friendly_name(model_id: str) -> str:
    """Display name for a model id.

    >>> get_friendly_name("google/gemini-2.5-flash")
    'Gemini Flash'
    >>> get_friendly_name("mistralai/mistral-large-2411")
    'Mistral Large'
    """
    known = _REVERSE_MODEL_MAP.get(model_id)
    if known:
        return _format_parts(known)
    name = model_id.rsplit("/", 1)[-1]
    return _format_parts(_DATE_SUFFIX.sub("", name))


def parse_model_string(model_str: str) -> ModelConfig:
    """Parse "provider:model-id" into a ModelConfig.

    Raises:
        ValueError: On a missing colon, empty model id, or unknown provider.
    """
    trimmed = model_str.strip()
    if ":" not in trimmed:
        raise ValueError(
            f'Invalid model string format: "{model_str}". Expected "provider:model-id" format.'
        )
    provider, model_id = trimmed.split(":", 1)
    provider = provider.strip().lower()
    model_id = model_id.strip()
    if not model_id:
        raise ValueError(f'Invalid model string: "{model_str}". Model ID cannot be empty.')
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f'Unknown provider: "{provider}". Supported providers: {", ".join(SUPPORTED_PROVIDERS)}'
        )
    return ModelConfig(
        provider=provider,
        model_id=model_id,
        friendly_name=get_friendly_name(model_id),
    )


def parse_model_list(models: str | list[str]) -> list[ModelConfig]:
    """Parse a comma-separated string or list of model strings."""
    if isinstance(models, str):
        models = models.split(",")
    return [parse_model_string(m) for m in models if m.strip()]
