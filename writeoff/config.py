"""Application configuration using pydantic-settings.

Loads settings from environment variables and .env file.
Run behavior (rubric, repair budget, flywheel policy, timeouts) is loaded
from writeoff.toml.

Priority: CLI args > Environment variables (.env) > writeoff.toml > hardcoded defaults
"""

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, NonNegativeInt, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from writeoff.schemas.rubric import DEFAULT_SYNONYMS, DEFAULT_WEIGHTS, Rubric

DEFAULT_WRITER_MODELS = [
    "openrouter:google/gemini-2.5-flash",
    "openrouter:moonshotai/kimi-k2-thinking",
    "openrouter:openai/gpt-5.2",
    "anthropic:claude-opus-4-0520",
]

DEFAULT_JUDGE_MODELS = [
    "openrouter:openai/gpt-5.2",
    "openrouter:moonshotai/kimi-k2-thinking",
    "openrouter:google/gemini-3-flash-preview",
    "openrouter:anthropic/claude-opus-4.5",
]

DEFAULT_REFINE_WRITER = "anthropic:claude-opus-4-0520"


# ---------------------------------------------------------------------------
# Run settings from writeoff.toml
# ---------------------------------------------------------------------------


class DefaultsTable(BaseModel):
    """The [defaults] table from writeoff.toml."""

    timeout: float = 120
    max_tokens: int = 8000
    temperature: float | None = None


class RubricTable(BaseModel):
    """The [rubric] table from writeoff.toml."""

    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    synonyms: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SYNONYMS))

    def to_rubric(self) -> Rubric:
        return Rubric(weights=self.weights, synonyms=self.synonyms)


class JudgingTable(BaseModel):
    """The [judging] table from writeoff.toml."""

    max_repairs: int = Field(default=1, ge=0)
    divergence_tolerance: float = Field(default=5.0, gt=0)


class FlywheelTable(BaseModel):
    """The [flywheel] table from writeoff.toml."""

    writer: str = DEFAULT_REFINE_WRITER
    max_iterations: int = Field(default=100, ge=1)
    threshold: float = Field(default=90, ge=1, le=100)
    keep_best: bool = False
    min_improvement: float = Field(default=0, ge=0)
    patience: int = Field(default=0, ge=0)
    diff: bool = True
    diff_context: int = Field(default=3, ge=0)


class WriteoffSettings(BaseModel):
    """Configuration loaded from writeoff.toml."""

    defaults: DefaultsTable = Field(default_factory=DefaultsTable)
    rubric: RubricTable = Field(default_factory=RubricTable)
    judging: JudgingTable = Field(default_factory=JudgingTable)
    flywheel: FlywheelTable = Field(default_factory=FlywheelTable)

    def get_rubric(self) -> Rubric:
        """Build the validated rubric from the [rubric] table."""
        return self.rubric.to_rubric()


_WRITEOFF_SETTINGS_CACHE: WriteoffSettings | None = None


def load_writeoff_settings(path: Path) -> WriteoffSettings:
    """Load settings from a TOML file, falling back to defaults if absent."""
    if not path.exists():
        return WriteoffSettings()
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return WriteoffSettings.model_validate(data)


def get_writeoff_settings() -> WriteoffSettings:
    """Load and cache run settings from writeoff.toml."""
    global _WRITEOFF_SETTINGS_CACHE
    if _WRITEOFF_SETTINGS_CACHE is not None:
        return _WRITEOFF_SETTINGS_CACHE

    toml_path = Path(os.environ.get("WRITEOFF_CONFIG", "writeoff.toml"))
    if not toml_path.is_absolute() and not toml_path.exists():
        toml_path = Path(__file__).parent.parent / toml_path
    _WRITEOFF_SETTINGS_CACHE = load_writeoff_settings(toml_path)
    return _WRITEOFF_SETTINGS_CACHE


# ---------------------------------------------------------------------------
# Environment settings from .env (API keys, model lists, limits)
# ---------------------------------------------------------------------------


def _split_models(value: object, defaults: list[str]) -> list[str]:
    if value is None:
        return list(defaults)
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
    else:
        parts = [str(part).strip() for part in value]
    parts = [part for part in parts if part]
    return parts or list(defaults)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Keys (at least one is required to run anything)
    openrouter_api_key: str = ""
    anthropic_api_key: str = ""

    # Comma-separated "provider:model-id" lists
    writer_models: str = ",".join(DEFAULT_WRITER_MODELS)
    judge_models: str = ",".join(DEFAULT_JUDGE_MODELS)

    # Limits
    writeoff_max_concurrency: PositiveInt = 5
    writeoff_max_retries: NonNegativeInt = 2  # 0 disables transient-error retry

    # LangSmith (set LANGCHAIN_TRACING_V2=true to enable)
    langchain_tracing_v2: bool = False
    langchain_api_key: str | None = None
    langchain_project: str = "writeoff"

    # OpenRouter base URL
    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def writer_model_list(self) -> list[str]:
        return _split_models(self.writer_models, DEFAULT_WRITER_MODELS)

    @property
    def judge_model_list(self) -> list[str]:
        return _split_models(self.judge_models, DEFAULT_JUDGE_MODELS)

    @property
    def max_concurrency(self) -> int:
        return self.writeoff_max_concurrency

    @property
    def max_retries(self) -> int:
        return self.writeoff_max_retries

    def missing_api_keys(self) -> list[str]:
        """Names of unset provider keys."""
        missing = []
        if not self.openrouter_api_key:
            missing.append("OPENROUTER_API_KEY")
        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        return missing

    def validate_api_keys(self) -> None:
        """Raise ValueError unless at least one provider key is configured."""
        missing = self.missing_api_keys()
        if len(missing) == 2:
            raise ValueError(
                "No API keys configured. Set OPENROUTER_API_KEY and/or "
                "ANTHROPIC_API_KEY in the environment or .env file."
            )


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Also exports LangSmith env vars so the LangChain SDK
    picks them up automatically for tracing.
    """
    settings = Settings()

    # LangSmith tracing is driven by env vars read by langchain-core.
    # We mirror them from our pydantic-settings into os.environ.
    if settings.langchain_tracing_v2:
        os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
        if settings.langchain_api_key:
            os.environ.setdefault("LANGCHAIN_API_KEY", settings.langchain_api_key)
        os.environ.setdefault("LANGCHAIN_PROJECT", settings.langchain_project)

    return settings
