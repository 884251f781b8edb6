# src/parsersmith/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: LLM providers,
the key-value store backing the parser cache, sandbox budgets, validation
tolerances and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "anthropic"
    llm_default_model: str = "claude-sonnet-4-20250514"
    llm_default_temperature: float = 0.0
    llm_max_tokens: int = 8192
    llm_request_timeout_s: float = 120.0

    # Provider API keys
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # Per-component LLM assignment ("provider:model", highest priority)
    llm_transaction_generator: str = ""
    llm_holding_generator: str = ""

    # === Key-value store (parser cache backing table) ===
    store_backend: Literal["json", "sqlite", "redis"] = "sqlite"
    store_root: Path = Path("~/.parsersmith/store")
    store_redis_url: str = ""

    # === Version store ===
    save_max_attempts: int = 5
    prune_enabled: bool = False
    prune_keep_latest: int = 5
    prune_min_success_rate: float = 0.2
    prune_min_trials: int = 5

    # === Execution engine ===
    e2b_api_key: str = ""
    execution_timeout_s: float = 30.0
    local_execution_timeout_s: float = 5.0
    local_memory_limit_mb: int = 512
    max_output_records: int = 50_000

    # === Summary validation ===
    transaction_amount_tolerance: float = 10.0
    holding_value_tolerance: float = 100.0

    # === Code generation ===
    generation_max_attempts: int = 3
    generation_max_text_chars: int = 80_000

    # === Batch parsing ===
    parse_max_concurrency: int = 4

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "execution_timeout_s", "local_execution_timeout_s", "llm_request_timeout_s"
    )
    @classmethod
    def validate_timeouts(cls, v: float) -> float:  # noqa: N805
        """Execution and request budgets must be strictly positive."""
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator(
        "save_max_attempts", "generation_max_attempts", "parse_max_concurrency"
    )
    @classmethod
    def validate_positive_counts(cls, v: int) -> int:  # noqa: N805
        """Attempt and concurrency bounds must be at least 1."""
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.transaction_amount_tolerance < 0 or self.holding_value_tolerance < 0:
            errors.append("Validation tolerances must be >= 0")

        if self.prune_enabled and self.prune_keep_latest < 1:
            errors.append("PRUNE_KEEP_LATEST must be >= 1 when PRUNE_ENABLED")

        if not 0.0 <= self.prune_min_success_rate <= 1.0:
            errors.append("PRUNE_MIN_SUCCESS_RATE must be within [0, 1]")

        if self.max_output_records < 1:
            errors.append("MAX_OUTPUT_RECORDS must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def e2b_configured(self) -> bool:
        """Whether the remote isolated sandbox can be used."""
        return bool(self.e2b_api_key.strip())


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
