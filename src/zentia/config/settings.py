"""Application settings — loaded from environment variables.

Usage:
    from zentia.config.settings import settings
    print(settings.moderation_timeout_seconds)
"""

from __future__ import annotations

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # All application configuration, loaded from .env or environment.

    # Required in production:
    #    openai_api_key: OpenAI API key used for moderation and replies.

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── LLM ────────────────────────────────────────────────────────────────
    openai_api_key: SecretStr | None = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # ── Moderation ─────────────────────────────────────────────────────────
    moderation_model: str = Field(default="gpt-4o-mini")
    moderation_mode: str = Field(default="structured")  # 'structured' | 'text'
    moderation_timeout_seconds: float = Field(default=8.0, gt=0.0, le=60.0)

    # ── SQLite ─────────────────────────────────────────────────────────────
    db_path: str = Field(default="./data/zentia.db")
    seed_default_keywords: bool = Field(default=True)

    # ── Chat companion ────────────────────────────────────────────────────
    history_turns: int = Field(default=6, ge=0, le=50)

    # ── App ────────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # 'console' | 'json'
    log_dir: str = Field(default="logs")  # empty disables the log file
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("openai_model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Ensure only supported OpenAI models are configured."""
        allowed = {"gpt-4o-mini", "gpt-4o", "gpt-4-turbo"}
        if v not in allowed:
            raise ValueError(f"Model {v!r} not in allowed set {allowed}")
        return v

    @field_validator("moderation_mode")
    @classmethod
    def validate_moderation_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in {"structured", "text"}:
            raise ValueError(f"Unknown moderation mode {v!r}")
        return v


settings = Settings()  # Module-level singleton
