"""Review bot configuration.

Reads configuration from the process environment and the .env file.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReviewerConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # GitHub App
    github_app_id: Optional[int] = Field(default=None, gt=0)
    github_app_private_key_path: Optional[str] = Field(default=None)
    github_app_private_key: Optional[str] = Field(default=None)
    github_api_url: str = Field(default="https://api.github.com")
    token_refresh_buffer_seconds: int = Field(default=300, ge=0)

    # Model (Ollama)
    ollama_url: str = Field(default="http://localhost:11434")
    ai_model: str = Field(default="qwen2.5-coder:7b")
    ai_max_comments: int = Field(default=10, gt=0)
    ai_temperature: float = Field(default=0.7)
    ai_max_tokens: int = Field(default=8000, gt=0)
    ai_timeout_seconds: float = Field(default=300.0, gt=0)

    # Prompt shaping
    chunk_size: int = Field(default=20000, gt=0)
    context_lines: int = Field(default=10, ge=0)
    max_static_findings_in_prompt: int = Field(default=50, ge=0)

    # Static analysis
    eslint_enabled: bool = Field(default=True)
    flake8_enabled: bool = Field(default=True)

    # Posting
    post_inline_comments: bool = Field(default=False)
    demote_unchanged_lines: bool = Field(default=True)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @field_validator("ollama_url", "ai_model", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


config = ReviewerConfig()
