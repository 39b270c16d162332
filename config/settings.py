"""Application settings using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ollama settings
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="mistral:7b")
    ollama_num_ctx: int = Field(default=8192)
    ollama_temperature: float = Field(default=0.2, ge=0)

    # External provider API keys (optional)
    anthropic_api_key: str | None = Field(default=None)
    openai_api_key: str | None = Field(default=None)
    google_api_key: str | None = Field(default=None)

    # Provider settings
    provider_config_path: Path = Field(
        default=Path(__file__).parent / "providers.yaml"
    )
    fallback_enabled: bool = Field(default=True)

    # Agent loop settings
    agent_max_steps: int = Field(default=10, ge=1)
    agent_loop_timeout_ms: int = Field(default=28000, gt=0)
    agent_stream_timeout_ms: int = Field(default=12000, gt=0)
    agent_critic_timeout_ms: int = Field(default=12000, gt=0)
    agent_tool_timeout_ms: int = Field(default=15000, gt=0)
    agent_observation_max_chars: int = Field(default=2000, gt=0)
    agent_progress_interval_ms: int = Field(default=200, ge=0)
    agent_progress_tail_chars: int = Field(default=200, gt=0)
    agent_progress_timeout_ms: int = Field(default=2000, gt=0)

    # Tool settings
    recipe_api_url: str = Field(
        default="https://www.themealdb.com/api/json/v1/1/search.php"
    )
    recipe_api_timeout: float = Field(default=10.0)
    tool_generation_timeout_ms: int = Field(default=8000, gt=0)

    # CLI settings
    chat_max_continuations: int = Field(default=3, ge=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


settings = Settings()
