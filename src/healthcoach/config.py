"""Configuration management for healthcoach."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_INSTRUCTIONS = (
    "You're a health coach. You help users manage their health by providing personalized "
    "recommendations based on their blood pressure data."
)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTHCOACH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Model Configuration
    model: str = Field(default="scripted", description="'scripted' for the offline model, or a chat model name")
    api_key: Optional[str] = Field(None, description="API key for the OpenAI-compatible endpoint")
    api_base: Optional[str] = Field(None, description="Optional API base URL")
    max_tokens: int = Field(default=1024, gt=0, description="Maximum tokens per model pass")

    # Session Configuration
    model_timeout_seconds: float = Field(default=30.0, gt=0, description="Bounded wait for each model increment")
    tool_timeout_seconds: float = Field(default=10.0, gt=0, description="Bounded wait for one tool call")
    max_steps: int = Field(default=8, ge=1, description="Maximum model passes per generation cycle")
    instructions: str = Field(default=DEFAULT_INSTRUCTIONS, description="Instructions entry for new sessions")

    # Health Data Configuration
    health_data_path: Path = Field(
        default=Path("health_data.json"),
        description="JSON export the blood pressure tool reads from",
    )

    # Logging Configuration
    log_level: str = Field(default="WARNING", description="Log level")

    @property
    def uses_scripted_model(self) -> bool:
        return self.model.strip().casefold() == "scripted"


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values that win over the environment and .env file

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)  # type: ignore[arg-type]
