"""
Shared configuration for the curriculum services.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Load environment variables from python_services/.env, regardless of CWD
base_dir = Path(__file__).resolve().parents[1]  # points to python_services/
dotenv_path = base_dir / ".env"
example_path = base_dir / "env.example"

if dotenv_path.exists():
    load_dotenv(dotenv_path, override=True)
    logger.info("Loaded environment variables from %s", dotenv_path)
else:
    discovered = find_dotenv(usecwd=True)
    if discovered:
        load_dotenv(discovered, override=True)
        logger.info("Loaded environment variables from %s", discovered)
    elif example_path.exists():
        # Sample values never override the real environment
        load_dotenv(example_path, override=False)
        logger.info("Loaded environment variables from sample %s", example_path)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Provider API keys. A missing key disables that provider.
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_AI_KEY", "gemini_api_key"),
    )
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")

    # Models
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    gemini_fast_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_FAST_MODEL")
    gemini_image_model: str = Field(default="gemini-2.5-flash-image", alias="GEMINI_IMAGE_MODEL")
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    openai_fast_model: str = Field(default="gpt-4o-mini", alias="OPENAI_FAST_MODEL")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_fast_model: str = Field(default="claude-3-5-haiku-20241022", alias="ANTHROPIC_FAST_MODEL")

    # Persistence
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_key: Optional[str] = Field(default=None, alias="SUPABASE_KEY")

    # Slide-deck enhancement
    gamma_api_key: Optional[str] = Field(default=None, alias="GAMMA_API_KEY")
    gamma_base_url: str = Field(default="https://public-api.gamma.app/v1.0", alias="GAMMA_BASE_URL")

    # Service Configuration
    service_name: str = Field(default="curriculum-service", alias="SERVICE_NAME")
    service_port: int = Field(default=8010, alias="CURRICULUM_SERVICE_PORT")
    debug: bool = Field(default=False, alias="DEBUG")
    max_curriculum_text_length: int = Field(default=15000, alias="MAX_CURRICULUM_TEXT_LENGTH")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
