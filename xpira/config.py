"""Application configuration loaded from environment variables and .env file."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONTENT_PATH = str(Path(__file__).parent / "data" / "dialogues.json")


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Dialogue content
    CONTENT_PATH: str = DEFAULT_CONTENT_PATH
    DEFAULT_USER_TIER: str = "free"

    # Evaluation and feedback tuning
    FREE_SIMILARITY_THRESHOLD: float = 0.5
    PREMIUM_SIMILARITY_THRESHOLD: float = 0.4
    PARTIAL_FEEDBACK_THRESHOLD: float = 0.3

    # Session escalation
    HINT_AFTER_ATTEMPTS: int = 2
    FALLBACK_AFTER_ATTEMPTS: int = 3
    FALLBACK_NODE_ID: str = "not-understood"
    AUTO_CLOSE_DELAY_SECONDS: float = 3.0

    # AI Provider settings (premium tier)
    AI_PROVIDER: str = "mock"
    AI_API_KEY: Optional[str] = None
    AI_MODEL: Optional[str] = None


settings = Settings()
