"""Configuration management for Tuon Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Model provider keys
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key (intent classification)")
    GEMINI_API_KEY: str = Field(default="", description="Google Gemini API key")

    # Search
    EXA_API_KEY: str = Field(default="", description="Exa search API key")
    SEARCH_RESULT_LIMIT: int = Field(default=5, description="Results injected into a generation turn")

    # Environment
    TUON_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Models
    INTENT_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Model for intent classification"
    )
    INTENT_TEMPERATURE: float = Field(default=0.2, description="Intent classification temperature")
    DEFAULT_CHAT_MODEL: str = Field(
        default="gemini-2.0-flash", description="Model used when the caller does not pick one"
    )
    TITLE_MODEL: str = Field(default="gpt-4.1-mini", description="Model for title inference")
    GENERATION_TEMPERATURE: float = Field(default=0.7, description="Creator agent temperature")
    HISTORY_WINDOW: int = Field(default=10, description="Recent messages sent as history")

    # Images
    SIGNED_URL_TTL_SECONDS: int = Field(
        default=60, description="Lifetime of signed image URLs handed to model backends"
    )

    # Local snapshots and sync
    SNAPSHOT_STORE_PATH: str = Field(
        default=".tuon/snapshots.json", description="JSON file backing the local snapshot store"
    )
    MAX_SNAPSHOTS: int = Field(default=50, description="Snapshots retained per artifact")
    SYNC_INTERVAL_SECONDS: float = Field(default=30.0, description="Background sync sweep interval")
    MIN_UPDATE_INTERVAL_SECONDS: float = Field(
        default=2.0, description="Minimum spacing between remote writes for one artifact"
    )

    # Editor bridge
    EDITOR_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=2.0, description="Timeout for document content requests to the editor"
    )

    # Chat rate limiting
    CHAT_REQUESTS_PER_MINUTE: int = Field(default=10, description="Sustained turns per conversation")
    CHAT_BURST_SIZE: int = Field(default=15, description="Burst size for turns per conversation")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
