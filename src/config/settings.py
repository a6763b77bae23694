"""Application Settings - Environment-based configuration.

Uses Pydantic Settings for validation and type coercion.

The only secrets are the two provider API keys (HEYGEN_API_KEY and
OPENAI_API_KEY). Keys are required in production for the engines in use;
development falls back to failing at session start instead of at boot.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.config.constants import PROVIDER


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API bind host")
    api_port: int = Field(default=8081, ge=1024, le=65535, description="API port")
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment name"
    )

    # Engine selection
    avatar_engine: Literal["heygen", "mock"] = Field(
        default="heygen", description="Avatar backend (mock for testing)"
    )
    assistant_engine: Literal["openai", "mock"] = Field(
        default="openai", description="Assistant backend (mock for testing)"
    )
    speak_mode: Literal["direct", "assistant"] = Field(
        default="assistant",
        description="Default submit routing: speak verbatim or via the assistant",
    )

    # HeyGen Configuration
    heygen_api_key: str | None = Field(
        default=None, description="HeyGen API key used to issue session tokens"
    )
    heygen_base_url: str = Field(
        default=PROVIDER.HEYGEN_BASE_URL, description="HeyGen API base URL"
    )
    avatar_name: str = Field(
        default=PROVIDER.DEFAULT_AVATAR_NAME, description="Streaming avatar identifier"
    )
    avatar_quality: Literal["low", "medium", "high"] = Field(
        default="high", description="Streaming avatar quality"
    )

    # OpenAI Configuration
    openai_api_key: str | None = Field(
        default=None, description="OpenAI API key for the Assistants API"
    )
    assistant_name: str = Field(
        default=PROVIDER.DEFAULT_ASSISTANT_NAME, description="Assistant display name"
    )
    assistant_instructions: str = Field(
        default=PROVIDER.DEFAULT_ASSISTANT_INSTRUCTIONS,
        description="Assistant system instructions",
    )
    assistant_model: str = Field(
        default=PROVIDER.DEFAULT_ASSISTANT_MODEL, description="Assistant model"
    )

    # Run polling
    run_poll_interval_s: float = Field(
        default=PROVIDER.RUN_POLL_INTERVAL_S,
        gt=0,
        le=10,
        description="Initial delay between run status checks",
    )
    run_poll_backoff_factor: float = Field(
        default=PROVIDER.RUN_POLL_BACKOFF_FACTOR,
        ge=1.0,
        le=4.0,
        description="Delay multiplier applied after each pending check",
    )
    run_poll_max_interval_s: float = Field(
        default=PROVIDER.RUN_POLL_MAX_INTERVAL_S,
        gt=0,
        le=60,
        description="Upper bound on the delay between checks",
    )
    run_poll_max_attempts: int = Field(
        default=PROVIDER.RUN_POLL_MAX_ATTEMPTS,
        ge=1,
        le=1000,
        description="Maximum run status checks before giving up",
    )
    run_timeout_s: float = Field(
        default=PROVIDER.RUN_TIMEOUT_S,
        gt=0,
        le=900,
        description="Overall deadline for a single assistant run",
    )

    # HTTP
    http_timeout_s: float = Field(
        default=PROVIDER.HTTP_TIMEOUT_S,
        gt=0,
        le=120,
        description="Timeout for provider HTTP calls",
    )

    # Observability
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    def model_post_init(self, __context) -> None:
        """Validate conditional requirements after model creation."""
        if self.run_poll_max_interval_s < self.run_poll_interval_s:
            raise ValueError(
                "run_poll_max_interval_s must be >= run_poll_interval_s"
            )

        if self.environment != "production":
            return

        if self.avatar_engine == "heygen" and not self.heygen_api_key:
            raise ValueError(
                "heygen_api_key is required when avatar_engine=heygen in production"
            )

        if (
            self.speak_mode == "assistant"
            and self.assistant_engine == "openai"
            and not self.openai_api_key
        ):
            raise ValueError(
                "openai_api_key is required when speak_mode=assistant in production"
            )

    @property
    def assistant_enabled(self) -> bool:
        """Whether sessions carry a conversation client.

        Always true in assistant mode. In direct mode the assistant is still
        offered per submission when it can be reached.
        """
        if self.speak_mode == "assistant":
            return True
        return self.assistant_engine == "mock" or bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
