"""Provider Constants - Fixed contract values for the two vendor APIs.

These are the values the orchestration flow depends on and which are not
meant to be tuned per deployment (tunable values live in settings).
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class ProviderConstants:
    """Immutable provider contract values.

    All timing values in seconds unless otherwise noted.
    """

    # HeyGen streaming API
    HEYGEN_BASE_URL: Final[str] = "https://api.heygen.com"
    HEYGEN_TOKEN_PATH: Final[str] = "/v1/streaming.create_token"
    HEYGEN_API_VERSION: Final[str] = "v2"  # streaming.new session version
    HEYGEN_API_KEY_HEADER: Final[str] = "x-api-key"
    DEFAULT_AVATAR_NAME: Final[str] = "Wayne_20240711"
    DEFAULT_AVATAR_QUALITY: Final[str] = "high"

    # OpenAI Assistants API
    DEFAULT_ASSISTANT_NAME: Final[str] = "HeyGen Assistant"
    DEFAULT_ASSISTANT_INSTRUCTIONS: Final[str] = (
        "You are a helpful assistant for HeyGen avatar streaming."
    )
    DEFAULT_ASSISTANT_MODEL: Final[str] = "gpt-4.1"
    FALLBACK_REPLY: Final[str] = "No response"

    # Run polling
    RUN_POLL_INTERVAL_S: Final[float] = 1.0
    RUN_POLL_BACKOFF_FACTOR: Final[float] = 1.5
    RUN_POLL_MAX_INTERVAL_S: Final[float] = 8.0
    RUN_POLL_MAX_ATTEMPTS: Final[int] = 60
    RUN_TIMEOUT_S: Final[float] = 120.0

    # HTTP
    HTTP_TIMEOUT_S: Final[float] = 30.0


# Run states reported by the Assistants API
RUN_PENDING_STATUSES: Final[frozenset[str]] = frozenset({"queued", "in_progress"})
RUN_COMPLETED_STATUS: Final[str] = "completed"


# Singleton instance for import convenience
PROVIDER = ProviderConstants()
