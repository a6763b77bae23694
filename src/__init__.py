"""Avatar Assistant - Streaming avatar driven by a hosted assistant."""

__version__ = "0.1.0"

# Export exception hierarchy for easy importing
from src.exceptions import (
    AvatarAssistantError,
    SessionError,
    SessionStateError,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    CredentialFetchError,
    ProviderUnavailableError,
    AssistantRunError,
    RunTimeoutError,
    NotInitializedError,
    AvatarError,
    SpeakError,
    VoiceChatToggleError,
)

__all__ = [
    "__version__",
    # Base
    "AvatarAssistantError",
    # Session
    "SessionError",
    "SessionStateError",
    # Configuration
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    # Providers
    "CredentialFetchError",
    "ProviderUnavailableError",
    "AssistantRunError",
    "RunTimeoutError",
    "NotInitializedError",
    # Avatar
    "AvatarError",
    "SpeakError",
    "VoiceChatToggleError",
]
