"""Avatar Assistant Exception Hierarchy.

Provides structured exception classes for the orchestration flow.
Every remote failure is translated into one of these before it reaches
the orchestrator boundary, where it becomes a UI notice.

Hierarchy:
    AvatarAssistantError (base)
    ├── SessionError
    │   └── SessionStateError
    ├── ConfigurationError
    │   ├── MissingConfigError
    │   └── InvalidConfigError
    ├── CredentialFetchError
    ├── ProviderUnavailableError
    │   ├── AssistantRunError
    │   └── RunTimeoutError
    ├── NotInitializedError
    └── AvatarError
        ├── SpeakError
        └── VoiceChatToggleError
"""

from typing import Any


class AvatarAssistantError(Exception):
    """Base exception for all Avatar Assistant errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Session Errors
# =============================================================================


class SessionError(AvatarAssistantError):
    """Base exception for session-related errors."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        details = details or {}
        if session_id:
            details["session_id"] = session_id
        super().__init__(message, details, recoverable)
        self.session_id = session_id


class SessionStateError(SessionError):
    """Raised for invalid orchestrator state transitions."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        current_state: str | None = None,
        target_state: str | None = None,
    ) -> None:
        details = {}
        if current_state:
            details["current_state"] = current_state
        if target_state:
            details["target_state"] = target_state
        super().__init__(message, session_id, details, recoverable=False)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(AvatarAssistantError):
    """Base exception for configuration-related errors."""

    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, description: str | None = None) -> None:
        message = f"Missing required configuration: {config_key}"
        if description:
            message += f" - {description}"
        super().__init__(
            message=message,
            details={"config_key": config_key},
            recoverable=False,
        )


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(
        self,
        config_key: str,
        value: Any,
        reason: str,
    ) -> None:
        super().__init__(
            message=f"Invalid configuration for {config_key}: {reason}",
            details={
                "config_key": config_key,
                "value": str(value),
                "reason": reason,
            },
            recoverable=False,
        )


# =============================================================================
# Provider Errors
# =============================================================================


class CredentialFetchError(AvatarAssistantError):
    """Raised when the avatar provider refuses to issue a session token."""

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        details: dict[str, Any] = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Failed to fetch avatar access token: {reason}",
            details=details,
            recoverable=True,  # User can start again
        )
        self.status_code = status_code


class ProviderUnavailableError(AvatarAssistantError):
    """Raised on network or remote errors from either provider."""

    def __init__(
        self,
        provider: str,
        reason: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = {"provider": provider, "reason": reason, **(details or {})}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"{provider} unavailable: {reason}",
            details=details,
            recoverable=True,
        )
        self.provider = provider
        self.status_code = status_code


class AssistantRunError(ProviderUnavailableError):
    """Raised when an assistant run ends in a non-completed terminal state."""

    def __init__(self, run_id: str, status: str) -> None:
        super().__init__(
            provider="openai",
            reason=f"run {run_id} ended with status {status}",
            details={"run_id": run_id, "status": status},
        )
        self.run_id = run_id
        self.status = status


class RunTimeoutError(ProviderUnavailableError):
    """Raised when an assistant run stays pending past the polling budget."""

    def __init__(self, run_id: str, attempts: int, elapsed_s: float) -> None:
        super().__init__(
            provider="openai",
            reason=f"run {run_id} still pending after {attempts} polls",
            details={
                "run_id": run_id,
                "attempts": attempts,
                "elapsed_s": round(elapsed_s, 3),
            },
        )
        self.run_id = run_id
        self.attempts = attempts


class NotInitializedError(AvatarAssistantError):
    """Raised when an operation is attempted before its required setup."""

    def __init__(self, component: str, operation: str) -> None:
        super().__init__(
            message=f"{component} not initialized; cannot {operation}",
            details={"component": component, "operation": operation},
            recoverable=False,
        )
        self.component = component
        self.operation = operation


# =============================================================================
# Avatar Errors
# =============================================================================


class AvatarError(AvatarAssistantError):
    """Base exception for avatar session operations."""

    pass


class SpeakError(AvatarError):
    """Raised when the avatar provider rejects a speak request."""

    def __init__(
        self,
        reason: str,
        session_id: str | None = None,
        text_length: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"reason": reason}
        if session_id:
            details["session_id"] = session_id
        if text_length is not None:
            details["text_length"] = text_length
        super().__init__(
            message=f"Avatar speak failed: {reason}",
            details=details,
            recoverable=True,
        )


class VoiceChatToggleError(AvatarError):
    """Raised when voice chat cannot be started or stopped."""

    def __init__(
        self,
        action: str,
        reason: str,
        session_id: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"action": action, "reason": reason}
        if session_id:
            details["session_id"] = session_id
        super().__init__(
            message=f"Voice chat {action} failed: {reason}",
            details=details,
            recoverable=True,
        )
        self.action = action
