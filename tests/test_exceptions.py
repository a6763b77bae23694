"""Tests for Exception Hierarchy."""

import pytest

from src.exceptions import (
    AssistantRunError,
    AvatarAssistantError,
    AvatarError,
    ConfigurationError,
    CredentialFetchError,
    InvalidConfigError,
    MissingConfigError,
    NotInitializedError,
    ProviderUnavailableError,
    RunTimeoutError,
    SessionError,
    SessionStateError,
    SpeakError,
    VoiceChatToggleError,
)


class TestAvatarAssistantError:
    """Tests for the base class."""

    def test_basic_creation(self):
        """Create basic error with message."""
        error = AvatarAssistantError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details == {}
        assert error.recoverable is False

    def test_with_details(self):
        """Details are appended to the string form."""
        error = AvatarAssistantError("Operation failed", details={"step": "open"})
        assert "Operation failed" in str(error)
        assert "open" in str(error)

    def test_to_dict(self):
        """Serialises for logging."""
        error = AvatarAssistantError("boom", details={"k": 1}, recoverable=True)
        assert error.to_dict() == {
            "type": "AvatarAssistantError",
            "message": "boom",
            "details": {"k": 1},
            "recoverable": True,
        }


class TestSessionErrors:
    def test_session_error_includes_id(self):
        error = SessionError("bad", session_id="s-1")
        assert error.details["session_id"] == "s-1"
        assert error.session_id == "s-1"

    def test_state_error_records_states(self):
        error = SessionStateError(
            "Invalid transition",
            current_state="idle",
            target_state="active",
        )
        assert isinstance(error, SessionError)
        assert error.details == {"current_state": "idle", "target_state": "active"}
        assert error.recoverable is False


class TestConfigurationErrors:
    def test_missing_config(self):
        error = MissingConfigError("OPENAI_API_KEY", "required for the assistant")
        assert isinstance(error, ConfigurationError)
        assert "OPENAI_API_KEY" in error.message
        assert "required for the assistant" in error.message
        assert error.details["config_key"] == "OPENAI_API_KEY"

    def test_invalid_config(self):
        error = InvalidConfigError("AVATAR_ENGINE", "unreal", "expected heygen or mock")
        assert error.details["value"] == "unreal"
        assert error.recoverable is False


class TestProviderErrors:
    def test_credential_fetch_error(self):
        error = CredentialFetchError("token endpoint returned 401", status_code=401)
        assert error.recoverable is True
        assert error.status_code == 401
        assert error.details["status_code"] == 401
        assert error.message.startswith("Failed to fetch avatar access token")

    def test_provider_unavailable(self):
        error = ProviderUnavailableError("heygen", "streaming.new returned 500", status_code=500)
        assert error.provider == "heygen"
        assert error.details["provider"] == "heygen"
        assert error.details["status_code"] == 500
        assert error.recoverable is True

    def test_run_errors_are_provider_errors(self):
        run_error = AssistantRunError("run_1", "failed")
        timeout = RunTimeoutError("run_2", attempts=5, elapsed_s=12.3456)

        assert isinstance(run_error, ProviderUnavailableError)
        assert isinstance(timeout, ProviderUnavailableError)
        assert run_error.provider == "openai"
        assert run_error.status == "failed"
        assert timeout.attempts == 5
        assert timeout.details["elapsed_s"] == 12.346

    def test_not_initialized(self):
        error = NotInitializedError("conversation client", "send message")
        assert error.message == "conversation client not initialized; cannot send message"
        assert error.recoverable is False


class TestAvatarErrors:
    def test_speak_error(self):
        error = SpeakError("rejected", session_id="s-1", text_length=5)
        assert isinstance(error, AvatarError)
        assert error.details == {"reason": "rejected", "session_id": "s-1", "text_length": 5}

    def test_voice_chat_toggle_error(self):
        error = VoiceChatToggleError("start", "mic busy")
        assert error.action == "start"
        assert error.message == "Voice chat start failed: mic busy"


@pytest.mark.parametrize(
    "error",
    [
        CredentialFetchError("x"),
        ProviderUnavailableError("openai", "x"),
        NotInitializedError("a", "b"),
        SpeakError("x"),
        VoiceChatToggleError("stop", "x"),
    ],
)
def test_all_catchable_as_base(error):
    """Orchestrator catches every taxonomy error through the base class."""
    with pytest.raises(AvatarAssistantError):
        raise error
