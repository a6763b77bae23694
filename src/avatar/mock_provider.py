"""Mock Avatar Provider - For testing and development.

Opens fake sessions and records every call in order.
Does not require any external services.

Usage:
    Set AVATAR_ENGINE=mock in .env to use this provider.
"""

from __future__ import annotations

import uuid

from src.avatar.interface import (
    AvatarProvider,
    AvatarQuality,
    AvatarSession,
    StreamHandle,
    StreamingEvent,
    TaskType,
)
from src.exceptions import CredentialFetchError, ProviderUnavailableError


class MockAvatarProvider(AvatarProvider):
    """Mock avatar backend for testing.

    Args:
        fail_on: Operation names that should raise ProviderUnavailableError
            ("create_start_avatar", "speak", "start_voice_chat",
            "stop_voice_chat", "stop_avatar")
        calls: Shared call log; pass the same list to several providers to
            observe the ordering across sessions
    """

    def __init__(
        self,
        token: str = "mock-token",
        fail_on: set[str] | None = None,
        calls: list[tuple] | None = None,
    ) -> None:
        super().__init__()
        self.token = token
        self.fail_on = set(fail_on or ())
        self.calls: list[tuple] = calls if calls is not None else []
        self.session_id: str | None = None
        self.spoken: list[str] = []
        self.listening = False

    @property
    def name(self) -> str:
        """Backend name identifier."""
        return "mock"

    @property
    def is_open(self) -> bool:
        """Whether a fake session is live."""
        return self.session_id is not None

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise ProviderUnavailableError("mock", f"{operation} failed")

    async def create_start_avatar(
        self,
        avatar_name: str,
        quality: AvatarQuality,
    ) -> AvatarSession:
        """Open a fake session and emit STREAM_READY."""
        self._record("create_start_avatar", avatar_name, quality.value)
        self.session_id = f"mock-{uuid.uuid4().hex[:12]}"
        stream = StreamHandle(
            url="wss://mock.invalid/room",
            access_token=f"access-{self.token}",
            session_id=self.session_id,
        )
        await self.emit(StreamingEvent.STREAM_READY, stream)
        return AvatarSession(session_id=self.session_id, stream=stream)

    async def speak(self, text: str, task_type: TaskType = TaskType.REPEAT) -> None:
        """Record spoken text."""
        self._record("speak", text, task_type.value)
        self.spoken.append(text)

    async def start_voice_chat(self, session_id: str, audio: bool = True) -> None:
        """Mark microphone as bound."""
        self._record("start_voice_chat", session_id)
        self.listening = True

    async def stop_voice_chat(self, session_id: str) -> None:
        """Mark microphone as released."""
        self._record("stop_voice_chat", session_id)
        self.listening = False

    async def stop_avatar(self) -> None:
        """Close the fake session."""
        self._record("stop_avatar", self.session_id)
        self.session_id = None

    async def simulate_disconnect(self) -> None:
        """Drop the fake session as if the provider disconnected."""
        self.session_id = None
        await self.emit(StreamingEvent.STREAM_DISCONNECTED)


class MockCredentialFetcher:
    """Issues fake tokens without contacting HeyGen."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.issued = 0

    async def fetch_token(self) -> str:
        """Return a fresh fake token."""
        if self.fail:
            raise CredentialFetchError("mock credential failure")
        self.issued += 1
        return f"mock-token-{self.issued}"

    async def aclose(self) -> None:
        """Nothing to release."""
        pass
