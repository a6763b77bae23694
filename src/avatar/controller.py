"""Avatar Session Controller - Lifecycle of one streaming avatar session.

Session states:
- CLOSED: no provider session
- OPENING: provider requested, waiting for session id
- OPEN: session live; speak and voice toggles keep it OPEN
- back to CLOSED on close() or on a provider STREAM_DISCONNECTED event

The controller is the only writer of the playback sink.
"""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Awaitable, Callable

from src.avatar.interface import (
    AvatarProvider,
    AvatarQuality,
    AvatarSession,
    ProviderFactory,
    StreamHandle,
    StreamingEvent,
    TaskType,
)
from src.avatar.playback import PlaybackRejected, PlaybackSink
from src.exceptions import (
    AvatarAssistantError,
    NotInitializedError,
    ProviderUnavailableError,
    SpeakError,
    VoiceChatToggleError,
)
from src.observability.logging import AvatarLogger

DisconnectListener = Callable[[], Awaitable[None] | None]


class AvatarSessionState(Enum):
    """Provider session state."""

    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


class AvatarSessionController:
    """Owns one avatar streaming session at a time.

    Usage:
        controller = AvatarSessionController(provider_factory, PlaybackSink())
        controller.add_disconnect_listener(orchestrator.handle_stream_disconnected)

        session = await controller.open(token)
        await controller.speak(session, "Hello")
        await controller.start_voice_chat(session)
        await controller.close(session, voice_chat_active=True)
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        sink: PlaybackSink | None = None,
        avatar_name: str = "Wayne_20240711",
        quality: AvatarQuality = AvatarQuality.HIGH,
    ) -> None:
        self._provider_factory = provider_factory
        self._sink = sink or PlaybackSink()
        self._avatar_name = avatar_name
        self._quality = quality

        self._provider: AvatarProvider | None = None
        self._session: AvatarSession | None = None
        self._state = AvatarSessionState.CLOSED
        self._disconnect_listeners: list[DisconnectListener] = []
        self._log = AvatarLogger()

    @property
    def sink(self) -> PlaybackSink:
        """Playback sink the stream is bound to."""
        return self._sink

    @property
    def state(self) -> AvatarSessionState:
        """Provider session state."""
        return self._state

    @property
    def provider(self) -> AvatarProvider | None:
        """Provider of the current session."""
        return self._provider

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        """Register a callback for provider-initiated disconnects."""
        self._disconnect_listeners.append(listener)

    async def open(self, token: str) -> AvatarSession:
        """Open a new streaming session.

        Event handlers are registered before the session is requested so a
        STREAM_READY emitted during creation is not missed.

        Raises:
            ProviderUnavailableError: If the provider refuses the session
        """
        provider = self._provider_factory(token)
        provider.on(StreamingEvent.STREAM_READY, self._on_stream_ready)
        provider.on(StreamingEvent.STREAM_DISCONNECTED, self._on_stream_disconnected)

        self._provider = provider
        self._state = AvatarSessionState.OPENING

        try:
            session = await provider.create_start_avatar(self._avatar_name, self._quality)
        except AvatarAssistantError:
            await self._release_provider()
            raise
        except Exception as e:
            await self._release_provider()
            raise ProviderUnavailableError(provider.name, str(e)) from e

        self._session = session
        self._state = AvatarSessionState.OPEN
        self._log = AvatarLogger(session.session_id)
        return session

    async def speak(self, session: AvatarSession, text: str) -> None:
        """Have the avatar speak text verbatim.

        Raises:
            NotInitializedError: If no session is open
            SpeakError: If the provider rejects the request
        """
        provider = self._require_open(session, "speak")
        try:
            await provider.speak(text, TaskType.REPEAT)
        except Exception as e:
            raise SpeakError(
                str(e),
                session_id=session.session_id,
                text_length=len(text),
            ) from e
        self._log.speak_sent(len(text), TaskType.REPEAT.value)

    async def start_voice_chat(self, session: AvatarSession) -> None:
        """Bind microphone capture to the session.

        Raises:
            NotInitializedError: If no session is open
            VoiceChatToggleError: If the provider refuses
        """
        provider = self._require_open(session, "start voice chat")
        try:
            await provider.start_voice_chat(session.session_id, audio=True)
        except Exception as e:
            raise VoiceChatToggleError("start", str(e), session.session_id) from e
        self._log.voice_chat_toggled(True)

    async def stop_voice_chat(self, session: AvatarSession) -> None:
        """Release microphone capture.

        Raises:
            NotInitializedError: If no session is open
            VoiceChatToggleError: If the provider refuses
        """
        provider = self._require_open(session, "stop voice chat")
        try:
            await provider.stop_voice_chat(session.session_id)
        except Exception as e:
            raise VoiceChatToggleError("stop", str(e), session.session_id) from e
        self._log.voice_chat_toggled(False)

    async def close(self, session: AvatarSession, voice_chat_active: bool = False) -> None:
        """Stop voice chat (if active), stop the session, clear the sink.

        A voice chat stop failure is logged and does not block teardown.
        The sink is cleared and the provider released even if stopping the
        remote session fails.

        Raises:
            ProviderUnavailableError: If the remote session could not be stopped
        """
        provider = self._provider
        if provider is None:
            await self._sink.clear()
            return

        if voice_chat_active:
            try:
                await self.stop_voice_chat(session)
            except AvatarAssistantError as e:
                self._log.teardown_error("stop_voice_chat", str(e))

        try:
            await provider.stop_avatar()
        except AvatarAssistantError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(provider.name, str(e)) from e
        finally:
            await self._sink.clear()
            await self._release_provider()

    async def report_disconnected(self) -> bool:
        """Forward an externally observed stream drop to the provider.

        The remote session is stopped first. A stop failure is logged and
        the disconnect still runs.

        Returns:
            True if a session was open and the disconnect was dispatched
        """
        provider = self._provider
        if provider is None or self._state is AvatarSessionState.CLOSED:
            return False

        try:
            await provider.stop_avatar()
        except Exception as e:
            self._log.teardown_error("stop_avatar", str(e))

        await provider.notify_disconnected()
        return True

    def _require_open(self, session: AvatarSession | None, operation: str) -> AvatarProvider:
        if (
            session is None
            or self._provider is None
            or self._state is not AvatarSessionState.OPEN
            or self._session is None
            or self._session.session_id != session.session_id
        ):
            raise NotInitializedError("avatar session", operation)
        return self._provider

    async def _release_provider(self) -> None:
        provider = self._provider
        self._provider = None
        self._session = None
        self._state = AvatarSessionState.CLOSED
        if provider is not None:
            try:
                await provider.aclose()
            except Exception as e:
                self._log.teardown_error("provider_close", str(e))

    async def _on_stream_ready(self, stream: StreamHandle) -> None:
        self._sink.attach(stream)
        self._log.stream_ready(stream.url if stream else None)
        try:
            await self._sink.play()
        except PlaybackRejected as e:
            self._log.playback_blocked(str(e))

    async def _on_stream_disconnected(self, _payload: object = None) -> None:
        self._log.stream_disconnected()
        await self._sink.clear()
        await self._release_provider()

        for listener in list(self._disconnect_listeners):
            result = listener()
            if inspect.isawaitable(result):
                await result
