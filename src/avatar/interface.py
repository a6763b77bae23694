"""AvatarProvider Interface - Streaming avatar SDK abstraction.

All avatar backends implement this interface. The session controller is
blind to which backend is used; it only registers event handlers and calls
the operations below.

Events:
- STREAM_READY: payload is a StreamHandle the playback sink can attach to
- STREAM_DISCONNECTED: no payload; the provider dropped the stream
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from src.observability.logging import get_logger

logger = get_logger(__name__)


class StreamingEvent(Enum):
    """Stream lifecycle events emitted by a provider."""

    STREAM_READY = "stream_ready"
    STREAM_DISCONNECTED = "stream_disconnected"


class AvatarQuality(Enum):
    """Rendering quality requested when opening a session."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskType(Enum):
    """How the provider treats speak text."""

    REPEAT = "repeat"  # speak verbatim
    TALK = "talk"  # let the provider's own model answer


@dataclass(frozen=True)
class StreamHandle:
    """Media stream descriptor delivered with STREAM_READY."""

    url: str
    access_token: str
    session_id: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the browser."""
        return {
            "url": self.url,
            "access_token": self.access_token,
            "session_id": self.session_id,
            **self.extra,
        }


@dataclass(frozen=True)
class AvatarSession:
    """Session descriptor returned by a successful open."""

    session_id: str
    stream: StreamHandle | None = None


EventHandler = Callable[[Any], None] | Callable[[Any], Awaitable[None]]


class AvatarProvider(ABC):
    """Canonical interface for streaming avatar backends.

    Usage:
        provider = HeyGenStreamingClient(token)
        provider.on(StreamingEvent.STREAM_READY, attach_stream)
        provider.on(StreamingEvent.STREAM_DISCONNECTED, clear_stream)

        session = await provider.create_start_avatar("Wayne_20240711", AvatarQuality.HIGH)
        await provider.speak("Hello", TaskType.REPEAT)
        await provider.stop_avatar()
    """

    def __init__(self) -> None:
        self._handlers: dict[StreamingEvent, list[EventHandler]] = {
            e: [] for e in StreamingEvent
        }

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name identifier (e.g., "heygen", "mock")."""
        ...

    def on(self, event: StreamingEvent, handler: EventHandler) -> None:
        """Register a handler for a stream event."""
        self._handlers[event].append(handler)

    async def emit(self, event: StreamingEvent, payload: Any = None) -> None:
        """Dispatch an event to registered handlers.

        Handler errors are logged and never reach the provider call that
        triggered the event.
        """
        for handler in list(self._handlers[event]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "avatar_event_handler_error",
                    provider=self.name,
                    event=event.value,
                    error=str(e),
                )

    @abstractmethod
    async def create_start_avatar(
        self,
        avatar_name: str,
        quality: AvatarQuality,
    ) -> AvatarSession:
        """Open a streaming session and start the avatar.

        Emits STREAM_READY once the media stream is available.
        """
        ...

    @abstractmethod
    async def speak(self, text: str, task_type: TaskType = TaskType.REPEAT) -> None:
        """Send text for the avatar to speak."""
        ...

    @abstractmethod
    async def start_voice_chat(self, session_id: str, audio: bool = True) -> None:
        """Bind microphone capture to the session."""
        ...

    @abstractmethod
    async def stop_voice_chat(self, session_id: str) -> None:
        """Release microphone capture."""
        ...

    @abstractmethod
    async def stop_avatar(self) -> None:
        """Terminate the remote session."""
        ...

    async def notify_disconnected(self) -> None:
        """Propagate an externally observed stream drop as STREAM_DISCONNECTED."""
        await self.emit(StreamingEvent.STREAM_DISCONNECTED)

    async def aclose(self) -> None:
        """Release local resources.

        Default implementation does nothing.
        Override if cleanup is needed.
        """
        pass


ProviderFactory = Callable[[str], AvatarProvider]
