"""Playback Sink - The single shared media target for the avatar stream.

Holds the stream handle the browser should attach to and tells listeners
(the events WebSocket) when to start or stop playback. Only the avatar
session controller writes to it.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable

from src.avatar.interface import StreamHandle
from src.observability.logging import get_logger

logger = get_logger(__name__)

SinkListener = Callable[[str, StreamHandle | None], Awaitable[None] | None]


class PlaybackRejected(Exception):
    """A listener refused to start playback (e.g. autoplay blocked)."""


class PlaybackSink:
    """Shared playback target.

    Usage:
        sink = PlaybackSink()
        sink.add_listener(push_to_browser)

        sink.attach(stream)
        await sink.play()     # listeners receive ("play", stream)
        await sink.clear()    # listeners receive ("clear", None)
    """

    def __init__(self) -> None:
        self._stream: StreamHandle | None = None
        self._playing = False
        self._listeners: list[SinkListener] = []

    @property
    def stream(self) -> StreamHandle | None:
        """Currently bound stream."""
        return self._stream

    @property
    def is_playing(self) -> bool:
        """Whether playback was started for the bound stream."""
        return self._playing

    def add_listener(self, listener: SinkListener) -> None:
        """Register a listener for play/clear notifications."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SinkListener) -> None:
        """Unregister a listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def attach(self, stream: StreamHandle) -> None:
        """Bind a stream without starting playback."""
        self._stream = stream
        self._playing = False

    async def play(self) -> None:
        """Start playback of the bound stream.

        Raises:
            PlaybackRejected: If any listener refused; the stream stays bound
        """
        if self._stream is None:
            return

        errors = await self._notify("play", self._stream)
        if errors:
            raise PlaybackRejected("; ".join(errors))
        self._playing = True

    async def clear(self) -> None:
        """Unbind the stream and stop playback."""
        had_stream = self._stream is not None
        self._stream = None
        self._playing = False
        if had_stream:
            await self._notify("clear", None)

    async def _notify(self, action: str, stream: StreamHandle | None) -> list[str]:
        errors: list[str] = []
        for listener in list(self._listeners):
            try:
                result = listener(action, stream)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("sink_listener_error", action=action, error=str(e))
                errors.append(str(e))
        return errors

    def to_dict(self) -> dict[str, Any] | None:
        """Stream descriptor for API responses."""
        if self._stream is None:
            return None
        return {**self._stream.to_dict(), "playing": self._playing}
