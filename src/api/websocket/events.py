"""WebSocket Session Events - Pushes state to the browser.

Message types:
- {"type": "snapshot", "data": {...}}: orchestrator snapshot after any change
- {"type": "stream", "action": "play" | "clear", "stream": {...} | null}:
  playback sink instructions (attach to the avatar stream, or tear it down)

Each connection has its own bounded send queue; a slow browser drops
messages instead of blocking the orchestrator.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from src.avatar.interface import StreamHandle
from src.observability.logging import get_logger

logger = get_logger(__name__)


class EventSocket:
    """One connected browser.

    Usage:
        socket = EventSocket()
        await socket.connect(websocket)

        await socket.send({"type": "snapshot", "data": snapshot})

        await socket.disconnect()
    """

    def __init__(self, connection_id: str | None = None, queue_size: int = 64) -> None:
        self._connection_id = connection_id or uuid.uuid4().hex[:12]
        self._websocket: WebSocket | None = None
        self._connected = False
        self._send_queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._send_task: asyncio.Task | None = None

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def is_connected(self) -> bool:
        """Whether WebSocket is connected."""
        return self._connected

    async def connect(self, websocket: WebSocket) -> None:
        """Accept the connection and start the send loop."""
        await websocket.accept()
        self._websocket = websocket
        self._connected = True
        self._send_task = asyncio.create_task(self._send_loop())

        logger.info("events_ws_connected", connection_id=self._connection_id)

    async def disconnect(self) -> None:
        """Stop the send loop and close the socket."""
        self._connected = False

        if self._send_task:
            self._send_task.cancel()
            try:
                await self._send_task
            except asyncio.CancelledError:
                pass

        if self._websocket and self._websocket.client_state == WebSocketState.CONNECTED:
            try:
                await self._websocket.close()
            except RuntimeError as e:
                logger.debug("events_ws_close_error", connection_id=self._connection_id, error=str(e))

        logger.info("events_ws_disconnected", connection_id=self._connection_id)

    async def send(self, message: dict[str, Any]) -> bool:
        """Queue a message for sending.

        Returns:
            True if queued, False if disconnected or the queue is full
        """
        if not self._connected:
            return False

        try:
            self._send_queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.debug("events_message_dropped", connection_id=self._connection_id)
            return False

    async def _send_loop(self) -> None:
        while self._connected:
            message = await self._send_queue.get()
            try:
                if self._websocket and self._connected:
                    await self._websocket.send_json(message)
            except WebSocketDisconnect:
                self._connected = False
                break
            except Exception as e:
                logger.warning(
                    "events_send_error",
                    connection_id=self._connection_id,
                    error=str(e),
                )


class SessionEventHub:
    """Fans orchestrator and playback events out to every browser.

    Usage:
        hub = SessionEventHub()
        orchestrator.on_change(hub.publish_snapshot)
        orchestrator.avatar.sink.add_listener(hub.publish_stream)

        socket = await hub.connect(websocket)
        ...
        await hub.disconnect(socket.connection_id)
    """

    def __init__(self) -> None:
        self._connections: dict[str, EventSocket] = {}

    async def connect(self, websocket: WebSocket) -> EventSocket:
        """Accept and register a connection."""
        socket = EventSocket()
        await socket.connect(websocket)
        self._connections[socket.connection_id] = socket
        return socket

    async def disconnect(self, connection_id: str) -> None:
        """Close and unregister a connection."""
        socket = self._connections.pop(connection_id, None)
        if socket:
            await socket.disconnect()

    async def disconnect_all(self) -> None:
        """Disconnect all WebSockets."""
        for connection_id in list(self._connections.keys()):
            await self.disconnect(connection_id)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Queue a message on every connection.

        Returns:
            Number of connections the message was queued on
        """
        delivered = 0
        for socket in list(self._connections.values()):
            if await socket.send(message):
                delivered += 1
        return delivered

    async def publish_snapshot(self, snapshot) -> None:
        """Orchestrator change listener."""
        await self.broadcast({"type": "snapshot", "data": snapshot.to_dict()})

    async def publish_stream(self, action: str, stream: StreamHandle | None) -> None:
        """Playback sink listener."""
        await self.broadcast({
            "type": "stream",
            "action": action,
            "stream": stream.to_dict() if stream else None,
        })

    @property
    def active_connections(self) -> int:
        """Number of active connections."""
        return len(self._connections)


# Global hub instance
_hub: SessionEventHub | None = None


def get_event_hub() -> SessionEventHub:
    """Get global session event hub."""
    global _hub
    if _hub is None:
        _hub = SessionEventHub()
    return _hub


def reset_event_hub() -> None:
    """Drop the global hub (used on shutdown)."""
    global _hub
    _hub = None
