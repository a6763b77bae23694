"""WebSocket API package."""

from src.api.websocket.events import (
    EventSocket,
    SessionEventHub,
    get_event_hub,
    reset_event_hub,
)

__all__ = [
    "EventSocket",
    "SessionEventHub",
    "get_event_hub",
    "reset_event_hub",
]
