"""Session API Routes - Control of the single avatar session.

Provides REST endpoints for the session lifecycle:
- Get current snapshot
- Start / end the session
- Stage input, submit text, toggle voice chat
- Report a browser-observed stream disconnect
- WebSocket event stream

Provider failures never surface as HTTP errors: every control endpoint
answers 200 with ok=false and a notice, and the snapshot reflects it.
"""

from typing import Any, Literal

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from src.api.websocket.events import get_event_hub
from src.orchestrator import (
    OperationResult,
    Orchestrator,
    OrchestratorSnapshot,
    create_orchestrator,
)
from src.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/session", tags=["session"])

# Global orchestrator (initialized on startup)
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Get global orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: Orchestrator | None) -> None:
    """Replace the global orchestrator (startup, shutdown, tests)."""
    global _orchestrator
    _orchestrator = orchestrator


# Request/Response models
class ControlsModel(BaseModel):
    """Enabled UI controls."""

    start: bool
    end: bool
    submit: bool
    voice: bool


class SnapshotResponse(BaseModel):
    """Orchestrator snapshot."""

    state: str
    generation: int
    session_id: str | None
    voice_chat_active: bool
    pending_input: str
    notice: str | None
    mode: str
    assistant_available: bool
    controls: ControlsModel
    stream: dict[str, Any] | None

    @classmethod
    def from_snapshot(cls, snapshot: OrchestratorSnapshot) -> "SnapshotResponse":
        return cls(**snapshot.to_dict())


class OperationResponse(BaseModel):
    """Result of a control operation plus the resulting snapshot."""

    ok: bool
    notice: str | None = None
    reply: str | None = None
    stale: bool = False
    session: SnapshotResponse


class StageInputRequest(BaseModel):
    """Pending input text."""

    text: str = Field(..., max_length=4000, description="Text to stage for the next submit")


class SubmitRequest(BaseModel):
    """Text submission."""

    text: str | None = Field(
        None,
        max_length=4000,
        description="Text to send (uses the staged input if omitted)",
    )
    mode: Literal["direct", "assistant"] | None = Field(
        None,
        description="Speak verbatim or via the assistant (server default if omitted)",
    )


class DisconnectResponse(BaseModel):
    """Result of a reported stream disconnect."""

    dispatched: bool
    session: SnapshotResponse


def _respond(result: OperationResult, orchestrator: Orchestrator) -> OperationResponse:
    return OperationResponse(
        ok=result.ok,
        notice=result.notice,
        reply=result.reply,
        stale=result.stale,
        session=SnapshotResponse.from_snapshot(orchestrator.snapshot()),
    )


# Endpoints
@router.get("", response_model=SnapshotResponse)
async def get_session() -> SnapshotResponse:
    """Current session snapshot."""
    return SnapshotResponse.from_snapshot(get_orchestrator().snapshot())


@router.post("/start", response_model=OperationResponse)
async def start_session() -> OperationResponse:
    """Fetch a token, open the avatar stream and initialise the assistant."""
    orchestrator = get_orchestrator()
    result = await orchestrator.start_session()
    return _respond(result, orchestrator)


@router.post("/end", response_model=OperationResponse)
async def end_session() -> OperationResponse:
    """Stop voice chat, close the avatar session and drop the assistant."""
    orchestrator = get_orchestrator()
    result = await orchestrator.end_session()
    return _respond(result, orchestrator)


@router.put("/input", response_model=SnapshotResponse)
async def stage_input(request: StageInputRequest) -> SnapshotResponse:
    """Stage the pending input text."""
    orchestrator = get_orchestrator()
    await orchestrator.stage_input(request.text)
    return SnapshotResponse.from_snapshot(orchestrator.snapshot())


@router.post("/submit", response_model=OperationResponse)
async def submit_text(request: SubmitRequest) -> OperationResponse:
    """Send text to the avatar (through the assistant in assistant mode)."""
    orchestrator = get_orchestrator()
    result = await orchestrator.submit_text(request.text, mode=request.mode)
    return _respond(result, orchestrator)


@router.post("/voice", response_model=OperationResponse)
async def toggle_voice() -> OperationResponse:
    """Start or stop voice chat."""
    orchestrator = get_orchestrator()
    result = await orchestrator.toggle_voice()
    return _respond(result, orchestrator)


@router.post("/stream-disconnected", response_model=DisconnectResponse)
async def stream_disconnected() -> DisconnectResponse:
    """Browser lost the avatar media stream."""
    orchestrator = get_orchestrator()
    dispatched = await orchestrator.avatar.report_disconnected()
    logger.info("stream_disconnect_reported", dispatched=dispatched)
    return DisconnectResponse(
        dispatched=dispatched,
        session=SnapshotResponse.from_snapshot(orchestrator.snapshot()),
    )


@router.websocket("/events")
async def session_events(websocket: WebSocket) -> None:
    """WebSocket stream of snapshots and playback instructions.

    The current snapshot (and the stream to attach, if playing) is sent
    on connect. Send "ping" to receive {"type": "pong"}.
    """
    hub = get_event_hub()
    orchestrator = get_orchestrator()
    socket = await hub.connect(websocket)

    try:
        snapshot = orchestrator.snapshot()
        await socket.send({"type": "snapshot", "data": snapshot.to_dict()})
        if snapshot.stream is not None:
            await socket.send({"type": "stream", "action": "play", "stream": snapshot.stream})

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await socket.send({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(socket.connection_id)
