"""Orchestrator - Composes credentials, avatar session and assistant.

On start: acquire a token, open the avatar stream, initialise the
conversation client. On each submission: route the text through the
assistant (or speak it verbatim in direct mode) and relay the result to
the avatar.

Every operation returns an OperationResult; provider failures become a
notice in the snapshot instead of an exception.

Operations started under one session never act on another: the session
generation is captured when an operation begins and results are dropped
if it changed by the time they arrive.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from src.avatar.controller import AvatarSessionController
from src.avatar.interface import AvatarSession
from src.exceptions import (
    AvatarAssistantError,
    NotInitializedError,
    ProviderUnavailableError,
)
from src.observability.logging import SessionLogger, get_logger
from src.observability.metrics import (
    record_error,
    record_session_end,
    record_session_start,
    record_session_start_failed,
    record_speak,
    record_stale_result,
    record_voice_chat,
)
from src.orchestrator.state_machine import (
    OrchestratorState,
    StateMachine,
    StateTransition,
)

logger = get_logger(__name__)


class SpeakMode(Enum):
    """How submitted text reaches the avatar."""

    DIRECT = "direct"  # Speak verbatim
    ASSISTANT = "assistant"  # Speak the assistant's reply


class CredentialSource(Protocol):
    async def fetch_token(self) -> str: ...

    async def aclose(self) -> None: ...


class Conversation(Protocol):
    @property
    def is_initialized(self) -> bool: ...

    async def initialize(self) -> None: ...

    async def send_message(self, text: str) -> str: ...

    async def close(self) -> None: ...


ConversationFactory = Callable[[], Conversation]
SnapshotListener = Callable[["OrchestratorSnapshot"], Awaitable[None] | None]


@dataclass(frozen=True)
class ControlState:
    """Which UI controls are enabled."""

    start: bool
    end: bool
    submit: bool
    voice: bool


@dataclass(frozen=True)
class OrchestratorSnapshot:
    """Immutable view of the orchestrator for the API and event stream."""

    state: OrchestratorState
    generation: int
    session_id: str | None
    voice_chat_active: bool
    pending_input: str
    notice: str | None
    mode: SpeakMode
    assistant_available: bool
    controls: ControlState
    stream: dict[str, Any] | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "generation": self.generation,
            "session_id": self.session_id,
            "voice_chat_active": self.voice_chat_active,
            "pending_input": self.pending_input,
            "notice": self.notice,
            "mode": self.mode.value,
            "assistant_available": self.assistant_available,
            "controls": asdict(self.controls),
            "stream": self.stream,
        }


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one orchestrator operation."""

    ok: bool
    notice: str | None = None
    reply: str | None = None
    stale: bool = False


class Orchestrator:
    """Single-session orchestrator.

    Usage:
        orchestrator = Orchestrator(credentials, avatar, conversation_factory)
        orchestrator.on_change(push_snapshot)

        await orchestrator.start_session()
        await orchestrator.stage_input("What's the weather like?")
        result = await orchestrator.submit_text()
        await orchestrator.toggle_voice()
        await orchestrator.end_session()
    """

    def __init__(
        self,
        credentials: CredentialSource,
        avatar: AvatarSessionController,
        conversation_factory: ConversationFactory | None = None,
        mode: SpeakMode = SpeakMode.ASSISTANT,
    ) -> None:
        self._credentials = credentials
        self._avatar = avatar
        self._conversation_factory = conversation_factory
        self._mode = mode

        self._fsm = StateMachine()
        self._fsm.on_state_change(self._on_transition)

        self._session: AvatarSession | None = None
        self._conversation: Conversation | None = None
        self._voice_chat_active = False
        self._pending_input = ""
        self._notice: str | None = None
        self._generation = 0
        self._started_at: float | None = None

        # One outstanding call per operation class
        self._lifecycle_lock = asyncio.Lock()
        self._submit_lock = asyncio.Lock()
        self._voice_lock = asyncio.Lock()

        self._listeners: list[SnapshotListener] = []
        self._log = SessionLogger()

        avatar.add_disconnect_listener(self.handle_stream_disconnected)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        """Current lifecycle state."""
        return self._fsm.state

    @property
    def session(self) -> AvatarSession | None:
        """Live avatar session, if any."""
        return self._session

    @property
    def generation(self) -> int:
        """Session epoch; changes whenever a session opens or ends."""
        return self._generation

    @property
    def voice_chat_active(self) -> bool:
        return self._voice_chat_active

    @property
    def pending_input(self) -> str:
        return self._pending_input

    @property
    def mode(self) -> SpeakMode:
        return self._mode

    @property
    def avatar(self) -> AvatarSessionController:
        return self._avatar

    @property
    def history(self) -> list[StateTransition]:
        """State transition history."""
        return self._fsm.history

    def controls(self) -> ControlState:
        """Control enablement derived from state and session."""
        active = self._fsm.state is OrchestratorState.ACTIVE and self._session is not None
        return ControlState(
            start=self._fsm.state is OrchestratorState.IDLE,
            end=active,
            submit=active and bool(self._pending_input.strip()),
            voice=active,
        )

    def snapshot(self) -> OrchestratorSnapshot:
        """Immutable view of the current state."""
        return OrchestratorSnapshot(
            state=self._fsm.state,
            generation=self._generation,
            session_id=self._session.session_id if self._session else None,
            voice_chat_active=self._voice_chat_active,
            pending_input=self._pending_input,
            notice=self._notice,
            mode=self._mode,
            assistant_available=self._conversation_factory is not None,
            controls=self.controls(),
            stream=self._avatar.sink.to_dict(),
        )

    def on_change(self, listener: SnapshotListener) -> None:
        """Register a listener receiving a snapshot after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        """Unregister a snapshot listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_session(self) -> OperationResult:
        """Acquire a token, open the avatar stream, initialise the assistant.

        Any failure releases what was opened and returns to IDLE.
        """
        if self._lifecycle_lock.locked():
            return await self._reject("start_session", "A session start or end is already in progress")

        async with self._lifecycle_lock:
            if self._fsm.state is not OrchestratorState.IDLE:
                return await self._reject("start_session", "A session is already active")

            self._notice = None
            await self._fsm.transition_to(OrchestratorState.STARTING, "start_requested")

            loop = asyncio.get_running_loop()
            started = loop.time()
            stage = "credentials"
            session: AvatarSession | None = None
            conversation: Conversation | None = None
            generation = self._generation

            try:
                token = await self._credentials.fetch_token()

                stage = "avatar"
                session = await self._avatar.open(token)
                self._generation += 1
                generation = self._generation
                self._session = session

                if self._conversation_factory is not None:
                    stage = "assistant"
                    conversation = self._conversation_factory()
                    await conversation.initialize()

                if generation != self._generation:
                    raise ProviderUnavailableError("avatar", "stream disconnected during start")
            except Exception as e:
                await self._abort_start(stage, e, session, conversation)
                if not isinstance(e, AvatarAssistantError):
                    raise
                return OperationResult(ok=False, notice=self._notice)

            self._conversation = conversation
            self._started_at = loop.time()
            self._log = self._log.bind(session.session_id)
            self._log.session_started({
                "mode": self._mode.value,
                "assistant": conversation is not None,
                "generation": generation,
            })
            record_session_start(self._started_at - started)

            await self._fsm.transition_to(OrchestratorState.ACTIVE, "session_opened")
            return OperationResult(ok=True)

    async def end_session(self, reason: str = "user_request") -> OperationResult:
        """Stop voice chat if active, close the session, discard the assistant."""
        if self._lifecycle_lock.locked():
            return await self._reject("end_session", "A session start or end is already in progress")

        async with self._lifecycle_lock:
            if self._fsm.state is not OrchestratorState.ACTIVE:
                return await self._reject("end_session", "No active session")

            await self._fsm.transition_to(OrchestratorState.ENDING, reason)

            session = self._session
            voice_chat_active = self._voice_chat_active
            conversation = self._conversation
            duration = self._session_duration()

            self._generation += 1
            self._session = None
            self._voice_chat_active = False
            self._conversation = None

            notice = None
            try:
                await self._avatar.close(session, voice_chat_active=voice_chat_active)
            except AvatarAssistantError as e:
                self._log.operation_failed("end_session", e.to_dict())
                record_error("avatar", type(e).__name__)
                notice = f"Session closed with errors: {e.message}"
            finally:
                await self._close_conversation(conversation)

                self._notice = notice
                self._log.session_ended(reason, duration)
                record_session_end(reason)

                await self._fsm.transition_to(OrchestratorState.IDLE, "session_closed")
            return OperationResult(ok=notice is None, notice=notice)

    async def handle_stream_disconnected(self) -> None:
        """Provider dropped the stream; the session is gone."""
        if self._session is None:
            return

        self._generation += 1
        self._session = None
        self._voice_chat_active = False
        conversation = self._conversation
        self._conversation = None
        self._notice = "Avatar stream disconnected"

        await self._close_conversation(conversation)

        if self._fsm.state is OrchestratorState.ACTIVE:
            self._log.session_ended("stream_disconnected", self._session_duration())
            record_session_end("stream_disconnected")
            await self._fsm.transition_to(OrchestratorState.IDLE, "stream_disconnected")
        else:
            await self._notify()

    async def aclose(self) -> None:
        """End any live session and release collaborators."""
        if self._fsm.state is OrchestratorState.ACTIVE:
            await self.end_session("shutdown")
        await self._credentials.aclose()

    # ------------------------------------------------------------------
    # Input and speech
    # ------------------------------------------------------------------

    async def stage_input(self, text: str) -> None:
        """Set the pending input text."""
        self._pending_input = text
        await self._notify()

    async def submit_text(
        self,
        text: str | None = None,
        mode: SpeakMode | str | None = None,
    ) -> OperationResult:
        """Send text to the avatar, through the assistant in assistant mode.

        Uses the pending input when text is None. On success the pending
        input is cleared; on failure it is left as is.
        """
        if self._submit_lock.locked():
            return await self._reject("submit_text", "A submission is already in progress")

        async with self._submit_lock:
            session = self._session
            if self._fsm.state is not OrchestratorState.ACTIVE or session is None:
                return await self._reject("submit_text", "Start a session first")

            if text is not None:
                self._pending_input = text
            message = self._pending_input
            if not message.strip():
                return await self._reject("submit_text", "Nothing to send")

            mode = SpeakMode(mode) if mode is not None else self._mode
            generation = self._generation

            try:
                if mode is SpeakMode.ASSISTANT:
                    conversation = self._conversation
                    if conversation is None or not conversation.is_initialized:
                        raise NotInitializedError("conversation client", "send message")
                    reply = await conversation.send_message(message)
                    if generation != self._generation:
                        return await self._discard_stale("assistant_reply", generation)
                else:
                    reply = message

                await self._avatar.speak(session, reply)
            except AvatarAssistantError as e:
                if generation != self._generation:
                    return await self._discard_stale("speak", generation)
                record_speak(mode.value, "failed")
                return await self._fail("submit_text", e)

            if generation != self._generation:
                return await self._discard_stale("speak", generation)

            self._pending_input = ""
            self._notice = None
            record_speak(mode.value, "ok")
            await self._notify()
            return OperationResult(ok=True, reply=reply)

    async def toggle_voice(self) -> OperationResult:
        """Start or stop voice chat. Without a session this does nothing."""
        session = self._session
        if self._fsm.state is not OrchestratorState.ACTIVE or session is None:
            return OperationResult(ok=False)

        if self._voice_lock.locked():
            return await self._reject("toggle_voice", "Voice chat toggle already in progress")

        async with self._voice_lock:
            generation = self._generation
            target = not self._voice_chat_active

            try:
                if target:
                    await self._avatar.start_voice_chat(session)
                else:
                    await self._avatar.stop_voice_chat(session)
            except AvatarAssistantError as e:
                if generation != self._generation:
                    return await self._discard_stale("toggle_voice", generation)
                return await self._fail("toggle_voice", e)

            if generation != self._generation:
                return await self._discard_stale("toggle_voice", generation)

            self._voice_chat_active = target
            self._notice = None
            record_voice_chat(target)
            await self._notify()
            return OperationResult(ok=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _abort_start(
        self,
        stage: str,
        error: Exception,
        session: AvatarSession | None,
        conversation: Conversation | None,
    ) -> None:
        if isinstance(error, AvatarAssistantError):
            error_info = error.to_dict()
            self._notice = f"Failed to start session: {error.message}"
        else:
            error_info = {"type": type(error).__name__, "message": str(error)}
            self._notice = "Failed to start session"

        self._log.session_start_failed(stage, error_info)
        record_session_start_failed(stage)
        record_error(stage, type(error).__name__)

        if session is not None:
            self._generation += 1
            try:
                await self._avatar.close(session)
            except AvatarAssistantError as e:
                self._log.operation_failed("release_session", e.to_dict())
        await self._close_conversation(conversation)

        self._session = None
        self._conversation = None
        self._voice_chat_active = False
        await self._fsm.transition_to(OrchestratorState.IDLE, "start_failed")

    async def _close_conversation(self, conversation: Conversation | None) -> None:
        if conversation is None:
            return
        try:
            await conversation.close()
        except Exception as e:
            self._log.operation_failed(
                "close_conversation",
                {"type": type(e).__name__, "message": str(e)},
            )
            record_error("close_conversation", type(e).__name__)

    async def _fail(self, operation: str, error: AvatarAssistantError) -> OperationResult:
        self._log.operation_failed(operation, error.to_dict())
        record_error(operation, type(error).__name__)
        self._notice = error.message
        await self._notify()
        return OperationResult(ok=False, notice=error.message)

    async def _reject(self, operation: str, notice: str) -> OperationResult:
        self._log.operation_failed(operation, {"type": "rejected", "message": notice})
        self._notice = notice
        await self._notify()
        return OperationResult(ok=False, notice=notice)

    async def _discard_stale(self, operation: str, started_generation: int) -> OperationResult:
        self._log.stale_result_discarded(operation, started_generation, self._generation)
        record_stale_result(operation)
        return OperationResult(
            ok=False,
            notice="Result discarded: the session it belonged to has ended",
            stale=True,
        )

    def _session_duration(self) -> float:
        if self._started_at is None:
            return 0.0
        return asyncio.get_running_loop().time() - self._started_at

    async def _on_transition(self, transition: StateTransition) -> None:
        self._log.state_change(
            transition.old_state.value,
            transition.new_state.value,
            transition.reason,
        )
        await self._notify()

    async def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("snapshot_listener_error", error=str(e))
