"""Orchestrator State Machine - 4-state FSM for the session lifecycle.

States:
- IDLE: No session; Start enabled
- STARTING: Acquiring token, opening the stream, initialising the assistant
- ACTIVE: Session live; speak and voice controls enabled
- ENDING: Tearing the session down

Transitions:
- IDLE -> STARTING on start
- STARTING -> ACTIVE on success, STARTING -> IDLE on failure
- ACTIVE -> ENDING on end
- ACTIVE -> IDLE on provider disconnect
- ENDING -> IDLE when teardown completes (even if it partially failed)
"""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from src.exceptions import SessionStateError
from src.observability.logging import get_logger

logger = get_logger(__name__)


class OrchestratorState(Enum):
    """Session lifecycle state."""

    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    ENDING = "ending"


# Valid state transitions
VALID_TRANSITIONS: dict[OrchestratorState, set[OrchestratorState]] = {
    OrchestratorState.IDLE: {OrchestratorState.STARTING},
    OrchestratorState.STARTING: {OrchestratorState.ACTIVE, OrchestratorState.IDLE},
    OrchestratorState.ACTIVE: {OrchestratorState.ENDING, OrchestratorState.IDLE},
    OrchestratorState.ENDING: {OrchestratorState.IDLE},
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    old_state: OrchestratorState
    new_state: OrchestratorState
    t_ms: int
    reason: str
    metadata: dict[str, Any] = field(default_factory=dict)


StateChangeCallback = Callable[[StateTransition], Awaitable[None] | None]


class StateMachine:
    """Lifecycle FSM for the orchestrator.

    Usage:
        fsm = StateMachine()
        fsm.on_state_change(handle_state_change)

        await fsm.transition_to(OrchestratorState.STARTING, "start_requested")
    """

    def __init__(self, max_history: int = 100) -> None:
        self._state = OrchestratorState.IDLE
        self._on_change_callbacks: list[StateChangeCallback] = []
        self._on_enter_callbacks: dict[OrchestratorState, list[StateChangeCallback]] = {
            s: [] for s in OrchestratorState
        }
        self._history: list[StateTransition] = []
        self._max_history = max_history
        self._entered_at = time.monotonic()

    @property
    def state(self) -> OrchestratorState:
        """Current state."""
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Transition history (most recent last)."""
        return self._history.copy()

    def can_transition(self, new_state: OrchestratorState) -> bool:
        """Whether new_state is reachable from the current state."""
        return new_state in VALID_TRANSITIONS.get(self._state, set())

    def on_state_change(self, callback: StateChangeCallback) -> None:
        """Register callback for any state change."""
        self._on_change_callbacks.append(callback)

    def on_enter(self, state: OrchestratorState, callback: StateChangeCallback) -> None:
        """Register callback for entering a specific state."""
        self._on_enter_callbacks[state].append(callback)

    async def transition_to(
        self,
        new_state: OrchestratorState,
        reason: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> StateTransition:
        """Transition to a new state.

        Raises:
            SessionStateError: If the transition is not allowed
        """
        old_state = self._state
        if not self.can_transition(new_state):
            raise SessionStateError(
                f"Invalid transition: {old_state.value} -> {new_state.value}",
                current_state=old_state.value,
                target_state=new_state.value,
            )

        now = time.monotonic()
        transition = StateTransition(
            old_state=old_state,
            new_state=new_state,
            t_ms=int(now * 1000),
            reason=reason,
            metadata=metadata or {},
        )

        self._state = new_state
        self._entered_at = now

        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        await self._call_callbacks(self._on_enter_callbacks[new_state], transition)
        await self._call_callbacks(self._on_change_callbacks, transition)
        return transition

    def get_state_duration_ms(self) -> int:
        """Time spent in the current state (ms)."""
        return int((time.monotonic() - self._entered_at) * 1000)

    async def _call_callbacks(
        self,
        callbacks: list[StateChangeCallback],
        transition: StateTransition,
    ) -> None:
        for callback in list(callbacks):
            try:
                result = callback(transition)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # Callback errors must not break the state machine
                logger.warning(
                    "state_callback_error",
                    new_state=transition.new_state.value,
                    error=str(e),
                )
