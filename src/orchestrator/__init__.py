"""Orchestrator module - Session lifecycle and speech routing.

Provides:
- Orchestrator: Single-session orchestrator (direct or assistant speak mode)
- StateMachine: IDLE/STARTING/ACTIVE/ENDING lifecycle FSM
"""

from __future__ import annotations

from functools import partial

import httpx

from src.orchestrator.orchestrator import (
    ControlState,
    OperationResult,
    Orchestrator,
    OrchestratorSnapshot,
    SpeakMode,
)
from src.orchestrator.state_machine import (
    VALID_TRANSITIONS,
    OrchestratorState,
    StateMachine,
    StateTransition,
)


def create_orchestrator(
    settings=None,
    http_client: httpx.AsyncClient | None = None,
) -> Orchestrator:
    """Build an orchestrator wired to the configured engines.

    Args:
        settings: Settings instance (get_settings() if omitted)
        http_client: Optional shared HTTP client for the HeyGen backend

    Returns:
        Orchestrator in IDLE state
    """
    from src.assistant import create_conversation_client
    from src.avatar import create_avatar_controller, create_credential_fetcher

    if settings is None:
        from src.config.settings import get_settings
        settings = get_settings()

    credentials = create_credential_fetcher(
        settings.avatar_engine, http_client=http_client, settings=settings
    )
    avatar = create_avatar_controller(
        settings.avatar_engine, http_client=http_client, settings=settings
    )

    conversation_factory = None
    if settings.assistant_enabled:
        conversation_factory = partial(
            create_conversation_client, settings.assistant_engine, settings=settings
        )

    return Orchestrator(
        credentials,
        avatar,
        conversation_factory=conversation_factory,
        mode=SpeakMode(settings.speak_mode),
    )


__all__ = [
    # Orchestrator
    "Orchestrator",
    "OrchestratorSnapshot",
    "OperationResult",
    "ControlState",
    "SpeakMode",
    # State machine
    "OrchestratorState",
    "StateMachine",
    "StateTransition",
    "VALID_TRANSITIONS",
    # Factories
    "create_orchestrator",
]
