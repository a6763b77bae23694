"""Assistant module - Conversation clients for the hosted assistant.

Supports multiple backends:
- openai: OpenAI Assistants API (threads + runs)
- mock: Testing backend with canned replies
"""

from __future__ import annotations

from src.assistant.conversation import AssistantConfig, ConversationClient
from src.assistant.mock_client import MockAssistantConfig, MockConversationClient
from src.exceptions import InvalidConfigError
from src.utils.polling import PollConfig


def create_conversation_client(engine: str | None = None, settings=None):
    """Factory function to create a conversation client.

    The client is returned uninitialised; the orchestrator calls
    initialize() as part of session start.

    Args:
        engine: Override engine selection ("openai" or "mock").
                If None, uses ASSISTANT_ENGINE from settings.
        settings: Settings to build the client from (get_settings() if omitted)

    Returns:
        ConversationClient or MockConversationClient

    Raises:
        InvalidConfigError: If engine is unknown
    """
    if settings is None:
        from src.config.settings import get_settings
        settings = get_settings()
    engine = engine or settings.assistant_engine

    if engine == "mock":
        return MockConversationClient()
    elif engine == "openai":
        return ConversationClient(
            AssistantConfig(
                api_key=settings.openai_api_key,
                name=settings.assistant_name,
                instructions=settings.assistant_instructions,
                model=settings.assistant_model,
                timeout_s=settings.http_timeout_s,
                poll=PollConfig(
                    interval_s=settings.run_poll_interval_s,
                    backoff_factor=settings.run_poll_backoff_factor,
                    max_interval_s=settings.run_poll_max_interval_s,
                    max_attempts=settings.run_poll_max_attempts,
                    timeout_s=settings.run_timeout_s,
                ),
            )
        )
    else:
        raise InvalidConfigError("ASSISTANT_ENGINE", engine, "expected openai or mock")


__all__ = [
    # Clients
    "ConversationClient",
    "MockConversationClient",
    # Configuration
    "AssistantConfig",
    "MockAssistantConfig",
    # Factories
    "create_conversation_client",
]
