"""Mock Conversation Client - For testing without the OpenAI service.

Provides canned replies with the same interface as ConversationClient.

Usage:
    Set ASSISTANT_ENGINE=mock in .env to use this client.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from src.exceptions import NotInitializedError, ProviderUnavailableError

DEFAULT_REPLY = "I understand. Let me help you with that."

# Replies for specific patterns
PATTERN_RESPONSES = {
    "hello": "Hello! I'm your streaming assistant. How can I help you today?",
    "hi": "Hi there! What can I do for you?",
    "help": "I'm here to help! Ask me anything and I'll answer out loud.",
    "name": "I'm a HeyGen streaming assistant. Nice to meet you!",
    "bye": "Goodbye! It was nice chatting with you.",
    "thank": "You're welcome! Is there anything else I can help you with?",
}


@dataclass
class MockAssistantConfig:
    """Configuration for mock conversation client."""

    delay_ms: int = 0  # Simulated run latency
    fail_initialize: bool = False
    fail_send: bool = False


class MockConversationClient:
    """Mock conversation client for testing.

    Records every user turn in `sent` and answers by pattern match, falling
    back to an echo of the input.
    """

    def __init__(self, config: MockAssistantConfig | None = None) -> None:
        self._config = config or MockAssistantConfig()
        self._assistant_id: str | None = None
        self._thread_id: str | None = None
        self.sent: list[str] = []
        self.initialize_calls = 0

    @property
    def assistant_id(self) -> str | None:
        return self._assistant_id

    @property
    def thread_id(self) -> str | None:
        return self._thread_id

    @property
    def is_initialized(self) -> bool:
        return self._assistant_id is not None and self._thread_id is not None

    async def initialize(self) -> None:
        """Create fake assistant and thread ids."""
        self.initialize_calls += 1
        if self.is_initialized:
            return
        if self._config.fail_initialize:
            raise ProviderUnavailableError("mock", "initialize failed")
        self._assistant_id = f"asst_mock_{uuid.uuid4().hex[:8]}"
        self._thread_id = f"thread_mock_{uuid.uuid4().hex[:8]}"

    def _get_response(self, text: str) -> str:
        lowered = text.lower()
        for pattern, response in PATTERN_RESPONSES.items():
            if pattern in lowered:
                return response
        if not text.strip():
            return DEFAULT_REPLY
        return f"You said: {text}"

    async def send_message(self, text: str) -> str:
        """Return a canned reply after the configured delay."""
        if not self.is_initialized:
            raise NotInitializedError("conversation client", "send message")
        if self._config.fail_send:
            raise ProviderUnavailableError("mock", "send message failed")

        self.sent.append(text)
        if self._config.delay_ms:
            await asyncio.sleep(self._config.delay_ms / 1000)
        return self._get_response(text)

    async def close(self) -> None:
        """Nothing to release."""
        pass
