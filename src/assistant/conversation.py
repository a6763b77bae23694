"""Conversation Client - Assistant turns over the OpenAI Assistants API.

Owns one assistant identity and one thread. A turn is:
1. post the user message to the thread
2. create a run for the assistant
3. poll the run until it leaves queued/in_progress (bounded, with backoff)
4. read the newest thread message and return its text

No message history is kept locally; the thread is the history.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from openai import APIError, AsyncOpenAI

from src.config.constants import PROVIDER, RUN_COMPLETED_STATUS, RUN_PENDING_STATUSES
from src.exceptions import (
    AssistantRunError,
    MissingConfigError,
    NotInitializedError,
    ProviderUnavailableError,
    RunTimeoutError,
)
from src.observability.logging import ConversationLogger
from src.observability.metrics import record_assistant_run, record_error
from src.utils.polling import PollConfig, PollExhausted, poll_until


@dataclass
class AssistantConfig:
    """Configuration for the assistant persona and run polling."""

    api_key: str | None = None
    name: str = PROVIDER.DEFAULT_ASSISTANT_NAME
    instructions: str = PROVIDER.DEFAULT_ASSISTANT_INSTRUCTIONS
    model: str = PROVIDER.DEFAULT_ASSISTANT_MODEL
    fallback_reply: str = PROVIDER.FALLBACK_REPLY
    timeout_s: float = PROVIDER.HTTP_TIMEOUT_S
    poll: PollConfig = field(
        default_factory=lambda: PollConfig(
            interval_s=PROVIDER.RUN_POLL_INTERVAL_S,
            backoff_factor=PROVIDER.RUN_POLL_BACKOFF_FACTOR,
            max_interval_s=PROVIDER.RUN_POLL_MAX_INTERVAL_S,
            max_attempts=PROVIDER.RUN_POLL_MAX_ATTEMPTS,
            timeout_s=PROVIDER.RUN_TIMEOUT_S,
        )
    )


class ConversationClient:
    """Assistant conversation over a single remote thread.

    Usage:
        client = ConversationClient(AssistantConfig(api_key="..."))
        await client.initialize()

        reply = await client.send_message("What can you do?")

        await client.close()
    """

    def __init__(
        self,
        config: AssistantConfig | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._config = config or AssistantConfig()
        self._client = client
        self._owns_client = client is None
        self._assistant_id: str | None = None
        self._thread_id: str | None = None
        self._log = ConversationLogger()

    @property
    def assistant_id(self) -> str | None:
        """Remote assistant identity."""
        return self._assistant_id

    @property
    def thread_id(self) -> str | None:
        """Remote thread identifier."""
        return self._thread_id

    @property
    def is_initialized(self) -> bool:
        """Whether both remote handles exist."""
        return self._assistant_id is not None and self._thread_id is not None

    async def initialize(self) -> None:
        """Create the assistant and the thread.

        Calling again on an initialised client does nothing, so no second
        assistant or thread is ever created for the same client.

        Raises:
            MissingConfigError: If no API key is configured
            ProviderUnavailableError: If either remote call fails
        """
        if self.is_initialized:
            return

        client = self._get_client()
        try:
            assistant = await client.beta.assistants.create(
                name=self._config.name,
                instructions=self._config.instructions,
                model=self._config.model,
            )
            thread = await client.beta.threads.create()
        except APIError as e:
            record_error("assistant", type(e).__name__)
            raise ProviderUnavailableError("openai", f"initialize: {e}") from e

        self._assistant_id = assistant.id
        self._thread_id = thread.id
        self._log = ConversationLogger(thread.id)
        self._log.initialized(assistant.id, thread.id)

    async def send_message(self, text: str) -> str:
        """Post a user turn and wait for the assistant's reply.

        Args:
            text: User message

        Returns:
            Text of the newest thread message, or the fallback reply when it
            carries no text

        Raises:
            NotInitializedError: Before a successful initialize()
            ProviderUnavailableError: On any remote error
            AssistantRunError: If the run ends failed/cancelled/expired
            RunTimeoutError: If the run stays pending past the polling budget
        """
        if not self.is_initialized:
            raise NotInitializedError("conversation client", "send message")

        client = self._get_client()
        thread_id = self._thread_id
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            await client.beta.threads.messages.create(
                thread_id=thread_id,
                role="user",
                content=text,
            )
            run = await client.beta.threads.runs.create(
                thread_id=thread_id,
                assistant_id=self._assistant_id,
            )
            self._log.run_created(run.id)

            result = await poll_until(
                lambda: client.beta.threads.runs.retrieve(run.id, thread_id=thread_id),
                lambda current: current.status in RUN_PENDING_STATUSES,
                config=self._config.poll,
                operation_name="assistant_run",
            )
        except PollExhausted as e:
            record_error("assistant", "RunTimeoutError")
            raise RunTimeoutError(run.id, e.attempts, e.elapsed_s) from e
        except APIError as e:
            record_error("assistant", type(e).__name__)
            raise ProviderUnavailableError("openai", f"send message: {e}") from e

        status = result.value.status
        elapsed = loop.time() - started
        self._log.run_finished(run.id, status, result.attempts, elapsed * 1000)
        record_assistant_run(elapsed, result.attempts)

        if status != RUN_COMPLETED_STATUS:
            record_error("assistant", "AssistantRunError")
            raise AssistantRunError(run.id, status)

        try:
            messages = await client.beta.threads.messages.list(
                thread_id=thread_id,
                order="desc",
                limit=1,
            )
        except APIError as e:
            record_error("assistant", type(e).__name__)
            raise ProviderUnavailableError("openai", f"list messages: {e}") from e

        reply = _latest_text(messages)
        if reply is None:
            self._log.empty_reply(run.id)
            return self._config.fallback_reply
        return reply

    async def close(self) -> None:
        """Release the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.close()
        self._client = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._config.api_key:
                raise MissingConfigError("OPENAI_API_KEY", "required for the assistant")
            self._client = AsyncOpenAI(
                api_key=self._config.api_key,
                timeout=self._config.timeout_s,
            )
        return self._client


def _latest_text(messages: Any) -> str | None:
    """First text block of the newest message in a messages page."""
    data = getattr(messages, "data", None) or []
    if not data:
        return None

    for block in getattr(data[0], "content", None) or []:
        text = getattr(block, "text", None)
        value = getattr(text, "value", None)
        if value:
            return value
    return None
