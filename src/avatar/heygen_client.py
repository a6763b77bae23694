"""HeyGen Streaming Client - REST adapter for the HeyGen streaming avatar API.

Session flow:
- streaming.new   → session_id + media room URL/access token
- streaming.start → avatar joins the room; STREAM_READY is emitted
- streaming.task  → speak text (repeat or talk)
- streaming.start_listening / streaming.stop_listening → voice chat
- streaming.stop  → terminate

The media room itself is joined by the browser; the stream handle carries
everything it needs. Microphone audio is published by the browser while
voice chat is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.avatar.interface import (
    AvatarProvider,
    AvatarQuality,
    AvatarSession,
    StreamHandle,
    StreamingEvent,
    TaskType,
)
from src.config.constants import PROVIDER
from src.exceptions import ProviderUnavailableError
from src.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class HeyGenConfig:
    """Configuration for the HeyGen streaming API."""

    base_url: str = PROVIDER.HEYGEN_BASE_URL
    version: str = PROVIDER.HEYGEN_API_VERSION
    timeout_s: float = PROVIDER.HTTP_TIMEOUT_S


class HeyGenStreamingClient(AvatarProvider):
    """HeyGen streaming avatar backend.

    One instance per session token.

    Usage:
        client = HeyGenStreamingClient(token)
        client.on(StreamingEvent.STREAM_READY, on_ready)
        session = await client.create_start_avatar("Wayne_20240711", AvatarQuality.HIGH)
        await client.speak("Hello there")
        await client.stop_avatar()
        await client.aclose()
    """

    def __init__(
        self,
        token: str,
        config: HeyGenConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._token = token
        self._config = config or HeyGenConfig()
        self._client = http_client
        self._owns_client = http_client is None
        self._session_id: str | None = None

    @property
    def name(self) -> str:
        """Backend identifier."""
        return "heygen"

    @property
    def session_id(self) -> str | None:
        """Session opened by this client, if any."""
        return self._session_id

    async def create_start_avatar(
        self,
        avatar_name: str,
        quality: AvatarQuality,
    ) -> AvatarSession:
        """Create a session, start it and emit STREAM_READY."""
        data = await self._post(
            "streaming.new",
            {
                "quality": quality.value,
                "avatar_name": avatar_name,
                "version": self._config.version,
            },
        )

        try:
            session_id = data["session_id"]
            stream = StreamHandle(
                url=data["url"],
                access_token=data["access_token"],
                session_id=session_id,
            )
        except (KeyError, TypeError) as e:
            raise ProviderUnavailableError(
                "heygen", f"malformed streaming.new response: missing {e}"
            ) from e

        self._session_id = session_id
        await self._post("streaming.start", {"session_id": session_id})

        logger.info("heygen_session_started", session_id=session_id)
        await self.emit(StreamingEvent.STREAM_READY, stream)

        return AvatarSession(session_id=session_id, stream=stream)

    async def speak(self, text: str, task_type: TaskType = TaskType.REPEAT) -> None:
        """Send a speak task for the current session."""
        await self._post(
            "streaming.task",
            {
                "session_id": self._require_session(),
                "text": text,
                "task_type": task_type.value,
            },
        )

    async def start_voice_chat(self, session_id: str, audio: bool = True) -> None:
        """Put the avatar into listening mode for microphone input."""
        await self._post("streaming.start_listening", {"session_id": session_id})

    async def stop_voice_chat(self, session_id: str) -> None:
        """Take the avatar out of listening mode."""
        await self._post("streaming.stop_listening", {"session_id": session_id})

    async def stop_avatar(self) -> None:
        """Terminate the remote session."""
        session_id = self._require_session()
        try:
            await self._post("streaming.stop", {"session_id": session_id})
        finally:
            self._session_id = None

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _require_session(self) -> str:
        if self._session_id is None:
            raise ProviderUnavailableError("heygen", "no streaming session open")
        return self._session_id

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_s)
        return self._client

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to a streaming endpoint and unwrap the data envelope.

        Raises:
            ProviderUnavailableError: Transport failure or non-2xx response
        """
        url = f"{self._config.base_url.rstrip('/')}/v1/{endpoint}"
        try:
            response = await self._get_client().post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            logger.error("heygen_request_failed", endpoint=endpoint, error=str(e))
            raise ProviderUnavailableError("heygen", f"{endpoint}: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "heygen_request_rejected",
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise ProviderUnavailableError(
                "heygen",
                f"{endpoint} returned {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}

        try:
            body = response.json()
        except ValueError:
            return {}

        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return {}


def create_heygen_provider_factory(
    config: HeyGenConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
):
    """Build a factory that creates one HeyGen client per session token.

    Args:
        config: Streaming API configuration
        http_client: Shared HTTP client (tests inject a mock transport here)

    Returns:
        Callable taking a token and returning a HeyGenStreamingClient
    """
    config = config or HeyGenConfig()

    def factory(token: str) -> HeyGenStreamingClient:
        return HeyGenStreamingClient(token, config=config, http_client=http_client)

    return factory
