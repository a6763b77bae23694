"""Credential Fetcher - Short-lived avatar session tokens.

Exchanges the long-lived HeyGen API key for a session token that the
streaming client authenticates with. The API key never leaves the server.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from src.config.constants import PROVIDER
from src.exceptions import CredentialFetchError
from src.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CredentialConfig:
    """Configuration for the token endpoint."""

    api_key: str | None
    base_url: str = PROVIDER.HEYGEN_BASE_URL
    token_path: str = PROVIDER.HEYGEN_TOKEN_PATH
    timeout_s: float = PROVIDER.HTTP_TIMEOUT_S


class CredentialFetcher:
    """Issues avatar session tokens.

    Usage:
        fetcher = CredentialFetcher(CredentialConfig(api_key="..."))
        token = await fetcher.fetch_token()
    """

    def __init__(
        self,
        config: CredentialConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None

    async def fetch_token(self) -> str:
        """Request a new session token.

        Returns:
            Token string

        Raises:
            CredentialFetchError: Missing key, transport failure, non-2xx
                response, or a body without data.token
        """
        if not self._config.api_key:
            raise CredentialFetchError("HEYGEN_API_KEY is not configured")

        client = self._get_client()
        url = self._config.base_url.rstrip("/") + self._config.token_path

        try:
            response = await client.post(
                url,
                headers={PROVIDER.HEYGEN_API_KEY_HEADER: self._config.api_key},
            )
        except httpx.HTTPError as e:
            logger.error("token_request_failed", error=str(e))
            raise CredentialFetchError(f"token request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "token_request_rejected",
                status_code=response.status_code,
            )
            raise CredentialFetchError(
                f"token endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            token = response.json()["data"]["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise CredentialFetchError("token missing from response") from e

        if not token:
            raise CredentialFetchError("token missing from response")

        logger.debug("token_issued")
        return token

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_s)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
