"""Avatar module - Streaming avatar providers and session control.

Supports multiple backends:
- heygen: HeyGen streaming REST API
- mock: Testing backend with fake sessions
"""

from __future__ import annotations

import httpx

from src.avatar.controller import AvatarSessionController, AvatarSessionState
from src.avatar.credentials import CredentialConfig, CredentialFetcher
from src.avatar.heygen_client import (
    HeyGenConfig,
    HeyGenStreamingClient,
    create_heygen_provider_factory,
)
from src.avatar.interface import (
    AvatarProvider,
    AvatarQuality,
    AvatarSession,
    StreamHandle,
    StreamingEvent,
    TaskType,
)
from src.avatar.mock_provider import MockAvatarProvider, MockCredentialFetcher
from src.avatar.playback import PlaybackRejected, PlaybackSink
from src.exceptions import InvalidConfigError


def create_credential_fetcher(
    engine: str | None = None,
    http_client: httpx.AsyncClient | None = None,
    settings=None,
):
    """Factory function to create the credential fetcher for an engine.

    Args:
        engine: Override engine selection ("heygen" or "mock").
                If None, uses AVATAR_ENGINE from settings.
        http_client: Optional shared HTTP client
        settings: Settings to build from (get_settings() if omitted)

    Returns:
        CredentialFetcher or MockCredentialFetcher

    Raises:
        InvalidConfigError: If engine is unknown
    """
    if settings is None:
        from src.config.settings import get_settings
        settings = get_settings()
    engine = engine or settings.avatar_engine

    if engine == "mock":
        return MockCredentialFetcher()
    elif engine == "heygen":
        return CredentialFetcher(
            CredentialConfig(
                api_key=settings.heygen_api_key,
                base_url=settings.heygen_base_url,
                timeout_s=settings.http_timeout_s,
            ),
            http_client=http_client,
        )
    else:
        raise InvalidConfigError("AVATAR_ENGINE", engine, "expected heygen or mock")


def create_avatar_controller(
    engine: str | None = None,
    sink: PlaybackSink | None = None,
    http_client: httpx.AsyncClient | None = None,
    settings=None,
) -> AvatarSessionController:
    """Factory function to create the session controller for an engine.

    Args:
        engine: Override engine selection ("heygen" or "mock").
                If None, uses AVATAR_ENGINE from settings.
        sink: Playback sink (a fresh one if omitted)
        http_client: Optional shared HTTP client for the HeyGen backend
        settings: Settings to build from (get_settings() if omitted)

    Returns:
        AvatarSessionController

    Raises:
        InvalidConfigError: If engine is unknown
    """
    if settings is None:
        from src.config.settings import get_settings
        settings = get_settings()
    engine = engine or settings.avatar_engine

    if engine == "mock":
        factory = MockAvatarProvider
    elif engine == "heygen":
        factory = create_heygen_provider_factory(
            HeyGenConfig(
                base_url=settings.heygen_base_url,
                timeout_s=settings.http_timeout_s,
            ),
            http_client=http_client,
        )
    else:
        raise InvalidConfigError("AVATAR_ENGINE", engine, "expected heygen or mock")

    return AvatarSessionController(
        factory,
        sink=sink,
        avatar_name=settings.avatar_name,
        quality=AvatarQuality(settings.avatar_quality),
    )


__all__ = [
    # Interface
    "AvatarProvider",
    "AvatarQuality",
    "AvatarSession",
    "StreamHandle",
    "StreamingEvent",
    "TaskType",
    # Backends
    "HeyGenConfig",
    "HeyGenStreamingClient",
    "MockAvatarProvider",
    # Credentials
    "CredentialConfig",
    "CredentialFetcher",
    "MockCredentialFetcher",
    # Session control
    "AvatarSessionController",
    "AvatarSessionState",
    "PlaybackRejected",
    "PlaybackSink",
    # Factories
    "create_avatar_controller",
    "create_credential_fetcher",
    "create_heygen_provider_factory",
]
