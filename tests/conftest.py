"""Pytest configuration and shared fixtures."""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing settings
os.environ.update({
    "ENVIRONMENT": "development",
    "AVATAR_ENGINE": "mock",  # No HeyGen traffic in tests
    "ASSISTANT_ENGINE": "mock",  # No OpenAI traffic in tests
    "SPEAK_MODE": "assistant",
    "METRICS_ENABLED": "true",
})


@pytest.fixture
def test_settings():
    """Provide test settings instance."""
    from src.config.settings import Settings
    return Settings(
        avatar_engine="mock",
        assistant_engine="mock",
        speak_mode="assistant",
    )


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Provide FastAPI test client."""
    from src.main import app
    with TestClient(app) as c:
        yield c
