"""Shared test configuration for chat-proxy tests.

Sets environment variables before any chat_proxy module that builds its
settings at import time is imported, and provides an app whose upstream
client, database session and render settings are all replaced.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OLLAMA_HOST", "http://ollama.test:11434")
os.environ.setdefault("MODEL_NAME", "test-model")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from chat_proxy.db.engine import get_db  # noqa: E402
from chat_proxy.dependencies import get_ollama_client, get_render_settings  # noqa: E402
from chat_proxy.main import create_app  # noqa: E402
from chat_render.config import RenderSettings  # noqa: E402


@pytest.fixture
def ollama_client() -> MagicMock:
    client = MagicMock()
    client.model_name = "test-model"
    client.chat = AsyncMock()
    client.get_version = AsyncMock(return_value="0.5.1")
    client.list_models = AsyncMock(return_value=["test-model"])
    return client


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(ollama_client, db):
    application = create_app()

    async def override_db():
        yield db

    async def override_ollama_client():
        return ollama_client

    async def override_render_settings():
        return RenderSettings(
            _env_file=None,
            stream_min_delay_ms=0,
            stream_max_delay_ms=0,
            punctuation_pause_ms=0,
        )

    application.dependency_overrides[get_db] = override_db
    application.dependency_overrides[get_ollama_client] = override_ollama_client
    application.dependency_overrides[get_render_settings] = override_render_settings
    return application


@pytest.fixture
def client(app) -> TestClient:
    # Not used as a context manager: the lifespan (database, startup probe)
    # is not needed when every dependency is overridden.
    return TestClient(app, raise_server_exceptions=False)
