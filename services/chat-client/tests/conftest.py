"""Shared fixtures for chat-client tests.

Settings are built without reading .env or CHAT_CLIENT_* variables so the
candidate ports and retry policy are fixed.
"""

import pytest

from chat_client.config import ClientSettings


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(
        _env_file=None,
        candidate_ports=[3000, 3001, 3002],
        discovery_timeout_seconds=2.0,
        request_timeout_seconds=60.0,
        max_retries=3,
        retry_delay_seconds=1.0,
        max_input_length=4000,
    )
