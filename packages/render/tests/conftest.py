"""Shared fixtures for render tests.

Settings are built explicitly so a developer's .env or RENDER_* variables
cannot change expected output.
"""

import pytest

from chat_render.config import RenderSettings


@pytest.fixture
def render_settings() -> RenderSettings:
    return RenderSettings(
        _env_file=None,
        default_code_language="plaintext",
        cpp_token_threshold=3,
        script_token_threshold=2,
        trust_html_replies=True,
        stream_min_delay_ms=10,
        stream_max_delay_ms=10,
        punctuation_pause_ms=150,
    )
