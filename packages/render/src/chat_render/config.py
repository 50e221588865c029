"""Rendering configuration loaded from environment variables (RENDER_ prefix)."""

from pydantic_settings import SettingsConfigDict

from localchat_shared.config import SharedSettings


class RenderSettings(SharedSettings):
    """Knobs for the formatting pipeline and the streaming reveal."""

    # Language used for fences with a missing or unknown tag.
    default_code_language: str = "plaintext"

    # Minimum indicative-token counts before unfenced text is treated as code.
    cpp_token_threshold: int = 3
    script_token_threshold: int = 2

    # Replies that already contain HTML tags skip the pipeline entirely.
    # Set to False to escape them like any other text.
    trust_html_replies: bool = True

    # Per-token reveal delay range, plus the extra pause after , and .
    stream_min_delay_ms: int = 10
    stream_max_delay_ms: int = 40
    punctuation_pause_ms: int = 150

    model_config = SettingsConfigDict(
        env_prefix="RENDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = RenderSettings()
