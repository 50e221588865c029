"""Base settings shared across all localchat components.

Each component defines its own Settings class that inherits from SharedSettings,
adding component-specific fields without repeating common configuration.
"""

from typing import Annotated

from pydantic import BeforeValidator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_comma_separated_ints(value: object) -> list[int]:
    """Convert env var formats into a list of ints.

    Handles a bare int (``3000``), a comma-separated string
    (``"3000,3001,3002"``), or an already-parsed list.
    """
    if isinstance(value, int):
        return [value]
    if isinstance(value, str):
        return [int(item.strip()) for item in value.split(",") if item.strip()]
    return value  # type: ignore[return-value]


def _parse_comma_separated_strs(value: object) -> list[str]:
    """Split ``"http://a,http://b"`` into a list; lists pass through untouched."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value  # type: ignore[return-value]


CommaSeparatedInts = Annotated[list[int], BeforeValidator(_parse_comma_separated_ints)]
CommaSeparatedStrs = Annotated[list[str], BeforeValidator(_parse_comma_separated_strs)]

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"


class SharedSettings(BaseSettings):
    """Common environment variables present in every component."""

    # Log level for all components.
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Allow extra fields so subclasses work without strict=True.
        extra="ignore",
    )
