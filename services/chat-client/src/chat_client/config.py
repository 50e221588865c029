"""Chat client configuration loaded from environment variables (CHAT_CLIENT_ prefix)."""

from pydantic_settings import SettingsConfigDict

from localchat_shared.config import CommaSeparatedInts, SharedSettings


class ClientSettings(SharedSettings):
    """All settings required by the chat client."""

    # Ports probed for a running proxy, in order. The first is the fallback.
    candidate_ports: CommaSeparatedInts = [3000, 3001, 3002, 3003, 3004, 3005]
    discovery_timeout_seconds: float = 2.0

    request_timeout_seconds: float = 60.0
    # Retries apply to transport failures only, never to HTTP error responses.
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    max_input_length: int = 4000

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
