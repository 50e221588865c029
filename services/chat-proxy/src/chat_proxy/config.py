"""Chat proxy configuration loaded from environment variables."""

from localchat_shared.config import CommaSeparatedStrs, SharedSettings


class ProxySettings(SharedSettings):
    """All settings required by the chat proxy."""

    ollama_host: str = "http://localhost:11434"
    model_name: str = "kimi-k2:1t-cloud"

    # Bind address. When `port` is taken the next `max_port_attempts - 1`
    # ports are tried in order.
    host: str = "127.0.0.1"
    port: int = 3000
    max_port_attempts: int = 10

    # Upstream timeout and generation options.
    request_timeout_seconds: float = 30.0
    temperature: float = 0.6
    num_predict: int = 2048

    cors_origins: CommaSeparatedStrs = ["*"]

    database_url: str = "sqlite+aiosqlite:///./localchat.db"
    # Stored messages prepended as context when a session_id is given.
    history_limit: int = 50

    max_message_length: int = 4000


# Single settings instance used across the application.
settings = ProxySettings()
