"""FastAPI dependency providers for the upstream client and render settings."""

from chat_proxy.config import settings
from chat_proxy.services.ollama_client import OllamaClient
from chat_render.config import RenderSettings
from chat_render.config import settings as render_settings

# Ollama client is created once in the lifespan and stored here.
_ollama_client: OllamaClient | None = None


def build_ollama_client() -> OllamaClient:
    return OllamaClient(
        base_url=settings.ollama_host,
        model_name=settings.model_name,
        timeout=settings.request_timeout_seconds,
        temperature=settings.temperature,
        num_predict=settings.num_predict,
    )


def set_ollama_client(client: OllamaClient) -> None:
    """Called during app startup to register the shared Ollama client."""
    global _ollama_client
    _ollama_client = client


async def get_ollama_client() -> OllamaClient:
    """FastAPI dependency that returns the shared Ollama client."""
    if _ollama_client is None:
        raise RuntimeError("Ollama client not initialized")
    return _ollama_client


async def get_render_settings() -> RenderSettings:
    return render_settings
