"""Health check endpoint reporting upstream connectivity."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from chat_proxy.dependencies import get_ollama_client
from chat_proxy.services.ollama_client import OllamaClient, OllamaError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(client: OllamaClient = Depends(get_ollama_client)) -> JSONResponse:
    """200 when the model server answers its version probe, 503 otherwise."""
    body = {
        "timestamp": datetime.now(UTC).isoformat(),
        "model": client.model_name,
    }
    try:
        version = await client.get_version()
    except OllamaError:
        return JSONResponse(
            status_code=503,
            content={
                "status": "degraded",
                **body,
                "ollama_status": "disconnected",
                "error": "Ollama service not accessible",
            },
        )
    return JSONResponse(
        content={
            "status": "ok",
            **body,
            "ollama_status": "connected",
            "ollama_version": version,
        }
    )
