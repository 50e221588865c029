"""Endpoint clients probe to find which port the proxy ended up on."""

from fastapi import APIRouter, Request

from chat_proxy.config import settings

router = APIRouter(tags=["discovery"])


@router.get("/config")
async def get_config(request: Request) -> dict:
    port = getattr(request.app.state, "port", settings.port)
    base_url = f"http://localhost:{port}"
    return {
        "port": port,
        "apiUrl": f"{base_url}/api/chat",
        "healthUrl": f"{base_url}/health",
    }
