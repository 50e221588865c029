"""FastAPI application factory for the local chat proxy."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_proxy.config import settings
from chat_proxy.db.engine import create_tables, dispose_engine, initialize_engine
from chat_proxy.dependencies import build_ollama_client, set_ollama_client
from chat_proxy.middleware.error_handler import (
    global_exception_handler,
    http_exception_handler,
    ollama_exception_handler,
    validation_exception_handler,
)
from chat_proxy.middleware.request_logging import log_requests
from chat_proxy.routers import chat, discovery, health, sessions
from chat_proxy.services.ollama_client import OllamaClient, OllamaError
from localchat_shared.config import LOG_FORMAT

logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


async def check_ollama_connection(client: OllamaClient) -> bool:
    """Log upstream reachability and whether the configured model is pulled.

    Never raises: the proxy starts either way and /health reports the state.
    """
    logger.info("Checking Ollama connection at %s", settings.ollama_host)
    try:
        version = await client.get_version()
    except OllamaError as exc:
        logger.warning("Ollama is not accessible (%s). Is `ollama serve` running?", exc.details)
        return False
    logger.info("Ollama is accessible (version: %s)", version)

    try:
        models = await client.list_models()
    except OllamaError:
        logger.warning("Could not check available models")
        return True

    if client.model_name in models:
        logger.info('Model "%s" is available', client.model_name)
    else:
        logger.warning(
            'Model "%s" not found (available: %s). Run: ollama pull %s',
            client.model_name, ", ".join(models) or "none", client.model_name,
        )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanly shut down shared resources."""
    logger.info("Starting chat proxy (model=%s)", settings.model_name)

    initialize_engine(settings.database_url)
    await create_tables()

    client = build_ollama_client()
    set_ollama_client(client)
    await check_ollama_connection(client)

    yield

    logger.info("Shutting down chat proxy")
    await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Local Chat Proxy",
        description="Proxy between chat clients and a local Ollama server",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(OllamaError, ollama_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(health.router)
    app.include_router(discovery.router)
    app.include_router(chat.router)
    app.include_router(sessions.router)

    return app


app = create_app()
