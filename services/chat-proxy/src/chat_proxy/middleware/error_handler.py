"""Exception handlers that normalize every error response to JSON.

Bodies always carry an ``error`` message; most also carry ``details``.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_proxy.services.ollama_client import OllamaError

logger = logging.getLogger(__name__)


_HTTP_METHODS = {"get", "put", "post", "delete", "options", "head", "patch", "trace"}


def _available_endpoints(request: Request) -> list[str]:
    """``METHOD path`` for every documented route, read from the OpenAPI schema.

    The schema is flattened already, so routes from included routers appear
    however the framework nests them internally.
    """
    paths = request.app.openapi().get("paths", {})
    return [
        f"{method.upper()} {path}"
        for path, operations in paths.items()
        for method in sorted(operations)
        if method in _HTTP_METHODS
    ]


def _describe_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    if location:
        return f"{location}: {error.get('msg', 'invalid value')}"
    return error.get("msg", "invalid value")


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a structured JSON error response.

    The full traceback is logged server-side; the 500 body stays generic.
    """
    logger.exception("Unhandled exception for %s %s", request.method, request.url)
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "details": "Please try again later",
        },
    )


async def ollama_exception_handler(request: Request, exc: OllamaError) -> JSONResponse:
    logger.warning(
        "Upstream failure for %s %s: %s (%s)",
        request.method, request.url.path, type(exc).__name__, exc.details,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "details": exc.details},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies as 400 with one readable line per problem."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request: messages must be a non-empty array of "
            "{role, content} with role user, assistant or system",
            "details": [_describe_validation_error(error) for error in exc.errors()],
        },
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Unknown routes list what is available; other HTTP errors keep their detail."""
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={
                "error": "Endpoint not found",
                "available_endpoints": _available_endpoints(request),
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )
