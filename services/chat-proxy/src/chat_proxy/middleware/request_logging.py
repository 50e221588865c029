"""Logs one line per incoming request."""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)


async def log_requests(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)
