"""Command-line entry point: bind the first free port and run the proxy.

The proxy starts at the configured port and walks upward when it is taken,
so a second instance (or another local service) never blocks startup.
Clients find the chosen port through GET /config.
"""

import logging
import socket
import sys

import uvicorn

from chat_proxy.config import settings
from chat_proxy.main import app

logger = logging.getLogger(__name__)


def is_port_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(host: str, start_port: int, max_attempts: int) -> int | None:
    """Return the first bindable port in ``[start_port, start_port + max_attempts)``."""
    for port in range(start_port, start_port + max_attempts):
        if is_port_free(host, port):
            return port
        logger.info("Port %d is already in use. Trying port %d...", port, port + 1)
    return None


def main() -> None:
    port = find_available_port(settings.host, settings.port, settings.max_port_attempts)
    if port is None:
        logger.error(
            "No free port in %d-%d", settings.port, settings.port + settings.max_port_attempts - 1
        )
        sys.exit(1)

    app.state.port = port
    logger.info("Chat proxy listening on http://localhost:%d (model=%s)", port, settings.model_name)
    logger.info("Health check: http://localhost:%d/health", port)
    uvicorn.run(app, host=settings.host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
