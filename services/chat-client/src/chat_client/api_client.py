"""Async HTTP client for the local chat proxy.

The proxy may have fallen back to another port, so `discover` probes the
candidate ports for its /config endpoint before anything else is called.
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

import httpx

from chat_client.config import ClientSettings
from localchat_shared.schemas.chat import ChatReply, ChatTurn
from localchat_shared.schemas.streaming import RenderEvent

logger = logging.getLogger(__name__)

STATUS_READY = "Ready"
STATUS_OLLAMA_OFFLINE = "Ollama Offline"
STATUS_BACKEND_ERROR = "Backend Error"
STATUS_BACKEND_OFFLINE = "Backend Offline"
STATUS_BACKEND_NOT_FOUND = "Backend Not Found"


class ChatApiError(Exception):
    """The proxy answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        error = None
    return error or f"HTTP {response.status_code}: {response.reason_phrase}"


class ChatApiClient:
    """Wraps the chat proxy endpoints with typed method calls."""

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or ClientSettings()
        self._transport = transport
        self.backend_found = False
        self.status = STATUS_BACKEND_NOT_FOUND
        self._use_port(self._settings.candidate_ports[0])

    def _use_port(self, port: int) -> None:
        base_url = f"http://localhost:{port}"
        self.base_url = base_url
        self.api_url = f"{base_url}/api/chat"
        self.health_url = f"{base_url}/health"

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def discover(self) -> bool:
        """Find the proxy among the candidate ports.

        Returns True when one answered. Otherwise the first candidate port is
        kept and the status becomes "Backend Not Found".
        """
        async with self._client(self._settings.discovery_timeout_seconds) as client:
            for port in self._settings.candidate_ports:
                try:
                    response = await client.get(f"http://localhost:{port}/config")
                except httpx.HTTPError as exc:
                    logger.debug("No backend on port %d: %s", port, exc)
                    continue
                if response.status_code != 200:
                    continue

                config = response.json()
                self._use_port(config.get("port", port))
                self.api_url = config.get("apiUrl", self.api_url)
                self.health_url = config.get("healthUrl", self.health_url)
                self.backend_found = True
                logger.info("Backend found on port %d", port)
                return True

        logger.warning("Could not detect backend server. Using default configuration.")
        self._use_port(self._settings.candidate_ports[0])
        self.backend_found = False
        self.status = STATUS_BACKEND_NOT_FOUND
        return False

    async def check_health(self) -> str:
        """Probe /health and return the matching status label."""
        try:
            async with self._client(self._settings.discovery_timeout_seconds) as client:
                response = await client.get(self.health_url)
        except httpx.HTTPError:
            self.status = STATUS_BACKEND_OFFLINE
            return self.status

        if response.status_code == 200:
            connected = response.json().get("ollama_status") == "connected"
            self.status = STATUS_READY if connected else STATUS_OLLAMA_OFFLINE
        elif response.status_code == 503:
            self.status = STATUS_OLLAMA_OFFLINE
        else:
            self.status = STATUS_BACKEND_ERROR
        return self.status

    async def send_chat(
        self, messages: list[ChatTurn], session_id: str | None = None
    ) -> ChatReply:
        """POST the conversation and return the reply.

        Transport failures and timeouts are retried up to `max_retries` times
        with a linearly growing delay; HTTP error responses raise ChatApiError
        immediately.
        """
        payload: dict = {"messages": [message.model_dump(mode="json") for message in messages]}
        if session_id:
            payload["session_id"] = session_id

        attempt = 0
        while True:
            try:
                async with self._client(self._settings.request_timeout_seconds) as client:
                    response = await client.post(self.api_url, json=payload)
                break
            except httpx.TransportError as exc:
                if attempt >= self._settings.max_retries:
                    raise
                attempt += 1
                logger.info(
                    "Retrying API call (%d/%d) after %s",
                    attempt, self._settings.max_retries, type(exc).__name__,
                )
                await asyncio.sleep(self._settings.retry_delay_seconds * attempt)

        if not response.is_success:
            raise ChatApiError(response.status_code, _error_message(response))

        self.status = STATUS_READY
        return ChatReply.model_validate(response.json())

    async def stream_chat(
        self, messages: list[ChatTurn], session_id: str | None = None
    ) -> AsyncGenerator[RenderEvent, None]:
        """Run an exchange through /api/chat/stream and yield its render events."""
        payload: dict = {"messages": [message.model_dump(mode="json") for message in messages]}
        if session_id:
            payload["session_id"] = session_id

        async with self._client(self._settings.request_timeout_seconds) as client:
            async with client.stream("POST", f"{self.api_url}/stream", json=payload) as response:
                if not response.is_success:
                    await response.aread()
                    raise ChatApiError(response.status_code, _error_message(response))
                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[6:]
                    if data == "[DONE]":
                        break
                    try:
                        yield RenderEvent.model_validate(json.loads(data))
                    except ValueError:
                        logger.warning("Skipping malformed render event: %s", data)
