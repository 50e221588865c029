"""Async HTTP client for the local Ollama model server.

Transport failures are translated into the `OllamaError` hierarchy so the
routers and exception handlers never have to inspect httpx exceptions.
"""

import logging
import time

import httpx

from localchat_shared.schemas.chat import ChatReply, ChatTurn, Usage

logger = logging.getLogger(__name__)

# Health and startup probes use a shorter timeout than chat calls.
_PROBE_TIMEOUT_SECONDS = 5.0


class OllamaError(Exception):
    """Base class for upstream failures. `status_code` is the HTTP status to return."""

    status_code = 500
    error = "Internal server error occurred while processing your request."

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details


class OllamaUnavailableError(OllamaError):
    status_code = 503
    error = "Ollama service is not available. Please ensure Ollama is running."


class ModelNotFoundError(OllamaError):
    status_code = 404

    def __init__(self, model_name: str):
        super().__init__("Model not available in Ollama")
        self.model_name = model_name
        self.error = (
            f'Model "{model_name}" not found. '
            f"Please pull the model first with: ollama pull {model_name}"
        )


class OllamaTimeoutError(OllamaError):
    status_code = 408
    error = "Request timeout. The model took too long to respond."


class OllamaResponseError(OllamaError):
    """The upstream answered, but not with something we can use."""


class OllamaClient:
    """Wraps the Ollama endpoints used by the proxy."""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        timeout: float = 30.0,
        temperature: float = 0.6,
        num_predict: int = 2048,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self.model_name = model_name
        self._timeout = timeout
        self._temperature = temperature
        self._num_predict = num_predict
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=self._transport,
        )

    async def get_version(self) -> str:
        """Return the server version string; raises OllamaError when unreachable."""
        try:
            async with self._client(_PROBE_TIMEOUT_SECONDS) as client:
                response = await client.get("/api/version")
                response.raise_for_status()
                return response.json().get("version") or "unknown"
        except httpx.ConnectError as exc:
            raise OllamaUnavailableError("Connection refused to Ollama server") from exc
        except httpx.TimeoutException as exc:
            raise OllamaTimeoutError("Version probe timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise OllamaResponseError(str(exc)) from exc

    async def list_models(self) -> list[str]:
        """Names of the models the server has pulled."""
        try:
            async with self._client(_PROBE_TIMEOUT_SECONDS) as client:
                response = await client.get("/api/tags")
                response.raise_for_status()
                models = response.json().get("models") or []
        except httpx.ConnectError as exc:
            raise OllamaUnavailableError("Connection refused to Ollama server") from exc
        except httpx.TimeoutException as exc:
            raise OllamaTimeoutError("Model listing timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise OllamaResponseError(str(exc)) from exc
        return [model["name"] for model in models if model.get("name")]

    async def chat(self, messages: list[ChatTurn]) -> ChatReply:
        """Send a non-streaming chat request and return the reply with usage."""
        payload = {
            "model": self.model_name,
            "messages": [message.model_dump(mode="json") for message in messages],
            "stream": False,
            "options": {
                "temperature": self._temperature,
                "num_predict": self._num_predict,
            },
        }
        logger.info(
            "Sending chat request model=%s messages=%d", self.model_name, len(messages)
        )

        start_time = time.monotonic()
        try:
            async with self._client(self._timeout) as client:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError as exc:
            raise OllamaUnavailableError("Connection refused to Ollama server") from exc
        except httpx.TimeoutException as exc:
            raise OllamaTimeoutError(
                f"Request timed out after {self._timeout:g} seconds"
            ) from exc
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise ModelNotFoundError(self.model_name) from exc
            raise OllamaResponseError(
                f"Ollama returned HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise OllamaResponseError(str(exc)) from exc
        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            raise OllamaResponseError("Invalid response from Ollama: missing message content")

        prompt_tokens = data.get("prompt_eval_count") or 0
        completion_tokens = data.get("eval_count") or 0
        logger.info(
            "Ollama response received in %dms (tokens=%d)",
            elapsed_ms, prompt_tokens + completion_tokens,
        )
        return ChatReply(
            reply=content,
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
                response_time_ms=elapsed_ms,
            ),
        )
