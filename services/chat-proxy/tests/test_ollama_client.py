"""Tests for OllamaClient request shape, usage extraction and error translation.

The upstream is faked with httpx.MockTransport, so no sockets are opened.
"""

import json

import httpx
import pytest

from chat_proxy.services.ollama_client import (
    ModelNotFoundError,
    OllamaClient,
    OllamaResponseError,
    OllamaTimeoutError,
    OllamaUnavailableError,
)
from localchat_shared.schemas.chat import ChatTurn

_TURNS = [ChatTurn(role="user", content="Hi")]


def _client(handler) -> OllamaClient:
    return OllamaClient(
        base_url="http://ollama.test:11434/",
        model_name="test-model",
        timeout=30.0,
        temperature=0.6,
        num_predict=2048,
        transport=httpx.MockTransport(handler),
    )


class TestChat:
    @pytest.mark.asyncio
    async def test_request_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "ok"}})

        await _client(handler).chat(_TURNS)

        assert captured["url"] == "http://ollama.test:11434/api/chat"
        assert captured["body"] == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
            "options": {"temperature": 0.6, "num_predict": 2048},
        }

    @pytest.mark.asyncio
    async def test_usage_from_eval_counts(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "message": {"role": "assistant", "content": "Hello"},
                    "prompt_eval_count": 11,
                    "eval_count": 22,
                },
            )

        reply = await _client(handler).chat(_TURNS)

        assert reply.reply == "Hello"
        assert reply.usage.prompt_tokens == 11
        assert reply.usage.completion_tokens == 22
        assert reply.usage.total_tokens == 33
        assert reply.usage.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_missing_counts_default_to_zero(self):
        def handler(request):
            return httpx.Response(200, json={"message": {"content": "Hello"}})

        reply = await _client(handler).chat(_TURNS)
        assert reply.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_missing_content_is_response_error(self):
        def handler(request):
            return httpx.Response(200, json={"message": {"role": "assistant"}})

        with pytest.raises(OllamaResponseError, match="missing message content"):
            await _client(handler).chat(_TURNS)


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(OllamaUnavailableError) as exc_info:
            await _client(handler).chat(_TURNS)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(OllamaTimeoutError) as exc_info:
            await _client(handler).chat(_TURNS)
        assert exc_info.value.status_code == 408
        assert "30 seconds" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_upstream_404_is_model_not_found(self):
        def handler(request):
            return httpx.Response(404, json={"error": "model not found"})

        with pytest.raises(ModelNotFoundError) as exc_info:
            await _client(handler).chat(_TURNS)
        assert exc_info.value.status_code == 404
        assert "ollama pull test-model" in exc_info.value.error

    @pytest.mark.asyncio
    async def test_other_status_is_response_error(self):
        def handler(request):
            return httpx.Response(500, text="kaput")

        with pytest.raises(OllamaResponseError) as exc_info:
            await _client(handler).chat(_TURNS)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_body_is_response_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>proxy error</html>")

        with pytest.raises(OllamaResponseError):
            await _client(handler).chat(_TURNS)


class TestProbes:
    @pytest.mark.asyncio
    async def test_get_version(self):
        def handler(request):
            assert request.url.path == "/api/version"
            return httpx.Response(200, json={"version": "0.5.1"})

        assert await _client(handler).get_version() == "0.5.1"

    @pytest.mark.asyncio
    async def test_get_version_unknown(self):
        def handler(request):
            return httpx.Response(200, json={})

        assert await _client(handler).get_version() == "unknown"

    @pytest.mark.asyncio
    async def test_list_models(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "a"}, {"name": "b"}]})

        assert await _client(handler).list_models() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_probe_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(OllamaUnavailableError):
            await _client(handler).get_version()
