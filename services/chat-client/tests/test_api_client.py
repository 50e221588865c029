"""Tests for ChatApiClient discovery, health labels, retries and streaming.

All HTTP goes through httpx.MockTransport; asyncio.sleep is patched so retry
backoff never actually waits.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from chat_client.api_client import ChatApiClient, ChatApiError
from localchat_shared.schemas.chat import ChatTurn
from localchat_shared.schemas.streaming import RenderEventType

_SLEEP = "chat_client.api_client.asyncio.sleep"
_TURNS = [ChatTurn(role="user", content="Hi")]
_REPLY = {
    "reply": "Hello",
    "usage": {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3, "response_time_ms": 4},
}


def _api(handler, settings) -> ChatApiClient:
    return ChatApiClient(settings, transport=httpx.MockTransport(handler))


class TestDiscover:
    @pytest.mark.asyncio
    async def test_first_answering_port_is_used(self, client_settings):
        probed = []

        def handler(request: httpx.Request) -> httpx.Response:
            probed.append(request.url.port)
            if request.url.port == 3000:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(
                200,
                json={
                    "port": 3001,
                    "apiUrl": "http://localhost:3001/api/chat",
                    "healthUrl": "http://localhost:3001/health",
                },
            )

        api = _api(handler, client_settings)

        assert await api.discover() is True
        assert probed == [3000, 3001]
        assert api.backend_found
        assert api.api_url == "http://localhost:3001/api/chat"
        assert api.health_url == "http://localhost:3001/health"

    @pytest.mark.asyncio
    async def test_falls_back_to_first_port(self, client_settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        api = _api(handler, client_settings)

        assert await api.discover() is False
        assert not api.backend_found
        assert api.status == "Backend Not Found"
        assert api.api_url == "http://localhost:3000/api/chat"


class TestCheckHealth:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "body", "label"),
        [
            (200, {"ollama_status": "connected"}, "Ready"),
            (200, {"ollama_status": "disconnected"}, "Ollama Offline"),
            (503, {"status": "degraded"}, "Ollama Offline"),
            (500, {"error": "x"}, "Backend Error"),
        ],
    )
    async def test_status_labels(self, client_settings, status_code, body, label):
        api = _api(lambda request: httpx.Response(status_code, json=body), client_settings)
        assert await api.check_health() == label
        assert api.status == label

    @pytest.mark.asyncio
    async def test_unreachable_backend(self, client_settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await _api(handler, client_settings).check_health() == "Backend Offline"


class TestSendChat:
    @pytest.mark.asyncio
    async def test_success(self, client_settings):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_REPLY)

        reply = await _api(handler, client_settings).send_chat(_TURNS, session_id="abc")

        assert reply.reply == "Hello"
        assert reply.usage.total_tokens == 3
        assert captured["body"] == {
            "messages": [{"role": "user", "content": "Hi"}],
            "session_id": "abc",
        }

    @pytest.mark.asyncio
    async def test_error_response_raises_with_server_message(self, client_settings):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(404, json={"error": 'Model "m" not found'})

        with pytest.raises(ChatApiError) as exc_info:
            await _api(handler, client_settings).send_chat(_TURNS)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == 'Model "m" not found'
        assert calls == 1

    @pytest.mark.asyncio
    async def test_error_without_json_body(self, client_settings):
        api = _api(lambda request: httpx.Response(502, text="bad gateway"), client_settings)

        with pytest.raises(ChatApiError, match="HTTP 502"):
            await api.send_chat(_TURNS)

    @pytest.mark.asyncio
    async def test_transport_failures_are_retried_with_growing_delay(self, client_settings):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=_REPLY)

        with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
            reply = await _api(handler, client_settings).send_chat(_TURNS)

        assert reply.reply == "Hello"
        assert attempts == 3
        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client_settings):
        attempts = 0

        def handler(request):
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("refused", request=request)

        with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(httpx.ConnectError):
                await _api(handler, client_settings).send_chat(_TURNS)

        assert attempts == 4
        assert mock_sleep.await_count == 3


class TestStreamChat:
    @pytest.mark.asyncio
    async def test_yields_render_events_until_done(self, client_settings):
        body = (
            'data: {"type": "tag", "html": "<p>"}\n\n'
            'data: {"type": "text", "text": "Hi"}\n\n'
            "data: not json\n\n"
            'data: {"type": "done"}\n\n'
            "data: [DONE]\n\n"
        )

        def handler(request):
            assert request.url.path == "/api/chat/stream"
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        api = _api(handler, client_settings)
        events = [event async for event in api.stream_chat(_TURNS)]

        assert [event.type for event in events] == [
            RenderEventType.TAG, RenderEventType.TEXT, RenderEventType.DONE,
        ]

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client_settings):
        api = _api(lambda request: httpx.Response(503, json={"error": "down"}), client_settings)

        with pytest.raises(ChatApiError) as exc_info:
            async for _ in api.stream_chat(_TURNS):
                pass
        assert exc_info.value.status_code == 503
