"""Chat exchange and rendering endpoints.

`/api/chat/stream` performs the same exchange as `/api/chat`, then reveals
the rendered reply as Server-Sent Events so a client can replay the render
operations against its own view. Upstream failures are reported before the
stream starts, with the same status codes as the plain endpoint.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from chat_proxy.config import settings
from chat_proxy.db.engine import get_db
from chat_proxy.dependencies import get_ollama_client, get_render_settings
from chat_proxy.services import history_service
from chat_proxy.services.ollama_client import OllamaClient
from chat_render.config import RenderSettings
from chat_render.pipeline import render_message_html
from chat_render.streaming import StreamRenderer
from chat_render.targets import QueueTarget
from localchat_shared.schemas.chat import ChatReply, ChatRequest, MessageRole, Usage
from localchat_shared.schemas.streaming import RenderEventType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

_TERMINAL_EVENTS = (RenderEventType.DONE, RenderEventType.ERROR)


class RenderRequest(BaseModel):
    content: str
    usage: Usage | None = None


def _check_message_lengths(payload: ChatRequest) -> None:
    for message in payload.messages:
        if message.role == MessageRole.user and len(message.content) > settings.max_message_length:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Message too long: at most {settings.max_message_length} characters",
            )


async def _run_exchange(
    payload: ChatRequest, client: OllamaClient, db: AsyncSession
) -> ChatReply:
    """Send the request (with stored context when a session is given) and log it."""
    _check_message_lengths(payload)

    messages = list(payload.messages)
    if payload.session_id:
        context = await history_service.get_context_turns(
            payload.session_id, settings.history_limit, db
        )
        messages = context + messages
        logger.info(
            "Chat session=%s context=%d new=%d",
            payload.session_id, len(context), len(payload.messages),
        )

    reply = await client.chat(messages)

    if payload.session_id:
        await history_service.log_exchange(payload.session_id, payload.messages, reply, db)
    return reply


@router.post("/chat", response_model=ChatReply)
async def chat(
    payload: ChatRequest,
    client: OllamaClient = Depends(get_ollama_client),
    db: AsyncSession = Depends(get_db),
) -> ChatReply:
    return await _run_exchange(payload, client, db)


@router.post("/chat/stream")
async def chat_stream(
    payload: ChatRequest,
    client: OllamaClient = Depends(get_ollama_client),
    db: AsyncSession = Depends(get_db),
    render_settings: RenderSettings = Depends(get_render_settings),
) -> StreamingResponse:
    """Run the exchange, then stream the reply's render operations via SSE."""
    reply = await _run_exchange(payload, client, db)

    target = QueueTarget()
    renderer = StreamRenderer(target, settings=render_settings)

    async def reveal() -> None:
        try:
            await renderer.render(reply.reply, reply.usage)
        except Exception as exc:
            logger.exception("Rendering the streamed reply failed")
            target.fail(str(exc))
        else:
            target.finish(reply.usage)

    async def generate():
        task = asyncio.create_task(reveal())
        try:
            while True:
                event = await target.queue.get()
                yield f"data: {event.model_dump_json(exclude_none=True)}\n\n"
                if event.type in _TERMINAL_EVENTS:
                    break
            yield "data: [DONE]\n\n"
        finally:
            # Client went away mid-stream: abandon the remaining appends.
            if not task.done():
                logger.info("Stream client disconnected; cancelling render")
                renderer.cancel()
                target.close()
                task.cancel()

    return StreamingResponse(generate(), media_type="text/event-stream")


@router.post("/render")
async def render(
    payload: RenderRequest,
    render_settings: RenderSettings = Depends(get_render_settings),
) -> dict:
    """Format message text (plus an optional usage footer) without animation."""
    return {"html": render_message_html(payload.content, payload.usage, render_settings)}
