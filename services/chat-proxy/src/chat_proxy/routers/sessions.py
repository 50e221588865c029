"""Stored conversation history, rendered for display."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from chat_proxy.config import settings
from chat_proxy.db.engine import get_db
from chat_proxy.dependencies import get_render_settings
from chat_proxy.services import history_service
from chat_render.config import RenderSettings
from chat_render.pipeline import render_message_html
from localchat_shared.schemas.chat import StoredMessageDTO

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("/{session_id}/messages", response_model=list[StoredMessageDTO])
async def get_session_messages(
    session_id: str,
    limit: int = Query(default=settings.history_limit, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    render_settings: RenderSettings = Depends(get_render_settings),
) -> list[StoredMessageDTO]:
    """Oldest-first history for a session; an unknown session is an empty list."""
    messages = await history_service.get_message_history(session_id, limit, db)
    return [
        message.model_copy(
            update={"html": render_message_html(message.content, message.usage, render_settings)}
        )
        for message in messages
    ]
