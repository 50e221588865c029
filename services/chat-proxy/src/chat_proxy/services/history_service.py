"""Append-only chat history store keyed by session id."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_proxy.db.models import ChatMessageRecord
from localchat_shared.schemas.chat import ChatReply, ChatTurn, StoredMessageDTO, Usage


def _to_dto(record: ChatMessageRecord) -> StoredMessageDTO:
    usage = None
    if record.total_tokens is not None:
        usage = Usage(
            prompt_tokens=record.prompt_tokens or 0,
            completion_tokens=record.completion_tokens or 0,
            total_tokens=record.total_tokens,
            response_time_ms=record.response_time_ms or 0,
        )
    return StoredMessageDTO(
        id=record.id,
        session_id=record.session_id,
        role=record.role,
        content=record.content,
        usage=usage,
        created_at=record.created_at,
    )


def _to_record(
    session_id: str, role: str, content: str, usage: Usage | None
) -> ChatMessageRecord:
    record = ChatMessageRecord(session_id=session_id, role=role, content=content)
    if usage is not None:
        record.prompt_tokens = usage.prompt_tokens
        record.completion_tokens = usage.completion_tokens
        record.total_tokens = usage.total_tokens
        record.response_time_ms = usage.response_time_ms
    return record


async def log_exchange(
    session_id: str,
    turns: list[ChatTurn],
    reply: ChatReply,
    db: AsyncSession,
) -> None:
    """Append the request's new turns and the assistant reply in one commit."""
    for turn in turns:
        db.add(_to_record(session_id, turn.role, turn.content, None))
    db.add(_to_record(session_id, "assistant", reply.reply, reply.usage))
    await db.commit()


async def get_message_history(
    session_id: str,
    limit: int,
    db: AsyncSession,
) -> list[StoredMessageDTO]:
    """Return the most recent N messages for a session, ordered oldest first."""
    result = await db.execute(
        select(ChatMessageRecord)
        .where(ChatMessageRecord.session_id == session_id)
        .order_by(ChatMessageRecord.created_at.desc(), ChatMessageRecord.id.desc())
        .limit(limit)
    )
    records = result.scalars().all()
    # Reverse so oldest is first in the returned list.
    return [_to_dto(record) for record in reversed(records)]


async def get_context_turns(
    session_id: str,
    limit: int,
    db: AsyncSession,
) -> list[ChatTurn]:
    """Stored history reduced to the ``{role, content}`` pairs the model needs."""
    history = await get_message_history(session_id, limit, db)
    return [ChatTurn(role=message.role, content=message.content) for message in history]
