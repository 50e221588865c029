"""Chat exchange data transfer objects and request schemas."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class MessageRole(StrEnum):
    user = "user"
    assistant = "assistant"
    system = "system"


class Usage(BaseModel):
    """Token accounting and latency reported for one model reply."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    response_time_ms: int = 0


class ChatTurn(BaseModel):
    """A single ``{role, content}`` unit as sent to the model backend."""

    role: MessageRole
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Payload for POST /api/chat and POST /api/chat/stream."""

    messages: list[ChatTurn] = Field(..., min_length=1)
    # When set, stored history for the session is prepended as context
    # and the exchange is appended to the store.
    session_id: str | None = Field(default=None, max_length=64)


class ChatReply(BaseModel):
    """Response body of POST /api/chat."""

    reply: str
    usage: Usage


class ChatMessage(BaseModel):
    """A message as held by the client session.

    Immutable once rendered; only its rendered form is revealed progressively.
    """

    id: int
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    usage: Usage | None = None

    model_config = {"frozen": True}


class StoredMessageDTO(BaseModel):
    """A persisted chat message returned by the session history endpoint."""

    id: int
    session_id: str
    role: MessageRole
    content: str
    html: str | None = None
    usage: Usage | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
