"""Structured render-stream event types shared by the proxy and its clients.

The proxy renders a model reply with the streaming renderer and forwards each
render operation as one Server-Sent Event. Clients replay the events in order
against their own output target.
"""

from enum import StrEnum

from pydantic import BaseModel

from localchat_shared.schemas.chat import Usage


class RenderEventType(StrEnum):
    """Event types emitted while a rendered reply is revealed."""

    # A complete HTML tag, appended atomically.
    TAG = "tag"

    # A chunk of visible text or whitespace (already HTML-escaped).
    TEXT = "text"

    # A complete HTML fragment committed in one step.
    COMMIT = "commit"

    # The reveal finished; carries usage statistics when available.
    DONE = "done"

    # The exchange or the reveal failed.
    ERROR = "error"


class RenderEvent(BaseModel):
    """A single event in a render stream.

    The `type` field determines which data fields are populated:
    - tag: html
    - text: text
    - commit: html
    - done: usage
    - error: error
    """

    type: RenderEventType
    html: str | None = None
    text: str | None = None
    usage: Usage | None = None
    error: str | None = None
