"""Output sinks for the streaming renderer.

The renderer never touches a display directly; it writes through a
`RenderTarget`. A closed target silently ignores further writes, which is how
a torn-down view stops receiving appends.
"""

import asyncio
from typing import Protocol

from localchat_shared.schemas.chat import Usage
from localchat_shared.schemas.streaming import RenderEvent, RenderEventType


class RenderTarget(Protocol):
    @property
    def closed(self) -> bool: ...

    def append_tag(self, html: str) -> None: ...

    def append_text(self, text: str) -> None: ...

    def commit(self, html: str) -> None: ...


class BufferTarget:
    """Collects render operations in memory.

    `operations` keeps every write as a ``(kind, value)`` pair in order;
    `html` is the concatenation of everything written so far.
    """

    def __init__(self) -> None:
        self.operations: list[tuple[str, str]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def html(self) -> str:
        return "".join(value for _, value in self.operations)

    def close(self) -> None:
        self._closed = True

    def append_tag(self, html: str) -> None:
        if not self._closed:
            self.operations.append((RenderEventType.TAG, html))

    def append_text(self, text: str) -> None:
        if not self._closed:
            self.operations.append((RenderEventType.TEXT, text))

    def commit(self, html: str) -> None:
        if not self._closed:
            self.operations.append((RenderEventType.COMMIT, html))


class QueueTarget:
    """Forwards render operations into an asyncio queue as `RenderEvent` objects.

    The consumer (the SSE endpoint) drains the queue; `finish` and `fail`
    push the terminal events and close the target.
    """

    def __init__(self, queue: asyncio.Queue[RenderEvent] | None = None) -> None:
        self.queue: asyncio.Queue[RenderEvent] = queue or asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def _put(self, event: RenderEvent) -> None:
        if not self._closed:
            self.queue.put_nowait(event)

    def append_tag(self, html: str) -> None:
        self._put(RenderEvent(type=RenderEventType.TAG, html=html))

    def append_text(self, text: str) -> None:
        self._put(RenderEvent(type=RenderEventType.TEXT, text=text))

    def commit(self, html: str) -> None:
        self._put(RenderEvent(type=RenderEventType.COMMIT, html=html))

    def finish(self, usage: Usage | None = None) -> None:
        self._put(RenderEvent(type=RenderEventType.DONE, usage=usage))
        self.close()

    def fail(self, error: str) -> None:
        self._put(RenderEvent(type=RenderEventType.ERROR, error=error))
        self.close()
