"""Progressive reveal of a rendered message.

The renderer only sequences the display of an already fully formatted HTML
string; formatting is finished before the first append. Each message gets its
own `StreamRenderer`, moving IDLE -> STREAMING -> DONE exactly once (or to
CANCELLED when the owning view goes away mid-stream).

Usage:
    target = BufferTarget()
    renderer = StreamRenderer(target)
    await renderer.render(reply, usage)
"""

import asyncio
import logging
import random
import re
from enum import StrEnum

from chat_render.config import RenderSettings
from chat_render.config import settings as default_settings
from chat_render.pipeline import format_content, format_usage_footer
from chat_render.targets import RenderTarget
from localchat_shared.schemas.chat import Usage

logger = logging.getLogger(__name__)

# A complete tag, an entity reference, a whitespace run, a run of plain text,
# or a lone "<" / "&" that is not part of either.
_RENDER_TOKEN_PATTERN = re.compile(r"<[^>]*>|&[a-zA-Z0-9#]+;|\s+|[^\s<&]+|[<&]")

# Markup that must never be observed half-written.
_BLOCK_MARKUP_PATTERN = re.compile(r"<(?:table|pre|ul|ol|h[1-6]|blockquote|hr)\b")

_PAUSE_PUNCTUATION = (",", ".")


class RenderState(StrEnum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    CANCELLED = "cancelled"


class CancellationToken:
    """Set once by the owner of a view to abandon its pending appends."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def split_render_tokens(html: str) -> list[str]:
    """Split HTML into tags, entity references, whitespace runs and text runs.

    Concatenating the result gives back `html` unchanged.
    """
    return _RENDER_TOKEN_PATTERN.findall(html)


def is_block_formatted(html: str) -> bool:
    return _BLOCK_MARKUP_PATTERN.search(html) is not None


class StreamRenderer:
    """Reveals one message into a `RenderTarget` token by token.

    Tags are appended atomically with no delay. Text and whitespace tokens
    wait a random delay first, longer after a comma or period. Block-formatted
    HTML is committed in a single append instead. Cancellation is checked
    before every append, whether it comes from the token or from the target
    being closed.
    """

    def __init__(
        self,
        target: RenderTarget,
        settings: RenderSettings | None = None,
        rng: random.Random | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._target = target
        self._settings = settings or default_settings
        self._rng = rng or random.Random()
        self.cancel_token = cancel_token or CancellationToken()
        self.state = RenderState.IDLE

    def cancel(self) -> None:
        self.cancel_token.cancel()

    @property
    def _should_stop(self) -> bool:
        return self.cancel_token.cancelled or self._target.closed

    def _token_delay(self, token: str) -> float:
        """Seconds to wait before appending a text token."""
        delay_ms = self._rng.uniform(
            self._settings.stream_min_delay_ms, self._settings.stream_max_delay_ms
        )
        if token.rstrip().endswith(_PAUSE_PUNCTUATION):
            delay_ms += self._settings.punctuation_pause_ms
        return delay_ms / 1000

    def _abandon(self) -> None:
        self.state = RenderState.CANCELLED
        logger.debug("Stream render cancelled")

    async def render(self, content: str, usage: Usage | None = None) -> RenderState:
        """Format `content` and reveal it."""
        return await self.reveal(format_content(content, self._settings), usage)

    async def reveal(self, html: str, usage: Usage | None = None) -> RenderState:
        """Reveal already formatted `html`, then append the usage footer.

        Returns the final state: DONE, or CANCELLED if the view went away.
        Raises RuntimeError if this renderer has already been used.
        """
        if self.state != RenderState.IDLE:
            raise RuntimeError(f"StreamRenderer already used (state={self.state})")
        self.state = RenderState.STREAMING

        try:
            if is_block_formatted(html):
                if self._should_stop:
                    self._abandon()
                    return self.state
                self._target.commit(html)
            else:
                for token in split_render_tokens(html):
                    if token.startswith("<") and len(token) > 1:
                        if self._should_stop:
                            self._abandon()
                            return self.state
                        self._target.append_tag(token)
                        continue

                    await asyncio.sleep(self._token_delay(token))
                    if self._should_stop:
                        self._abandon()
                        return self.state
                    self._target.append_text(token)
        except asyncio.CancelledError:
            self._abandon()
            raise

        self.state = RenderState.DONE
        if usage is not None and not self._should_stop:
            self._target.commit(format_usage_footer(usage))
        return self.state
