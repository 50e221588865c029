"""Tests for StreamRenderer: token reveal, atomic commits and cancellation.

asyncio.sleep is patched throughout so no test actually waits.
"""

import asyncio
import random
from unittest.mock import AsyncMock, patch

import pytest

from chat_render.pipeline import format_content, format_usage_footer
from chat_render.streaming import (
    CancellationToken,
    RenderState,
    StreamRenderer,
    is_block_formatted,
    split_render_tokens,
)
from chat_render.targets import BufferTarget
from localchat_shared.schemas.chat import Usage

_SLEEP = "chat_render.streaming.asyncio.sleep"


@pytest.fixture
def target() -> BufferTarget:
    return BufferTarget()


@pytest.fixture
def renderer(target, render_settings) -> StreamRenderer:
    return StreamRenderer(target, settings=render_settings, rng=random.Random(0))


class TestSplitRenderTokens:
    def test_tags_entities_and_text(self):
        assert split_render_tokens("<p>a &amp; b</p>") == [
            "<p>", "a", " ", "&amp;", " ", "b", "</p>",
        ]

    def test_concatenation_is_lossless(self):
        html = '<p>Hi <a href="x">there</a>,<br>a < b & c</p>'
        assert "".join(split_render_tokens(html)) == html


class TestIsBlockFormatted:
    def test_block_markup(self):
        assert is_block_formatted("<table><tr></tr></table>")
        assert is_block_formatted("<p>x</p>\n\n<pre><code>y</code></pre>")

    def test_paragraph_markup_is_animated(self):
        assert not is_block_formatted("<p>Hello <strong>there</strong></p>")


class TestTokenReveal:
    """Plain paragraphs are revealed one token at a time."""

    @pytest.mark.asyncio
    async def test_tags_immediate_text_delayed(self, renderer, target):
        with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
            state = await renderer.reveal("<p>Hello, world.</p>")

        assert state == RenderState.DONE
        assert target.operations == [
            ("tag", "<p>"),
            ("text", "Hello,"),
            ("text", " "),
            ("text", "world."),
            ("tag", "</p>"),
        ]
        delays = [call.args[0] for call in mock_sleep.await_args_list]
        assert delays == pytest.approx([0.16, 0.01, 0.16])

    @pytest.mark.asyncio
    async def test_revealed_html_matches_input(self, renderer, target):
        html = format_content("Some *emphasis* and `code` here.")
        with patch(_SLEEP, new_callable=AsyncMock):
            await renderer.reveal(html)
        assert target.html == html

    @pytest.mark.asyncio
    async def test_usage_footer_committed_last(self, renderer, target):
        usage = Usage(prompt_tokens=1, completion_tokens=2, total_tokens=3, response_time_ms=4)
        with patch(_SLEEP, new_callable=AsyncMock):
            await renderer.render("hi", usage)

        assert target.operations[-1] == ("commit", format_usage_footer(usage))
        assert renderer.state == RenderState.DONE


class TestAtomicCommit:
    @pytest.mark.asyncio
    async def test_table_committed_in_one_append(self, renderer, target):
        """No partial-tag state is ever observable for block markup."""
        html = format_content("a|b\n--|--\n1|2")
        with patch(_SLEEP, new_callable=AsyncMock) as mock_sleep:
            state = await renderer.reveal(html)

        assert state == RenderState.DONE
        assert target.operations == [("commit", html)]
        mock_sleep.assert_not_awaited()


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_stream_stops_appends(self, target, render_settings):
        token = CancellationToken()
        renderer = StreamRenderer(target, settings=render_settings, cancel_token=token)
        sleeps = 0

        async def fake_sleep(delay):
            nonlocal sleeps
            sleeps += 1
            if sleeps == 2:
                token.cancel()

        usage = Usage(total_tokens=1)
        with patch(_SLEEP, side_effect=fake_sleep):
            state = await renderer.reveal("<p>one two three</p>", usage)

        assert state == RenderState.CANCELLED
        assert target.operations == [("tag", "<p>"), ("text", "one")]

    @pytest.mark.asyncio
    async def test_closed_target_receives_nothing(self, renderer, target):
        target.close()
        with patch(_SLEEP, new_callable=AsyncMock):
            state = await renderer.reveal("<p>hello</p>")

        assert state == RenderState.CANCELLED
        assert target.operations == []

    @pytest.mark.asyncio
    async def test_closed_target_skips_block_commit(self, renderer, target):
        target.close()
        state = await renderer.reveal("<table></table>")
        assert state == RenderState.CANCELLED
        assert target.operations == []

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, renderer, target):
        with patch(_SLEEP, side_effect=asyncio.CancelledError):
            with pytest.raises(asyncio.CancelledError):
                await renderer.reveal("<p>hello world</p>")

        assert renderer.state == RenderState.CANCELLED
        assert target.operations == [("tag", "<p>")]


class TestSingleUse:
    @pytest.mark.asyncio
    async def test_second_reveal_raises(self, renderer):
        with patch(_SLEEP, new_callable=AsyncMock):
            await renderer.reveal("<p>x</p>")
            with pytest.raises(RuntimeError, match="already used"):
                await renderer.reveal("<p>y</p>")
