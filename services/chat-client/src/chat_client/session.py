"""Client-side conversation state.

A `ChatSession` owns the ordered message list, validates user input and
renders messages for display. Without a session id every request carries the
full history; with one, the proxy holds the stored context and only the new
user turn is sent. Each message is rendered by its own `StreamRenderer`, so
concurrent reveals never share state.
"""

import logging
from itertools import count

from chat_client.api_client import ChatApiClient
from chat_client.config import ClientSettings
from chat_render.config import RenderSettings
from chat_render.pipeline import render_message_html
from chat_render.streaming import CancellationToken, RenderState, StreamRenderer
from chat_render.targets import RenderTarget
from localchat_shared.schemas.chat import ChatMessage, ChatTurn, MessageRole, Usage

logger = logging.getLogger(__name__)


class ChatSession:
    def __init__(
        self,
        api_client: ChatApiClient,
        settings: ClientSettings | None = None,
        render_settings: RenderSettings | None = None,
        session_id: str | None = None,
    ):
        self._api_client = api_client
        self._settings = settings or ClientSettings()
        self._render_settings = render_settings
        # When set, the proxy prepends its stored history for this id.
        self.session_id = session_id
        self.messages: list[ChatMessage] = []
        self._ids = count(1)

    def validate_input(self, text: str) -> str:
        """Return the trimmed text, or raise ValueError when it cannot be sent."""
        message = text.strip()
        if not message:
            raise ValueError("Message is empty")
        if len(message) > self._settings.max_input_length:
            raise ValueError(
                f"Message is too long ({len(message)} > {self._settings.max_input_length} characters)"
            )
        return message

    def _append(self, role: MessageRole, content: str, usage: Usage | None = None) -> ChatMessage:
        message = ChatMessage(id=next(self._ids), role=role, content=content, usage=usage)
        self.messages.append(message)
        return message

    def history(self) -> list[ChatTurn]:
        return [ChatTurn(role=message.role, content=message.content) for message in self.messages]

    async def send(self, text: str) -> ChatMessage:
        """Append the user message, ask the proxy and append the assistant reply.

        The user message stays in the history even when the request fails,
        matching what the user already sees on screen.
        """
        user_message = self._append(MessageRole.user, self.validate_input(text))

        if self.session_id:
            turns = [ChatTurn(role=user_message.role, content=user_message.content)]
        else:
            turns = self.history()
        reply = await self._api_client.send_chat(turns, session_id=self.session_id)
        if not reply.reply:
            raise ValueError("Empty response from server")

        return self._append(MessageRole.assistant, reply.reply, reply.usage)

    def render_message(self, message: ChatMessage) -> str:
        return render_message_html(message.content, message.usage, self._render_settings)

    async def stream_message(
        self,
        message: ChatMessage,
        target: RenderTarget,
        cancel_token: CancellationToken | None = None,
    ) -> RenderState:
        """Reveal `message` into `target`; returns the renderer's final state."""
        renderer = StreamRenderer(
            target, settings=self._render_settings, cancel_token=cancel_token
        )
        return await renderer.render(message.content, message.usage)

    def clear(self) -> None:
        logger.debug("Clearing %d messages", len(self.messages))
        self.messages.clear()
        self._ids = count(1)
