"""Inbound message dispatch.

This module implements the MessageHandler class that decides which chat
messages get an answer and prepares the prompt:
1. Drop duplicate deliveries of the same event
2. Apply the answering rules (DMs, mentions, the ask channel)
3. Strip bot mentions from the text
4. Prepend earlier thread messages as conversation context
5. Resolve the workspace configuration
6. Hand off to the ProgressiveReplyController
"""

from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Any

import structlog
from cachetools import TTLCache

from mintie.config.schema import MintieConfig
from mintie.models.message import ChatMessage, ReplyOutcome
from mintie.utils.async_helpers import WorkspaceNotConfiguredError
from mintie.utils.security import truncate_error

if TYPE_CHECKING:
    from mintie.core.reply_controller import ProgressiveReplyController
    from mintie.interfaces.chat import ChatTransport
    from mintie.interfaces.workspace import WorkspaceConfigStore

log = structlog.get_logger()

USER_MENTION = re.compile(r"[ \t]*<@[A-Z0-9]+(?:\|[^>]*)?>[ \t]*")

DEDUP_MAXSIZE = 10_000

SETUP_HINT = (
    "I'm not set up for this workspace yet. "
    "Ask an admin to add your Mintlify subdomain and assistant API key."
)


def extract_user_message(text: str | None) -> str:
    """Remove user mention tokens and surrounding whitespace."""
    if not text:
        return ""
    return USER_MENTION.sub(" ", text).strip()


def format_thread_context(history: list[dict[str, Any]]) -> str:
    """Render earlier thread messages as a conversation transcript.

    Returns:
        The transcript, or an empty string when there is no history.
    """
    lines = []
    for message in history:
        is_bot = bool(message.get("bot_id")) or message.get("subtype") == "bot_message"
        sender = "Assistant" if is_bot else "User"
        lines.append(f"{sender}: {message.get('text') or ''}")

    if not lines:
        return ""
    return "Previous conversation context:\n" + "\n".join(lines)


class MessageHandler:
    """Routes inbound chat messages to the reply controller.

    Answering rules:
    - Direct messages are answered when enabled
    - Mentions are answered everywhere except the ask channel
    - Plain messages are answered only in the ask channel

    The ask channel receives both a message and a mention event for the
    same post, so mentions there are skipped to avoid answering twice.

    Example:
        handler = MessageHandler(chat, controller, workspaces, config)
        outcome = await handler.handle(message)
    """

    def __init__(
        self,
        chat: ChatTransport,
        controller: ProgressiveReplyController,
        workspaces: WorkspaceConfigStore,
        config: MintieConfig,
        seen: TTLCache[tuple[str, str, bool], float] | None = None,
    ) -> None:
        """Initialize the MessageHandler.

        Args:
            chat: Chat transport for history lookups and hints
            controller: Reply controller that produces the answer
            workspaces: Workspace configuration lookup
            config: Bot configuration
            seen: Cache of handled events. If None, creates one that expires
                entries after runtime.dedup_ttl seconds.
        """
        self._chat = chat
        self._controller = controller
        self._workspaces = workspaces
        self._config = config
        self._seen: TTLCache[tuple[str, str, bool], float] = (
            seen
            if seen is not None
            else TTLCache(maxsize=DEDUP_MAXSIZE, ttl=config.runtime.dedup_ttl)
        )

    async def handle(self, message: ChatMessage) -> ReplyOutcome | None:
        """Answer a message if the routing rules allow it.

        Args:
            message: Incoming chat message

        Returns:
            The reply outcome, or None when the message was not answered
        """
        key = (message.channel_id, message.message_id, message.is_mention)
        if key in self._seen:
            log.debug("message_duplicate", channel_id=message.channel_id, ts=message.message_id)
            return None
        self._seen[key] = time.time()

        if not await self.should_answer(message):
            log.debug("message_ignored", channel_id=message.channel_id, ts=message.message_id)
            return None

        text = extract_user_message(message.text)
        if not text:
            log.debug("empty_message_ignored", channel_id=message.channel_id)
            return None

        log.info(
            "message_received",
            channel_id=message.channel_id,
            ts=message.message_id,
            team_id=message.team_id,
            direct=message.is_direct,
            mention=message.is_mention,
        )

        thread_id = self.reply_thread_for(message)

        try:
            workspace = await self._workspaces.get_workspace_config(message.team_id)
        except WorkspaceNotConfiguredError as e:
            log.warning("workspace_not_configured", team_id=message.team_id, error=str(e))
            await self._send_setup_hint(message.channel_id, thread_id)
            return None

        prompt = await self.build_prompt(message, text)
        return await self._controller.reply(
            prompt,
            message.channel_id,
            workspace,
            thread_id=thread_id,
        )

    async def should_answer(self, message: ChatMessage) -> bool:
        """Apply the answering rules to a message."""
        slack = self._config.slack

        if message.is_direct:
            return slack.answer_direct_messages

        channel_name = await self._chat.get_channel_name(message.channel_id)
        in_ask_channel = bool(slack.ask_channel) and channel_name == slack.ask_channel

        if message.is_mention:
            return slack.answer_mentions and not in_ask_channel

        return in_ask_channel

    @staticmethod
    def reply_thread_for(message: ChatMessage) -> str | None:
        """Pick the thread the placeholder is posted under.

        Channel answers always go into a thread to keep the channel tidy;
        direct messages stay inline unless the user wrote in a thread.
        """
        if message.is_direct:
            return message.thread_id
        return message.thread_id or message.message_id

    async def build_prompt(self, message: ChatMessage, text: str) -> str:
        """Prefix the question with earlier thread messages, if any."""
        if not message.thread_id:
            return text

        try:
            history = await self._chat.fetch_thread_history(
                message.channel_id,
                message.thread_id,
                limit=self._config.slack.thread_history_limit,
            )
        except Exception as e:
            log.warning(
                "thread_history_failed",
                channel_id=message.channel_id,
                thread_id=message.thread_id,
                error=truncate_error(e),
            )
            return text

        earlier = [m for m in history if m.get("ts") != message.message_id]
        context = format_thread_context(earlier)
        if not context:
            return text
        return f"{context}\n\nCurrent message: {text}"

    async def _send_setup_hint(self, channel_id: str, thread_id: str | None) -> None:
        """Tell the user the workspace still needs configuring."""
        try:
            await self._chat.post_message(channel_id, SETUP_HINT, thread_id=thread_id)
        except Exception as e:
            log.error("send_setup_hint_failed", channel_id=channel_id, error=truncate_error(e))
