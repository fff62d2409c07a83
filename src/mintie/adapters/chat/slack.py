"""Slack chat adapter using slack-bolt.

This module implements the ChatTransport protocol for Slack using the
slack-bolt library with Socket Mode for real-time events.

Features:
- Socket Mode connection for real-time message delivery
- Message and app_mention events queued as ChatMessage
- Message posting and in-place edits for progressive replies
- Thread history and channel name lookups for dispatch
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

import aiohttp
import structlog
from cachetools import TTLCache
from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.app.async_app import AsyncApp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ...config.schema import SlackConfig
from ...models.message import ChatMessage
from ...utils.async_helpers import RenderError, create_retry

if TYPE_CHECKING:
    from slack_bolt.context.async_context import AsyncBoltContext


log = structlog.get_logger()

IGNORED_SUBTYPES = frozenset(
    {"bot_message", "message_changed", "message_deleted", "channel_join", "channel_leave"}
)
CHANNEL_NAME_TTL = 600.0
CHANNEL_NAME_CACHE_SIZE = 1000

# Network failures only; Slack API errors such as channel_not_found are final
lookup_retry = create_retry(
    max_attempts=3,
    min_wait=0.5,
    max_wait=5.0,
    retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
)


class SlackAdapterError(Exception):
    """Base exception for Slack adapter errors."""


class ConnectionError(SlackAdapterError):
    """Raised when connection to Slack fails."""


class SendError(SlackAdapterError, RenderError):
    """Raised when posting a message fails."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class UpdateError(SlackAdapterError, RenderError):
    """Raised when editing a message fails."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


def _error_code(error: SlackApiError) -> str | None:
    """Return Slack's machine-readable error code, e.g. ``not_in_channel``."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    try:
        code = response.get("error")
    except AttributeError:
        return None
    return code if isinstance(code, str) else None


class SlackAdapter:
    """Slack chat adapter implementing the ChatTransport protocol.

    This adapter uses slack-bolt with Socket Mode to receive real-time
    messages and to post and edit the bot's replies.

    Example:
        config = SlackConfig(bot_token="xoxb-...", app_token="xapp-...")
        adapter = SlackAdapter(config)

        await adapter.connect()
        async for message in adapter.listen():
            print(f"Received: {message.text}")
        await adapter.disconnect()
    """

    def __init__(self, config: SlackConfig) -> None:
        """Initialize the Slack adapter.

        Args:
            config: Slack-specific configuration.
        """
        self._config = config
        self._connected = False

        self._app = AsyncApp(token=config.bot_token)
        self._client: AsyncWebClient = self._app.client
        self._socket_handler: AsyncSocketModeHandler | None = None

        self._message_queue: asyncio.Queue[ChatMessage] = asyncio.Queue()
        self._channel_names: TTLCache[str, str] = TTLCache(
            maxsize=CHANNEL_NAME_CACHE_SIZE, ttl=CHANNEL_NAME_TTL
        )
        self._disconnect_event = asyncio.Event()

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register event handlers with the Slack app."""

        @self._app.event("message")
        async def handle_message(
            event: dict[str, Any],
            body: dict[str, Any],
            context: AsyncBoltContext,
        ) -> None:
            """Handle incoming message events."""
            await self._process_event(event, body, is_mention=False)

        @self._app.event("app_mention")
        async def handle_mention(
            event: dict[str, Any],
            body: dict[str, Any],
            context: AsyncBoltContext,
        ) -> None:
            """Handle messages that mention the bot."""
            await self._process_event(event, body, is_mention=True)

    async def _process_event(
        self,
        event: dict[str, Any],
        body: dict[str, Any],
        is_mention: bool,
    ) -> None:
        """Convert an event to a ChatMessage and queue it if relevant.

        Args:
            event: The Slack event payload.
            body: The full event envelope (carries ``team_id``).
            is_mention: True for ``app_mention`` events.
        """
        if event.get("subtype") in IGNORED_SUBTYPES:
            return

        # Our own replies come back as events too
        if event.get("bot_id"):
            return

        channel_id = event.get("channel", "")
        message_id = event.get("ts", "")
        is_direct = event.get("channel_type") == "im" or channel_id.startswith("D")

        try:
            timestamp = datetime.fromtimestamp(float(message_id))
        except (ValueError, TypeError):
            timestamp = datetime.now()

        message = ChatMessage(
            channel_id=channel_id,
            message_id=message_id,
            thread_id=event.get("thread_ts"),
            user_id=event.get("user", ""),
            text=event.get("text", ""),
            timestamp=timestamp,
            team_id=event.get("team") or body.get("team_id"),
            is_mention=is_mention,
            is_direct=is_direct,
            raw_event=event,
        )

        await self._message_queue.put(message)
        log.debug(
            "message_queued",
            channel_id=channel_id,
            message_id=message_id,
            mention=is_mention,
            direct=is_direct,
        )

    async def connect(self) -> None:
        """Establish connection to Slack using Socket Mode.

        Raises:
            ConnectionError: If connection fails.
        """
        if self._connected:
            return

        try:
            self._socket_handler = AsyncSocketModeHandler(
                app=self._app,
                app_token=self._config.app_token,
            )

            # connect_async() returns once the socket is open
            await self._socket_handler.connect_async()  # type: ignore[no-untyped-call]

            self._connected = True
            self._disconnect_event.clear()

            log.info("slack_connected", ask_channel=self._config.ask_channel)

        except Exception as e:
            log.error("slack_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Slack: {e}") from e

    async def disconnect(self) -> None:
        """Gracefully close the Slack connection."""
        if not self._connected:
            return

        self._disconnect_event.set()

        if self._socket_handler:
            try:
                await self._socket_handler.close_async()  # type: ignore[no-untyped-call]
            except Exception as e:
                log.warning("disconnect_error", error=str(e))

        self._connected = False
        log.info("slack_disconnected")

    async def listen(self) -> AsyncIterator[ChatMessage]:
        """Yield incoming messages as they arrive.

        Yields:
            ChatMessage: Each incoming message.
        """
        if not self._connected:
            raise SlackAdapterError("Not connected. Call connect() first.")

        while not self._disconnect_event.is_set():
            try:
                # Wait with timeout so a disconnect is noticed
                message = await asyncio.wait_for(
                    self._message_queue.get(),
                    timeout=1.0,
                )
                yield message
            except TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_id: str | None = None,
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        """Post a message to a channel, optionally in a thread.

        Args:
            channel_id: Target channel identifier.
            text: Plain text message (fallback for rich formatting).
            thread_id: Parent message ID for threading (optional).
            blocks: Optional rich content blocks (Slack Block Kit).

        Returns:
            Message ID (ts) of the posted message.

        Raises:
            SendError: If message delivery fails.
        """
        kwargs: dict[str, Any] = {
            "channel": channel_id,
            "text": text,
            "unfurl_links": False,
            "unfurl_media": False,
        }
        if thread_id:
            kwargs["thread_ts"] = thread_id
        if blocks:
            kwargs["blocks"] = blocks

        try:
            result = await self._client.chat_postMessage(**kwargs)
        except SlackApiError as e:
            code = _error_code(e)
            log.error("post_message_failed", channel_id=channel_id, code=code, error=str(e))
            raise SendError(f"Failed to post message: {e}", code=code) from e

        message_ts: str = result.get("ts", "")
        log.debug(
            "message_posted",
            channel_id=channel_id,
            message_ts=message_ts,
            thread_id=thread_id,
        )
        return message_ts

    async def update_message(
        self,
        channel_id: str,
        message_id: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> None:
        """Edit a previously posted message in place.

        Args:
            channel_id: Channel containing the message.
            message_id: Message ID (ts) to edit.
            text: New plain text.
            blocks: Optional rich content blocks. When omitted, existing
                blocks are cleared so the text is shown.

        Raises:
            UpdateError: If the edit fails.
        """
        try:
            await self._client.chat_update(
                channel=channel_id,
                ts=message_id,
                text=text,
                blocks=blocks or [],
            )
        except SlackApiError as e:
            code = _error_code(e)
            log.error(
                "update_message_failed",
                channel_id=channel_id,
                message_ts=message_id,
                code=code,
                error=str(e),
            )
            raise UpdateError(f"Failed to update message: {e}", code=code) from e

        log.debug("message_updated", channel_id=channel_id, message_ts=message_id)

    @lookup_retry
    async def fetch_thread_history(
        self,
        channel_id: str,
        thread_id: str,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Return the messages of a thread, oldest first.

        Args:
            channel_id: Channel containing the thread.
            thread_id: Root message ts of the thread.
            limit: Maximum number of messages to fetch.
        """
        result = await self._client.conversations_replies(
            channel=channel_id,
            ts=thread_id,
            limit=limit,
        )
        messages: list[dict[str, Any]] = result.get("messages", []) or []
        log.debug("thread_history_fetched", channel_id=channel_id, count=len(messages))
        return messages

    async def get_channel_name(self, channel_id: str) -> str | None:
        """Return a channel's name, or None if it cannot be looked up.

        Names are cached for ten minutes.
        """
        cached = self._channel_names.get(channel_id)
        if cached is not None:
            return cached

        try:
            name = await self._lookup_channel_name(channel_id)
        except SlackApiError as e:
            log.warning("channel_lookup_failed", channel_id=channel_id, error=str(e))
            return None

        if name:
            self._channel_names[channel_id] = name
        return name

    @lookup_retry
    async def _lookup_channel_name(self, channel_id: str) -> str | None:
        result = await self._client.conversations_info(channel=channel_id)
        channel: dict[str, Any] = result.get("channel", {}) or {}
        name = channel.get("name")
        return name if isinstance(name, str) else None
