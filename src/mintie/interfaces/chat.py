"""Abstract interface for chat platform integrations."""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from ..models.message import ChatMessage


class ChatTransport(Protocol):
    """Abstract interface for chat platform integrations.

    The reply controller only needs ``post_message`` and ``update_message``;
    the remaining methods are used by the dispatch layer and the bot
    lifecycle.
    """

    async def connect(self) -> None:
        """
        Establish connection to the chat platform.

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Gracefully close the connection."""
        ...

    async def listen(self) -> AsyncIterator[ChatMessage]:
        """
        Yield incoming messages addressed to the bot.

        Yields:
            ChatMessage: Each incoming message
        """
        ...

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_id: str | None = None,
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        """
        Post a new message to a channel, optionally in a thread.

        Args:
            channel_id: Target channel identifier
            text: Plain text message (fallback for rich formatting)
            thread_id: Parent message ID for threading (optional)
            blocks: Optional rich content blocks (platform-specific)

        Returns:
            Message ID of the posted message

        Raises:
            SendError: If message delivery fails
        """
        ...

    async def update_message(
        self,
        channel_id: str,
        message_id: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> None:
        """
        Edit a previously posted message in place.

        Args:
            channel_id: Channel containing the message
            message_id: Identifier of the message to edit
            text: New plain text
            blocks: Optional rich content blocks

        Raises:
            UpdateError: If the edit fails
        """
        ...

    async def fetch_thread_history(
        self,
        channel_id: str,
        thread_id: str,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """
        Return the raw messages of a thread, oldest first.

        Args:
            channel_id: Channel containing the thread
            thread_id: Root message ID of the thread
            limit: Maximum number of messages to fetch
        """
        ...

    async def get_channel_name(self, channel_id: str) -> str | None:
        """Return the human-readable channel name, or None if unknown."""
        ...
