"""Bot lifecycle orchestrator.

This module implements the Bot class that serves as the main entry point
for Mintie. It:
- Connects the chat transport and listens for messages
- Runs one reply task per message with a concurrency limit
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

import structlog

from mintie.config.schema import MintieConfig
from mintie.core.message_handler import MessageHandler
from mintie.core.reply_controller import ProgressiveReplyController
from mintie.models.message import ChatMessage, ReplyOutcome, ReplyState
from mintie.utils.logging import bind_context, unbind_context

if TYPE_CHECKING:
    from mintie.interfaces.assistant import AssistantBackend
    from mintie.interfaces.chat import ChatTransport
    from mintie.interfaces.workspace import WorkspaceConfigStore

log = structlog.get_logger()


class BotError(Exception):
    """Base exception for bot lifecycle errors."""


class StartupError(BotError):
    """Failed to start the bot."""


class Bot:
    """Coordinates the transport, dispatch and reply components.

    Each inbound message gets its own task. An asyncio.Semaphore bounds the
    number of replies in flight to ``runtime.max_concurrent``; replies share
    no state besides the transport and backend clients.

    Example:
        bot = Bot(config, chat, backend, workspaces)
        await bot.start()  # Blocks until shutdown signal
    """

    DEFAULT_SHUTDOWN_TIMEOUT = 30

    def __init__(
        self,
        config: MintieConfig,
        chat: ChatTransport,
        backend: AssistantBackend,
        workspaces: WorkspaceConfigStore,
    ) -> None:
        """Initialize the Bot.

        Args:
            config: Application configuration
            chat: Chat transport adapter
            backend: Assistant backend adapter
            workspaces: Workspace configuration store
        """
        self._config = config
        self._chat = chat
        self._backend = backend

        self._controller = ProgressiveReplyController(chat, backend, config.reply)
        self._handler = MessageHandler(chat, self._controller, workspaces, config)

        self._max_concurrent = config.runtime.max_concurrent
        self._semaphore: asyncio.Semaphore | None = None
        self._active_tasks: set[asyncio.Task[ReplyOutcome | None]] = set()

        self._running = False
        self._shutdown_event: asyncio.Event | None = None

        self._messages_answered = 0
        self._errors_count = 0

    @property
    def is_running(self) -> bool:
        """Return True if the bot is currently running."""
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        """Return processing statistics."""
        return {
            "messages_answered": self._messages_answered,
            "errors_count": self._errors_count,
            "active_tasks": len(self._active_tasks),
        }

    async def start(self) -> None:
        """Connect, install signal handlers and listen until shutdown.

        Raises:
            StartupError: If startup fails
        """
        if self._running:
            log.warning("bot_already_running")
            return

        log.info("bot_starting", max_concurrent=self._max_concurrent)

        try:
            self._semaphore = asyncio.Semaphore(self._max_concurrent)
            self._shutdown_event = asyncio.Event()

            await self._chat.connect()
            self._setup_signal_handlers()

            self._running = True
            log.info("bot_started")

            await self._listen_for_messages()

        except Exception as e:
            log.exception("bot_startup_failed", error=str(e))
            await self._cleanup()
            raise StartupError(f"Failed to start bot: {e}") from e

    async def stop(self) -> None:
        """Stop listening, let in-flight replies finish, then disconnect."""
        if not self._running:
            log.warning("bot_not_running")
            return

        log.info("bot_stopping", active_tasks=len(self._active_tasks))

        if self._shutdown_event:
            self._shutdown_event.set()

        await self._wait_for_tasks()
        await self._cleanup()

        self._running = False
        log.info(
            "bot_stopped",
            messages_answered=self._messages_answered,
            errors=self._errors_count,
        )

    async def process_message(self, message: ChatMessage) -> ReplyOutcome | None:
        """Dispatch one message, respecting the concurrency limit.

        Args:
            message: Message to process

        Returns:
            The reply outcome, or None if the message was not answered
        """
        if not self._semaphore:
            self._semaphore = asyncio.Semaphore(self._max_concurrent)

        bind_context(
            channel_id=message.channel_id,
            message_id=message.message_id,
            team_id=message.team_id,
        )
        try:
            async with self._semaphore:
                return await self._process(message)
        finally:
            unbind_context("channel_id", "message_id", "team_id")

    async def _process(self, message: ChatMessage) -> ReplyOutcome | None:
        """Run the handler and update the counters."""
        try:
            outcome = await self._handler.handle(message)
        except Exception as e:
            log.exception("message_processing_error", error=str(e))
            self._errors_count += 1
            return None

        if outcome is not None:
            self._messages_answered += 1
            if outcome.state is ReplyState.ERROR:
                self._errors_count += 1

        return outcome

    async def _listen_for_messages(self) -> None:
        """Listen for incoming messages until shutdown is triggered."""
        log.info("starting_message_listener")

        try:
            async for message in self._chat.listen():
                if self._shutdown_event and self._shutdown_event.is_set():
                    log.info("shutdown_signal_received_stopping_listener")
                    break

                task = asyncio.create_task(
                    self.process_message(message),
                    name=f"reply_{message.channel_id}_{message.message_id}",
                )
                self._active_tasks.add(task)
                task.add_done_callback(self._active_tasks.discard)

        except asyncio.CancelledError:
            log.info("message_listener_cancelled")

    async def _wait_for_tasks(self) -> None:
        """Wait for active replies to complete with timeout."""
        if not self._active_tasks:
            return

        log.info("waiting_for_active_tasks", count=len(self._active_tasks))

        done, pending = await asyncio.wait(
            self._active_tasks,
            timeout=self.DEFAULT_SHUTDOWN_TIMEOUT,
        )

        if pending:
            log.warning("cancelling_pending_tasks", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("tasks_completed", completed=len(done), cancelled=len(pending))

    async def _cleanup(self) -> None:
        """Disconnect the transport and close the backend client."""
        log.debug("cleaning_up_resources")

        try:
            await self._chat.disconnect()
        except Exception as e:
            log.warning("chat_disconnect_error", error=str(e))

        aclose = getattr(self._backend, "aclose", None)
        if aclose is not None:
            with contextlib.suppress(Exception):
                await aclose()

        self._active_tasks.clear()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s: asyncio.create_task(self._handle_signal(s)),
                sig,
            )
            log.debug("signal_handler_registered", signal=sig.name)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signal."""
        log.info("received_signal", signal=sig.name)
        await self.stop()


def create_bot(config: MintieConfig) -> Bot:
    """Factory function to create a Bot with all dependencies.

    Args:
        config: Application configuration

    Returns:
        Configured Bot instance
    """
    # Import here to avoid loading SDKs when only parsing config
    from mintie.adapters.assistant.mintlify import MintlifyClient
    from mintie.adapters.chat.slack import SlackAdapter
    from mintie.adapters.workspace.static import StaticWorkspaceStore

    chat = SlackAdapter(config.slack)
    backend = MintlifyClient(config.assistant)
    workspaces = StaticWorkspaceStore(config)

    return Bot(config, chat, backend, workspaces)
