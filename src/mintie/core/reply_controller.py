"""Progressive reply controller.

Owns the lifecycle of a single outgoing answer:
1. Post a placeholder ("anchor") message
2. Cycle a status phrase on the anchor while the assistant is working
3. Parse the raw response and replace the anchor with the answer
4. Post overflow content as a second message in the thread

State machine::

    IDLE -> PLACEHOLDER_POSTED -> STATUS_CYCLING -> FINALIZING -> DONE
                       \\______________\\_______________\\-> ERROR

The status ticker is always stopped before the final edit is sent, and a
tick that wakes after stop() returns without writing, so a late status
update can never overwrite the answer.

Nothing is retried. A failed assistant call produces exactly one apology;
a failed chat write abandons the session.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

import structlog

from mintie.config.schema import ReplyConfig
from mintie.core.formatting import build_message_blocks, content_block, split_content
from mintie.core.response_parser import ResponseParser
from mintie.models.message import AssistantMessage, AssistantRequest, ReplyOutcome, ReplyState
from mintie.utils.async_helpers import RenderError, run_periodically
from mintie.utils.security import truncate_error

if TYPE_CHECKING:
    from mintie.interfaces.assistant import AssistantBackend
    from mintie.interfaces.chat import ChatTransport
    from mintie.models.workspace import WorkspaceConfig

log = structlog.get_logger()

NOT_IN_CHANNEL = "not_in_channel"


def generate_fingerprint(channel_id: str, thread_id: str | None, timestamp_ms: int) -> str:
    """Build the per-request correlation string sent upstream."""
    return f"{channel_id}-{thread_id or 'main'}-{timestamp_ms}"


class ReplySession:
    """In-memory state for one reply: the anchor message and its ticker.

    At most one ticker runs per session. ``stop()`` is idempotent and is
    safe to call from any exit path.
    """

    def __init__(
        self,
        transport: ChatTransport,
        channel_id: str,
        message_ts: str,
        reply_thread_ts: str,
        docs_base_url: str,
        statuses: Sequence[str],
        interval: float,
    ) -> None:
        self.channel_id = channel_id
        self.message_ts = message_ts
        self.reply_thread_ts = reply_thread_ts
        self.docs_base_url = docs_base_url
        self.state = ReplyState.PLACEHOLDER_POSTED
        self.stopped = False
        self.status_updates = 0
        self.writes = 0

        self._transport = transport
        self._statuses = list(statuses)
        self._interval = interval
        self._status_index = 0
        self._ticker: asyncio.Task[None] | None = None

    @property
    def is_cycling(self) -> bool:
        """Return True while the status ticker task is alive."""
        return self._ticker is not None and not self._ticker.done()

    def start_status_cycling(self) -> None:
        """Start editing the anchor with the next status phrase on a timer."""
        if self._ticker is not None or self.stopped:
            return

        self.state = ReplyState.STATUS_CYCLING
        self._ticker = asyncio.create_task(
            run_periodically(self._interval, self.tick, lambda: self.stopped),
            name=f"status_{self.channel_id}_{self.message_ts}",
        )

    async def tick(self) -> None:
        """Advance the rotation and edit the anchor. No-op once stopped."""
        if self.stopped:
            return

        self._status_index = (self._status_index + 1) % len(self._statuses)
        status = self._statuses[self._status_index]

        try:
            await self._transport.update_message(self.channel_id, self.message_ts, status)
            self.status_updates += 1
        except Exception as e:
            log.warning(
                "status_update_failed",
                channel_id=self.channel_id,
                message_ts=self.message_ts,
                error=truncate_error(e),
            )

    async def stop(self) -> None:
        """Stop status cycling and wait for the ticker to finish."""
        self.stopped = True

        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker


class ProgressiveReplyController:
    """Answers one question with a live-updating Slack message.

    Example:
        controller = ProgressiveReplyController(transport, backend, ReplyConfig())
        outcome = await controller.reply(
            "How do I add a custom domain?",
            channel_id="C123",
            workspace=workspace,
            thread_id="1700000000.000100",
        )
    """

    def __init__(
        self,
        transport: ChatTransport,
        backend: AssistantBackend,
        config: ReplyConfig | None = None,
        parser: ResponseParser | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the controller.

        Args:
            transport: Chat transport used for all message writes.
            backend: Documentation assistant backend.
            config: Reply settings (statuses, interval, split threshold).
            parser: Response parser. If None, creates default.
            clock: Wall clock in seconds, used for fingerprints.
        """
        self._transport = transport
        self._backend = backend
        self._config = config or ReplyConfig()
        self._parser = parser or ResponseParser(self._config.docs_base_url)
        self._clock = clock
        self._last_request_ms = 0

    def build_request(
        self,
        user_message: str,
        channel_id: str,
        thread_id: str | None,
    ) -> AssistantRequest:
        """Build the assistant request with a fresh fingerprint.

        Timestamps are forced to increase so two requests never share a
        fingerprint, even within the same millisecond.
        """
        now_ms = max(int(self._clock() * 1000), self._last_request_ms + 1)
        self._last_request_ms = now_ms

        return AssistantRequest(
            fingerprint=generate_fingerprint(channel_id, thread_id, now_ms),
            messages=(
                AssistantMessage(id=f"msg-{now_ms}", role="user", content=user_message),
            ),
        )

    async def reply(
        self,
        user_message: str,
        channel_id: str,
        workspace: WorkspaceConfig,
        thread_id: str | None = None,
    ) -> ReplyOutcome:
        """Answer a user message. Never raises for reply failures.

        Args:
            user_message: Prompt to send to the assistant.
            channel_id: Channel to answer in.
            workspace: Workspace whose assistant answers.
            thread_id: Thread to post the placeholder under (optional).

        Returns:
            ReplyOutcome describing the terminal state.
        """
        session: ReplySession | None = None

        try:
            message_ts = await self._transport.post_message(
                channel_id, self._config.initial_status, thread_id=thread_id
            )
            session = ReplySession(
                transport=self._transport,
                channel_id=channel_id,
                message_ts=message_ts,
                reply_thread_ts=thread_id or message_ts,
                docs_base_url=workspace.docs_base_url,
                statuses=self._config.statuses,
                interval=self._config.status_interval,
            )
            log.debug("placeholder_posted", channel_id=channel_id, message_ts=message_ts)

            session.start_status_cycling()

            request = self.build_request(user_message, channel_id, thread_id)
            log.info(
                "assistant_request_start",
                channel_id=channel_id,
                team_id=workspace.team_id,
                fingerprint=request.fingerprint,
            )
            raw = await self._backend.send(workspace, request)

            return await self._finalize(session, raw)

        except Exception as e:
            return await self._fail(channel_id, thread_id, session, e)

        finally:
            if session is not None:
                await session.stop()

    async def _finalize(self, session: ReplySession, raw: str) -> ReplyOutcome:
        """Replace the anchor with the answer, splitting if it is too long."""
        session.state = ReplyState.FINALIZING
        await session.stop()

        answer = self._parser.parse(raw, session.docs_base_url)
        parts = split_content(
            answer.content,
            threshold=self._config.split_threshold,
            window=self._config.split_window,
        )

        if len(parts) == 2:
            first, second = parts
            await self._transport.update_message(
                session.channel_id,
                session.message_ts,
                first,
                blocks=[content_block(first)],
            )
            session.writes += 1
            await self._transport.post_message(
                session.channel_id,
                second,
                thread_id=session.reply_thread_ts,
                blocks=build_message_blocks(second, answer.sources, session.docs_base_url),
            )
            session.writes += 1
        else:
            await self._transport.update_message(
                session.channel_id,
                session.message_ts,
                answer.content,
                blocks=build_message_blocks(answer.content, answer.sources, session.docs_base_url),
            )
            session.writes += 1

        session.state = ReplyState.DONE
        log.info(
            "reply_finalized",
            channel_id=session.channel_id,
            message_ts=session.message_ts,
            length=len(answer.content),
            sources=len(answer.sources),
            split=len(parts) == 2,
        )
        return ReplyOutcome(
            state=ReplyState.DONE,
            message_ts=session.message_ts,
            writes=session.writes,
            split=len(parts) == 2,
        )

    async def _fail(
        self,
        channel_id: str,
        thread_id: str | None,
        session: ReplySession | None,
        error: Exception,
    ) -> ReplyOutcome:
        """Stop the ticker and leave exactly one apology, when possible.

        The anchor is edited to a plain-text apology so it never stays on a
        status phrase, even when the final edit itself was rejected. Without
        an anchor, a new apology message is posted. A placeholder that could
        not be posted at all, or a channel the bot is not in, gets no apology.
        """
        message_ts = session.message_ts if session else None
        writes = session.writes if session else 0

        if session is not None:
            session.state = ReplyState.ERROR
            await session.stop()

        if isinstance(error, RenderError) and (
            message_ts is None or getattr(error, "code", None) == NOT_IN_CHANNEL
        ):
            if getattr(error, "code", None) == NOT_IN_CHANNEL:
                log.warning("bot_not_in_channel", channel_id=channel_id)
            else:
                log.error(
                    "placeholder_post_failed",
                    channel_id=channel_id,
                    message_ts=message_ts,
                    error=truncate_error(error),
                )
            return ReplyOutcome(state=ReplyState.ERROR, message_ts=message_ts, writes=writes)

        log.error(
            "reply_failed",
            channel_id=channel_id,
            message_ts=message_ts,
            error_type=type(error).__name__,
            error=truncate_error(error),
        )

        try:
            if message_ts is not None:
                await self._transport.update_message(
                    channel_id, message_ts, self._config.error_text
                )
            else:
                await self._transport.post_message(
                    channel_id, self._config.error_text, thread_id=thread_id
                )
            writes += 1
        except Exception as e:
            log.error("apology_failed", channel_id=channel_id, error=truncate_error(e))

        return ReplyOutcome(state=ReplyState.ERROR, message_ts=message_ts, writes=writes)
