"""Tests for MessageHandler functionality."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from cachetools import TTLCache

from mintie.config.schema import MintieConfig
from mintie.core.message_handler import (
    DEDUP_MAXSIZE,
    SETUP_HINT,
    MessageHandler,
    extract_user_message,
    format_thread_context,
)
from mintie.models.message import ReplyOutcome, ReplyState
from mintie.utils.async_helpers import WorkspaceNotConfiguredError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def mock_controller() -> AsyncMock:
    """Create a mock reply controller."""
    controller = AsyncMock()
    controller.reply.return_value = ReplyOutcome(state=ReplyState.DONE, message_ts="1.2", writes=1)
    return controller


@pytest.fixture
def mock_workspaces(workspace) -> AsyncMock:
    """Create a mock workspace store returning the test workspace."""
    store = AsyncMock()
    store.get_workspace_config.return_value = workspace
    return store


@pytest.fixture
def handler(
    fake_transport, mock_controller, mock_workspaces, mintie_config: MintieConfig
) -> MessageHandler:
    """Create a MessageHandler with fakes."""
    fake_transport.channel_names = {"C123": "general", "CASK": "ask-ai"}
    return MessageHandler(fake_transport, mock_controller, mock_workspaces, mintie_config)


class TestExtractUserMessage:
    """Test mention stripping."""

    def test_strips_leading_mention(self) -> None:
        """Test a leading bot mention is removed."""
        assert extract_user_message("<@U0BOT> how do I deploy?") == "how do I deploy?"

    def test_strips_mention_with_label(self) -> None:
        """Test mentions carrying a display label are removed."""
        assert extract_user_message("<@U0BOT|mintie> hi") == "hi"

    def test_strips_inner_mentions(self) -> None:
        """Test mentions in the middle collapse to a single space."""
        assert extract_user_message("ask <@U0BOT> about <@W12> docs") == "ask about docs"

    def test_mention_only(self) -> None:
        """Test a message that is only a mention is empty."""
        assert extract_user_message("  <@U0BOT>  ") == ""

    def test_none(self) -> None:
        """Test None yields an empty string."""
        assert extract_user_message(None) == ""

    def test_channel_links_kept(self) -> None:
        """Test non-user tokens are left alone."""
        assert extract_user_message("see <#C123|general>") == "see <#C123|general>"


class TestFormatThreadContext:
    """Test thread history rendering."""

    def test_users_and_bot(self) -> None:
        """Test bot messages are labelled Assistant."""
        history = [
            {"user": "U1", "text": "What is MDX?"},
            {"bot_id": "B1", "text": "MDX is markdown with JSX."},
            {"subtype": "bot_message", "text": "Anything else?"},
        ]

        assert format_thread_context(history) == (
            "Previous conversation context:\n"
            "User: What is MDX?\n"
            "Assistant: MDX is markdown with JSX.\n"
            "Assistant: Anything else?"
        )

    def test_empty(self) -> None:
        """Test no history renders nothing."""
        assert format_thread_context([]) == ""


class TestShouldAnswer:
    """Test the answering rules."""

    async def test_direct_message(self, handler: MessageHandler, make_message) -> None:
        """Test direct messages are answered."""
        assert await handler.should_answer(make_message(channel_id="D1", is_direct=True))

    async def test_direct_message_disabled(
        self, fake_transport, mock_controller, mock_workspaces, mintie_config, make_message
    ) -> None:
        """Test direct messages can be switched off."""
        mintie_config.slack.answer_direct_messages = False
        handler = MessageHandler(fake_transport, mock_controller, mock_workspaces, mintie_config)

        assert not await handler.should_answer(make_message(channel_id="D1", is_direct=True))

    async def test_mention_in_regular_channel(self, handler: MessageHandler, make_message) -> None:
        """Test mentions are answered outside the ask channel."""
        assert await handler.should_answer(make_message(is_mention=True))

    async def test_mention_in_ask_channel_skipped(
        self, handler: MessageHandler, make_message
    ) -> None:
        """Test mentions in the ask channel are left to the message event."""
        assert not await handler.should_answer(make_message(channel_id="CASK", is_mention=True))

    async def test_plain_message_in_ask_channel(
        self, handler: MessageHandler, make_message
    ) -> None:
        """Test every message in the ask channel is answered."""
        assert await handler.should_answer(make_message(channel_id="CASK"))

    async def test_plain_message_elsewhere_ignored(
        self, handler: MessageHandler, make_message
    ) -> None:
        """Test plain messages outside the ask channel are ignored."""
        assert not await handler.should_answer(make_message())

    async def test_unknown_channel_name(self, handler: MessageHandler, make_message) -> None:
        """Test a channel whose name cannot be looked up is not the ask channel."""
        assert not await handler.should_answer(make_message(channel_id="CUNKNOWN"))
        assert await handler.should_answer(make_message(channel_id="CUNKNOWN", is_mention=True))


class TestReplyThread:
    """Test where the placeholder is threaded."""

    def test_channel_message_threads_under_message(self, make_message) -> None:
        """Test a top-level channel message gets a thread."""
        message = make_message(message_id="1.1")
        assert MessageHandler.reply_thread_for(message) == "1.1"

    def test_channel_thread_reply(self, make_message) -> None:
        """Test a message in a thread answers in that thread."""
        message = make_message(message_id="1.5", thread_id="1.1")
        assert MessageHandler.reply_thread_for(message) == "1.1"

    def test_direct_message_inline(self, make_message) -> None:
        """Test top-level direct messages are answered inline."""
        message = make_message(channel_id="D1", message_id="1.1", is_direct=True)
        assert MessageHandler.reply_thread_for(message) is None

    def test_direct_message_thread(self, make_message) -> None:
        """Test threaded direct messages stay in the thread."""
        message = make_message(channel_id="D1", thread_id="1.0", is_direct=True)
        assert MessageHandler.reply_thread_for(message) == "1.0"


class TestBuildPrompt:
    """Test prompt construction with thread context."""

    async def test_no_thread(self, handler: MessageHandler, make_message) -> None:
        """Test top-level messages are sent as-is."""
        assert await handler.build_prompt(make_message(), "hello") == "hello"

    async def test_thread_context(self, handler, fake_transport, make_message) -> None:
        """Test earlier thread messages are prepended, excluding the current one."""
        fake_transport.history = [
            {"ts": "1.0", "user": "U1", "text": "How do I deploy?"},
            {"ts": "1.1", "bot_id": "B1", "text": "Push to main."},
            {"ts": "1.2", "user": "U1", "text": "<@U0BOT> and previews?"},
        ]
        message = make_message(message_id="1.2", thread_id="1.0")

        prompt = await handler.build_prompt(message, "and previews?")

        assert prompt == (
            "Previous conversation context:\n"
            "User: How do I deploy?\n"
            "Assistant: Push to main."
            "\n\nCurrent message: and previews?"
        )

    async def test_history_failure_falls_back(
        self, handler, fake_transport, make_message
    ) -> None:
        """Test a failed history lookup still answers the question."""
        fake_transport.fetch_thread_history = AsyncMock(side_effect=RuntimeError("boom"))
        message = make_message(message_id="1.2", thread_id="1.0")

        assert await handler.build_prompt(message, "question") == "question"

    async def test_only_current_message_in_history(
        self, handler, fake_transport, make_message
    ) -> None:
        """Test a thread holding only the current message adds no context."""
        fake_transport.history = [{"ts": "1.2", "user": "U1", "text": "question"}]
        message = make_message(message_id="1.2", thread_id="1.0")

        assert await handler.build_prompt(message, "question") == "question"


class TestHandle:
    """Test the full dispatch flow."""

    async def test_answers_mention(
        self, handler, mock_controller, mock_workspaces, workspace, make_message
    ) -> None:
        """Test a mention is stripped and handed to the controller."""
        message = make_message(text="<@U0BOT> How do I add a custom domain?", is_mention=True)

        outcome = await handler.handle(message)

        assert outcome.state is ReplyState.DONE
        mock_workspaces.get_workspace_config.assert_awaited_once_with("T123")
        mock_controller.reply.assert_awaited_once_with(
            "How do I add a custom domain?",
            "C123",
            workspace,
            thread_id="1700000000.000100",
        )

    async def test_ignored_message(self, handler, mock_controller, make_message) -> None:
        """Test messages outside the rules never reach the controller."""
        assert await handler.handle(make_message()) is None
        mock_controller.reply.assert_not_called()

    async def test_empty_after_mention(self, handler, mock_controller, make_message) -> None:
        """Test a bare mention is not answered."""
        assert await handler.handle(make_message(text="<@U0BOT>", is_mention=True)) is None
        mock_controller.reply.assert_not_called()

    async def test_duplicate_delivery(self, handler, mock_controller, make_message) -> None:
        """Test a redelivered event is answered once."""
        message = make_message(is_mention=True)

        await handler.handle(message)
        second = await handler.handle(message)

        assert second is None
        assert mock_controller.reply.await_count == 1

    async def test_duplicate_expires(
        self, fake_transport, mock_controller, mock_workspaces, mintie_config, make_message
    ) -> None:
        """Test the same event is answered again after the dedup window."""
        clock = FakeClock()
        handler = MessageHandler(
            fake_transport,
            mock_controller,
            mock_workspaces,
            mintie_config,
            seen=TTLCache(maxsize=DEDUP_MAXSIZE, ttl=mintie_config.runtime.dedup_ttl, timer=clock),
        )
        message = make_message(is_mention=True)

        await handler.handle(message)
        clock.now += mintie_config.runtime.dedup_ttl + 1
        await handler.handle(message)

        assert mock_controller.reply.await_count == 2

    async def test_expired_events_are_dropped(
        self, fake_transport, mock_controller, mock_workspaces, mintie_config, make_message
    ) -> None:
        """Test handled events past the dedup window do not accumulate."""
        clock = FakeClock()
        seen: TTLCache = TTLCache(
            maxsize=DEDUP_MAXSIZE, ttl=mintie_config.runtime.dedup_ttl, timer=clock
        )
        handler = MessageHandler(
            fake_transport, mock_controller, mock_workspaces, mintie_config, seen=seen
        )

        for i in range(1000):
            await handler.handle(make_message(message_id=f"1700000000.{i:06d}", is_mention=True))
            clock.now += mintie_config.runtime.dedup_ttl + 1

        assert mock_controller.reply.await_count == 1000
        assert len(seen) <= 1

    def test_default_dedup_cache_is_bounded(self, handler, mintie_config) -> None:
        """Test the default dedup cache has a size cap and the configured window."""
        assert handler._seen.maxsize == DEDUP_MAXSIZE
        assert handler._seen.ttl == mintie_config.runtime.dedup_ttl

    async def test_mention_and_message_are_distinct(
        self, handler, mock_controller, make_message
    ) -> None:
        """Test a DM delivered as both event kinds is keyed separately."""
        await handler.handle(make_message(channel_id="D1", is_direct=True))
        await handler.handle(make_message(channel_id="D1", is_direct=True, is_mention=True))

        assert mock_controller.reply.await_count == 2

    async def test_workspace_not_configured(
        self, handler, fake_transport, mock_controller, mock_workspaces, make_message
    ) -> None:
        """Test an unconfigured workspace gets the setup hint instead of an answer."""
        mock_workspaces.get_workspace_config.side_effect = WorkspaceNotConfiguredError("T999")

        outcome = await handler.handle(make_message(team_id="T999", is_mention=True))

        assert outcome is None
        mock_controller.reply.assert_not_called()
        assert fake_transport.posts == [
            ("post", "C123", "1700000000.000100", SETUP_HINT, None)
        ]

    async def test_setup_hint_failure_logged(
        self, handler, fake_transport, mock_workspaces, make_message
    ) -> None:
        """Test a failure posting the setup hint does not raise."""
        mock_workspaces.get_workspace_config.side_effect = WorkspaceNotConfiguredError("T999")
        fake_transport.post_error = RuntimeError("not_in_channel")

        assert await handler.handle(make_message(is_mention=True)) is None

    async def test_thread_context_in_prompt(
        self, handler, fake_transport, mock_controller, make_message
    ) -> None:
        """Test threaded questions carry earlier messages."""
        fake_transport.history = [{"ts": "1.0", "user": "U1", "text": "First question"}]
        message = make_message(
            message_id="1.2",
            thread_id="1.0",
            text="<@U0BOT> follow up",
            is_mention=True,
        )

        await handler.handle(message)

        prompt = mock_controller.reply.await_args.args[0]
        assert prompt.endswith("\n\nCurrent message: follow up")
        assert "User: First question" in prompt
        assert mock_controller.reply.await_args.kwargs["thread_id"] == "1.0"
