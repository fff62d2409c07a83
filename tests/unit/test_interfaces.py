"""Tests for protocol interfaces."""

import inspect
from typing import Any

import pytest

from mintie.adapters.assistant.mintlify import MintlifyClient
from mintie.adapters.chat.slack import SlackAdapter
from mintie.adapters.workspace.static import StaticWorkspaceStore
from mintie.interfaces import AssistantBackend, ChatTransport, WorkspaceConfigStore


def protocol_methods(protocol: type) -> dict[str, inspect.Signature]:
    """Return the public methods a protocol declares with their signatures."""
    return {
        name: inspect.signature(member)
        for name, member in vars(protocol).items()
        if callable(member) and not name.startswith("_")
    }


def assert_implements(implementation: Any, protocol: type) -> None:
    """Assert every protocol method exists with the same parameter names."""
    for name, signature in protocol_methods(protocol).items():
        method = getattr(implementation, name, None)
        assert method is not None, f"{implementation.__name__} is missing {name}"
        expected = list(signature.parameters)
        actual = list(inspect.signature(method).parameters)
        assert actual == expected, f"{implementation.__name__}.{name}: {actual} != {expected}"


class TestChatTransportProtocol:
    """Test ChatTransport protocol compliance."""

    def test_declares_transport_operations(self) -> None:
        """Test the protocol covers lifecycle, writes and lookups."""
        assert set(protocol_methods(ChatTransport)) == {
            "connect",
            "disconnect",
            "listen",
            "post_message",
            "update_message",
            "fetch_thread_history",
            "get_channel_name",
        }

    def test_slack_adapter_implements_protocol(self) -> None:
        """Test the Slack adapter matches the transport protocol."""
        assert_implements(SlackAdapter, ChatTransport)

    def test_fake_transport_implements_writes(self, fake_transport) -> None:
        """Test the recording fake used by the reply tests stays in sync."""
        for name in ("post_message", "update_message", "fetch_thread_history"):
            expected = list(protocol_methods(ChatTransport)[name].parameters)[1:]
            actual = list(inspect.signature(getattr(fake_transport, name)).parameters)
            assert actual == expected

    async def test_post_message_returns_ts(self, fake_transport) -> None:
        """Test posting returns the new message timestamp."""
        ts = await fake_transport.post_message("C123", "Thinking.", thread_id="1.0")

        assert ts == "1700000000.000001"
        assert fake_transport.posts == [("post", "C123", "1.0", "Thinking.", None)]


class TestAssistantBackendProtocol:
    """Test AssistantBackend protocol compliance."""

    def test_mintlify_client_implements_protocol(self) -> None:
        """Test the Mintlify client matches the backend protocol."""
        assert_implements(MintlifyClient, AssistantBackend)

    @pytest.mark.parametrize("name", ["send"])
    def test_send_is_coroutine(self, name: str) -> None:
        """Test backend calls are awaitable."""
        assert inspect.iscoroutinefunction(getattr(MintlifyClient, name))


class TestWorkspaceConfigStoreProtocol:
    """Test WorkspaceConfigStore protocol compliance."""

    def test_static_store_implements_protocol(self) -> None:
        """Test the static store matches the workspace protocol."""
        assert_implements(StaticWorkspaceStore, WorkspaceConfigStore)
