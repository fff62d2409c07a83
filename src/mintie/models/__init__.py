"""Data models and transfer objects."""

from .answer import DocsLink, ParsedAnswer
from .message import (
    AssistantMessage,
    AssistantRequest,
    ChatMessage,
    ReplyOutcome,
    ReplyState,
)
from .workspace import WorkspaceConfig

__all__ = [
    # Answer models
    "DocsLink",
    "ParsedAnswer",
    # Message models
    "ChatMessage",
    "AssistantMessage",
    "AssistantRequest",
    "ReplyState",
    "ReplyOutcome",
    # Workspace models
    "WorkspaceConfig",
]
