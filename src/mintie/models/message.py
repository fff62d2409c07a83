"""Data models for chat messages and assistant requests."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ChatMessage:
    """An incoming message from a chat platform."""

    channel_id: str
    message_id: str
    thread_id: str | None  # None if not in a thread
    user_id: str
    text: str
    timestamp: datetime
    team_id: str | None = None
    is_mention: bool = False
    is_direct: bool = False

    # Platform-specific metadata
    raw_event: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssistantMessage:
    """A single conversation turn sent to the assistant."""

    id: str
    role: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "parts": [{"type": "text", "text": self.content}],
        }


@dataclass(frozen=True)
class AssistantRequest:
    """Request body for the documentation assistant."""

    fingerprint: str
    messages: tuple[AssistantMessage, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "fp": self.fingerprint,
            "messages": [m.to_dict() for m in self.messages],
            "slackAgent": True,
        }


class ReplyState(Enum):
    """Lifecycle of a single progressive reply."""

    IDLE = "idle"
    PLACEHOLDER_POSTED = "placeholder_posted"
    STATUS_CYCLING = "status_cycling"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ReplyOutcome:
    """Result of a reply attempt, for observability."""

    state: ReplyState
    message_ts: str | None = None
    writes: int = 0
    split: bool = False
