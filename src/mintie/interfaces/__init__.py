"""Protocol definitions for pluggable adapters."""

from .assistant import AssistantBackend
from .chat import ChatTransport
from .workspace import WorkspaceConfigStore

__all__ = ["AssistantBackend", "ChatTransport", "WorkspaceConfigStore"]
