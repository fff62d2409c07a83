"""Concrete implementations of provider interfaces."""

from .assistant.mintlify import MintlifyClient
from .chat.slack import SlackAdapter
from .workspace.static import StaticWorkspaceStore

__all__ = [
    "MintlifyClient",
    "SlackAdapter",
    "StaticWorkspaceStore",
]
