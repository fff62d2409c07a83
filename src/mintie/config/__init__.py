"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    AssistantConfig,
    LoggingConfig,
    MintieConfig,
    ReplyConfig,
    RuntimeConfig,
    SlackConfig,
    WorkspaceSettings,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "MintieConfig",
    # Sections
    "SlackConfig",
    "AssistantConfig",
    "ReplyConfig",
    "WorkspaceSettings",
    "LoggingConfig",
    "RuntimeConfig",
]
