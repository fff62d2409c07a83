"""Utility functions and helpers.

- async_helpers: exception taxonomy, retry for reads, ticker
- logging: structured logging with secret sanitization
- security: secret redaction and URL validation
"""

from mintie.utils.async_helpers import (
    MintieError,
    RenderError,
    TransportError,
    WorkspaceNotConfiguredError,
)
from mintie.utils.logging import (
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from mintie.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
    truncate_error,
)

__all__ = [
    # Logging
    "LogFormat",
    "LogLevel",
    # Errors
    "MintieError",
    # Security
    "RedactionError",
    "RenderError",
    "SecretRedactor",
    "SecurityError",
    "TransportError",
    "WorkspaceNotConfiguredError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "truncate_error",
    "unbind_context",
]
