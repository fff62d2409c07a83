"""Core business logic components.

This module exports the main business logic classes:
- Bot: Lifecycle orchestrator that coordinates all components
- MessageHandler: Decides which messages get answered
- ProgressiveReplyController: Posts and updates the answer message
- ResponseParser: Decodes raw assistant responses
"""

from mintie.core.bot import Bot, create_bot
from mintie.core.message_handler import MessageHandler
from mintie.core.reply_controller import ProgressiveReplyController, ReplySession
from mintie.core.response_parser import ResponseParser, parse_response

__all__ = [
    "Bot",
    "MessageHandler",
    "ProgressiveReplyController",
    "ReplySession",
    "ResponseParser",
    "create_bot",
    "parse_response",
]
