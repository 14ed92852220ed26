"""
Mail module for the email code orchestrator.

Handles the inbox side:
- Reading unseen messages over IMAP
- MIME parsing into InboundMessage
- Batched "mark as handled"
"""

from .parse import html_to_text, parse_message
from .source import ImapMailSource

__all__ = [
    "parse_message",
    "html_to_text",
    "ImapMailSource",
]
