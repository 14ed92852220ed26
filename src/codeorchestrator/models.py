"""
Data models shared across the orchestrator.

Plain dataclasses passed between the mail source, the extraction cascade,
the confirmation automator and the notifier.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MessageRoute(str, Enum):
    """Which path a message is sent down."""
    CODE = "code"
    HOUSEHOLD = "household"


@dataclass(frozen=True)
class InboundMessage:
    """
    One unseen message as read from the mailbox.

    Attributes:
        subject: Decoded subject line
        plain_body: text/plain body (empty string if absent)
        html_body: text/html body (empty string if absent)
        sender_address: Bare sender address from the From header
        identifier: Mailbox-assigned id (IMAP UID)
    """
    subject: str
    plain_body: str
    html_body: str
    sender_address: str
    identifier: str


@dataclass(frozen=True)
class Credentials:
    """Login for the household confirmation site. The secret never shows up in repr."""
    identity: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class AutomationOutcome:
    """Result of one confirmation attempt."""
    succeeded: bool
    reason: Optional[str] = None

    @classmethod
    def failure(cls, reason: str) -> "AutomationOutcome":
        return cls(succeeded=False, reason=reason)


@dataclass
class MessageResult:
    """What the processor did with a single message."""
    identifier: str
    subject: str
    route: MessageRoute
    status: str
    detail: Optional[str] = None
    handled: bool = False
