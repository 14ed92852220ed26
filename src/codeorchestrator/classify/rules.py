"""
Classification rules for the email code orchestrator.

Decides whether a message asks for a household confirmation (browser path)
or is a code-bearing candidate (extraction path). German and English
trigger phrases; other locales can be added through the keyword file.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..models import InboundMessage, MessageRoute


@dataclass
class ClassificationResult:
    """Result of classifying a message."""
    route: MessageRoute
    matched_triggers: List[str] = field(default_factory=list)


HOUSEHOLD_TRIGGERS = [
    # German
    "haushalt",
    "aktualisierung bestätigen",
    "reiseverifizierung",
    # English
    "household",
    "update household",
    "travel verification",
]


def classify_message(
    message: InboundMessage,
    triggers: Optional[List[str]] = None,
) -> ClassificationResult:
    """
    Classify a message by trigger phrases in its subject and plain body.

    Args:
        message: Message to classify
        triggers: Override for HOUSEHOLD_TRIGGERS

    Returns:
        ClassificationResult with the route and the triggers that matched
    """
    triggers = triggers or HOUSEHOLD_TRIGGERS
    haystack = f"{message.subject}\n{message.plain_body}".lower()

    matched = [trigger for trigger in triggers if trigger.lower() in haystack]

    if matched:
        return ClassificationResult(route=MessageRoute.HOUSEHOLD, matched_triggers=matched)

    return ClassificationResult(route=MessageRoute.CODE)
