"""
Automation module for the email code orchestrator.

Handles household confirmations that need a real browser session:
- Action link extraction from household emails
- Login, button discovery and outcome checking via Playwright
"""

from .links import extract_household_action_link, decode_html_entities
from .household import HouseholdConfirmer, ACTION_KEYWORDS, SUCCESS_KEYWORDS

__all__ = [
    "extract_household_action_link",
    "decode_html_entities",
    "HouseholdConfirmer",
    "ACTION_KEYWORDS",
    "SUCCESS_KEYWORDS",
]
