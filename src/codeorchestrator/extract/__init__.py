"""
Extraction module for the email code orchestrator.

Handles everything on the code path:
- URL and 6-digit code extraction from message bodies
- Context-aware extraction for fetched pages
- Following candidate code links
"""

from .patterns import (
    extract_links,
    extract_codes,
    extract_codes_with_context,
    filter_code_links,
    first_code,
    CODE_LINK_KEYWORDS,
)
from .fetch import fetch_code_from_link

__all__ = [
    "extract_links",
    "extract_codes",
    "extract_codes_with_context",
    "filter_code_links",
    "first_code",
    "CODE_LINK_KEYWORDS",
    "fetch_code_from_link",
]
