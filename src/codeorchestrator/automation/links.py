"""
Household action link extraction.

Household emails carry several links; only some of them lead to the page
with the confirmation button. Patterns are tried most specific first.
"""

import re
from typing import Optional


HOUSEHOLD_LINK_PATTERNS = [
    # Direct update link with token
    re.compile(r'https://www\.netflix\.com/account/update-primary-location[^\s<>"]+', re.IGNORECASE),
    # Travel verification
    re.compile(r'https://www\.netflix\.com/account/travel/verify[^\s<>"]+', re.IGNORECASE),
    # Manage account access (may need an extra click on the site)
    re.compile(r'https://www\.netflix\.com/ManageAccountAccess[^\s<>"]+', re.IGNORECASE),
    # Anything household-related
    re.compile(r'https://www\.netflix\.com/[^\s<>"]*household[^\s<>"]+', re.IGNORECASE),
]

HTML_ENTITIES = [
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
]


def decode_html_entities(link: str) -> str:
    """Undo the entity encoding mail clients apply to hrefs (&amp; -> &)."""
    for entity, char in HTML_ENTITIES:
        link = link.replace(entity, char)
    return link


def extract_household_action_link(html: Optional[str]) -> Optional[str]:
    """
    Extract the confirmation link from a household update email.

    Args:
        html: HTML body of the email

    Returns:
        First link matching the highest-priority pattern (entity-decoded),
        or None if no pattern matches
    """
    if not html:
        return None

    for pattern in HOUSEHOLD_LINK_PATTERNS:
        match = pattern.search(html)
        if match:
            return decode_html_entities(match.group(0))

    return None
