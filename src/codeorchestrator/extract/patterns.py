"""
Link and code extraction rules.

Pure text/HTML analysis used by the code path:
- URL extraction from HTML bodies
- Standalone 6-digit code matching
- Context-aware code matching for fetched pages
- Keyword filtering of candidate code links

The keyword lists and the fallback caps below are tuning knobs, not part of
the matching structure. English and German variants are included because
most senders we see localize their mail.
"""

import re
from typing import Iterable, List, Optional, Set


LINK_REGEX = re.compile(r'https?://[^\s<>"]+', re.IGNORECASE)

# \b on both sides keeps us from matching 6 digits inside a longer number;
# codes are ASCII digits only, never full-width or Arabic-Indic ones
CODE_REGEX = re.compile(r'\b\d{6}\b', re.ASCII)

CODE_CONTEXT_PATTERNS = [
    # "Your code is: 123456", "Zugangscode 123456"
    re.compile(r'(?:code|verification|verify|zugangscode|pin)[\s:]+([0-9]{6})', re.IGNORECASE),
    # "123456 is your code", "123456 - verification"
    re.compile(r'([0-9]{6})[\s\-]+(?:is your|verification|access)', re.IGNORECASE),
    # <td>123456</td>
    re.compile(r'<[^>]*>([0-9]{6})</[^>]*>', re.IGNORECASE),
]

# Pages at or above this size are too noisy for blind numeric matching
CONTEXT_FALLBACK_MAX_CHARS = 50000

# More bare codes than this on a page means we can't tell which one is real
CONTEXT_FALLBACK_MAX_CODES = 3

CODE_LINK_KEYWORDS = [
    "code",
    "verify",
    "verifizierung",
    "anfordern",
    "bestätigung",
    "confirmation",
    "activate",
]


def extract_links(html: Optional[str]) -> Set[str]:
    """
    Extract all absolute http(s) URLs from an HTML body.

    Args:
        html: HTML text (may be empty or None)

    Returns:
        Set of unique URLs
    """
    if not html:
        return set()

    return set(LINK_REGEX.findall(html))


def extract_codes(text: Optional[str]) -> Set[str]:
    """
    Extract standalone 6-digit codes from text.

    Args:
        text: Plain text or HTML

    Returns:
        Set of unique 6-digit strings
    """
    if not text:
        return set()

    return set(CODE_REGEX.findall(text))


def extract_codes_with_context(html: Optional[str]) -> Set[str]:
    """
    Extract codes that sit next to verification-related wording.

    All three context pattern families are applied and their matches are
    unioned. When nothing matches and the page is small, fall back to plain
    6-digit matching, accepted only if it yields a handful of codes.

    Args:
        html: Page body (HTML or text)

    Returns:
        Set of unique 6-digit strings (empty if nothing credible was found)
    """
    if not html:
        return set()

    found_codes = set()

    for pattern in CODE_CONTEXT_PATTERNS:
        for match in pattern.finditer(html):
            if match.group(1):
                found_codes.add(match.group(1))

    if not found_codes and len(html) < CONTEXT_FALLBACK_MAX_CHARS:
        simple_codes = extract_codes(html)
        if len(simple_codes) <= CONTEXT_FALLBACK_MAX_CODES:
            found_codes.update(simple_codes)

    return found_codes


def filter_code_links(
    links: Iterable[str],
    keywords: Optional[List[str]] = None,
) -> List[str]:
    """
    Keep only links that look like they lead to a verification code.

    Args:
        links: Candidate URLs
        keywords: Override for CODE_LINK_KEYWORDS

    Returns:
        Links containing at least one keyword (case-insensitive), in input order
    """
    keywords = [k.lower() for k in (keywords or CODE_LINK_KEYWORDS)]

    return [
        link
        for link in links
        if any(keyword in link.lower() for keyword in keywords)
    ]


def first_code(codes: Iterable[str], text: Optional[str] = None) -> Optional[str]:
    """
    Pick one code out of a set deterministically.

    With source text the earliest occurrence wins, otherwise the lowest value.
    """
    codes = sorted(set(codes))
    if not codes:
        return None

    if not text:
        return codes[0]

    def position(code: str) -> int:
        match = re.search(r'\b' + code + r'\b', text, re.ASCII)
        return match.start() if match else len(text)

    return min(codes, key=position)
