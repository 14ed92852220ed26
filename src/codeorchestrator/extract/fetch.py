"""
Remote code fetching.

Some senders don't put the code in the email; they link to a page that
shows it. This module loads such a page once and re-applies context-aware
extraction to it.
"""

import asyncio
import logging
from typing import Optional

import httpx

from .patterns import extract_codes_with_context, first_code


logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10.0
FETCH_MAX_REDIRECTS = 5

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Dead-link wording; checked before extraction since error pages often
# still carry a stale code
FETCH_ERROR_KEYWORDS = [
    "expired",
    "invalid",
    "error",
    "not found",
    "abgelaufen",
    "ungültig",
]

PREVIEW_CHARS = 500


def has_error_keywords(body: str) -> bool:
    """Check a fetched page for expired/invalid-link wording."""
    lower_body = body.lower()
    return any(keyword in lower_body for keyword in FETCH_ERROR_KEYWORDS)


async def fetch_code_from_link(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Fetch a URL and try to extract a 6-digit code from it.

    Makes exactly one request (plus up to FETCH_MAX_REDIRECTS redirects).
    Never raises: transport failures and error pages are logged and
    reported as "not found".

    Args:
        url: Page to fetch
        transport: Optional httpx transport (tests pass a MockTransport)

    Returns:
        The first code found on the page, or None
    """
    try:
        async with httpx.AsyncClient(
            timeout=FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            max_redirects=FETCH_MAX_REDIRECTS,
            headers={"User-Agent": BROWSER_USER_AGENT},
            transport=transport,
        ) as client:
            # httpx timeouts are per phase; wait_for bounds the whole response
            response = await asyncio.wait_for(client.get(url), timeout=FETCH_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        return None
    except asyncio.TimeoutError:
        logger.warning("Failed to fetch %s: no response within %ss", url, FETCH_TIMEOUT_SECONDS)
        return None

    if response.status_code >= 400:
        logger.warning("Failed to fetch %s: HTTP %s", url, response.status_code)
        return None

    body = response.text

    logger.debug(
        "Response %s %s, %d chars: %s",
        response.status_code,
        response.reason_phrase,
        len(body),
        body[:PREVIEW_CHARS],
    )

    if has_error_keywords(body):
        logger.info("Response from %s contains error keywords, treating link as expired", url)
        return None

    codes = extract_codes_with_context(body)

    if codes:
        logger.info("Found %d contextual code(s) at %s", len(codes), url)
    else:
        logger.info("No codes found in meaningful context at %s", url)

    return first_code(codes, body)
