"""
MIME parsing for inbound messages.

Turns raw RFC 822 bytes into an InboundMessage with the first text/plain
and text/html bodies. Attachments are ignored. HTML-only mail gets a plain
body derived from its HTML so direct-code matching and classification
still see the text.
"""

import logging
import re
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parseaddr

from bs4 import BeautifulSoup

from ..models import InboundMessage


logger = logging.getLogger(__name__)


def html_to_text(html: str) -> str:
    """
    Convert an HTML body to plain text.

    Args:
        html: Raw HTML from the message

    Returns:
        Visible text, one block per line, blank runs collapsed
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    text = soup.get_text(separator="\n")

    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _decode_part(part: EmailMessage) -> str:
    try:
        # get_content() handles quoted-printable, base64 and charsets
        return part.get_content()
    except (LookupError, ValueError) as e:
        logger.warning("Failed to decode %s part with get_content(): %s", part.get_content_type(), e)
        payload = part.get_payload(decode=True)
        if payload:
            return payload.decode("utf-8", errors="ignore")
        return ""


def parse_message(raw: bytes, identifier: str) -> InboundMessage:
    """
    Parse a raw email into an InboundMessage.

    Args:
        raw: Raw message bytes as fetched from IMAP
        identifier: Mailbox id for the message (IMAP UID)

    Returns:
        InboundMessage with empty strings for missing parts; plain_body
        falls back to the text of the HTML part
    """
    msg = BytesParser(policy=policy.default).parsebytes(raw)

    text_body = ""
    html_body = ""

    # walk() yields the message itself for single-part mail
    for part in msg.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue

        content_type = part.get_content_type()
        if content_type == "text/plain" and not text_body:
            text_body = _decode_part(part)
        elif content_type == "text/html" and not html_body:
            html_body = _decode_part(part)

    if not text_body and html_body:
        text_body = html_to_text(html_body)

    subject = str(msg.get("Subject", "") or "").strip()
    sender_address = parseaddr(str(msg.get("From", "") or ""))[1]

    return InboundMessage(
        subject=subject,
        plain_body=text_body,
        html_body=html_body,
        sender_address=sender_address,
        identifier=identifier,
    )
