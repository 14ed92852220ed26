"""
IMAP mail source.

Reads unseen messages without flagging them and marks handled ones as
seen in one batched STORE at the end of a run. imaplib is blocking, so
every call runs in a worker thread to keep the event loop free.
"""

import asyncio
import imaplib
import logging
from typing import Callable, Iterable, List, Optional

from ..config import ImapSettings
from ..models import InboundMessage
from .parse import parse_message


logger = logging.getLogger(__name__)

IMAP_ERRORS = (imaplib.IMAP4.error, OSError)


def parse_uid_search_data(data: object) -> List[str]:
    if not isinstance(data, list) or not data or not data[0]:
        return []
    raw = data[0]
    if isinstance(raw, bytes):
        return [uid.decode("ascii", errors="ignore") for uid in raw.split()]
    if isinstance(raw, str):
        return [uid for uid in raw.split() if uid]
    return []


def parse_fetch_body(fetch_data: object) -> Optional[bytes]:
    if not isinstance(fetch_data, list):
        return None
    for part in fetch_data:
        if not isinstance(part, tuple) or len(part) < 2:
            continue
        _meta, body = part[0], part[1]
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
    return None


class ImapMailSource:
    """
    Unseen-message source backed by an IMAP mailbox.

    Usage:
        async with ImapMailSource.from_settings(settings.imap_settings()) as source:
            messages = await source.fetch_unseen()
            ...
            await source.mark_handled(handled_ids)
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        mailbox: str = "INBOX",
        imap_factory: Callable[[str, int], imaplib.IMAP4] = imaplib.IMAP4_SSL,
    ):
        """
        Initialize the mail source.

        Args:
            host: IMAP server host
            port: IMAP server port (SSL)
            user: Login user
            password: Login password (app password for Gmail)
            mailbox: Mailbox to read
            imap_factory: Connection constructor (tests pass a fake)
        """
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.mailbox = mailbox
        self.imap_factory = imap_factory
        self.imap: Optional[imaplib.IMAP4] = None

    @classmethod
    def from_settings(cls, settings: ImapSettings) -> "ImapMailSource":
        return cls(
            host=settings.host,
            port=settings.port,
            user=settings.user,
            password=settings.password,
            mailbox=settings.mailbox,
        )

    async def __aenter__(self) -> "ImapMailSource":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _open(self) -> imaplib.IMAP4:
        imap = self.imap_factory(self.host, self.port)
        imap.login(self.user, self.password)

        status, _data = imap.select(self.mailbox)
        if status != "OK":
            imap.logout()
            raise imaplib.IMAP4.error(f"Cannot select mailbox: {self.mailbox}")

        return imap

    async def connect(self) -> None:
        """
        Log in and select the mailbox.

        Login failures propagate; they mean the setup is wrong.
        """
        self.imap = await asyncio.to_thread(self._open)
        logger.info("Connected to IMAP server %s (%s)", self.host, self.mailbox)

    async def disconnect(self) -> None:
        """Log out. Errors during logout are logged only."""
        if self.imap is None:
            return

        try:
            await asyncio.to_thread(self.imap.logout)
        except IMAP_ERRORS as e:
            logger.warning("Error during IMAP logout: %s", e)
        finally:
            self.imap = None

    def _require_connection(self) -> imaplib.IMAP4:
        if self.imap is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self.imap

    def _fetch_unseen(self) -> List[InboundMessage]:
        imap = self._require_connection()

        try:
            status, data = imap.uid("SEARCH", None, "UNSEEN")
        except IMAP_ERRORS as e:
            logger.warning("IMAP search failed: %s", e)
            return []

        if status != "OK":
            logger.warning("IMAP search returned %s", status)
            return []

        uids = parse_uid_search_data(data)
        logger.info("Found %d unseen message(s)", len(uids))

        messages = []
        for uid in uids:
            try:
                # BODY.PEEK leaves \Seen alone until we decide the message is handled
                status, fetch_data = imap.uid("FETCH", uid, "(BODY.PEEK[])")
            except IMAP_ERRORS as e:
                logger.warning("Failed to fetch message %s: %s", uid, e)
                continue

            raw = parse_fetch_body(fetch_data) if status == "OK" else None
            if raw is None:
                logger.info("No source data for message %s, skipping", uid)
                continue

            try:
                messages.append(parse_message(raw, uid))
            except Exception as e:
                logger.warning("Failed to parse message %s: %s", uid, e)

        return messages

    async def fetch_unseen(self) -> List[InboundMessage]:
        """
        Read all unseen messages in mailbox order.

        Returns:
            Parsed messages; unreadable ones are skipped
        """
        return await asyncio.to_thread(self._fetch_unseen)

    def _store_seen(self, identifiers: List[str]) -> bool:
        imap = self._require_connection()

        try:
            status, data = imap.uid("STORE", ",".join(identifiers), "+FLAGS", "(\\Seen)")
        except IMAP_ERRORS as e:
            logger.warning("Failed to mark messages as handled: %s", e)
            return False

        if status != "OK":
            logger.warning("IMAP STORE returned %s: %s", status, data)
            return False

        return True

    async def mark_handled(self, identifiers: Iterable[str]) -> bool:
        """
        Flag messages as seen in a single STORE command.

        Args:
            identifiers: UIDs of the handled messages

        Returns:
            True if the store succeeded (or there was nothing to mark)
        """
        identifiers = list(identifiers)
        if not identifiers:
            return True

        marked = await asyncio.to_thread(self._store_seen, identifiers)
        if marked:
            logger.info("Marked %d message(s) as handled", len(identifiers))
        return marked
