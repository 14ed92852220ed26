"""
Tests for MIME parsing and the IMAP mail source.
"""

import imaplib
from email.message import EmailMessage

import pytest

from codeorchestrator.mail import ImapMailSource, parse_message
from codeorchestrator.mail.parse import html_to_text
from codeorchestrator.mail.source import parse_uid_search_data


def build_raw(subject="Dein Zugangscode", plain="Code: 123456", html=None, attachment=False):
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "Netflix <info@account.netflix.com>"
    msg["To"] = "me@example.com"
    msg.set_content(plain)
    if html is not None:
        msg.add_alternative(html, subtype="html")
    if attachment:
        msg.add_attachment(b"not a body", maintype="application", subtype="octet-stream", filename="data.bin")
    return bytes(msg)


class FakeImap:

    def __init__(self, messages, select_status="OK", broken_uids=()):
        self.messages = messages
        self.select_status = select_status
        self.broken_uids = set(broken_uids)
        self.calls = []

    def login(self, user, password):
        self.calls.append(("LOGIN", user))

    def select(self, mailbox):
        self.calls.append(("SELECT", mailbox))
        return self.select_status, [str(len(self.messages)).encode()]

    def uid(self, command, *args):
        self.calls.append((command,) + args)

        if command == "SEARCH":
            return "OK", [" ".join(self.messages).encode()]

        if command == "FETCH":
            uid = args[0]
            if uid in self.broken_uids:
                raise imaplib.IMAP4.error("FETCH failed")
            raw = self.messages[uid]
            return "OK", [(f"{uid} (UID {uid} BODY[] {{{len(raw)}}}".encode(), raw), b")"]

        if command == "STORE":
            return "OK", [b""]

        raise AssertionError(f"unexpected command {command}")

    def logout(self):
        self.calls.append(("LOGOUT",))


def source_for(fake):
    return ImapMailSource("imap.example.com", 993, "me@example.com", "pw", imap_factory=lambda host, port: fake)


class TestParseMessage:

    def test_multipart_with_both_bodies(self):
        raw = build_raw(html='<p>Code: <b>123456</b></p><a href="https://example.com/verify">Verify</a>')

        message = parse_message(raw, "42")

        assert message.identifier == "42"
        assert message.subject == "Dein Zugangscode"
        assert message.sender_address == "info@account.netflix.com"
        assert "123456" in message.plain_body
        assert "https://example.com/verify" in message.html_body

    def test_plain_only(self):
        message = parse_message(build_raw(plain="Hello"), "1")

        assert message.plain_body.strip() == "Hello"
        assert message.html_body == ""

    def test_attachment_ignored(self):
        message = parse_message(build_raw(plain="Body text", html="<p>Body</p>", attachment=True), "1")

        assert message.plain_body.strip() == "Body text"
        assert "not a body" not in message.plain_body

    def test_encoded_subject(self):
        message = parse_message(build_raw(subject="Netflix-Haushalt bestätigen"), "1")

        assert message.subject == "Netflix-Haushalt bestätigen"


def test_parse_uid_search_data():
    assert parse_uid_search_data([b"1 2 3"]) == ["1", "2", "3"]
    assert parse_uid_search_data([b""]) == []
    assert parse_uid_search_data(None) == []


@pytest.mark.asyncio
async def test_fetch_unseen_uses_peek():
    fake = FakeImap({"1": build_raw(), "2": build_raw(subject="Second")})

    async with source_for(fake) as source:
        messages = await source.fetch_unseen()

    assert [m.identifier for m in messages] == ["1", "2"]
    assert messages[1].subject == "Second"
    assert ("SEARCH", None, "UNSEEN") in fake.calls
    assert ("FETCH", "1", "(BODY.PEEK[])") in fake.calls
    assert fake.calls[-1] == ("LOGOUT",)


@pytest.mark.asyncio
async def test_fetch_failure_skips_message():
    fake = FakeImap({"1": build_raw(), "2": build_raw()}, broken_uids={"1"})

    async with source_for(fake) as source:
        messages = await source.fetch_unseen()

    assert [m.identifier for m in messages] == ["2"]


@pytest.mark.asyncio
async def test_mark_handled_single_store():
    fake = FakeImap({"1": build_raw(), "2": build_raw(), "3": build_raw()})

    async with source_for(fake) as source:
        assert await source.mark_handled(["1", "3"]) is True

    stores = [call for call in fake.calls if call[0] == "STORE"]
    assert stores == [("STORE", "1,3", "+FLAGS", "(\\Seen)")]


@pytest.mark.asyncio
async def test_mark_handled_empty_is_noop():
    fake = FakeImap({})

    async with source_for(fake) as source:
        assert await source.mark_handled([]) is True

    assert not [call for call in fake.calls if call[0] == "STORE"]


@pytest.mark.asyncio
async def test_select_failure_raises():
    fake = FakeImap({}, select_status="NO")

    with pytest.raises(imaplib.IMAP4.error):
        await source_for(fake).connect()

    assert fake.calls[-1] == ("LOGOUT",)


def build_html_only(subject, html):
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "Netflix <info@account.netflix.com>"
    msg.set_content(html, subtype="html")
    return bytes(msg)


class TestHtmlOnlyMessage:

    def test_plain_body_derived_from_html(self):
        raw = build_html_only(
            "Your sign-in code",
            "<html><head><style>p { color: red; }</style></head>"
            "<body><p>Your verification code is <b>551234</b></p></body></html>",
        )

        message = parse_message(raw, "7")

        assert "551234" in message.plain_body
        assert "color" not in message.plain_body
        assert "<b>" not in message.plain_body
        assert "<b>551234</b>" in message.html_body

    def test_plain_part_wins_over_html(self):
        message = parse_message(build_raw(plain="Plain text", html="<p>Other text</p>"), "1")

        assert message.plain_body.strip() == "Plain text"


def test_html_to_text():
    text = html_to_text("<div>Hallo</div><script>var x = 1;</script><p>Dein Haushalt</p>")

    assert text == "Hallo\nDein Haushalt"
    assert html_to_text("") == ""
