"""
Tests for the offline CLI commands.
"""

import argparse
from email.message import EmailMessage

import pytest

from codeorchestrator import cli
from codeorchestrator.models import AutomationOutcome


def write_eml(path, subject, plain, html):
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "Netflix <info@account.netflix.com>"
    msg.set_content(plain)
    msg.add_alternative(html, subtype="html")
    path.write_bytes(bytes(msg))


def test_extract_household_email(tmp_path, capsys):
    path = tmp_path / "household.eml"
    write_eml(
        path,
        "Netflix-Haushalt aktualisieren",
        "Bitte bestätige deinen Haushalt.",
        '<a href="https://www.netflix.com/account/update-primary-location?nftoken=abc&amp;g=1">Ja</a>',
    )

    exit_code = cli.extract_command(argparse.Namespace(file=str(path), html=False))

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Route: household" in out
    assert "Household link: https://www.netflix.com/account/update-primary-location?nftoken=abc&g=1" in out


def test_extract_code_email(tmp_path, capsys):
    path = tmp_path / "code.eml"
    write_eml(
        path,
        "Your sign-in code",
        "Your code is 551234",
        '<a href="https://example.com/verify?t=1">Verify</a>',
    )

    exit_code = cli.extract_command(argparse.Namespace(file=str(path), html=False))

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Route: code" in out
    assert "Direct codes: 551234" in out
    assert "https://example.com/verify?t=1" in out


def test_extract_bare_html(tmp_path, capsys):
    path = tmp_path / "page.html"
    path.write_text("<p>Your code: 908172</p>", encoding="utf-8")

    cli.extract_command(argparse.Namespace(file=str(path), html=True))

    assert "Codes in HTML: 908172" in capsys.readouterr().out


def test_extract_missing_file(tmp_path, capsys):
    exit_code = cli.extract_command(argparse.Namespace(file=str(tmp_path / "nope.eml"), html=False))

    assert exit_code == 1
    assert "[ERROR]" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_fetch_code_command(monkeypatch, capsys):
    async def fake_fetch(url):
        return "654321"

    monkeypatch.setattr(cli, "fetch_code_from_link", fake_fetch)

    exit_code = await cli.fetch_code_command(argparse.Namespace(url="https://example.com/code"))

    assert exit_code == 0
    assert "[OK] Code: 654321" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_confirm_command_without_credentials(monkeypatch, capsys):
    monkeypatch.delenv("HOUSEHOLD_ACCOUNT_EMAIL", raising=False)
    monkeypatch.delenv("HOUSEHOLD_ACCOUNT_PASSWORD", raising=False)

    exit_code = await cli.confirm_command(argparse.Namespace(link="https://www.netflix.com/account/x"))

    assert exit_code == 1
    assert "HOUSEHOLD_ACCOUNT_EMAIL" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_confirm_command_reports_outcome(monkeypatch, capsys):
    monkeypatch.setenv("HOUSEHOLD_ACCOUNT_EMAIL", "me@example.com")
    monkeypatch.setenv("HOUSEHOLD_ACCOUNT_PASSWORD", "hunter2")

    class FakeConfirmer:
        def __init__(self, credentials, headless=True):
            self.credentials = credentials

        async def confirm(self, link):
            return AutomationOutcome.failure("login failed")

    monkeypatch.setattr(cli, "HouseholdConfirmer", FakeConfirmer)

    exit_code = await cli.confirm_command(argparse.Namespace(link="https://www.netflix.com/account/x"))

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "[FAIL] login failed" in out
    assert "hunter2" not in out
