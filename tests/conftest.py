"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from codeorchestrator.models import InboundMessage


class FakeNotifier:
    """Records notifications instead of sending them."""

    def __init__(self, fail_with=None, fail_on=()):
        self.sent = []
        self.fail_with = fail_with
        self.fail_on = set(fail_on)

    def _maybe_fail(self, kind):
        if kind in self.fail_on:
            raise self.fail_with

    async def send_code_notification(self, code, subject, sender):
        self._maybe_fail("code")
        self.sent.append(("code", code, subject, sender))

    async def send_household_notification(self, success, account, error=None):
        self._maybe_fail("household")
        self.sent.append(("household", success, account, error))

    async def send_error_notification(self, message, context=None):
        self._maybe_fail("error")
        self.sent.append(("error", message, context))

    def kinds(self):
        return [entry[0] for entry in self.sent]


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_message():
    def _make(subject="", plain_body="", html_body="", sender_address="noreply@example.com", identifier="1"):
        return InboundMessage(
            subject=subject,
            plain_body=plain_body,
            html_body=html_body,
            sender_address=sender_address,
            identifier=identifier,
        )

    return _make
