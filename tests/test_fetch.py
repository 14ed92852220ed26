"""
Tests for remote code fetching.
"""

import asyncio

import httpx
import pytest

from codeorchestrator.extract import fetch_code_from_link
from codeorchestrator.extract import fetch as fetch_module
from codeorchestrator.extract.fetch import BROWSER_USER_AGENT


def transport_for(body, status_code=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_code_found_on_page():
    transport = transport_for("<html><body>Your verification code: 654321</body></html>")

    code = await fetch_code_from_link("https://example.com/verify?t=1", transport=transport)

    assert code == "654321"


@pytest.mark.asyncio
async def test_expired_page_returns_none_even_with_code():
    transport = transport_for("<p>This link has expired.</p><td>123456</td>")

    code = await fetch_code_from_link("https://example.com/verify?t=1", transport=transport)

    assert code is None


@pytest.mark.asyncio
async def test_german_error_page_returns_none():
    transport = transport_for("<p>Dieser Link ist abgelaufen. Code: 123456</p>")

    assert await fetch_code_from_link("https://example.com/code", transport=transport) is None


@pytest.mark.asyncio
async def test_http_error_status_returns_none():
    transport = transport_for("Your code is 123456", status_code=404)

    assert await fetch_code_from_link("https://example.com/code", transport=transport) is None


@pytest.mark.asyncio
async def test_transport_failure_returns_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    code = await fetch_code_from_link("https://example.com/code", transport=httpx.MockTransport(handler))

    assert code is None


@pytest.mark.asyncio
async def test_follows_redirects():
    def handler(request):
        if request.url.path == "/start":
            return httpx.Response(302, headers={"Location": "https://example.com/final"})
        return httpx.Response(200, text="Your code: 908172")

    code = await fetch_code_from_link("https://example.com/start", transport=httpx.MockTransport(handler))

    assert code == "908172"


@pytest.mark.asyncio
async def test_sends_browser_user_agent():
    seen = []

    await fetch_code_from_link("https://example.com/code", transport=transport_for("nothing", seen=seen))

    assert len(seen) == 1
    assert seen[0].headers["User-Agent"] == BROWSER_USER_AGENT


@pytest.mark.asyncio
async def test_page_without_code_returns_none():
    transport = transport_for("<p>Welcome to your account</p>")

    assert await fetch_code_from_link("https://example.com/code", transport=transport) is None


@pytest.mark.asyncio
async def test_slow_response_hits_overall_timeout(monkeypatch):
    monkeypatch.setattr(fetch_module, "FETCH_TIMEOUT_SECONDS", 0.05)

    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, text="Your code: 123456")

    code = await fetch_code_from_link("https://example.com/code", transport=httpx.MockTransport(handler))

    assert code is None
