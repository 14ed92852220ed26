"""
Browser automation for household confirmations.

Drives one headless Chromium session per confirmation:
1. Launch a desktop-looking browser
2. Open the confirmation link
3. Log in if the site asks for it
4. Find and click the confirmation control
5. Check the resulting page for a success message

Every step that can fail is caught locally and turned into an
AutomationOutcome with a reason; nothing is retried.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from playwright.async_api import (
    async_playwright,
    ElementHandle,
    Page,
    Error as PWError,
    TimeoutError as PWTimeout,
)

from ..models import AutomationOutcome, Credentials
from .links import decode_html_entities


logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]

VIEWPORT = {"width": 1920, "height": 1080}

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Timeouts (ms)
NAVIGATION_TIMEOUT_MS = 30000
FIELD_TIMEOUT_MS = 5000
LOGIN_NAVIGATION_TIMEOUT_MS = 15000
ACTION_WAIT_TIMEOUT_MS = 10000
TYPING_DELAY_MS = 100

# Fixed waits for client-side rendering (ms)
PAGE_SETTLE_MS = 2000
LOGIN_SETTLE_MS = 3000
SCROLL_SETTLE_MS = 1000
CLICK_SETTLE_MS = 3000

# Ordered fallback locators; the site changes markup now and then
LOGIN_FORM_SELECTORS = (
    'input[name="userLoginId"]',
    'input[type="email"][name="email"]',
    '#id_userLoginId',
    'input[data-uia="login-field"]',
)

EMAIL_FIELD_SELECTORS = (
    'input[name="userLoginId"]',
    'input[type="email"]',
    '#id_userLoginId',
    'input[data-uia="login-field"]',
)

PASSWORD_FIELD_SELECTORS = (
    'input[name="password"]',
    'input[type="password"]',
    '#id_password',
    'input[data-uia="password-field"]',
)

SUBMIT_BUTTON_SELECTORS = (
    'button[type="submit"]',
    'button[data-uia="login-submit-button"]',
    'button.login-button',
)

ACTION_WAIT_SELECTOR = 'button, a[role="button"], a[href], div[role="button"]'
ACTION_CANDIDATE_SELECTOR = 'button, a[role="button"], a[href*="update"], div[role="button"]'

ACTION_KEYWORDS = [
    "Aktualisierung bestätigen",
    "Update household",
    "Confirm update",
]

SUCCESS_KEYWORDS = [
    "erfolgreich",
    "success",
    "bestätigt",
    "confirmed",
    "aktualisiert",
    "updated",
    "danke",
    "thank you",
]

ELEMENT_INFO_SCRIPT = """el => ({
    text: el.textContent || '',
    tagName: el.tagName,
    href: el.getAttribute('href') || '',
})"""

REASON_CONTROL_NOT_FOUND = "confirmation control not found"
REASON_LOGIN_FAILED = "login failed"
REASON_NO_SUCCESS_MESSAGE = "success message not found"


class BrowserLaunchError(Exception):
    """Raised when Chromium cannot be started."""
    pass


def contains_keyword(text: str, keywords: Sequence[str]) -> bool:
    """Case-insensitive substring test against a keyword list."""
    lower_text = text.lower()
    return any(keyword.lower() in lower_text for keyword in keywords)


class HouseholdConfirmer:
    """
    Clicks through a household confirmation in a scripted browser.

    One instance can be reused for several links; each confirm() call gets
    its own browser, which is closed on every exit path.
    """

    def __init__(
        self,
        credentials: Credentials,
        headless: bool = True,
        settle_scale: float = 1.0,
        action_keywords: Optional[List[str]] = None,
    ):
        """
        Initialize the confirmer.

        Args:
            credentials: Account login for the confirmation site
            headless: Run Chromium without a window
            settle_scale: Multiplier for the fixed settle waits
            action_keywords: Override for ACTION_KEYWORDS
        """
        self.credentials = credentials
        self.headless = headless
        self.settle_scale = settle_scale
        self.action_keywords = action_keywords or ACTION_KEYWORDS

    @asynccontextmanager
    async def browser_page(self) -> AsyncIterator[Page]:
        """Launch Chromium and yield a fresh desktop-sized page."""
        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(
                    headless=self.headless,
                    args=BROWSER_ARGS,
                )
            except PWError as e:
                raise BrowserLaunchError(str(e)) from e

            try:
                context = await browser.new_context(
                    viewport=VIEWPORT,
                    user_agent=DESKTOP_USER_AGENT,
                )
                yield await context.new_page()
            finally:
                await browser.close()
                logger.info("Browser closed")

    async def confirm(self, link: str) -> AutomationOutcome:
        """
        Confirm a household update from its email link.

        Args:
            link: Confirmation link from the email (may be entity-encoded)

        Returns:
            AutomationOutcome; never raises
        """
        logger.info("Launching headless browser")

        try:
            async with self.browser_page() as page:
                return await self._drive(page, link)
        except BrowserLaunchError as e:
            logger.error("Browser launch failed: %s", e)
            return AutomationOutcome.failure(f"browser launch failed: {e}")
        except Exception as e:
            logger.error("Browser automation error: %s", e)
            return AutomationOutcome.failure(f"browser automation error: {e}")

    async def _drive(self, page: Page, link: str) -> AutomationOutcome:
        url = decode_html_entities(link)
        logger.info("Navigating to confirmation link")

        try:
            await page.goto(url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
        except PWError as e:
            logger.warning("Navigation failed: %s", e)
            return AutomationOutcome.failure(f"navigation failed: {e}")

        await self._settle(page, PAGE_SETTLE_MS)

        if await self.is_login_required(page):
            logger.info("Login required, authenticating as %s", self.credentials.identity)
            login = await self.login(page)
            if not login.succeeded:
                logger.warning("Login failed: %s", login.reason)
                return login
            logger.info("Login successful")
        else:
            logger.info("Already authenticated")

        element = await self.find_action_control(page)
        if element is None:
            return AutomationOutcome.failure(REASON_CONTROL_NOT_FOUND)

        return await self.click_and_verify(page, element)

    async def _settle(self, page: Page, ms: int) -> None:
        await page.wait_for_timeout(ms * self.settle_scale)

    async def is_login_required(self, page: Page) -> bool:
        """Check whether any known login-form field is on the page."""
        try:
            for selector in LOGIN_FORM_SELECTORS:
                if await page.query_selector(selector):
                    return True
        except PWError as e:
            logger.warning("Error checking login status: %s", e)

        return False

    async def login(self, page: Page) -> AutomationOutcome:
        """
        Fill and submit the login form.

        Succeeds only if the login form is gone afterwards.
        """
        if not await self._type_into_first(page, EMAIL_FIELD_SELECTORS, self.credentials.identity):
            return AutomationOutcome.failure("field not found: email")

        if not await self._type_into_first(page, PASSWORD_FIELD_SELECTORS, self.credentials.secret):
            return AutomationOutcome.failure("field not found: password")

        if not await self._click_first(page, SUBMIT_BUTTON_SELECTORS):
            return AutomationOutcome.failure("field not found: submit")

        try:
            await page.wait_for_load_state("networkidle", timeout=LOGIN_NAVIGATION_TIMEOUT_MS)
        except PWTimeout:
            # Single-page login updates in place without navigating
            logger.info("No navigation detected after submit, assuming in-place update")

        await self._settle(page, LOGIN_SETTLE_MS)

        if await self.is_login_required(page):
            return AutomationOutcome.failure(REASON_LOGIN_FAILED)

        return AutomationOutcome(succeeded=True)

    async def _type_into_first(self, page: Page, selectors: Sequence[str], text: str) -> bool:
        for selector in selectors:
            try:
                field = await page.wait_for_selector(selector, timeout=FIELD_TIMEOUT_MS)
                if field is None:
                    continue
                await field.type(text, delay=TYPING_DELAY_MS)
                return True
            except PWError:
                continue

        return False

    async def _click_first(self, page: Page, selectors: Sequence[str]) -> bool:
        for selector in selectors:
            try:
                button = await page.query_selector(selector)
                if button is None:
                    continue
                await button.click(timeout=FIELD_TIMEOUT_MS)
                return True
            except PWError:
                continue

        return False

    async def find_action_control(self, page: Page) -> Optional[ElementHandle]:
        """
        Find the confirmation button.

        Takes the first clickable element in document order whose text
        contains one of the action keywords.
        """
        try:
            await page.wait_for_selector(ACTION_WAIT_SELECTOR, timeout=ACTION_WAIT_TIMEOUT_MS)
            elements = await page.query_selector_all(ACTION_CANDIDATE_SELECTOR)
        except PWError as e:
            logger.warning("No clickable elements appeared: %s", e)
            return None

        logger.info("Found %d clickable element(s) on page", len(elements))

        for element in elements:
            try:
                info = await element.evaluate(ELEMENT_INFO_SCRIPT)
            except PWError as e:
                logger.debug("Error reading element: %s", e)
                continue

            text = (info.get("text") or "").strip()
            logger.debug(
                "Checking %s: %r href=%r",
                (info.get("tagName") or "").lower(),
                text[:80],
                (info.get("href") or "")[:80],
            )

            if contains_keyword(text, self.action_keywords):
                logger.info("Found matching element: %r", text[:80])
                return element

        logger.info("No matching confirmation control found")
        return None

    async def click_and_verify(self, page: Page, element: ElementHandle) -> AutomationOutcome:
        """Click the confirmation control and check the page for success wording."""
        try:
            await element.scroll_into_view_if_needed()
            await self._settle(page, SCROLL_SETTLE_MS)
            await element.click()
        except PWError as e:
            logger.warning("Click failed: %s", e)
            return AutomationOutcome.failure(f"click failed: {e}")

        logger.info("Clicked, waiting for response")
        await self._settle(page, CLICK_SETTLE_MS)

        if await self.has_success_message(page):
            logger.info("Household update confirmed")
            return AutomationOutcome(succeeded=True)

        return AutomationOutcome.failure(REASON_NO_SUCCESS_MESSAGE)

    async def has_success_message(self, page: Page) -> bool:
        """Check the visible page text for a success keyword."""
        try:
            body_text = await page.inner_text("body")
        except PWError as e:
            logger.warning("Error checking for success: %s", e)
            return False

        return contains_keyword(body_text, SUCCESS_KEYWORDS)
