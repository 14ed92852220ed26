"""
Message processing orchestrator for the email code orchestrator.

Routes each unseen message down the code path or the household path,
forwards the outcome to the notifier and collects the ids of messages
that were resolved so they can be marked in one batch.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..automation import HouseholdConfirmer, decode_html_entities, extract_household_action_link
from ..config import ConfigurationError
from ..extract import extract_codes, extract_links, fetch_code_from_link, filter_code_links, first_code
from ..models import Credentials, InboundMessage, MessageResult, MessageRoute
from .rules import classify_message


logger = logging.getLogger(__name__)

STATUS_CODE_SENT = "code_sent"
STATUS_CONFIRMED = "confirmed"
STATUS_CONFIRMATION_FAILED = "confirmation_failed"
STATUS_MANUAL_ACTION = "manual_action"
STATUS_NO_CODE = "no_code"
STATUS_NO_LINK = "no_link"
STATUS_ERROR = "error"
STATUS_DRY_RUN = "dry_run"

COUNTER_BY_STATUS = {
    STATUS_CODE_SENT: "codes_sent",
    STATUS_CONFIRMED: "confirmed",
    STATUS_CONFIRMATION_FAILED: "confirmation_failed",
    STATUS_MANUAL_ACTION: "manual_action",
    STATUS_NO_CODE: "unresolved",
    STATUS_NO_LINK: "unresolved",
    STATUS_ERROR: "errors",
    STATUS_DRY_RUN: "dry_run",
}

MANUAL_ACTION_MESSAGE = (
    "Household confirmation needs manual action "
    "(no automation credentials configured)"
)


def _empty_results() -> Dict[str, Any]:
    return {
        "processed": 0,
        "codes_sent": 0,
        "confirmed": 0,
        "confirmation_failed": 0,
        "manual_action": 0,
        "unresolved": 0,
        "dry_run": 0,
        "errors": 0,
        "handled_ids": [],
        "results": [],
    }


class MessageProcessor:
    """
    Processes one batch of inbound messages.

    Features:
    - Trigger-phrase routing (household vs. code)
    - Code cascade: direct match, then following verification links
    - Household confirmation via browser automation, or manual hand-off
      when no credentials are configured
    - Per-message error isolation (one bad message never stops the batch)
    """

    def __init__(
        self,
        notifier,
        credentials: Optional[Credentials] = None,
        confirmer_factory: Optional[Callable[[Credentials], HouseholdConfirmer]] = None,
        household_triggers: Optional[List[str]] = None,
        code_link_keywords: Optional[List[str]] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the processor.

        Args:
            notifier: TelegramNotifier (or anything with the same send_* coroutines)
            credentials: Household site login; None means manual mode
            confirmer_factory: Builds the confirmer for a set of credentials
            household_triggers: Override for the classifier's trigger phrases
            code_link_keywords: Override for the code-link filter keywords
            dry_run: Classify and extract only; no notifications, no browser
        """
        self.notifier = notifier
        self.credentials = credentials
        self.confirmer_factory = confirmer_factory or HouseholdConfirmer
        self.household_triggers = household_triggers
        self.code_link_keywords = code_link_keywords
        self.dry_run = dry_run
        self.results = _empty_results()

    @property
    def handled_ids(self) -> List[str]:
        return self.results["handled_ids"]

    async def process_batch(self, messages: List[InboundMessage]) -> Dict[str, Any]:
        """
        Process messages one at a time, in the order given.

        Args:
            messages: Unseen messages from the mail source

        Returns:
            Dict with counters, handled_ids and per-message results
        """
        self.results = _empty_results()

        logger.info("Processing %d message(s)", len(messages))

        for message in messages:
            result = await self.process_message(message)

            self.results["processed"] += 1
            self.results[COUNTER_BY_STATUS[result.status]] += 1
            self.results["results"].append(result)

            if result.handled:
                self.results["handled_ids"].append(message.identifier)

        return self.results

    async def process_message(self, message: InboundMessage) -> MessageResult:
        """
        Process a single message.

        Returns:
            MessageResult; errors other than configuration problems are
            captured in the result instead of raised
        """
        classification = classify_message(message, self.household_triggers)
        route = classification.route

        logger.info(
            "Processing message %s: %r (route=%s)",
            message.identifier,
            message.subject,
            route.value,
        )

        try:
            if route == MessageRoute.HOUSEHOLD:
                return await self._process_household(message)
            return await self._process_code(message)

        except ConfigurationError:
            raise

        except Exception as e:
            logger.error("Error processing message %s: %s", message.identifier, e)
            if not self.dry_run:
                await self.notifier.send_error_notification(str(e), context=message.subject)
            return self._result(message, route, STATUS_ERROR, detail=str(e))

    def _result(
        self,
        message: InboundMessage,
        route: MessageRoute,
        status: str,
        detail: Optional[str] = None,
        handled: bool = False,
    ) -> MessageResult:
        return MessageResult(
            identifier=message.identifier,
            subject=message.subject,
            route=route,
            status=status,
            detail=detail,
            handled=handled,
        )

    async def _process_code(self, message: InboundMessage) -> MessageResult:
        route = MessageRoute.CODE

        # Strategy 1: code directly in the plain-text body
        direct_codes = extract_codes(message.plain_body)
        if direct_codes:
            code = first_code(direct_codes, message.plain_body)
            logger.info("Code found in email body")
            return await self._deliver_code(message, code, source="body")

        # Strategy 2: follow "get your code" links
        html = message.html_body or ""
        all_links = sorted(extract_links(html), key=html.find)
        code_links = [
            decode_html_entities(link)
            for link in filter_code_links(all_links, self.code_link_keywords)
        ]

        if not code_links:
            logger.info("No codes or verification links found")
            return self._result(message, route, STATUS_NO_CODE)

        logger.info("No direct code, found %d verification link(s)", len(code_links))

        for link in code_links:
            logger.info("Fetching: %s", link)
            code = await fetch_code_from_link(link)
            if code:
                logger.info("Code extracted from link")
                return await self._deliver_code(message, code, source=link)
            logger.info("No code found at this link")

        return self._result(message, route, STATUS_NO_CODE)

    async def _deliver_code(self, message: InboundMessage, code: str, source: str) -> MessageResult:
        if self.dry_run:
            return self._result(message, MessageRoute.CODE, STATUS_DRY_RUN, detail=f"code {code} from {source}")

        await self.notifier.send_code_notification(code, message.subject, message.sender_address)
        return self._result(message, MessageRoute.CODE, STATUS_CODE_SENT, detail=source, handled=True)

    async def _process_household(self, message: InboundMessage) -> MessageResult:
        route = MessageRoute.HOUSEHOLD

        link = extract_household_action_link(message.html_body)
        if link is None:
            logger.warning("Household email without a recognizable action link: %r", message.subject)
            return self._result(message, route, STATUS_NO_LINK)

        if self.credentials is None:
            logger.info("No household credentials configured, surfacing link for manual action")
            if not self.dry_run:
                await self.notifier.send_error_notification(MANUAL_ACTION_MESSAGE, context=link)
            return self._result(message, route, STATUS_MANUAL_ACTION, detail=link)

        if self.dry_run:
            return self._result(message, route, STATUS_DRY_RUN, detail=link)

        confirmer = self.confirmer_factory(self.credentials)
        outcome = await confirmer.confirm(link)

        await self.notifier.send_household_notification(
            outcome.succeeded,
            self.credentials.identity,
            outcome.reason,
        )

        if outcome.succeeded:
            return self._result(message, route, STATUS_CONFIRMED, handled=True)

        return self._result(message, route, STATUS_CONFIRMATION_FAILED, detail=outcome.reason)


async def run_cycle(mail_source, processor: MessageProcessor) -> Dict[str, Any]:
    """
    Run one fetch-process-mark cycle.

    Handled messages are marked in a single batch after processing, even if
    processing stopped on a configuration error.

    Args:
        mail_source: Connected ImapMailSource (or equivalent)
        processor: MessageProcessor for this run

    Returns:
        Batch results from MessageProcessor.process_batch
    """
    messages = await mail_source.fetch_unseen()

    try:
        return await processor.process_batch(messages)
    finally:
        if processor.handled_ids and not processor.dry_run:
            await mail_source.mark_handled(list(processor.handled_ids))
