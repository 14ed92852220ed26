"""
Telegram notifications for the email code orchestrator.

Sends three kinds of messages through a bot account:
- Verification codes
- Household confirmation results
- Errors

The Telethon client is created and logged in on the first send, so runs
that never notify don't need Telegram credentials.
"""

import logging
from typing import Optional, Union

from telethon import TelegramClient
from telethon.sessions import StringSession

from ..config import ConfigurationError, Settings


logger = logging.getLogger(__name__)


def format_code_message(code: str, subject: str, sender: str) -> str:
    return (
        "🔐 **Verification Code**\n"
        "\n"
        f"Code: `{code}`\n"
        f"From: {sender}\n"
        f"Subject: {subject}"
    )


def format_household_message(success: bool, account: str, error: Optional[str] = None) -> str:
    emoji = "✅" if success else "❌"
    status = "SUCCESS" if success else "FAILED"

    lines = [
        f"{emoji} **Household Update**",
        "",
        f"Status: {status}",
        f"Account: {account}",
    ]
    if error:
        lines.append(f"Error: {error}")

    return "\n".join(lines)


def format_error_message(message: str, context: Optional[str] = None) -> str:
    lines = [
        "⚠️ **Error in Email Code Orchestrator**",
        "",
        f"Error: {message}",
    ]
    if context:
        lines.append(f"Context: {context}")

    return "\n".join(lines)


class TelegramNotifier:
    """
    Bot-based notifier.

    Build once from Settings and hand it to the MessageProcessor; call
    close() when the run is over.
    """

    def __init__(self, settings: Settings):
        """
        Initialize the notifier.

        Args:
            settings: Source of the bot token, chat id and API credentials
        """
        self.settings = settings
        self.client: Optional[TelegramClient] = None

    async def _get_client(self) -> TelegramClient:
        if self.client is None:
            bot_token = self.settings.telegram_bot_token()
            client = TelegramClient(
                StringSession(),
                self.settings.telegram_api_id(),
                self.settings.telegram_api_hash(),
            )
            await client.start(bot_token=bot_token)
            self.client = client

        return self.client

    def _chat(self) -> Union[int, str]:
        chat_id = self.settings.telegram_chat_id()
        if chat_id.lstrip("-").isdigit():
            return int(chat_id)
        return chat_id

    async def _send(self, text: str) -> None:
        client = await self._get_client()
        await client.send_message(self._chat(), text, parse_mode="md")

    async def send_code_notification(self, code: str, subject: str, sender: str) -> None:
        """
        Send a verification code.

        Raises:
            Exception: Whatever the send failed with (after logging it)
        """
        try:
            await self._send(format_code_message(code, subject, sender))
            logger.info("Code notification sent to Telegram")
        except Exception as e:
            logger.error("Failed to send Telegram notification: %s", e)
            raise

    async def send_household_notification(
        self,
        success: bool,
        account: str,
        error: Optional[str] = None,
    ) -> None:
        """
        Send a household confirmation result.

        Raises:
            Exception: Whatever the send failed with (after logging it)
        """
        status = "SUCCESS" if success else "FAILED"
        try:
            await self._send(format_household_message(success, account, error))
            logger.info("Household notification sent to Telegram (%s)", status)
        except Exception as e:
            logger.error("Failed to send Telegram notification: %s", e)
            raise

    async def send_error_notification(self, message: str, context: Optional[str] = None) -> None:
        """
        Report an error. Delivery failures are logged, not raised, except
        for missing configuration.
        """
        try:
            await self._send(format_error_message(message, context))
            logger.info("Error notification sent to Telegram")
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error("Failed to send error notification to Telegram: %s", e)

    async def close(self) -> None:
        """Disconnect the bot client if it was ever started."""
        if self.client is not None:
            await self.client.disconnect()
            self.client = None
