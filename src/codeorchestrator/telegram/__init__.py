"""
Telegram module for the email code orchestrator.

Handles outbound notifications through a Telegram bot.
"""

from .notifier import (
    TelegramNotifier,
    format_code_message,
    format_household_message,
    format_error_message,
)

__all__ = [
    "TelegramNotifier",
    "format_code_message",
    "format_household_message",
    "format_error_message",
]
