"""
Configuration management for the email code orchestrator.

Settings come from environment variables (loaded from .env by the CLI).
Keyword overrides come from an optional YAML file.

Required values are checked when they are first needed, not at startup, so
a code-only run never asks for browser credentials.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from .models import Credentials


DEFAULT_IMAP_HOST = "imap.gmail.com"
DEFAULT_IMAP_PORT = 993
DEFAULT_MAILBOX = "INBOX"

KEYWORD_FILE_KEYS = ("household_triggers", "code_link_keywords", "action_keywords")


class ConfigurationError(ValueError):
    """Raised when a required setting is missing or malformed."""
    pass


@dataclass(frozen=True)
class ImapSettings:
    host: str
    port: int
    user: str
    password: str = field(repr=False)
    mailbox: str = DEFAULT_MAILBOX


@dataclass
class Settings:
    """
    Snapshot of the process environment.

    Accessors raise ConfigurationError naming the missing variable.
    """
    env: Mapping[str, str]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(env=dict(os.environ))

    def _get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.env.get(name)
        if value is None or not value.strip():
            return default
        return value.strip()

    def _require(self, name: str) -> str:
        value = self._get(name)
        if value is None:
            raise ConfigurationError(f"{name} not configured (set it in the environment or .env)")
        return value

    def imap_settings(self, mailbox: Optional[str] = None) -> ImapSettings:
        port_raw = self._get("IMAP_PORT", str(DEFAULT_IMAP_PORT))
        try:
            port = int(port_raw)
        except ValueError:
            raise ConfigurationError(f"Invalid IMAP_PORT: '{port_raw}' must be an integer")

        return ImapSettings(
            host=self._get("IMAP_HOST", DEFAULT_IMAP_HOST),
            port=port,
            user=self._require("IMAP_USER"),
            password=self._require("IMAP_PASS"),
            mailbox=mailbox or self._get("IMAP_MAILBOX", DEFAULT_MAILBOX),
        )

    def telegram_bot_token(self) -> str:
        return self._require("TELEGRAM_BOT_TOKEN")

    def telegram_chat_id(self) -> str:
        return self._require("TELEGRAM_CHAT_ID")

    def telegram_api_id(self) -> int:
        api_id = self._require("TG_API_ID")
        try:
            return int(api_id)
        except ValueError:
            raise ConfigurationError(f"Invalid TG_API_ID: '{api_id}' must be an integer")

    def telegram_api_hash(self) -> str:
        return self._require("TG_API_HASH")

    def household_credentials(self) -> Optional[Credentials]:
        """
        Login for automatic household confirmation.

        Returns:
            Credentials, or None when neither variable is set (manual mode)

        Raises:
            ConfigurationError: If only one of the two variables is set
        """
        email = self._get("HOUSEHOLD_ACCOUNT_EMAIL")
        password = self._get("HOUSEHOLD_ACCOUNT_PASSWORD")

        if email is None and password is None:
            return None

        if email is None or password is None:
            missing = "HOUSEHOLD_ACCOUNT_EMAIL" if email is None else "HOUSEHOLD_ACCOUNT_PASSWORD"
            raise ConfigurationError(
                f"{missing} not configured (both household credentials are needed for automation)"
            )

        return Credentials(identity=email, secret=password)

    @property
    def browser_headless(self) -> bool:
        return self._get("BROWSER_HEADLESS", "true").lower() not in {"0", "false", "no"}

    @property
    def log_level(self) -> str:
        return self._get("LOG_LEVEL", "INFO").upper()


def load_keywords(path: str) -> Dict[str, List[str]]:
    """
    Load keyword overrides from a YAML file.

    Expected shape:
        household_triggers: [...]     # required
        code_link_keywords: [...]     # optional
        action_keywords: [...]        # optional

    Args:
        path: Path to the keywords YAML

    Returns:
        Dict of keyword list name -> lower-cased keywords

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML parsing fails
        ValueError: If the file is empty or a list is malformed
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Keyword file not found: {path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data:
        raise ValueError(f"Keyword file is empty: {path}")

    if not isinstance(data, dict):
        raise ValueError("Keyword file must be a mapping of list names to keyword lists")

    if "household_triggers" not in data:
        raise ValueError("Missing required 'household_triggers' key in keyword file")

    keywords = {}
    for key in KEYWORD_FILE_KEYS:
        if key not in data:
            continue

        values = data[key]
        if not isinstance(values, list) or not values:
            raise ValueError(f"'{key}' must be a non-empty list")

        for idx, value in enumerate(values):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"'{key}' entry at index {idx} is not a non-empty string")

        keywords[key] = [value.strip().lower() for value in values]

    return keywords
