"""
CLI entrypoint for the email code orchestrator.

Provides command-line interface for a processing run and for trying the
extractor, the remote fetcher and the household automation one at a time.
"""

import sys
import argparse
import asyncio
import logging
import traceback
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from codeorchestrator.automation import HouseholdConfirmer, decode_html_entities, extract_household_action_link
from codeorchestrator.classify import MessageProcessor, classify_message, run_cycle
from codeorchestrator.config import ConfigurationError, Settings, load_keywords
from codeorchestrator.extract import (
    extract_codes,
    extract_codes_with_context,
    extract_links,
    fetch_code_from_link,
    filter_code_links,
)
from codeorchestrator.mail import ImapMailSource, html_to_text, parse_message
from codeorchestrator.models import InboundMessage
from codeorchestrator.telegram import TelegramNotifier


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

STATUS_SYMBOLS = {
    "code_sent": "[OK]",
    "confirmed": "[OK]",
    "confirmation_failed": "[FAIL]",
    "manual_action": "[MANUAL]",
    "no_code": "[SKIP]",
    "no_link": "[SKIP]",
    "dry_run": "[DRY-RUN]",
    "error": "[ERROR]",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def print_summary(results: dict) -> None:
    """Print run summary to console."""
    print("\n" + "=" * 60)
    print("RUN SUMMARY")
    print("=" * 60)

    print(f"\nMessages processed: {results['processed']}")
    print(f"[OK] Codes sent: {results['codes_sent']}")
    print(f"[OK] Households confirmed: {results['confirmed']}")
    print(f"[FAIL] Confirmations failed: {results['confirmation_failed']}")
    print(f"[MANUAL] Manual action needed: {results['manual_action']}")
    print(f"[SKIP] Unresolved: {results['unresolved']}")
    if results["dry_run"]:
        print(f"[DRY-RUN] Would have acted on: {results['dry_run']}")
    print(f"[ERROR] Errors: {results['errors']}")
    print(f"\nMarked as handled: {len(results['handled_ids'])}")

    if not results["results"]:
        return

    print("\n" + "-" * 60)
    print("PER-MESSAGE RESULTS:")
    print("-" * 60)

    for result in results["results"]:
        status_symbol = STATUS_SYMBOLS.get(result.status, "[?]")

        print(f"\n{status_symbol} {result.subject or '(no subject)'} ({result.identifier})")
        print(f"   Route: {result.route.value}")
        print(f"   Status: {result.status}")

        if result.detail:
            print(f"   Detail: {result.detail}")


async def run_command(args) -> int:
    """
    Execute the run command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    settings = Settings.from_env()

    keywords = {}
    if args.keywords:
        try:
            keywords = load_keywords(args.keywords)
            print(f"[OK] Loaded keywords from: {args.keywords}")
        except Exception as e:
            print(f"[ERROR] Failed to load keywords: {e}")
            return 1

    try:
        imap_settings = settings.imap_settings(args.mailbox)
        credentials = settings.household_credentials()
    except ConfigurationError as e:
        print(f"[ERROR] {e}")
        return 1

    if credentials is None:
        print("[WARN] No household credentials configured; household links will be forwarded for manual action")

    headless = settings.browser_headless
    action_keywords = keywords.get("action_keywords")

    def confirmer_factory(creds):
        return HouseholdConfirmer(creds, headless=headless, action_keywords=action_keywords)

    notifier = TelegramNotifier(settings)
    processor = MessageProcessor(
        notifier,
        credentials=credentials,
        confirmer_factory=confirmer_factory,
        household_triggers=keywords.get("household_triggers"),
        code_link_keywords=keywords.get("code_link_keywords"),
        dry_run=args.dry_run,
    )

    try:
        print(f"\n[INFO] Connecting to {imap_settings.host} ({imap_settings.mailbox})...")

        async with ImapMailSource.from_settings(imap_settings) as source:
            print(f"[INFO] Processing unseen messages (dry-run={args.dry_run})")
            results = await run_cycle(source, processor)

        print_summary(results)

        if args.dry_run:
            print("\n[DRY-RUN] No notifications sent, nothing marked")

        return 1 if results["errors"] else 0

    except ConfigurationError as e:
        print(f"\n[ERROR] {e}")
        return 1

    except Exception as e:
        print(f"\n[ERROR] Run failed: {e}")
        traceback.print_exc()
        return 1

    finally:
        await notifier.close()


def extract_command(args) -> int:
    """
    Execute the extract command (offline, no network).

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    path = Path(args.file)

    if not path.exists():
        print(f"[ERROR] File not found: {path}")
        return 1

    if args.html:
        html = path.read_text(encoding="utf-8", errors="ignore")
        message = InboundMessage(
            subject="",
            plain_body=html_to_text(html),
            html_body=html,
            sender_address="",
            identifier=path.name,
        )
    else:
        message = parse_message(path.read_bytes(), path.name)

    classification = classify_message(message)
    links = extract_links(message.html_body)

    print(f"Subject: {message.subject or '(none)'}")
    print(f"From: {message.sender_address or '(unknown)'}")
    print(f"Route: {classification.route.value}")
    if classification.matched_triggers:
        print(f"Matched triggers: {', '.join(classification.matched_triggers)}")

    print(f"\nDirect codes: {', '.join(sorted(extract_codes(message.plain_body))) or 'none'}")
    print(f"Codes in HTML: {', '.join(sorted(extract_codes_with_context(message.html_body))) or 'none'}")

    code_links = [decode_html_entities(link) for link in filter_code_links(sorted(links, key=message.html_body.find))]
    print(f"\nLinks found: {len(links)}")
    print(f"Code links: {len(code_links)}")
    for link in code_links:
        print(f"   {link}")

    household_link = extract_household_action_link(message.html_body)
    print(f"\nHousehold link: {household_link or 'none'}")

    return 0


async def fetch_code_command(args) -> int:
    """
    Execute the fetch-code command.

    Returns:
        Exit code (0 if a code was found, 1 otherwise)
    """
    print(f"[INFO] Fetching: {args.url}")

    code = await fetch_code_from_link(args.url)

    if code is None:
        print("[WARN] Code not found")
        return 1

    print(f"[OK] Code: {code}")
    return 0


async def confirm_command(args) -> int:
    """
    Execute the confirm command.

    Returns:
        Exit code (0 if the household update was confirmed, 1 otherwise)
    """
    settings = Settings.from_env()

    try:
        credentials = settings.household_credentials()
    except ConfigurationError as e:
        print(f"[ERROR] {e}")
        return 1

    if credentials is None:
        print("[ERROR] Missing required environment variables.")
        print("\nPlease set the following in your .env file:")
        print("  - HOUSEHOLD_ACCOUNT_EMAIL")
        print("  - HOUSEHOLD_ACCOUNT_PASSWORD")
        return 1

    print(f"[INFO] Confirming household update as {credentials.identity}")

    confirmer = HouseholdConfirmer(credentials, headless=settings.browser_headless)
    outcome = await confirmer.confirm(args.link)

    if outcome.succeeded:
        print("[OK] Household update confirmed")
        return 0

    print(f"[FAIL] {outcome.reason}")
    return 1


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Email Code Orchestrator - verification codes and household confirmations to Telegram",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process unseen mail once
  codeorchestrator run

  # See what would happen without notifying or marking anything
  codeorchestrator run --dry-run

  # Inspect a saved email
  codeorchestrator extract message.eml

  # Try a household link by hand
  codeorchestrator confirm "https://www.netflix.com/account/update-primary-location?..."

Environment Variables:
  IMAP_HOST                   IMAP server (default: imap.gmail.com)
  IMAP_PORT                   IMAP SSL port (default: 993)
  IMAP_USER                   Mailbox login (required for run)
  IMAP_PASS                   Mailbox password / app password (required for run)
  IMAP_MAILBOX                Mailbox to read (default: INBOX)
  TELEGRAM_BOT_TOKEN          Bot token from @BotFather
  TELEGRAM_CHAT_ID            Chat to notify
  TG_API_ID                   Telegram API ID - get from my.telegram.org
  TG_API_HASH                 Telegram API hash
  HOUSEHOLD_ACCOUNT_EMAIL     Streaming account login (optional)
  HOUSEHOLD_ACCOUNT_PASSWORD  Streaming account password (optional)
  BROWSER_HEADLESS            Run Chromium headless (default: true)
  LOG_LEVEL                   Logging level (default: INFO)
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Process unseen messages once",
    )

    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and extract only; no notifications, no browser, nothing marked",
    )

    run_parser.add_argument(
        "--keywords",
        type=str,
        metavar="PATH",
        help="YAML file overriding trigger and link keywords (e.g. config/keywords.yaml)",
    )

    run_parser.add_argument(
        "--mailbox",
        type=str,
        metavar="NAME",
        help="Mailbox to read (default: IMAP_MAILBOX or INBOX)",
    )

    # extract command
    extract_parser = subparsers.add_parser(
        "extract",
        help="Run the extractor on a saved email",
    )

    extract_parser.add_argument(
        "file",
        type=str,
        help="Path to a .eml file",
    )

    extract_parser.add_argument(
        "--html",
        action="store_true",
        help="Treat the file as a bare HTML body instead of a MIME message",
    )

    # fetch-code command
    fetch_parser = subparsers.add_parser(
        "fetch-code",
        help="Fetch a verification page and extract its code",
    )

    fetch_parser.add_argument(
        "url",
        type=str,
        help="Verification link",
    )

    # confirm command
    confirm_parser = subparsers.add_parser(
        "confirm",
        help="Confirm a household update link in the browser",
    )

    confirm_parser.add_argument(
        "link",
        type=str,
        help="Household confirmation link",
    )

    args = parser.parse_args()

    configure_logging(args.log_level or Settings.from_env().log_level)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "run":
            return asyncio.run(run_command(args))
        elif args.command == "extract":
            return extract_command(args)
        elif args.command == "fetch-code":
            return asyncio.run(fetch_code_command(args))
        elif args.command == "confirm":
            return asyncio.run(confirm_command(args))
        else:
            print(f"[ERROR] Unknown command: {args.command}")
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\n\n[INTERRUPTED] Cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
