"""
Email Code Orchestrator.

Watches a mailbox for verification-code and household-confirmation emails,
forwards codes to Telegram and clicks through household confirmations in a
headless browser.
"""

__version__ = "0.1.0"
