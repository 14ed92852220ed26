"""
Classification module for the email code orchestrator.

Handles routing of inbound messages and the per-batch processing loop.
"""

from .rules import classify_message, ClassificationResult, HOUSEHOLD_TRIGGERS
from .run import MessageProcessor, run_cycle

__all__ = [
    "classify_message",
    "ClassificationResult",
    "HOUSEHOLD_TRIGGERS",
    "MessageProcessor",
    "run_cycle",
]
