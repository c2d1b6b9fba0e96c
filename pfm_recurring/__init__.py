"""
pfm_recurring -- recurring-transaction processing engine.

Claims due recurring templates exactly once, materializes their
transactions and wallet balance changes atomically, and delivers
deduplicated budget alerts.

Entry point:
    RecurringOrchestrator(...).create_trigger().process_due(now, secret)
"""

from pfm_recurring.orchestrator import RecurringOrchestrator
from pfm_recurring.trigger import RecurringTrigger, secret_from_authorization_header

__all__ = [
    "RecurringOrchestrator",
    "RecurringTrigger",
    "secret_from_authorization_header",
]
