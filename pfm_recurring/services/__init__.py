"""Stateful services of the recurring engine (each step owns its sessions)."""

from pfm_recurring.services.budget_evaluator import BudgetAlertEvaluator
from pfm_recurring.services.claimer import TemplateClaimer
from pfm_recurring.services.deduplicator import NotificationDeduplicator
from pfm_recurring.services.materializer import TransactionMaterializer
from pfm_recurring.services.processor import RecurringProcessor

__all__ = [
    "BudgetAlertEvaluator",
    "NotificationDeduplicator",
    "RecurringProcessor",
    "TemplateClaimer",
    "TransactionMaterializer",
]
