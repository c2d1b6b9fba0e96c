"""Shared-store ORM models read or written by the engine."""

from pfm_kernel.models.budget import Budget
from pfm_kernel.models.notification import AlertRecord, Notification
from pfm_kernel.models.transaction import Transaction
from pfm_kernel.models.user import UserProfile
from pfm_kernel.models.wallet import Category, Wallet

__all__ = [
    "AlertRecord",
    "Budget",
    "Category",
    "Notification",
    "Transaction",
    "UserProfile",
    "Wallet",
]
