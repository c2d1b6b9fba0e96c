"""
pfm_recurring.models -- ORM models owned by the engine.

Imports from pfm_kernel.db only.
"""

from pfm_recurring.models.recurring import RecurringTemplateModel

__all__ = ["RecurringTemplateModel"]
