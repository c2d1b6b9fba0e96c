"""
RecurringTrigger -- authenticated entry point for the external scheduler.

Contract:
    ``process_due(now, secret)`` runs one processing pass and returns the
    ``RunSummary``.  It fails closed: when the configured secret is absent
    or empty, or the presented secret is missing or wrong, it raises
    ``TriggerAuthorizationError`` before reading or writing any state.

The external scheduler calls this periodically (at least daily).  Duplicate
and overlapping calls are expected and safe.
"""

from __future__ import annotations

import hmac
from datetime import datetime

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.exceptions import TriggerAuthorizationError
from pfm_kernel.logging_config import get_logger

from pfm_recurring.domain.types import RunSummary
from pfm_recurring.services.processor import RecurringProcessor

logger = get_logger("recurring.trigger")

_BEARER_PREFIX = "bearer "


def secret_from_authorization_header(header: str | None) -> str | None:
    """Extract the secret from an ``Authorization: Bearer <secret>`` value."""
    if not header:
        return None
    value = header.strip()
    if value[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    return value[len(_BEARER_PREFIX):].strip() or None


class RecurringTrigger:
    """Checks the shared secret, then delegates to the processor."""

    def __init__(
        self,
        processor: RecurringProcessor,
        secret: str | None,
        clock: Clock | None = None,
    ):
        self._processor = processor
        self._secret = secret
        self._clock = clock or SystemClock()

    def process_due(
        self,
        now: datetime | None = None,
        secret: str | None = None,
    ) -> RunSummary:
        """Authorize, then process every template due at ``now``.

        Raises:
            TriggerAuthorizationError: Secret unconfigured, missing or wrong.
        """
        self._authorize(secret)
        return self._processor.run(now or self._clock.now())

    def _authorize(self, presented: str | None) -> None:
        if not self._secret:
            self._reject("trigger secret is not configured")
        if not presented:
            self._reject("no secret presented")
        if not hmac.compare_digest(presented.encode("utf-8"), self._secret.encode("utf-8")):
            self._reject("secret mismatch")

    def _reject(self, reason: str) -> None:
        logger.warning("trigger_rejected", extra={"reason": reason})
        raise TriggerAuthorizationError(reason)
