"""
RecurringOrchestrator -- DI container for the recurring engine.

Creates each service once from an ``EngineConfig`` and a session factory,
and hands out fully wired processors and triggers.  This is the only place
that knows how services depend on each other; services never construct
their collaborators.

Usage:
    config = get_active_config()
    orchestrator = RecurringOrchestrator.from_config(config)
    trigger = orchestrator.create_trigger()
    summary = trigger.process_due(secret=incoming_secret)
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from pfm_config.schema import EngineConfig
from pfm_kernel.db.engine import get_session_factory, init_engine_from_url
from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.logging_config import get_logger

from pfm_recurring.services.budget_evaluator import BudgetAlertEvaluator
from pfm_recurring.services.claimer import TemplateClaimer
from pfm_recurring.services.deduplicator import NotificationDeduplicator
from pfm_recurring.services.materializer import TransactionMaterializer
from pfm_recurring.services.processor import RecurringProcessor
from pfm_recurring.trigger import RecurringTrigger

logger = get_logger("recurring.orchestrator")


class RecurringOrchestrator:
    """Wires claimer, materializer, evaluator and deduplicator together."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: EngineConfig,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock or SystemClock()

        default_tz = config.scheduling.default_timezone
        self.claimer = TemplateClaimer(session_factory, default_timezone=default_tz)
        self.materializer = TransactionMaterializer(session_factory, clock=self._clock)
        self.evaluator = BudgetAlertEvaluator(
            session_factory,
            thresholds=config.alerts,
            default_timezone=default_tz,
        )
        self.deduplicator = NotificationDeduplicator(session_factory, clock=self._clock)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        clock: Clock | None = None,
    ) -> RecurringOrchestrator:
        """Initialize the module-level engine from ``config`` and wire services."""
        init_engine_from_url(config.database.url, echo=config.database.echo)
        logger.info(
            "orchestrator_initialized",
            extra={
                "max_workers": config.processing.max_workers,
                "default_timezone": config.scheduling.default_timezone,
            },
        )
        return cls(get_session_factory(), config, clock=clock)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    def create_processor(self) -> RecurringProcessor:
        return RecurringProcessor(
            claimer=self.claimer,
            materializer=self.materializer,
            evaluator=self.evaluator,
            deduplicator=self.deduplicator,
            max_workers=self._config.processing.max_workers,
            sweep_all_budgets=self._config.alerts.sweep_all_budgets,
            clock=self._clock,
        )

    def create_trigger(self) -> RecurringTrigger:
        return RecurringTrigger(
            self.create_processor(),
            secret=self._config.trigger.secret,
            clock=self._clock,
        )
