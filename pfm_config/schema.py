"""
EngineConfig schema.

Frozen dataclasses parsed from YAML by ``pfm_config.loader``.  The runtime
artifact handed to the orchestrator is a single ``EngineConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False


@dataclass(frozen=True)
class SchedulingSettings:
    """Time zone used when a template owner has no usable profile zone."""

    default_timezone: str = "UTC"


@dataclass(frozen=True)
class ProcessingSettings:
    max_workers: int = 4


@dataclass(frozen=True)
class AlertThresholds:
    """Spend/limit ratios at which each alert tier fires.

    Held as ``Fraction`` so tier decisions never depend on float rounding.
    """

    warning_ratio: Fraction = Fraction(4, 5)
    exceeded_ratio: Fraction = Fraction(1)
    sweep_all_budgets: bool = False


@dataclass(frozen=True)
class TriggerSettings:
    """Where the shared trigger secret comes from.

    The secret value is resolved from the environment at load time and is
    never written to YAML.
    """

    secret_env: str = "CRON_SECRET"
    secret: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class EngineConfig:
    database: DatabaseSettings
    scheduling: SchedulingSettings = field(default_factory=SchedulingSettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)
    alerts: AlertThresholds = field(default_factory=AlertThresholds)
    trigger: TriggerSettings = field(default_factory=TriggerSettings)
    source: str | None = None  # Path of the YAML file this was loaded from
