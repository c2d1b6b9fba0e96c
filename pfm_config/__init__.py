"""
pfm_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  No service reads YAML files or environment variables
    directly; the orchestrator receives an ``EngineConfig`` and hands each
    service the values it needs.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``InvalidConfigurationError`` -- a value failed validation.

Audit relevance:
    Every successful load emits a ``PFM_CONFIG_TRACE`` log entry naming the
    source file and the effective thresholds, time zone and worker count.
    The trigger secret is never logged.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pfm_config.loader import load_yaml_file, parse_engine_config
from pfm_config.schema import (
    AlertThresholds,
    DatabaseSettings,
    EngineConfig,
    ProcessingSettings,
    SchedulingSettings,
    TriggerSettings,
)
from pfm_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load (defaults to ``sets/default.yaml``).
        environ: Environment mapping for overrides and the trigger secret
            (defaults to ``os.environ``).
    """
    path = config_path or DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    config = parse_engine_config(load_yaml_file(path), environ=env, source=str(path))

    _logger.info(
        "PFM_CONFIG_TRACE",
        extra={
            "source": config.source,
            "default_timezone": config.scheduling.default_timezone,
            "max_workers": config.processing.max_workers,
            "warning_ratio": str(config.alerts.warning_ratio),
            "exceeded_ratio": str(config.alerts.exceeded_ratio),
            "sweep_all_budgets": config.alerts.sweep_all_budgets,
            "trigger_secret_configured": config.trigger.secret is not None,
        },
    )
    return config


__all__ = [
    "AlertThresholds",
    "DatabaseSettings",
    "EngineConfig",
    "ProcessingSettings",
    "SchedulingSettings",
    "TriggerSettings",
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
]
