"""
Configuration loader (``pfm_config.loader``).

Responsibility
--------------
Loads the engine YAML file, applies environment overrides and parses the
result into the frozen dataclasses of ``pfm_config.schema``.  Callers go
through ``pfm_config.get_active_config()``; this module is its internals.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url`` or an invalid value  -> ``InvalidConfigurationError``.
"""

from __future__ import annotations

from fractions import Fraction
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from pfm_config.schema import (
    AlertThresholds,
    DatabaseSettings,
    EngineConfig,
    ProcessingSettings,
    SchedulingSettings,
    TriggerSettings,
)
from pfm_kernel.exceptions import InvalidConfigurationError

ENV_DATABASE_URL = "PFM_DATABASE_URL"
ENV_DEFAULT_TIMEZONE = "PFM_DEFAULT_TIMEZONE"
ENV_MAX_WORKERS = "PFM_MAX_WORKERS"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Returns an empty dict for an empty file.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigurationError(str(path), "top level must be a mapping")
    return data


def _parse_ratio(key: str, value: Any) -> Fraction:
    # str() first so an unquoted YAML 0.8 becomes exactly 4/5
    try:
        ratio = Fraction(str(value))
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(key, f"not a number: {value!r}") from exc
    if ratio <= 0:
        raise InvalidConfigurationError(key, f"must be positive, got {value!r}")
    return ratio


def _parse_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(key, f"not an integer: {value!r}") from exc


def _validate_timezone(key: str, name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidConfigurationError(key, f"unknown time zone {name!r}") from exc
    return name


def parse_engine_config(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
    source: str | None = None,
) -> EngineConfig:
    """
    Build an ``EngineConfig`` from parsed YAML plus environment overrides.

    Raises:
        InvalidConfigurationError: on a missing database URL, thresholds that
            do not satisfy ``0 < warning < exceeded``, an unknown time zone or
            a non-positive worker count.
    """
    env = environ or {}

    db_data = data.get("database") or {}
    url = env.get(ENV_DATABASE_URL) or db_data.get("url")
    if not url:
        raise InvalidConfigurationError("database.url", "is required")
    database = DatabaseSettings(url=url, echo=bool(db_data.get("echo", False)))

    sched_data = data.get("scheduling") or {}
    tz_name = env.get(ENV_DEFAULT_TIMEZONE) or sched_data.get("default_timezone", "UTC")
    scheduling = SchedulingSettings(
        default_timezone=_validate_timezone("scheduling.default_timezone", tz_name),
    )

    proc_data = data.get("processing") or {}
    max_workers = _parse_int(
        "processing.max_workers",
        env.get(ENV_MAX_WORKERS) or proc_data.get("max_workers", 4),
    )
    if max_workers < 1:
        raise InvalidConfigurationError(
            "processing.max_workers", f"must be >= 1, got {max_workers}",
        )
    processing = ProcessingSettings(max_workers=max_workers)

    alert_data = data.get("alerts") or {}
    warning = _parse_ratio("alerts.warning_ratio", alert_data.get("warning_ratio", "0.8"))
    exceeded = _parse_ratio("alerts.exceeded_ratio", alert_data.get("exceeded_ratio", "1.0"))
    if warning >= exceeded:
        raise InvalidConfigurationError(
            "alerts.warning_ratio",
            f"must be below exceeded_ratio ({warning} >= {exceeded})",
        )
    alerts = AlertThresholds(
        warning_ratio=warning,
        exceeded_ratio=exceeded,
        sweep_all_budgets=bool(alert_data.get("sweep_all_budgets", False)),
    )

    trigger_data = data.get("trigger") or {}
    secret_env = trigger_data.get("secret_env", "CRON_SECRET")
    trigger = TriggerSettings(
        secret_env=secret_env,
        secret=env.get(secret_env) or None,
    )

    return EngineConfig(
        database=database,
        scheduling=scheduling,
        processing=processing,
        alerts=alerts,
        trigger=trigger,
        source=source,
    )
