"""
Module: pfm_kernel.db.types
Responsibility: Column types shared by every model.
Architecture position: Kernel > DB.  MUST NOT import from models/ or services.

Invariants enforced:
    - Instants are stored as UTC and always come back timezone-aware, on
      PostgreSQL and on SQLite alike.  The claimer's conditional UPDATE
      compares ``next_run_at`` for equality, so the value bound on write must
      round-trip exactly.
    - UUIDs are stored as 36-character strings for portability.
"""

from datetime import datetime, timezone
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID type stored as String(36) for cross-database portability."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware instant normalized to UTC.

    Contract:
        - process_bind_param: aware datetime -> naive UTC (SQLite) or aware
          UTC (PostgreSQL).  Naive input is rejected with ValueError so that
          local wall-clock values never reach storage.
        - process_result_value: always returns an aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        value = utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC (helper for services and tests)."""
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime is not an instant: {value!r}")
    return value.astimezone(timezone.utc)
