"""Database layer - engine, base classes and column types."""

from pfm_kernel.db.base import UUID, Base, TimestampedBase
from pfm_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from pfm_kernel.db.types import UTCDateTime, UUIDString

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
