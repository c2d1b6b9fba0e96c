"""
Module: pfm_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map that keeps money as
    integers, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  Lowest-level import target; MUST NOT import
    from models/ or from pfm_recurring.

Invariants enforced:
    - UUID primary keys on every table (uuid4, stored as String(36)).
    - Money is integer minor units: ``int`` maps to BigInteger.  There is no
      Float or Numeric mapping on purpose.
    - Every datetime column is a UTCDateTime (aware UTC on read).
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pfm_kernel.db.types import UTCDateTime, UUIDString


class Base(DeclarativeBase):
    """
    Declarative base for all models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to UTCDateTime, int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        # Minor-unit amounts and balances
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TimestampedBase(Base):
    """
    Abstract base with row creation/update timestamps.

    Both timestamps are assigned by the writing service from its injected
    Clock, never by a database server default, so SQLite and PostgreSQL store
    identical values.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
