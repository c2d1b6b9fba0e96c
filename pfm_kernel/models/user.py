"""UserProfile -- per-user settings the engine reads (time zone)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import Base


class UserProfile(Base):
    """
    Read-only projection of the user settings owned by the CRUD layer.

    ``id`` is the user id.  ``timezone`` is an IANA zone name; schedule and
    budget-window arithmetic happen in this zone.
    """

    __tablename__ = "user_profiles"

    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
