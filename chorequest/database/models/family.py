"""
Family - a household sharing quests, with its calendar settings.
Pure schema.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin


class Family(Base, IdMixin, TimestampMixin):
    """
    Household record.

    Schema-only:
    - name
    - timezone (IANA name, drives cycle windows)
    - week_start_day (0 = Sunday ... 6 = Saturday)
    """

    __tablename__ = "families"
    __table_args__ = (
        CheckConstraint(
            "week_start_day >= 0 AND week_start_day <= 6",
            name="ck_families_week_start_day",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="UTC",
        server_default="UTC",
    )

    week_start_day: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=0,
        server_default="0",
    )
