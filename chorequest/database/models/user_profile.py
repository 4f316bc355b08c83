"""
UserProfile - an authenticated member of a family.
Pure schema.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin
from chorequest.database.models.enums import UserRole


class UserProfile(Base, IdMixin, TimestampMixin):
    """
    Family member account.

    The earliest-created GUILD_MASTER of a family is recorded as the creator
    of recurring quests generated for that family.
    """

    __tablename__ = "user_profiles"
    __table_args__ = (
        Index("ix_user_profiles_family_role", "family_id", "role"),
    )

    family_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("families.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True, unique=True)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.HERO.value,
    )
