"""
Character - the in-game persona of a user.
Pure schema.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin


class Character(Base, IdMixin, TimestampMixin):
    """
    Hero character.

    Schema-only:
    - user_id (FK to user_profiles, nullable for unlinked characters)
    - name
    - active_family_quest_id (family quest currently claimed; a plain
      reference so a pointer can outlive its instance and be repaired)
    """

    __tablename__ = "characters"

    user_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    active_family_quest_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        nullable=True,
        index=True,
    )
