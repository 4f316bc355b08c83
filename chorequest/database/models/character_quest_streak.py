"""
CharacterQuestStreak - consecutive-completion streak per character and template.
Pure schema.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin


class CharacterQuestStreak(Base, IdMixin, TimestampMixin):
    """
    One row per (character, template).

    current_streak drops to 0 when an instance of the template is missed;
    longest_streak is never lowered.
    """

    __tablename__ = "character_quest_streaks"
    __table_args__ = (
        UniqueConstraint(
            "character_id",
            "template_id",
            name="uq_character_quest_streaks_character_template",
        ),
    )

    character_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("characters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("quest_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
