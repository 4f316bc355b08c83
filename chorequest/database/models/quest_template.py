"""
QuestTemplate - blueprint from which recurring quest instances are generated.
Pure schema.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin
from chorequest.database.models.enums import (
    QuestCategory,
    QuestDifficulty,
    QuestType,
)


class QuestTemplate(Base, IdMixin, TimestampMixin):
    """
    Recurring quest blueprint.

    Only templates that are active, not paused and carry a
    recurrence_pattern are eligible for generation.
    """

    __tablename__ = "quest_templates"
    __table_args__ = (
        Index(
            "ix_quest_templates_eligible",
            "is_active",
            "is_paused",
            "recurrence_pattern",
        ),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestCategory.DAILY.value
    )
    difficulty: Mapped[str] = mapped_column(
        String(10), nullable=False, default=QuestDifficulty.EASY.value
    )

    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gold_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    family_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    quest_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestType.INDIVIDUAL.value
    )

    # Open string: DAILY / WEEKLY / CUSTOM today, resolved by pattern registry
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    assigned_character_ids: Mapped[List[str]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )
