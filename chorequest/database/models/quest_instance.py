"""
QuestInstance - one concrete quest for one recurrence cycle.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from chorequest.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime
from chorequest.database.models.enums import QuestStatus, QuestType

# generation_key value shared by all family pool instances
FAMILY_GENERATION_KEY = "*"


class QuestInstance(Base, IdMixin, TimestampMixin):
    """
    Materialized quest.

    Reward, category and difficulty fields are copied from the template at
    generation time so later template edits never rewrite history.

    Schema-only:
    - template_id (nullable: one-off quests have no template)
    - cycle_start_date / cycle_end_date (UTC window of the recurrence cycle)
    - generation_key (assignee user id, or "*" for family pool instances)
    - cascade_completed_at (set once expiration side effects have all run)
    """

    __tablename__ = "quest_instances"
    __table_args__ = (
        UniqueConstraint(
            "template_id",
            "cycle_start_date",
            "generation_key",
            name="uq_quest_instances_template_cycle_key",
        ),
        Index("ix_quest_instances_status_cycle_end", "status", "cycle_end_date"),
        Index("ix_quest_instances_template_cycle", "template_id", "cycle_start_date"),
    )

    template_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("quest_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gold_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    family_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_to_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestStatus.PENDING.value
    )
    quest_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuestType.INDIVIDUAL.value
    )

    cycle_start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    cycle_end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    generation_key: Mapped[str] = mapped_column(
        String(36), nullable=False, default=FAMILY_GENERATION_KEY
    )

    volunteer_bonus: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    cascade_completed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
