"""
Data access for the recurring quest engine.

Each repository wraps one model and exposes the handful of queries the
generation and expiration services need. Sessions and transactions are owned
by the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set

from chorequest.core.database.base import utc_now
from chorequest.core.logging.logger import get_logger
from chorequest.database.models import (
    Character,
    CharacterQuestStreak,
    Family,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    UserProfile,
    UserRole,
)
from chorequest.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from chorequest.modules.recurring.recurrence import CycleWindow

logger = get_logger(__name__)


class QuestTemplateRepository(BaseRepository[QuestTemplate]):
    def __init__(self) -> None:
        super().__init__(QuestTemplate, logger)

    async def find_eligible(self, session: AsyncSession) -> List[QuestTemplate]:
        """Active, unpaused templates that carry a recurrence pattern."""
        return await self.find_many_where(
            session,
            QuestTemplate.is_active.is_(True),
            QuestTemplate.is_paused.is_(False),
            QuestTemplate.recurrence_pattern.is_not(None),
            order_by=[QuestTemplate.created_at, QuestTemplate.id],
        )

    async def find_paused_ids(
        self, session: AsyncSession, template_ids: Sequence[str]
    ) -> Set[str]:
        templates = await self.get_many(session, template_ids)
        return {template.id for template in templates if template.is_paused}


class FamilyRepository(BaseRepository[Family]):
    def __init__(self) -> None:
        super().__init__(Family, logger)


class UserProfileRepository(BaseRepository[UserProfile]):
    def __init__(self) -> None:
        super().__init__(UserProfile, logger)

    async def find_guild_masters_by_family(
        self, session: AsyncSession, family_ids: Sequence[str]
    ) -> Dict[str, str]:
        """
        Map family id -> id of that family's earliest-created Guild Master.

        Families without a Guild Master are absent from the result.
        """
        if not family_ids:
            return {}

        profiles = await self.find_many_where(
            session,
            UserProfile.family_id.in_(list(family_ids)),
            UserProfile.role == UserRole.GUILD_MASTER.value,
            order_by=[UserProfile.created_at, UserProfile.id],
        )

        actors: Dict[str, str] = {}
        for profile in profiles:
            if profile.family_id is not None:
                actors.setdefault(profile.family_id, profile.id)
        return actors


class CharacterRepository(BaseRepository[Character]):
    def __init__(self) -> None:
        super().__init__(Character, logger)

    async def find_by_user(self, session: AsyncSession, user_id: str) -> Optional[Character]:
        return await self.find_one_where(
            session,
            Character.user_id == user_id,
            order_by=[Character.created_at, Character.id],
        )

    async def find_with_active_family_quest(self, session: AsyncSession) -> List[Character]:
        return await self.find_many_where(
            session,
            Character.active_family_quest_id.is_not(None),
            order_by=[Character.id],
        )

    async def clear_active_family_quest(
        self, session: AsyncSession, instance_ids: Sequence[str]
    ) -> int:
        """Null the pointer on every character that points at one of the instances."""
        if not instance_ids:
            return 0
        return await self.update_where(
            session,
            Character.active_family_quest_id.in_(list(instance_ids)),
            values={"active_family_quest_id": None, "updated_at": utc_now()},
        )


class QuestInstanceRepository(BaseRepository[QuestInstance]):
    def __init__(self) -> None:
        super().__init__(QuestInstance, logger)

    async def count_in_cycle(
        self,
        session: AsyncSession,
        template_id: str,
        window: CycleWindow,
        assigned_to_id: Optional[str] = None,
    ) -> int:
        """
        Instances of a template whose cycle starts inside the window.

        With ``assigned_to_id`` the count is scoped to that assignee.
        """
        conditions = [
            QuestInstance.template_id == template_id,
            QuestInstance.cycle_start_date >= window.start,
            QuestInstance.cycle_start_date <= window.end,
        ]
        if assigned_to_id is not None:
            conditions.append(QuestInstance.assigned_to_id == assigned_to_id)
        return await self.count(session, *conditions)

    async def find_expired(
        self,
        session: AsyncSession,
        now: datetime,
        statuses: Sequence[str],
    ) -> List[QuestInstance]:
        """Template-backed instances past their cycle end in an unresolved status."""
        return await self.find_many_where(
            session,
            QuestInstance.template_id.is_not(None),
            QuestInstance.cycle_end_date < now,
            QuestInstance.status.in_(list(statuses)),
            order_by=[QuestInstance.cycle_end_date, QuestInstance.id],
        )

    async def find_pending_cascades(
        self, session: AsyncSession, limit: Optional[int] = None
    ) -> List[QuestInstance]:
        """MISSED instances whose expiration side effects never completed."""
        return await self.find_many_where(
            session,
            QuestInstance.status == QuestStatus.MISSED.value,
            QuestInstance.template_id.is_not(None),
            QuestInstance.cascade_completed_at.is_(None),
            order_by=[QuestInstance.cycle_end_date, QuestInstance.id],
            limit=limit,
        )

    async def mark_missed(self, session: AsyncSession, instance_ids: Sequence[str]) -> int:
        return await self.update_where(
            session,
            QuestInstance.id.in_(list(instance_ids)),
            values={"status": QuestStatus.MISSED.value, "updated_at": utc_now()},
        )

    async def mark_cascade_completed(
        self, session: AsyncSession, instance_ids: Sequence[str], completed_at: datetime
    ) -> int:
        if not instance_ids:
            return 0
        return await self.update_where(
            session,
            QuestInstance.id.in_(list(instance_ids)),
            values={"cascade_completed_at": completed_at},
        )


class CharacterQuestStreakRepository(BaseRepository[CharacterQuestStreak]):
    def __init__(self) -> None:
        super().__init__(CharacterQuestStreak, logger)

    async def reset_current_streak(
        self, session: AsyncSession, character_id: str, template_id: str
    ) -> int:
        """Set current_streak to 0; longest_streak is untouched."""
        return await self.update_where(
            session,
            CharacterQuestStreak.character_id == character_id,
            CharacterQuestStreak.template_id == template_id,
            values={"current_streak": 0, "updated_at": utc_now()},
        )

