"""
Quest Expiration Service
========================

Purpose
-------
Close out recurring quest instances whose cycle has ended and apply the
consequences.

Domain
------
- Mark unresolved, template-backed instances past their cycle end as MISSED
- Release characters from expired FAMILY quests they had claimed
- Break the assignee's streak on expired INDIVIDUAL quests (unless the
  template is paused)
- Record when an instance's side effects have all completed, and re-run the
  ones that did not
- Repair ``active_family_quest_id`` pointers left behind by earlier failures

Guarantees
----------
- Never raises: every failure becomes a sentence in the result's errors.
- The MISSED update is one bulk statement; side effects run afterwards, each
  in its own transaction. An instance keeps ``cascade_completed_at = NULL``
  until all of its side effects succeed, so ``resume_pending_cascades()`` can
  finish the job later. Clearing a pointer and zeroing a streak are both
  safe to repeat.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from chorequest.core.database.base import utc_now
from chorequest.core.database.service import DatabaseNotInitializedError, DatabaseService
from chorequest.core.exceptions import ConfigurationError
from chorequest.core.logging.logger import LogContext
from chorequest.database.models import QuestInstance, QuestStatus, QuestType
from chorequest.modules.recurring.repositories import (
    CharacterQuestStreakRepository,
    CharacterRepository,
    QuestInstanceRepository,
    QuestTemplateRepository,
)
from chorequest.modules.recurring.results import (
    CascadeResumeResult,
    ExpirationResult,
    PointerRepairResult,
)
from chorequest.modules.shared.base_service import BaseService, NowProvider
from chorequest.modules.shared.exceptions import describe_error

if TYPE_CHECKING:
    from logging import Logger

    from chorequest.core.config.manager import ConfigManager
    from chorequest.core.event.bus import EventBus

_STORE_ERRORS = (SQLAlchemyError, DatabaseNotInitializedError)

EXPIRED_EVENT = "recurring_quests.expired"
CASCADES_RESUMED_EVENT = "recurring_quests.cascades_resumed"

DEFAULT_UNRESOLVED_STATUSES = (
    QuestStatus.PENDING.value,
    QuestStatus.IN_PROGRESS.value,
    QuestStatus.AVAILABLE.value,
    QuestStatus.CLAIMED.value,
)

# A family quest pointer is only meaningful while the quest is being worked on
ACTIVE_FAMILY_QUEST_STATUSES = frozenset(
    {QuestStatus.CLAIMED.value, QuestStatus.IN_PROGRESS.value}
)


@dataclass
class _CascadeOutcome:
    completed: int = 0
    pointers_cleared: int = 0
    streaks_broken: int = 0


class QuestExpirationService(BaseService):
    """
    Expires recurring quest instances and applies their side effects.

    Public Methods
    --------------
    - expire() -> Mark overdue instances MISSED and run their side effects
    - resume_pending_cascades() -> Finish side effects a previous run left undone
    - repair_dangling_family_pointers() -> Clear stale active family quest pointers
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        now: NowProvider = utc_now,
    ) -> None:
        super().__init__(config_manager, event_bus, logger, now=now)

        self._templates = QuestTemplateRepository()
        self._characters = CharacterRepository()
        self._instances = QuestInstanceRepository()
        self._streaks = CharacterQuestStreakRepository()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def expire(self) -> ExpirationResult:
        """
        Mark every overdue, unresolved recurring instance as MISSED.

        Counts in ``expired`` cover every instance marked MISSED;
        ``streaks_broken`` counts successful streak resets.
        """
        result = ExpirationResult()

        async with LogContext(component="recurring_quests", operation="expire"):
            self.log_operation("expire")
            try:
                await self._expire(result)
            except Exception as exc:
                result.errors.append(
                    f"Unexpected error during quest expiration: {describe_error(exc)}"
                )
                self.log.error(
                    "Unexpected error during quest expiration",
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                    exc_info=True,
                )

            self.log.info(
                "Quest expiration finished",
                extra={
                    "success": result.success,
                    "individual": result.expired.individual,
                    "family": result.expired.family,
                    "streaks_broken": result.streaks_broken,
                    "error_count": len(result.errors),
                },
            )
            await self.emit_event(EXPIRED_EVENT, result.to_dict())

        return result

    async def resume_pending_cascades(self, limit: Optional[int] = None) -> CascadeResumeResult:
        """
        Re-run side effects for MISSED instances that never completed them.

        Args:
            limit: Maximum number of instances to process in this pass

        Returns:
            CascadeResumeResult; ``resumed`` counts instances whose side
            effects are now recorded as complete.
        """
        result = CascadeResumeResult()

        async with LogContext(component="recurring_quests", operation="resume_cascades"):
            self.log_operation("resume_pending_cascades", limit=limit)
            try:
                await self._resume(result, limit)
            except Exception as exc:
                result.errors.append(
                    f"Unexpected error while resuming expiration cascades: {describe_error(exc)}"
                )
                self.log.error(
                    "Unexpected error while resuming expiration cascades",
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                    exc_info=True,
                )

            self.log.info(
                "Expiration cascade resume finished",
                extra={
                    "success": result.success,
                    "resumed": result.resumed,
                    "pointers_cleared": result.pointers_cleared,
                    "streaks_broken": result.streaks_broken,
                    "error_count": len(result.errors),
                },
            )
            await self.emit_event(CASCADES_RESUMED_EVENT, result.to_dict())

        return result

    async def repair_dangling_family_pointers(self) -> PointerRepairResult:
        """
        Clear ``active_family_quest_id`` where the referenced quest is gone,
        past its cycle end, or no longer CLAIMED/IN_PROGRESS.
        """
        result = PointerRepairResult()

        async with LogContext(component="recurring_quests", operation="repair_pointers"):
            self.log_operation("repair_dangling_family_pointers")
            try:
                await self._repair(result)
            except Exception as exc:
                result.errors.append(
                    f"Unexpected error while repairing family quest pointers: "
                    f"{describe_error(exc)}"
                )
                self.log.error(
                    "Unexpected error while repairing family quest pointers",
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                    exc_info=True,
                )

            self.log.info(
                "Family quest pointer repair finished",
                extra={
                    "success": result.success,
                    "checked": result.checked,
                    "cleared": result.cleared,
                    "error_count": len(result.errors),
                },
            )

        return result

    # ========================================================================
    # PRIVATE HELPERS - Expiration
    # ========================================================================

    def _unresolved_statuses(self) -> List[str]:
        statuses = self.get_config(
            "recurring_quests.unresolved_statuses", list(DEFAULT_UNRESOLVED_STATUSES)
        )
        try:
            return [QuestStatus(status).value for status in statuses]
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "recurring_quests.unresolved_statuses", f"unknown quest status in {statuses!r}"
            ) from exc

    async def _expire(self, result: ExpirationResult) -> None:
        now = self.now()
        statuses = self._unresolved_statuses()

        try:
            async with DatabaseService.get_session() as session:
                instances = await self._instances.find_expired(session, now, statuses)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_expired", exc)
            result.errors.append(f"Failed to fetch expired quests: {describe_error(exc)}")
            return

        if not instances:
            self.log.info("No expired recurring quests")
            return

        paused_ids = await self._load_paused_template_ids(instances, result.errors)

        instance_ids = [instance.id for instance in instances]
        try:
            async with DatabaseService.get_transaction() as session:
                updated = await self._instances.mark_missed(session, instance_ids)
        except _STORE_ERRORS as exc:
            self.log_error("mark_missed", exc, instance_count=len(instance_ids))
            result.errors.append(f"Failed to mark quests as MISSED: {describe_error(exc)}")
            return

        self.log.info(
            "Expired quests marked MISSED",
            extra={"instance_count": len(instance_ids), "updated": updated},
        )

        for instance in instances:
            if instance.quest_type == QuestType.FAMILY.value:
                result.expired.family += 1
            else:
                result.expired.individual += 1

        outcome = await self._run_cascades(instances, paused_ids, result.errors)
        result.streaks_broken = outcome.streaks_broken

    async def _resume(self, result: CascadeResumeResult, limit: Optional[int]) -> None:
        try:
            async with DatabaseService.get_session() as session:
                instances = await self._instances.find_pending_cascades(session, limit=limit)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_pending_cascades", exc)
            result.errors.append(f"Failed to fetch pending cascades: {describe_error(exc)}")
            return

        if not instances:
            self.log.debug("No pending expiration cascades")
            return

        paused_ids = await self._load_paused_template_ids(instances, result.errors)
        outcome = await self._run_cascades(instances, paused_ids, result.errors)

        result.resumed = outcome.completed
        result.pointers_cleared = outcome.pointers_cleared
        result.streaks_broken = outcome.streaks_broken

    async def _load_paused_template_ids(
        self, instances: Iterable[QuestInstance], errors: List[str]
    ) -> Set[str]:
        template_ids = sorted(
            {instance.template_id for instance in instances if instance.template_id}
        )
        try:
            async with DatabaseService.get_session() as session:
                return await self._templates.find_paused_ids(session, template_ids)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_paused_templates", exc)
            errors.append(f"Failed to fetch templates for paused check: {describe_error(exc)}")
            return set()

    # ========================================================================
    # PRIVATE HELPERS - Side effects
    # ========================================================================

    async def _run_cascades(
        self,
        instances: List[QuestInstance],
        paused_ids: Set[str],
        errors: List[str],
    ) -> _CascadeOutcome:
        """
        Apply pointer clears and streak breaks, then stamp the instances
        whose side effects all succeeded.
        """
        outcome = _CascadeOutcome()

        claimed_family_ids = [
            instance.id
            for instance in instances
            if instance.quest_type == QuestType.FAMILY.value and instance.assigned_to_id
        ]
        pointers_failed = False
        if claimed_family_ids:
            try:
                async with DatabaseService.get_transaction() as session:
                    outcome.pointers_cleared = await self._characters.clear_active_family_quest(
                        session, claimed_family_ids
                    )
            except _STORE_ERRORS as exc:
                pointers_failed = True
                self.log_error("clear_family_pointers", exc, instance_count=len(claimed_family_ids))
                errors.append(
                    f"Failed to clear active family quest pointers: {describe_error(exc)}"
                )

        completed: List[str] = []
        for instance in instances:
            if instance.quest_type == QuestType.FAMILY.value:
                if pointers_failed and instance.assigned_to_id:
                    continue
                completed.append(instance.id)
                continue

            if (
                instance.assigned_to_id
                and instance.template_id
                and instance.template_id not in paused_ids
            ):
                broken = await self._break_streak(instance, errors)
                if broken is None:
                    continue
                if broken:
                    outcome.streaks_broken += 1

            completed.append(instance.id)

        if completed:
            try:
                async with DatabaseService.get_transaction() as session:
                    await self._instances.mark_cascade_completed(session, completed, self.now())
                outcome.completed = len(completed)
            except _STORE_ERRORS as exc:
                self.log_error("record_cascade_completion", exc, instance_count=len(completed))
                errors.append(f"Failed to record cascade completion: {describe_error(exc)}")

        return outcome

    async def _break_streak(self, instance: QuestInstance, errors: List[str]) -> Optional[bool]:
        """
        Reset the assignee's current streak for the instance's template.

        Returns:
            True if the reset ran, False if the user has no character,
            None if it failed (the error is appended).
        """
        user_id = instance.assigned_to_id
        template_id = instance.template_id

        try:
            async with DatabaseService.get_session() as session:
                character = await self._characters.find_by_user(session, user_id)
        except _STORE_ERRORS as exc:
            self.log_error("find_character", exc, user_id=user_id)
            errors.append(f"Failed to look up character for user {user_id}: {describe_error(exc)}")
            return None

        if character is None:
            self.log.warning(
                "No character for user; streak not reset",
                extra={"user_id": user_id, "instance_id": instance.id},
            )
            return False

        try:
            async with DatabaseService.get_transaction() as session:
                await self._streaks.reset_current_streak(session, character.id, template_id)
        except _STORE_ERRORS as exc:
            self.log_error(
                "reset_streak", exc, character_id=character.id, template_id=template_id
            )
            errors.append(
                f"Failed to reset streak for character {character.id}, "
                f"template {template_id}: {describe_error(exc)}"
            )
            return None

        self.log.info(
            "Streak broken for missed quest",
            extra={
                "character_id": character.id,
                "template_id": template_id,
                "instance_id": instance.id,
            },
        )
        return True

    # ========================================================================
    # PRIVATE HELPERS - Pointer repair
    # ========================================================================

    @staticmethod
    def _is_dangling(instance: Optional[QuestInstance], now: datetime) -> bool:
        if instance is None:
            return True
        if instance.status not in ACTIVE_FAMILY_QUEST_STATUSES:
            return True
        return instance.cycle_end_date is not None and instance.cycle_end_date < now

    async def _repair(self, result: PointerRepairResult) -> None:
        now = self.now()

        try:
            async with DatabaseService.get_session() as session:
                characters = await self._characters.find_with_active_family_quest(session)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_pointer_characters", exc)
            result.errors.append(
                f"Failed to fetch characters with active family quests: {describe_error(exc)}"
            )
            return

        result.checked = len(characters)
        if not characters:
            return

        referenced_ids = sorted({character.active_family_quest_id for character in characters})
        try:
            async with DatabaseService.get_session() as session:
                instances = {
                    instance.id: instance
                    for instance in await self._instances.get_many(session, referenced_ids)
                }
        except _STORE_ERRORS as exc:
            self.log_error("fetch_active_family_quests", exc)
            result.errors.append(f"Failed to fetch active family quests: {describe_error(exc)}")
            return

        dangling_ids = [
            instance_id
            for instance_id in referenced_ids
            if self._is_dangling(instances.get(instance_id), now)
        ]
        if not dangling_ids:
            return

        try:
            async with DatabaseService.get_transaction() as session:
                result.cleared = await self._characters.clear_active_family_quest(
                    session, dangling_ids
                )
        except _STORE_ERRORS as exc:
            self.log_error("clear_dangling_pointers", exc, instance_count=len(dangling_ids))
            result.errors.append(
                f"Failed to clear dangling family quest pointers: {describe_error(exc)}"
            )
            return

        self.log.info(
            "Dangling family quest pointers cleared",
            extra={"instance_ids": dangling_ids, "cleared": result.cleared},
        )
