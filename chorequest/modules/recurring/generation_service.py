"""
Recurring Quest Generation Service
==================================

Purpose
-------
Materialize quest instances from recurring quest templates, one per cycle.

Domain
------
- Select active, unpaused templates that carry a recurrence pattern
- Compute each template's current cycle window in its family's timezone
- Create one PENDING instance per assigned character (INDIVIDUAL templates)
- Create one AVAILABLE pool instance per cycle (FAMILY templates)
- Skip anything already generated for the cycle

Guarantees
----------
- Idempotent: the existence check plus the
  ``(template_id, cycle_start_date, generation_key)`` unique constraint mean
  a second run in the same cycle creates nothing. A constraint violation on
  insert is treated as "already generated", not as an error.
- Never raises: every failure becomes a sentence in ``GenerationResult.errors``.
- Each insert is its own short transaction; one failed insert never rolls
  back another.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chorequest.core.database.service import DatabaseNotInitializedError, DatabaseService
from chorequest.core.database.base import utc_now
from chorequest.core.logging.logger import LogContext
from chorequest.database.models import (
    FAMILY_GENERATION_KEY,
    Family,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    QuestType,
)
from chorequest.modules.recurring.recurrence import (
    CycleWindow,
    RecurrenceClock,
    build_recurrence_clock,
)
from chorequest.modules.recurring.repositories import (
    CharacterRepository,
    FamilyRepository,
    QuestInstanceRepository,
    QuestTemplateRepository,
    UserProfileRepository,
)
from chorequest.modules.recurring.results import GenerationResult
from chorequest.modules.recurring.timezone_window import (
    validate_timezone,
    validate_week_start_day,
)
from chorequest.modules.shared.base_service import BaseService, NowProvider
from chorequest.modules.shared.exceptions import (
    ChoreQuestDomainException,
    MissingQuestActorError,
    describe_error,
)

if TYPE_CHECKING:
    from logging import Logger

    from chorequest.core.config.manager import ConfigManager
    from chorequest.core.event.bus import EventBus

# Store failures the engine turns into result errors
_STORE_ERRORS = (SQLAlchemyError, DatabaseNotInitializedError)

GENERATED_EVENT = "recurring_quests.generated"


class RecurringQuestGenerationService(BaseService):
    """
    Creates quest instances for the current recurrence cycle.

    Public Methods
    --------------
    - generate() -> Create missing instances for every eligible template
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[RecurrenceClock] = None,
        now: NowProvider = utc_now,
    ) -> None:
        """
        Args:
            config_manager: Engine configuration manager
            event_bus: Event bus for the run summary event
            logger: Structured logger instance
            clock: Cycle window strategy (defaults to the configured clock)
            now: Clock returning the current instant
        """
        super().__init__(config_manager, event_bus, logger, now=now)
        self.clock = clock or build_recurrence_clock()

        self._templates = QuestTemplateRepository()
        self._families = FamilyRepository()
        self._profiles = UserProfileRepository()
        self._characters = CharacterRepository()
        self._instances = QuestInstanceRepository()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def generate(self) -> GenerationResult:
        """
        Create this cycle's instances for every eligible template.

        Returns:
            GenerationResult with per-type counts of instances actually
            created and the collected error sentences.

        Example:
            >>> result = await service.generate()
            >>> result.generated.total
            2
        """
        result = GenerationResult()

        async with LogContext(component="recurring_quests", operation="generate"):
            self.log_operation("generate", clock=repr(self.clock))
            try:
                await self._generate(result)
            except Exception as exc:
                result.errors.append(
                    f"Unexpected error during quest generation: {describe_error(exc)}"
                )
                self.log.error(
                    "Unexpected error during quest generation",
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                    exc_info=True,
                )

            self.log.info(
                "Recurring quest generation finished",
                extra={
                    "success": result.success,
                    "individual": result.generated.individual,
                    "family": result.generated.family,
                    "error_count": len(result.errors),
                },
            )
            await self.emit_event(GENERATED_EVENT, result.to_dict())

        return result

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _generate(self, result: GenerationResult) -> None:
        now = self.now()

        try:
            async with DatabaseService.get_session() as session:
                templates = await self._templates.find_eligible(session)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_templates", exc)
            result.errors.append(f"Failed to fetch templates: {describe_error(exc)}")
            return

        if not templates:
            self.log.info("No recurring quest templates eligible for generation")
            return

        family_ids = sorted({template.family_id for template in templates})

        try:
            async with DatabaseService.get_session() as session:
                families = {
                    family.id: family
                    for family in await self._families.get_many(session, family_ids)
                }
        except _STORE_ERRORS as exc:
            # Templates still generate on the configured default calendar
            self.log_error("fetch_families", exc)
            result.errors.append(f"Failed to fetch families: {describe_error(exc)}")
            families = {}

        guild_masters = await self._load_guild_masters(family_ids, result)

        self.log.info(
            "Generating recurring quests",
            extra={"template_count": len(templates), "family_count": len(family_ids)},
        )

        for template in templates:
            await self._generate_for_template(
                template, families.get(template.family_id), guild_masters, now, result
            )

    async def _load_guild_masters(
        self, family_ids: List[str], result: GenerationResult
    ) -> Dict[str, str]:
        try:
            async with DatabaseService.get_session() as session:
                return await self._profiles.find_guild_masters_by_family(session, family_ids)
        except _STORE_ERRORS as exc:
            self.log_error("fetch_guild_masters", exc)
            result.errors.append(f"Failed to fetch guild masters: {describe_error(exc)}")
            return {}

    def _calendar_settings(self, family: Optional[Family]) -> Tuple[str, int]:
        default_timezone = self.get_config("recurring_quests.default_timezone", "UTC")
        default_week_start = self.get_config("recurring_quests.default_week_start_day", 0)

        if family is None:
            return default_timezone, default_week_start

        timezone_name = family.timezone or default_timezone
        week_start_day = (
            family.week_start_day if family.week_start_day is not None else default_week_start
        )
        return timezone_name, week_start_day

    def _resolve_actor(self, family_id: str, guild_masters: Dict[str, str]) -> str:
        actor_id = guild_masters.get(family_id) or self.get_config(
            "recurring_quests.system_actor_id"
        )
        if not actor_id:
            raise MissingQuestActorError(family_id)
        return actor_id

    async def _generate_for_template(
        self,
        template: QuestTemplate,
        family: Optional[Family],
        guild_masters: Dict[str, str],
        now: datetime,
        result: GenerationResult,
    ) -> None:
        if template.quest_type not in (QuestType.INDIVIDUAL.value, QuestType.FAMILY.value):
            result.errors.append(
                f"Template {template.id}: Unknown quest type: {template.quest_type}"
            )
            return

        try:
            timezone_name, week_start_day = self._calendar_settings(family)
            validate_timezone(timezone_name)
            validate_week_start_day(week_start_day)
            window = self.clock.cycle_window(
                template.recurrence_pattern, now, timezone_name, week_start_day
            )
            creator_id = self._resolve_actor(template.family_id, guild_masters)
        except ChoreQuestDomainException as exc:
            self.log.warning(
                "Skipping recurring quest template",
                extra={
                    "template_id": template.id,
                    "family_id": template.family_id,
                    "error_code": exc.error_code,
                    "reason": exc.message,
                },
            )
            result.errors.append(f"Template {template.id}: {exc.message}")
            return

        if template.quest_type == QuestType.FAMILY.value:
            try:
                created = await self._create_instance(
                    template,
                    window,
                    creator_id,
                    assigned_to_id=None,
                    status=QuestStatus.AVAILABLE,
                )
            except _STORE_ERRORS as exc:
                self.log_error("create_family_quest", exc, template_id=template.id)
                result.errors.append(
                    f"Failed to create family quest for template {template.id}: "
                    f"{describe_error(exc)}"
                )
                return
            if created:
                result.generated.family += 1
            return

        await self._generate_individual(template, window, creator_id, result)

    async def _generate_individual(
        self,
        template: QuestTemplate,
        window: CycleWindow,
        creator_id: str,
        result: GenerationResult,
    ) -> None:
        character_ids = list(dict.fromkeys(template.assigned_character_ids or []))
        if not character_ids:
            self.log.debug(
                "Individual template has no assigned characters",
                extra={"template_id": template.id},
            )
            return

        try:
            async with DatabaseService.get_session() as session:
                characters = {
                    character.id: character
                    for character in await self._characters.get_many(session, character_ids)
                }
        except _STORE_ERRORS as exc:
            self.log_error("fetch_characters", exc, template_id=template.id)
            result.errors.append(
                f"Failed to fetch characters for template {template.id}: {describe_error(exc)}"
            )
            return

        for character_id in character_ids:
            character = characters.get(character_id)
            if character is None:
                self.log.warning(
                    "Assigned character not found",
                    extra={"template_id": template.id, "character_id": character_id},
                )
                continue
            if not character.user_id:
                result.errors.append(f"Character {character_id} has no user_id")
                continue

            try:
                created = await self._create_instance(
                    template,
                    window,
                    creator_id,
                    assigned_to_id=character.user_id,
                    status=QuestStatus.PENDING,
                )
            except _STORE_ERRORS as exc:
                self.log_error(
                    "create_individual_quest",
                    exc,
                    template_id=template.id,
                    character_id=character_id,
                )
                result.errors.append(
                    f"Failed to create quest for character {character_id}: "
                    f"{describe_error(exc)}"
                )
                continue

            if created:
                result.generated.individual += 1

    async def _exists_in_cycle(
        self, template_id: str, window: CycleWindow, assigned_to_id: Optional[str]
    ) -> Optional[bool]:
        """
        Whether an instance for this template, window and assignee exists.

        Returns None when the check itself fails; callers proceed with the
        insert and let the unique constraint reject a real duplicate.
        """
        try:
            async with DatabaseService.get_session() as session:
                count = await self._instances.count_in_cycle(
                    session, template_id, window, assigned_to_id
                )
        except _STORE_ERRORS as exc:
            self.log.warning(
                "Cycle existence check failed; proceeding with insert",
                extra={
                    "template_id": template_id,
                    "assigned_to_id": assigned_to_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None
        return count > 0

    async def _create_instance(
        self,
        template: QuestTemplate,
        window: CycleWindow,
        creator_id: str,
        assigned_to_id: Optional[str],
        status: QuestStatus,
    ) -> bool:
        """
        Insert one instance unless the cycle already has it.

        Returns:
            True if a row was created, False if it already existed.

        Raises:
            SQLAlchemyError: If the insert fails for any other reason.
        """
        if await self._exists_in_cycle(template.id, window, assigned_to_id):
            return False

        instance = QuestInstance(
            template_id=template.id,
            recurrence_pattern=template.recurrence_pattern,
            title=template.title,
            description=template.description,
            category=template.category,
            difficulty=template.difficulty,
            xp_reward=template.xp_reward,
            gold_reward=template.gold_reward,
            family_id=template.family_id,
            created_by_id=creator_id,
            assigned_to_id=assigned_to_id,
            status=status.value,
            quest_type=template.quest_type,
            cycle_start_date=window.start,
            cycle_end_date=window.end,
            generation_key=assigned_to_id or FAMILY_GENERATION_KEY,
            volunteer_bonus=0,
            streak_count=0,
            streak_bonus=0,
        )

        try:
            async with DatabaseService.get_transaction() as session:
                await self._instances.add(session, instance)
        except IntegrityError:
            # Another run won the race for this cycle, or the check above failed
            if await self._exists_in_cycle(template.id, window, assigned_to_id) is False:
                raise
            self.log.info(
                "Quest instance already generated for cycle",
                extra={"template_id": template.id, "assigned_to_id": assigned_to_id},
            )
            return False

        self.log.info(
            "Quest instance generated",
            extra={
                "template_id": template.id,
                "instance_id": instance.id,
                "quest_type": template.quest_type,
                "assigned_to_id": assigned_to_id,
                "cycle_start": window.start.isoformat(),
                "cycle_end": window.end.isoformat(),
            },
        )
        return True
