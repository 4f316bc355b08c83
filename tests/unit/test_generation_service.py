"""
Unit tests for RecurringQuestGenerationService.

Runs the real service against a temporary SQLite database with a frozen
clock (Wednesday 2025-01-15 12:00 UTC).
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from chorequest.core.database.service import DatabaseService
from chorequest.core.logging.logger import get_logger
from chorequest.database.models import (
    FAMILY_GENERATION_KEY,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    QuestType,
)
from chorequest.modules.recurring import (
    FixedIntervalRecurrenceClock,
    RecurringQuestGenerationService,
)
from tests.factories import fetch_all, store_error

UTC = timezone.utc


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


@pytest_asyncio.fixture
async def household(seed):
    """A UTC family with a Guild Master and two heroes with characters."""
    family = await seed.family()
    guild_master = await seed.guild_master(family)
    hero_one = await seed.user(family, name="Ada")
    hero_two = await seed.user(family, name="Bo")
    character_one = await seed.character(hero_one, name="Ada the Tidy")
    character_two = await seed.character(hero_two, name="Bo the Brave")
    return {
        "family": family,
        "guild_master": guild_master,
        "heroes": [hero_one, hero_two],
        "characters": [character_one, character_two],
    }


# ============================================================================
# INDIVIDUAL TEMPLATES
# ============================================================================


@pytest.mark.asyncio
class TestIndividualGeneration:
    async def test_generates_one_pending_quest_per_character(
        self, generation_service, seed, household
    ):
        # Arrange
        characters = household["characters"]
        template = await seed.template(
            household["family"],
            recurrence_pattern="DAILY",
            assigned_character_ids=[c.id for c in characters],
        )

        # Act
        result = await generation_service.generate()

        # Assert
        assert result.success is True
        assert result.generated.to_dict() == {"individual": 2, "family": 0, "total": 2}

        instances = await fetch_all(QuestInstance)
        assert len(instances) == 2
        assert {i.status for i in instances} == {QuestStatus.PENDING.value}
        assert {i.assigned_to_id for i in instances} == {h.id for h in household["heroes"]}
        assert all(i.generation_key == i.assigned_to_id for i in instances)
        assert all(i.created_by_id == household["guild_master"].id for i in instances)
        assert all(i.template_id == template.id for i in instances)

    async def test_copies_template_fields_and_cycle_window(
        self, generation_service, seed, household
    ):
        character = household["characters"][0]
        template = await seed.template(
            household["family"],
            assigned_character_ids=[character.id],
            title="Feed the cat",
            description="Twice",
            category="WEEKLY",
            difficulty="HARD",
            xp_reward=40,
            gold_reward=12,
        )

        await generation_service.generate()

        [instance] = await fetch_all(QuestInstance)
        assert instance.title == "Feed the cat"
        assert instance.description == "Twice"
        assert instance.category == "WEEKLY"
        assert instance.difficulty == "HARD"
        assert instance.xp_reward == 40
        assert instance.gold_reward == 12
        assert instance.family_id == template.family_id
        assert instance.quest_type == QuestType.INDIVIDUAL.value
        assert instance.recurrence_pattern == "DAILY"
        assert instance.cycle_start_date == utc(2025, 1, 15)
        assert instance.cycle_end_date == utc(2025, 1, 15, 23, 59, 59, 999000)
        assert instance.volunteer_bonus == 0
        assert instance.streak_count == 0
        assert instance.streak_bonus == 0
        assert instance.cascade_completed_at is None

    async def test_second_run_in_same_cycle_creates_nothing(
        self, generation_service, seed, household
    ):
        await seed.template(
            household["family"],
            assigned_character_ids=[c.id for c in household["characters"]],
        )

        first = await generation_service.generate()
        second = await generation_service.generate()

        assert first.generated.total == 2
        assert second.success is True
        assert second.generated.total == 0
        assert len(await fetch_all(QuestInstance)) == 2

    async def test_next_cycle_generates_again(
        self, generation_service, seed, household, clock_at
    ):
        await seed.template(
            household["family"],
            assigned_character_ids=[household["characters"][0].id],
        )

        await generation_service.generate()
        clock_at.advance(days=1)
        result = await generation_service.generate()

        assert result.generated.individual == 1
        starts = sorted(i.cycle_start_date for i in await fetch_all(QuestInstance))
        assert starts == [utc(2025, 1, 15), utc(2025, 1, 16)]

    async def test_no_assigned_characters_is_a_silent_no_op(
        self, generation_service, seed, household
    ):
        await seed.template(household["family"], assigned_character_ids=[])

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.total == 0
        assert await fetch_all(QuestInstance) == []

    async def test_character_without_user_is_an_error(
        self, generation_service, seed, household
    ):
        orphan = await seed.character(None, name="Orphan")
        await seed.template(
            household["family"],
            assigned_character_ids=[orphan.id, household["characters"][0].id],
        )

        result = await generation_service.generate()

        assert result.success is False
        assert result.errors == [f"Character {orphan.id} has no user_id"]
        assert result.generated.individual == 1

    async def test_unknown_character_is_skipped_without_error(
        self, generation_service, seed, household
    ):
        await seed.template(
            household["family"],
            assigned_character_ids=["does-not-exist", household["characters"][0].id],
        )

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.individual == 1

    async def test_duplicate_character_ids_generate_once(
        self, generation_service, seed, household
    ):
        character = household["characters"][0]
        await seed.template(
            household["family"], assigned_character_ids=[character.id, character.id]
        )

        result = await generation_service.generate()

        assert result.generated.individual == 1

    async def test_one_failed_insert_does_not_stop_the_others(
        self, generation_service, seed, household, mocker
    ):
        first_character, second_character = household["characters"]
        first_hero = household["heroes"][0]
        await seed.template(
            household["family"],
            assigned_character_ids=[first_character.id, second_character.id],
        )
        original_add = generation_service._instances.add

        async def flaky_add(session, instance):
            if instance.assigned_to_id == first_hero.id:
                raise store_error("disk I/O error")
            return await original_add(session, instance)

        mocker.patch.object(generation_service._instances, "add", new=flaky_add)

        result = await generation_service.generate()

        assert result.success is False
        assert result.errors == [
            f"Failed to create quest for character {first_character.id}: disk I/O error"
        ]
        assert result.generated.individual == 1
        assert len(await fetch_all(QuestInstance)) == 1

    async def test_character_fetch_failure_is_reported_per_template(
        self, generation_service, seed, household, mocker
    ):
        template = await seed.template(
            household["family"],
            assigned_character_ids=[household["characters"][0].id],
        )
        mocker.patch.object(
            generation_service._characters, "get_many", side_effect=store_error("timeout")
        )

        result = await generation_service.generate()

        assert result.errors == [
            f"Failed to fetch characters for template {template.id}: timeout"
        ]
        assert result.generated.total == 0


# ============================================================================
# FAMILY TEMPLATES
# ============================================================================


@pytest.mark.asyncio
class TestFamilyGeneration:
    async def test_weekly_family_template_creates_one_pool_quest(
        self, generation_service, seed, household
    ):
        await seed.template(
            household["family"],
            quest_type=QuestType.FAMILY,
            recurrence_pattern="WEEKLY",
            assigned_character_ids=[c.id for c in household["characters"]],
        )

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.to_dict() == {"individual": 0, "family": 1, "total": 1}

        [instance] = await fetch_all(QuestInstance)
        assert instance.status == QuestStatus.AVAILABLE.value
        assert instance.assigned_to_id is None
        assert instance.generation_key == FAMILY_GENERATION_KEY
        assert instance.cycle_start_date == utc(2025, 1, 12)
        assert instance.cycle_end_date == utc(2025, 1, 18, 23, 59, 59, 999000)

    async def test_family_quest_is_idempotent_within_the_week(
        self, generation_service, seed, household, clock_at
    ):
        await seed.template(
            household["family"], quest_type=QuestType.FAMILY, recurrence_pattern="WEEKLY"
        )

        await generation_service.generate()
        clock_at.advance(days=2)
        result = await generation_service.generate()

        assert result.generated.total == 0
        assert len(await fetch_all(QuestInstance)) == 1

    async def test_family_insert_failure_is_reported(
        self, generation_service, seed, household, mocker
    ):
        template = await seed.template(household["family"], quest_type=QuestType.FAMILY)
        mocker.patch.object(
            generation_service._instances, "add", side_effect=store_error("read-only database")
        )

        result = await generation_service.generate()

        assert result.errors == [
            f"Failed to create family quest for template {template.id}: read-only database"
        ]


# ============================================================================
# ELIGIBILITY AND CALENDARS
# ============================================================================


@pytest.mark.asyncio
class TestEligibilityAndCalendars:
    async def test_paused_inactive_and_patternless_templates_are_ignored(
        self, generation_service, seed, household
    ):
        ids = [household["characters"][0].id]
        await seed.template(household["family"], assigned_character_ids=ids, is_paused=True)
        await seed.template(household["family"], assigned_character_ids=ids, is_active=False)
        await seed.template(
            household["family"], assigned_character_ids=ids, recurrence_pattern=None
        )

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.total == 0

    async def test_no_templates_is_success(self, generation_service, database):
        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.total == 0

    async def test_family_timezone_sets_the_window(self, generation_service, seed):
        family = await seed.family(timezone_name="America/Chicago")
        await seed.guild_master(family)
        character = await seed.character(await seed.user(family))
        await seed.template(family, assigned_character_ids=[character.id])

        await generation_service.generate()

        [instance] = await fetch_all(QuestInstance)
        assert instance.cycle_start_date == utc(2025, 1, 15, 6)
        assert instance.cycle_end_date == utc(2025, 1, 16, 5, 59, 59, 999000)

    async def test_family_week_start_sets_the_window(self, generation_service, seed):
        family = await seed.family(week_start_day=1)
        await seed.guild_master(family)
        await seed.template(family, quest_type=QuestType.FAMILY, recurrence_pattern="WEEKLY")

        await generation_service.generate()

        [instance] = await fetch_all(QuestInstance)
        assert instance.cycle_start_date == utc(2025, 1, 13)

    async def test_custom_pattern_uses_daily_window(self, generation_service, seed, household):
        await seed.template(
            household["family"], quest_type=QuestType.FAMILY, recurrence_pattern="CUSTOM"
        )

        await generation_service.generate()

        [instance] = await fetch_all(QuestInstance)
        assert instance.cycle_start_date == utc(2025, 1, 15)

    async def test_invalid_family_timezone_skips_only_that_family(
        self, generation_service, seed, household
    ):
        broken = await seed.family(timezone_name="Mars/Olympus_Mons")
        await seed.guild_master(broken)
        broken_template = await seed.template(broken, quest_type=QuestType.FAMILY)
        await seed.template(household["family"], quest_type=QuestType.FAMILY)

        result = await generation_service.generate()

        assert result.success is False
        assert len(result.errors) == 1
        assert result.errors[0].startswith(f"Template {broken_template.id}: ")
        assert "Invalid timezone: Mars/Olympus_Mons" in result.errors[0]
        assert result.generated.family == 1

    async def test_unknown_pattern_is_a_template_error(self, generation_service, seed, household):
        template = await seed.template(
            household["family"], quest_type=QuestType.FAMILY, recurrence_pattern="MONTHLY"
        )

        result = await generation_service.generate()

        assert result.generated.total == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith(f"Template {template.id}: ")
        assert "Unknown recurrence pattern: MONTHLY" in result.errors[0]

    async def test_unknown_quest_type_is_a_template_error(
        self, generation_service, seed, household
    ):
        template = await seed.template(household["family"])
        async with DatabaseService.get_transaction() as session:
            stored = await session.get(QuestTemplate, template.id)
            stored.quest_type = "SOLO"

        result = await generation_service.generate()

        assert result.errors == [f"Template {template.id}: Unknown quest type: SOLO"]


# ============================================================================
# QUEST ACTOR
# ============================================================================


@pytest.mark.asyncio
class TestQuestActor:
    async def test_earliest_guild_master_is_the_creator(self, generation_service, seed):
        family = await seed.family()
        later = await seed.guild_master(family, created_at=utc(2024, 6, 1))
        earlier = await seed.guild_master(family, created_at=utc(2024, 1, 1))
        await seed.template(family, quest_type=QuestType.FAMILY)

        await generation_service.generate()

        [instance] = await fetch_all(QuestInstance)
        assert instance.created_by_id == earlier.id
        assert instance.created_by_id != later.id

    async def test_guild_master_of_another_family_is_not_used(
        self, generation_service, seed, household
    ):
        lonely = await seed.family()
        template = await seed.template(lonely, quest_type=QuestType.FAMILY)

        result = await generation_service.generate()

        assert result.errors == [
            f"Template {template.id}: No Guild Master or system actor available "
            f"for family {lonely.id}"
        ]
        assert await fetch_all(QuestInstance) == []

    async def test_configured_system_actor_is_the_fallback(
        self, generation_service, seed, config_manager
    ):
        family = await seed.family()
        system_user = await seed.user(None, name="ChoreQuest")
        config_manager.set_override("recurring_quests.system_actor_id", system_user.id)
        await seed.template(family, quest_type=QuestType.FAMILY)

        result = await generation_service.generate()

        assert result.success is True
        [instance] = await fetch_all(QuestInstance)
        assert instance.created_by_id == system_user.id

    async def test_guild_master_lookup_failure_falls_back_to_system_actor(
        self, generation_service, seed, household, config_manager, mocker
    ):
        config_manager.set_override("recurring_quests.system_actor_id", "system-actor")
        await seed.template(household["family"], quest_type=QuestType.FAMILY)
        mocker.patch.object(
            generation_service._profiles,
            "find_guild_masters_by_family",
            side_effect=store_error("too many connections"),
        )

        result = await generation_service.generate()

        assert result.errors == ["Failed to fetch guild masters: too many connections"]
        assert result.generated.family == 1
        [instance] = await fetch_all(QuestInstance)
        assert instance.created_by_id == "system-actor"


# ============================================================================
# FAILURES AND IDEMPOTENCY SAFETY NET
# ============================================================================


@pytest.mark.asyncio
class TestGenerationFailures:
    async def test_template_fetch_failure_aborts(self, generation_service, seed, household, mocker):
        await seed.template(
            household["family"], assigned_character_ids=[household["characters"][0].id]
        )
        mocker.patch.object(
            generation_service._templates,
            "find_eligible",
            side_effect=store_error("could not connect to server"),
        )

        result = await generation_service.generate()

        assert result.success is False
        assert result.generated.to_dict() == {"individual": 0, "family": 0, "total": 0}
        assert any("Failed to fetch templates" in error for error in result.errors)
        assert await fetch_all(QuestInstance) == []

    async def test_family_fetch_failure_falls_back_to_default_calendar(
        self, generation_service, seed, mocker
    ):
        # A Chicago family would start its day at 06:00 UTC; the default is UTC
        family = await seed.family(timezone_name="America/Chicago")
        await seed.guild_master(family)
        hero = await seed.user(family)
        character = await seed.character(hero)
        await seed.template(family, assigned_character_ids=[character.id])
        mocker.patch.object(
            generation_service._families, "get_many", side_effect=store_error("connection refused")
        )

        result = await generation_service.generate()

        assert result.success is False
        assert result.errors == ["Failed to fetch families: connection refused"]
        assert result.generated.individual == 1
        [instance] = await fetch_all(QuestInstance)
        assert instance.assigned_to_id == hero.id
        assert instance.cycle_start_date == utc(2025, 1, 15)
        assert instance.cycle_end_date == utc(2025, 1, 15, 23, 59, 59, 999000)

    async def test_existence_check_failure_still_generates(
        self, generation_service, seed, household, mocker
    ):
        await seed.template(
            household["family"],
            assigned_character_ids=[c.id for c in household["characters"]],
        )
        mocker.patch.object(
            generation_service._instances, "count_in_cycle", side_effect=store_error()
        )

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.individual == 2

    async def test_unique_constraint_makes_duplicates_a_silent_no_op(
        self, generation_service, seed, household, mocker
    ):
        await seed.template(
            household["family"],
            assigned_character_ids=[c.id for c in household["characters"]],
        )
        await generation_service.generate()
        mocker.patch.object(
            generation_service._instances, "count_in_cycle", side_effect=store_error()
        )

        result = await generation_service.generate()

        assert result.success is True
        assert result.generated.total == 0
        assert len(await fetch_all(QuestInstance)) == 2

    async def test_unexpected_error_is_reported_not_raised(
        self, generation_service, mocker, database
    ):
        mocker.patch.object(
            generation_service, "_generate", side_effect=RuntimeError("boom")
        )

        result = await generation_service.generate()

        assert result.success is False
        assert result.errors == ["Unexpected error during quest generation: boom"]

    async def test_uninitialized_database_is_reported(
        self, config_manager, event_bus, clock_at
    ):
        service = RecurringQuestGenerationService(
            config_manager=config_manager,
            event_bus=event_bus,
            logger=get_logger("tests.generation_service"),
            now=clock_at,
        )

        result = await service.generate()

        assert result.success is False
        assert result.errors[0].startswith("Failed to fetch templates: DatabaseService")


# ============================================================================
# CLOCKS AND EVENTS
# ============================================================================


@pytest.mark.asyncio
class TestClocksAndEvents:
    async def test_fixed_interval_clock_cycles_in_minutes(
        self, database, config_manager, event_bus, clock_at, seed, household
    ):
        service = RecurringQuestGenerationService(
            config_manager=config_manager,
            event_bus=event_bus,
            logger=get_logger("tests.generation_service"),
            clock=FixedIntervalRecurrenceClock(5),
            now=clock_at,
        )
        await seed.template(
            household["family"], assigned_character_ids=[household["characters"][0].id]
        )

        first = await service.generate()
        clock_at.advance(minutes=3)
        same_window = await service.generate()
        clock_at.advance(minutes=3)
        next_window = await service.generate()

        totals = [r.generated.total for r in (first, same_window, next_window)]
        assert totals == [1, 0, 1]
        windows = sorted(
            (i.cycle_start_date, i.cycle_end_date) for i in await fetch_all(QuestInstance)
        )
        assert windows[0] == (utc(2025, 1, 15, 12, 0), utc(2025, 1, 15, 12, 4, 59, 999000))
        assert windows[1][0] == utc(2025, 1, 15, 12, 5)
        assert windows[1][0] - windows[0][0] == timedelta(minutes=5)

    async def test_summary_event_is_published(
        self, generation_service, seed, household, published
    ):
        await seed.template(household["family"], quest_type=QuestType.FAMILY)

        await generation_service.generate()

        assert published == [
            (
                "recurring_quests.generated",
                {
                    "success": True,
                    "generated": {"individual": 0, "family": 1, "total": 1},
                    "errors": [],
                },
            )
        ]
