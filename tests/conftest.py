"""
Pytest Configuration and Fixtures for ChoreQuest Tests
======================================================

Purpose
-------
Centralized fixtures for the recurring quest engine test suite.

Responsibilities
----------------
- Force a testing environment before any chorequest module is imported
- Temporary SQLite database behind DatabaseService for engine tests
- Fresh ConfigManager / EventBus per test
- Seed helpers for families, profiles, characters, templates, instances

Architecture Notes
------------------
- Pure helpers (timezone windows, clocks) need no fixtures
- Engine tests run the real services against aiosqlite; failure paths are
  simulated by patching repository methods to raise OperationalError
- Time is frozen by injecting a `now` provider into services
"""

from __future__ import annotations

import os

# Logging and Config read the environment at import time
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.pop("RECURRING_TEST_INTERVAL_MINUTES", None)

from datetime import datetime, timedelta  # noqa: E402
from typing import AsyncGenerator, List  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from chorequest.core.config.config import Config  # noqa: E402
from chorequest.core.config.manager import ConfigManager  # noqa: E402
from chorequest.core.database.service import DatabaseService  # noqa: E402
from chorequest.core.event.bus import EventBus  # noqa: E402
from chorequest.core.logging.logger import get_logger  # noqa: E402
from chorequest.modules.recurring import (  # noqa: E402
    CalendarRecurrenceClock,
    QuestExpirationService,
    RecurringQuestGenerationService,
)
from tests.factories import FROZEN_NOW, Seeder  # noqa: E402


# ============================================================================
# INFRASTRUCTURE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """
    DatabaseService bound to a fresh SQLite file with the schema created.

    Scope: function (clean slate per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'chorequest-test.db'}"
    await DatabaseService.initialize(url)
    await DatabaseService.create_schema()
    try:
        yield
    finally:
        await DatabaseService.shutdown()


@pytest.fixture
def config_manager():
    """ConfigManager loaded from the repository's config/ directory."""
    ConfigManager.clear_cache()
    ConfigManager.initialize(Config.PROJECT_ROOT / "config")
    yield ConfigManager
    ConfigManager.clear_cache()


_CONFIG_ATTRS = (
    "DATABASE_URL",
    "DATABASE_POOL_SIZE",
    "DATABASE_MAX_OVERFLOW",
    "DATABASE_ECHO",
    "DATABASE_POOL_RECYCLE",
    "DATABASE_POOL_TIMEOUT",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "LOG_JSON",
    "LOG_TO_FILE",
    "LOGS_DIR",
    "RECURRING_TEST_INTERVAL_MINUTES",
    "RECURRING_RUN_INTERVAL_SECONDS",
    "_metrics",
    "_validated",
)


@pytest.fixture
def isolated_config(monkeypatch):
    """
    Config free to reload from a patched environment.

    Class attributes are restored when the test ends.
    """
    for attr in _CONFIG_ATTRS:
        monkeypatch.setattr(Config, attr, getattr(Config, attr))
    Config._metrics = None
    Config._validated = False
    return Config


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus) -> List[tuple]:
    """Every (event_name, payload) published on the test bus."""
    events: List[tuple] = []

    def _recorder(event_name: str):
        def _record(payload):
            events.append((event_name, payload))

        return _record

    for name in (
        "recurring_quests.generated",
        "recurring_quests.expired",
        "recurring_quests.cascades_resumed",
    ):
        event_bus.subscribe(name, _recorder(name), identifier=f"test-recorder@{name}")
    return events


@pytest.fixture
def clock_at():
    """Mutable frozen clock; call `.set(instant)` to move time."""

    class _Clock:
        def __init__(self) -> None:
            self.current = FROZEN_NOW

        def set(self, instant: datetime) -> None:
            self.current = instant

        def advance(self, **kwargs: float) -> None:
            self.current = self.current + timedelta(**kwargs)

        def __call__(self) -> datetime:
            return self.current

    return _Clock()


@pytest.fixture
def generation_service(database, config_manager, event_bus, clock_at):
    return RecurringQuestGenerationService(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.generation_service"),
        clock=CalendarRecurrenceClock(),
        now=clock_at,
    )


@pytest.fixture
def expiration_service(database, config_manager, event_bus, clock_at):
    return QuestExpirationService(
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.expiration_service"),
        now=clock_at,
    )


@pytest.fixture
def seed(database) -> Seeder:
    return Seeder()
