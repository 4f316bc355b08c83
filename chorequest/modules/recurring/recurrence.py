"""
Recurrence patterns and clocks.

Purpose
-------
Turn a template's recurrence pattern plus its family's calendar settings into
the UTC window of the current cycle.

Two layers:

- **Patterns** (``DAILY``, ``WEEKLY``, ...) live in an open registry. Adding a
  pattern means registering a strategy; ``CUSTOM`` is registered as an alias
  of ``DAILY`` until custom schedules exist. Unknown names raise
  ``UnknownRecurrencePatternError``.
- **Clocks** decide how windows are computed:
  - ``CalendarRecurrenceClock`` resolves the pattern and uses the family's
    timezone and week start.
  - ``FixedIntervalRecurrenceClock`` ignores patterns and timezones and cuts
    time into N-minute windows aligned to the hour, so a full
    generate/expire cycle can be exercised in minutes.

``build_recurrence_clock()`` is the only place that reads configuration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from chorequest.core.config.config import Config
from chorequest.core.database.base import ensure_utc
from chorequest.core.logging.logger import get_logger
from chorequest.modules.recurring.timezone_window import (
    end_of_day_in_timezone,
    end_of_week_in_timezone,
    start_of_day_in_timezone,
    start_of_week_in_timezone,
    validate_timezone,
    validate_week_start_day,
)
from chorequest.modules.shared.exceptions import (
    UnknownRecurrencePatternError,
    ValidationError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CycleWindow:
    """Inclusive UTC bounds of one recurrence cycle."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_utc(instant) <= self.end  # type: ignore[operator]


# ============================================================================
# Patterns
# ============================================================================


class RecurrencePattern(ABC):
    """Strategy computing the cycle window that contains an instant."""

    name: str

    @abstractmethod
    def window(
        self, instant: datetime, timezone_name: str, week_start_day: int
    ) -> CycleWindow:
        ...


class DailyPattern(RecurrencePattern):
    name = "DAILY"

    def window(
        self, instant: datetime, timezone_name: str, week_start_day: int
    ) -> CycleWindow:
        return CycleWindow(
            start=start_of_day_in_timezone(instant, timezone_name),
            end=end_of_day_in_timezone(instant, timezone_name),
        )


class WeeklyPattern(RecurrencePattern):
    name = "WEEKLY"

    def window(
        self, instant: datetime, timezone_name: str, week_start_day: int
    ) -> CycleWindow:
        return CycleWindow(
            start=start_of_week_in_timezone(instant, timezone_name, week_start_day),
            end=end_of_week_in_timezone(instant, timezone_name, week_start_day),
        )


class RecurrencePatternRegistry:
    """
    Name -> strategy lookup with aliases.

    Names are matched case-insensitively.
    """

    def __init__(self) -> None:
        self._patterns: Dict[str, RecurrencePattern] = {}
        self._aliases: Dict[str, str] = {}

    @staticmethod
    def _normalize(name: str) -> str:
        return name.strip().upper()

    def register(self, pattern: RecurrencePattern, *, replace: bool = False) -> None:
        key = self._normalize(pattern.name)
        if key in self._patterns and not replace:
            raise ValueError(f"Recurrence pattern already registered: {key}")
        self._patterns[key] = pattern
        self._aliases.pop(key, None)

    def alias(self, name: str, target: str) -> None:
        """Route ``name`` to the strategy registered as ``target``."""
        target_key = self._normalize(target)
        if target_key not in self._patterns:
            raise ValueError(f"Cannot alias {name} to unregistered pattern {target_key}")
        self._aliases[self._normalize(name)] = target_key

    def resolve(self, name: Optional[str]) -> RecurrencePattern:
        if not isinstance(name, str) or not name.strip():
            raise UnknownRecurrencePatternError(name)
        key = self._normalize(name)
        key = self._aliases.get(key, key)
        pattern = self._patterns.get(key)
        if pattern is None:
            raise UnknownRecurrencePatternError(name)
        return pattern

    def names(self) -> List[str]:
        return sorted(set(self._patterns) | set(self._aliases))

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = self._normalize(name)
        return key in self._patterns or key in self._aliases


def default_pattern_registry() -> RecurrencePatternRegistry:
    registry = RecurrencePatternRegistry()
    registry.register(DailyPattern())
    registry.register(WeeklyPattern())
    # TODO: replace with a real strategy once templates can store custom schedules
    registry.alias("CUSTOM", "DAILY")
    return registry


# ============================================================================
# Clocks
# ============================================================================


class RecurrenceClock(ABC):
    """Computes the current cycle window for a template."""

    @abstractmethod
    def cycle_window(
        self,
        pattern: Optional[str],
        instant: datetime,
        timezone_name: str = "UTC",
        week_start_day: int = 0,
    ) -> CycleWindow:
        ...


class CalendarRecurrenceClock(RecurrenceClock):
    """Timezone-calendar windows resolved through the pattern registry."""

    def __init__(self, registry: Optional[RecurrencePatternRegistry] = None) -> None:
        self.registry = registry or default_pattern_registry()

    def cycle_window(
        self,
        pattern: Optional[str],
        instant: datetime,
        timezone_name: str = "UTC",
        week_start_day: int = 0,
    ) -> CycleWindow:
        validate_timezone(timezone_name)
        validate_week_start_day(week_start_day)
        return self.registry.resolve(pattern).window(instant, timezone_name, week_start_day)

    def __repr__(self) -> str:
        return f"CalendarRecurrenceClock(patterns={self.registry.names()})"


class FixedIntervalRecurrenceClock(RecurrenceClock):
    """
    N-minute windows aligned to the hour, for every pattern and timezone.

    N must divide 60 so consecutive windows tile the hour. The window start is the current minute floored to a multiple of N with
    seconds zeroed; the end is one millisecond before start + N minutes.
    """

    def __init__(self, interval_minutes: int) -> None:
        if (
            isinstance(interval_minutes, bool)
            or not isinstance(interval_minutes, int)
            or interval_minutes <= 0
        ):
            raise ValidationError(
                "interval_minutes",
                f"interval_minutes must be a positive integer, got {interval_minutes!r}",
            )
        # Windows restart at the top of every hour
        if 60 % interval_minutes != 0:
            raise ValidationError(
                "interval_minutes",
                f"interval_minutes must divide 60, got {interval_minutes}",
            )
        self.interval_minutes = interval_minutes

    def cycle_window(
        self,
        pattern: Optional[str],
        instant: datetime,
        timezone_name: str = "UTC",
        week_start_day: int = 0,
    ) -> CycleWindow:
        current = ensure_utc(instant)
        assert current is not None
        aligned = (current.minute // self.interval_minutes) * self.interval_minutes
        start = current.replace(minute=aligned, second=0, microsecond=0)
        end = start + timedelta(minutes=self.interval_minutes) - timedelta(milliseconds=1)
        return CycleWindow(start=start, end=end)

    def __repr__(self) -> str:
        return f"FixedIntervalRecurrenceClock(interval_minutes={self.interval_minutes})"


def build_recurrence_clock(
    test_interval_minutes: Optional[int] = None,
    registry: Optional[RecurrencePatternRegistry] = None,
) -> RecurrenceClock:
    """
    Pick the clock for this process.

    ``test_interval_minutes`` defaults to ``Config.RECURRING_TEST_INTERVAL_MINUTES``.
    A positive value selects fixed-interval windows; anything else selects
    calendar windows.
    """
    interval = (
        test_interval_minutes
        if test_interval_minutes is not None
        else Config.RECURRING_TEST_INTERVAL_MINUTES
    )

    if interval is not None and interval > 0:
        logger.warning(
            "Using fixed-interval recurrence windows",
            extra={"interval_minutes": interval},
        )
        return FixedIntervalRecurrenceClock(interval)

    return CalendarRecurrenceClock(registry)
