"""
Recurring Quests Module
=======================

Domain: Cycle-based quest generation and expiration

Services:
- RecurringQuestGenerationService: Creates this cycle's quest instances
- QuestExpirationService: Marks overdue instances MISSED and applies
  pointer clears and streak breaks
"""

from .expiration_service import QuestExpirationService
from .generation_service import RecurringQuestGenerationService
from .recurrence import (
    CalendarRecurrenceClock,
    CycleWindow,
    FixedIntervalRecurrenceClock,
    RecurrenceClock,
    RecurrencePatternRegistry,
    build_recurrence_clock,
    default_pattern_registry,
)
from .results import (
    CascadeResumeResult,
    ExpirationResult,
    GenerationResult,
    PointerRepairResult,
    QuestTypeCounts,
)

__all__ = [
    "RecurringQuestGenerationService",
    "QuestExpirationService",
    "CalendarRecurrenceClock",
    "CycleWindow",
    "FixedIntervalRecurrenceClock",
    "RecurrenceClock",
    "RecurrencePatternRegistry",
    "build_recurrence_clock",
    "default_pattern_registry",
    "CascadeResumeResult",
    "ExpirationResult",
    "GenerationResult",
    "PointerRepairResult",
    "QuestTypeCounts",
]
