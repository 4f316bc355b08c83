"""
Database Model Enums
====================

Type-safe constants for categorical columns. Values match the strings stored
in the database, so members compare equal to raw column values.

Recurrence patterns are intentionally not an enum here: the column is an open
string and the engine resolves it through its pattern registry.
"""

from __future__ import annotations

import enum


class QuestStatus(str, enum.Enum):
    """Lifecycle of a quest instance."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    APPROVED = "APPROVED"
    EXPIRED = "EXPIRED"
    AVAILABLE = "AVAILABLE"
    CLAIMED = "CLAIMED"
    MISSED = "MISSED"


class QuestType(str, enum.Enum):
    """
    INDIVIDUAL quests are materialized once per assigned character.
    FAMILY quests form a single pool that any hero may claim.
    """

    INDIVIDUAL = "INDIVIDUAL"
    FAMILY = "FAMILY"


class QuestCategory(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BOSS_BATTLE = "BOSS_BATTLE"


class QuestDifficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class UserRole(str, enum.Enum):
    GUILD_MASTER = "GUILD_MASTER"
    HERO = "HERO"
    YOUNG_HERO = "YOUNG_HERO"
