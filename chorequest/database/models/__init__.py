"""
Database Models Package
=======================

SQLAlchemy ORM models for the ChoreQuest store.

All models:
- Are schema-only, with no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit IdMixin (string UUID key) and TimestampMixin
"""

from chorequest.core.database.base import Base

from .character import Character
from .character_quest_streak import CharacterQuestStreak
from .enums import QuestCategory, QuestDifficulty, QuestStatus, QuestType, UserRole
from .family import Family
from .quest_instance import FAMILY_GENERATION_KEY, QuestInstance
from .quest_template import QuestTemplate
from .user_profile import UserProfile

__all__ = [
    "Base",
    "Character",
    "CharacterQuestStreak",
    "Family",
    "QuestInstance",
    "QuestTemplate",
    "UserProfile",
    "FAMILY_GENERATION_KEY",
    "QuestCategory",
    "QuestDifficulty",
    "QuestStatus",
    "QuestType",
    "UserRole",
]
