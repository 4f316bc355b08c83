"""
Shared foundations for ChoreQuest domain modules.
"""

from .base_repository import BaseRepository
from .base_service import BaseService, NowProvider
from .exceptions import (
    ChoreQuestDomainException,
    InvalidTimezoneError,
    MissingQuestActorError,
    UnknownRecurrencePatternError,
    ValidationError,
    describe_error,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "NowProvider",
    "ChoreQuestDomainException",
    "InvalidTimezoneError",
    "MissingQuestActorError",
    "UnknownRecurrencePatternError",
    "ValidationError",
    "describe_error",
]
