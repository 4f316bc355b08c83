"""
Database subsystem: async SQLAlchemy engine, sessions, ORM base and mixins.
"""

from chorequest.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    ensure_utc,
    utc_now,
)
from chorequest.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UTCDateTime",
    "ensure_utc",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
