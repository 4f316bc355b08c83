"""
Base Service Foundation

Purpose
-------
Provides the foundational class for ChoreQuest domain services. Services
implement the engine's behavior, open short transactions through
DatabaseService, and publish a summary event after each run.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- An injectable clock so runs are reproducible in tests

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Handle SQLAlchemy sessions directly

Usage
-----
    class QuestExpirationService(BaseService):
        def __init__(self, config_manager, event_bus, logger, now=utc_now):
            super().__init__(config_manager, event_bus, logger, now=now)
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from chorequest.core.database.base import ensure_utc, utc_now

if TYPE_CHECKING:
    from logging import Logger

    from chorequest.core.config.manager import ConfigManager
    from chorequest.core.event.bus import EventBus

NowProvider = Callable[[], datetime]


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Engine configuration manager
        event_bus: Event bus for run summaries
        logger: Structured logger instance
        now: Clock returning the current instant
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        now: NowProvider = utc_now,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self._now = now
        self.log = logger

    def now(self) -> datetime:
        """Current instant from the injected clock, as aware UTC."""
        current = ensure_utc(self._now())
        assert current is not None
        return current

    def get_config(self, key: str, default: Optional[Any] = None) -> Any:
        """Read an engine tunable, falling back to `default` when unset."""
        return self._config.get(key, default)

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
