"""
ChoreQuest EventBus: async publish/subscribe for run summaries.

Purpose
-------
Decouple the recurring engine from whatever reacts to its runs (notifications,
dashboards, audit). Services publish a summary event after each run; anything
interested subscribes to the event name.

Responsibilities
----------------
- Register listeners per event name, ignoring duplicate identifiers
- Deliver each published payload to every listener concurrently
- Error isolation (one failing listener never blocks others or the publisher)

Design Decisions
----------------
- **Instance-based**: tests build their own EventBus; production code uses the
  package-level ``chorequest.core.event.event_bus``.
- Listeners may be sync or async and take the payload as their only argument.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from chorequest.core.logging.logger import get_logger

logger = get_logger(__name__)

# Should stay JSON-serializable so listeners can forward payloads as-is
EventPayload = Dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class EventBus:
    """
    Async EventBus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("recurring_quests.generated", on_generated)
    >>> await bus.publish("recurring_quests.generated", {"success": True})
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, Dict[str, CallbackType]] = {}
        self.events_published: Dict[str, int] = {}
        self.listener_errors: Dict[str, int] = {}

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        identifier: Optional[str] = None,
    ) -> str:
        """
        Subscribe a callback to an event name.

        Returns
        -------
        str:
            The listener identifier.

        Raises
        ------
        ValueError:
            If the callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)

        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_name}"

        bucket = self._listeners.setdefault(event_name, {})
        if identifier in bucket:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": identifier},
            )
            return identifier

        bucket[identifier] = callback
        logger.debug(
            "EventBus: subscribed listener",
            extra={"event_name": event_name, "listener_id": identifier},
        )
        return identifier

    def get_listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, {}))

    async def _invoke(
        self, event_name: str, identifier: str, callback: CallbackType, data: EventPayload
    ) -> Any:
        try:
            result = callback(data)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self.listener_errors[event_name] = self.listener_errors.get(event_name, 0) + 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to every listener subscribed to ``event_name``.

        Returns
        -------
        list[Any]:
            One result per listener, in subscription order; ``None`` for a
            listener that raised.
        """
        self.events_published[event_name] = self.events_published.get(event_name, 0) + 1

        listeners = list(self._listeners.get(event_name, {}).items())
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        results = await asyncio.gather(
            *(
                self._invoke(event_name, identifier, callback, data)
                for identifier, callback in listeners
            )
        )

        logger.debug(
            "EventBus: event delivered",
            extra={"event_name": event_name, "listener_count": len(listeners)},
        )
        return list(results)
