"""
Unit tests for the EventBus.

Tests subscription rules, delivery and error isolation.
"""

import pytest

from chorequest.core.event.bus import EventBus


@pytest.fixture
def bus():
    return EventBus()


class TestSubscription:
    """Test listener registration."""

    def test_listener_must_take_one_parameter(self, bus):
        with pytest.raises(ValueError):
            bus.subscribe("recurring_quests.generated", lambda: None)

        with pytest.raises(ValueError):
            bus.subscribe("recurring_quests.generated", lambda name, payload: None)

    def test_duplicate_identifier_is_ignored(self, bus):
        bus.subscribe("recurring_quests.expired", lambda payload: None, identifier="audit")
        bus.subscribe("recurring_quests.expired", lambda payload: None, identifier="audit")

        assert bus.get_listener_count("recurring_quests.expired") == 1

    def test_default_identifier_names_the_callback(self, bus):
        def on_expired(payload):
            return None

        listener_id = bus.subscribe("recurring_quests.expired", on_expired)

        assert listener_id.endswith("on_expired@recurring_quests.expired")
        assert bus.get_listener_count("recurring_quests.generated") == 0


class TestPublish:
    """Test delivery and isolation."""

    async def test_sync_and_async_listeners_receive_payload(self, bus):
        received = []

        async def on_generated(payload):
            received.append(("async", payload))
            return "async"

        bus.subscribe("recurring_quests.generated", on_generated)
        bus.subscribe(
            "recurring_quests.generated",
            lambda payload: received.append(("sync", payload)) or "sync",
            identifier="sync",
        )

        results = await bus.publish("recurring_quests.generated", {"success": True})

        assert results == ["async", "sync"]
        assert sorted(kind for kind, _ in received) == ["async", "sync"]
        assert all(payload == {"success": True} for _, payload in received)
        assert bus.events_published == {"recurring_quests.generated": 1}

    async def test_other_events_are_not_delivered(self, bus):
        received = []
        bus.subscribe("recurring_quests.expired", received.append)

        await bus.publish("recurring_quests.generated", {})

        assert received == []

    async def test_no_listeners_returns_empty(self, bus):
        assert await bus.publish("recurring_quests.expired", {}) == []
        assert bus.events_published == {"recurring_quests.expired": 1}

    async def test_failing_listener_does_not_block_others(self, bus):
        received = []

        def explode(payload):
            raise RuntimeError("listener bug")

        bus.subscribe("tick", explode, identifier="explode")
        bus.subscribe("tick", received.append, identifier="ok")

        results = await bus.publish("tick", {"n": 1})

        assert received == [{"n": 1}]
        assert results[0] is None
        assert bus.listener_errors == {"tick": 1}

    async def test_failing_async_listener_is_isolated(self, bus):
        async def explode(payload):
            raise KeyError("missing")

        bus.subscribe("tick", explode)

        assert await bus.publish("tick", {}) == [None]
        assert bus.listener_errors == {"tick": 1}
