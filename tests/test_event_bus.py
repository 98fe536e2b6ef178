from __future__ import annotations

from social_sim.events.bus import EventBus
from social_sim.models.events import EventEnvelope, EventType, ModuleId, ReputationDeltaPayload, create_event


def _event(event_type: str = EventType.REPUTATION_DELTA) -> EventEnvelope:
    payload = ReputationDeltaPayload(npc_id="barista", previous_score=0.0, new_score=0.1, reason="test")
    return create_event(event_type, ModuleId.WORLD_ENGINE, "learner-1", "s1", payload)


def test_create_event_fills_envelope():
    envelope = _event()
    assert envelope.type == "REPUTATION_DELTA"
    assert envelope.source == "world-engine"
    assert envelope.correlation_id == "s1"
    assert envelope.schema_version == "1.0"
    assert envelope.payload["new_score"] == 0.1
    assert envelope.is_known_type()
    assert envelope.event_id != _event().event_id


def test_unknown_event_types_still_parse():
    raw = _event().model_dump()
    raw["type"] = "LEARNER_TELEPORTED"
    envelope = EventEnvelope.model_validate(raw)
    assert envelope.type == "LEARNER_TELEPORTED"
    assert not envelope.is_known_type()


def test_subscribers_receive_matching_and_wildcard_events():
    bus = EventBus()
    typed: list[str] = []
    everything: list[str] = []
    bus.subscribe(EventType.REPUTATION_DELTA, lambda e: typed.append(e.type))
    bus.subscribe("*", lambda e: everything.append(e.type))
    bus.emit(_event())
    bus.emit(_event(EventType.SESSION_ENDED))
    assert typed == ["REPUTATION_DELTA"]
    assert everything == ["REPUTATION_DELTA", "SESSION_ENDED"]
    assert bus.get_emitted_count() == 2
    assert bus.get_emitted_count(EventType.SESSION_ENDED) == 1


def test_unsubscribe_uses_handle():
    bus = EventBus()
    seen: list[str] = []
    handle = bus.subscribe(EventType.REPUTATION_DELTA, seen.append)
    assert bus.get_handler_count(EventType.REPUTATION_DELTA) == 1
    assert bus.unsubscribe(handle)
    assert not bus.unsubscribe(handle)
    bus.emit(_event())
    assert seen == []
    assert bus.get_handler_count() == 0


def test_same_callable_subscribed_twice_gets_distinct_handles():
    bus = EventBus()
    seen: list[EventEnvelope] = []
    first = bus.subscribe("*", seen.append)
    second = bus.subscribe("*", seen.append)
    assert first != second
    bus.unsubscribe(first)
    bus.emit(_event())
    assert len(seen) == 1


def test_failing_handler_is_isolated():
    bus = EventBus()
    seen: list[str] = []

    def broken(envelope):
        raise RuntimeError("handler down")

    bus.subscribe("*", broken)
    bus.subscribe("*", lambda e: seen.append(e.event_id))
    envelope = _event()
    bus.emit(envelope)
    assert seen == [envelope.event_id]


def test_async_handler_is_awaited():
    bus = EventBus()
    seen: list[str] = []

    async def handler(envelope):
        seen.append(envelope.type)

    bus.subscribe(EventType.REPUTATION_DELTA, handler)
    bus.emit(_event())
    assert seen == ["REPUTATION_DELTA"]


def test_history_is_bounded_and_resettable():
    bus = EventBus(max_history=3)
    for _ in range(5):
        bus.emit(_event())
    assert bus.get_emitted_count() == 3
    bus.clear_emitted()
    assert bus.get_emitted() == []
    bus.subscribe("*", lambda e: None)
    bus.off("*")
    assert bus.get_handler_count() == 0
    bus.subscribe("*", lambda e: None)
    bus.reset()
    assert bus.get_handler_count() == 0
