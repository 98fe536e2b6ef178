from __future__ import annotations

import itertools
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from social_sim.events.fanout import call_isolated, settle_awaitables
from social_sim.models.events import EventEnvelope

log = logging.getLogger(__name__)

WILDCARD = "*"

EventHandler = Callable[[EventEnvelope], Any]


class EventEmitter(Protocol):
    def emit(self, envelope: EventEnvelope) -> None: ...


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int
    event_type: str


class EventBus:
    """In-process pub/sub for event envelopes.

    Handlers subscribe per event type or to ``"*"``. Each handler runs in
    isolation: a raising handler is logged and delivery to the rest continues.
    The most recent ``max_history`` envelopes are kept for inspection.
    """

    def __init__(self, max_history: int = 1000) -> None:
        self.max_history = max(1, int(max_history))
        self._handlers: dict[str, dict[int, EventHandler]] = {}
        self._ids = itertools.count(1)
        self._emitted: deque[EventEnvelope] = deque(maxlen=self.max_history)

    def subscribe(self, event_type: str, handler: EventHandler) -> SubscriptionHandle:
        handle = SubscriptionHandle(id=next(self._ids), event_type=str(event_type))
        self._handlers.setdefault(handle.event_type, {})[handle.id] = handler
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        handlers = self._handlers.get(handle.event_type)
        if not handlers or handle.id not in handlers:
            return False
        del handlers[handle.id]
        if not handlers:
            del self._handlers[handle.event_type]
        return True

    def off(self, event_type: str) -> None:
        self._handlers.pop(str(event_type), None)

    def emit(self, envelope: EventEnvelope) -> None:
        self._emitted.append(envelope)
        if not envelope.is_known_type():
            log.debug("event_unknown_type type=%s id=%s", envelope.type, envelope.event_id)
        targets = [
            *self._handlers.get(envelope.type, {}).items(),
            *self._handlers.get(WILDCARD, {}).items(),
        ]
        results: dict[str, Any] = {}
        for handler_id, handler in targets:
            label = f"{envelope.type}#{handler_id}"
            ok, result = call_isolated(label, handler, envelope)
            if ok:
                results[label] = result
        settle_awaitables(results)

    def get_emitted(self, event_type: str | None = None) -> list[EventEnvelope]:
        if event_type is None:
            return list(self._emitted)
        return [envelope for envelope in self._emitted if envelope.type == event_type]

    def get_emitted_count(self, event_type: str | None = None) -> int:
        return len(self.get_emitted(event_type))

    def clear_emitted(self) -> None:
        self._emitted.clear()

    def reset(self) -> None:
        self._handlers.clear()
        self._emitted.clear()

    def get_handler_count(self, event_type: str | None = None) -> int:
        if event_type is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(str(event_type), {}))
