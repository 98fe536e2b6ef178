from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from social_sim.events.fanout import call_isolated, settle_awaitables

log = logging.getLogger(__name__)

HookCallback = Literal[
    "on_session_start",
    "on_session_end",
    "on_dialogue_start",
    "on_dialogue_end",
    "on_turn_complete",
    "on_tick",
    "on_location_enter",
    "on_location_exit",
]

HOOK_CALLBACKS: tuple[str, ...] = (
    "on_session_start",
    "on_session_end",
    "on_dialogue_start",
    "on_dialogue_end",
    "on_turn_complete",
    "on_tick",
    "on_location_enter",
    "on_location_exit",
)


class ModuleHooks(Protocol):
    """A module observing the session lifecycle.

    Only ``module_id`` is required. Every callback named in HOOK_CALLBACKS is
    optional and is called only when the object defines it; a callback may
    return an awaitable, which is settled before the operation returns.

    Callback arguments (state arguments are private deep copies):
        on_session_start(event: SessionLifecycleEvent, world_state)
        on_session_end(event: SessionLifecycleEvent, world_state)
        on_dialogue_start(event: DialogueEvent, dialogue)
        on_dialogue_end(event: DialogueEvent, outcome)
        on_turn_complete(event: TurnEvent, dialogue)
        on_tick(event: TickEvent, world_state)
        on_location_exit(event: LocationEvent, world_state)
        on_location_enter(event: LocationEvent, world_state)
    """

    module_id: str


@dataclass(frozen=True)
class SessionLifecycleEvent:
    session_id: str
    learner_id: str
    schema_id: str
    timestamp: float


@dataclass(frozen=True)
class LocationEvent:
    session_id: str
    from_location_id: str
    to_location_id: str
    timestamp: float


@dataclass(frozen=True)
class DialogueEvent:
    session_id: str
    dialogue_id: str
    npc_id: str
    location_id: str
    timestamp: float


@dataclass(frozen=True)
class TurnEvent:
    session_id: str
    dialogue_id: str
    turn_number: int
    speaker: str
    friction_count: int
    timestamp: float


@dataclass(frozen=True)
class TickEvent:
    session_id: str
    tick_number: int
    time_of_day: str
    elapsed_seconds: float
    timestamp: float
    fired_events: tuple[str, ...] = field(default_factory=tuple)


class HookRegistry:
    """One live hook object per module id; registering an id again replaces it."""

    def __init__(self) -> None:
        self._hooks: dict[str, ModuleHooks] = {}

    def register(self, hooks: ModuleHooks) -> None:
        module_id = getattr(hooks, "module_id", None)
        if not module_id:
            raise ValueError("hook_missing_module_id")
        if module_id in self._hooks:
            log.info("hook_replaced module=%s", module_id)
        self._hooks[str(module_id)] = hooks

    def unregister(self, module_id: str) -> bool:
        return self._hooks.pop(module_id, None) is not None

    def get(self, module_id: str) -> ModuleHooks | None:
        return self._hooks.get(module_id)

    def get_all(self) -> list[ModuleHooks]:
        return list(self._hooks.values())

    def has(self, module_id: str) -> bool:
        return module_id in self._hooks

    def clear(self) -> None:
        self._hooks.clear()

    def __len__(self) -> int:
        return len(self._hooks)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._hooks


def dispatch_hooks(registry: HookRegistry | None, callback: HookCallback | str, *args: Any) -> dict[str, Any]:
    """Call ``callback`` on every registered module that implements it.

    Returns the results keyed by module id, with awaitables already settled.
    Modules that raise are logged and left out of the result.
    """
    if registry is None or callback not in HOOK_CALLBACKS:
        return {}
    results: dict[str, Any] = {}
    for hooks in registry.get_all():
        func = getattr(hooks, callback, None)
        if not callable(func):
            continue
        module_id = hooks.module_id
        ok, result = call_isolated(f"{module_id}.{callback}", func, *args)
        if ok:
            results[module_id] = result
    return settle_awaitables(results)
