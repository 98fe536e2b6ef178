from __future__ import annotations

import logging
import time
from typing import Any

from social_sim.models.core import MOOD_VALUES, TIME_ORDER, InvalidEnvironmentError, NPCMood
from social_sim.models.environment import SchemaEnvironment, SchemaLocation
from social_sim.models.world import (
    REPUTATION_MAX,
    REPUTATION_MIN,
    AmbientEvent,
    Interactable,
    Location,
    NPCWorldState,
    TimeSlot,
    TimeSystem,
    WorldState,
)

log = logging.getLogger(__name__)


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, float(value)))


def _validate_environment(environment: SchemaEnvironment) -> None:
    tier = environment.tier_2
    if not tier.locations:
        raise InvalidEnvironmentError("environment_has_no_locations")

    location_ids: set[str] = set()
    for loc in tier.locations:
        if loc.id in location_ids:
            raise InvalidEnvironmentError(f"duplicate_location_id: {loc.id}")
        location_ids.add(loc.id)

    roster_ids: set[str] = set()
    for npc in tier.npc_roster:
        if npc.id in roster_ids:
            raise InvalidEnvironmentError(f"duplicate_npc_id: {npc.id}")
        roster_ids.add(npc.id)

    placed: set[str] = set()
    for loc in tier.locations:
        for target in loc.connections:
            if target not in location_ids:
                raise InvalidEnvironmentError(f"dangling_connection: {loc.id} -> {target}")
        for npc_id in [*loc.npcs.resident, *loc.npcs.transient]:
            if npc_id not in roster_ids:
                raise InvalidEnvironmentError(f"unknown_npc_in_location: {loc.id} lists {npc_id}")
            placed.add(npc_id)

    missing = sorted(roster_ids - placed)
    if missing:
        raise InvalidEnvironmentError(f"npc_not_placed_in_any_location: {', '.join(missing)}")

    if environment.start_location is not None and environment.start_location not in location_ids:
        raise InvalidEnvironmentError(f"unknown_start_location: {environment.start_location}")


def _to_location(loc: SchemaLocation) -> Location:
    return Location(
        id=loc.id,
        name=dict(loc.name),
        description=loc.description,
        type=loc.type,
        connections=list(loc.connections),
        npcs=loc.npcs.model_copy(deep=True),
        interactables=[Interactable(**item.model_dump()) for item in loc.interactables],
        ambient_description=loc.ambient_description,
        unlock_condition=loc.unlock_condition,
    )


def _start_location(environment: SchemaEnvironment) -> str:
    if environment.start_location is not None:
        return environment.start_location
    for loc in environment.tier_2.locations:
        if loc.type == "public" or not loc.unlock_condition:
            return loc.id
    return environment.tier_2.locations[0].id


def _initial_npc_location(npc_id: str, locations: list[SchemaLocation]) -> str:
    for loc in locations:
        if npc_id in loc.npcs.resident:
            return loc.id
    for loc in locations:
        if npc_id in loc.npcs.transient:
            return loc.id
    raise InvalidEnvironmentError(f"npc_not_placed_in_any_location: {npc_id}")


def create_world_state(
    schema_id: str,
    environment: SchemaEnvironment | dict[str, Any],
    session_id: str,
) -> WorldState:
    """Build the initial world from a validated environment description.

    Structural problems (dangling connections, unplaced or unknown NPCs,
    duplicate ids) raise InvalidEnvironmentError; no partial world is returned.
    """
    env = environment if isinstance(environment, SchemaEnvironment) else SchemaEnvironment.model_validate(environment)
    _validate_environment(env)
    tier = env.tier_2

    npc_states = {
        npc.id: NPCWorldState(npc_id=npc.id, current_location=_initial_npc_location(npc.id, tier.locations))
        for npc in tier.npc_roster
    }

    if env.time_system is not None:
        time_system = TimeSystem(
            enabled=env.time_system.enabled,
            day_length_minutes=env.time_system.day_length_minutes,
            current_time_of_day="morning",
            time_affects_npcs=env.time_system.time_affects_npcs,
            time_affects_locations=env.time_system.time_affects_locations,
            schedule=[TimeSlot(**slot.model_dump()) for slot in env.time_system.schedule],
        )
    else:
        time_system = TimeSystem()

    state = WorldState(
        schema_id=schema_id,
        session_id=session_id,
        locations={loc.id: _to_location(loc) for loc in tier.locations},
        time_system=time_system,
        ambient_events=[AmbientEvent(**evt.model_dump()) for evt in tier.ambient_events],
        active_events=[],
        learner_location=_start_location(env),
        npc_states=npc_states,
    )
    log.info(
        "world_created schema=%s session=%s locations=%s npcs=%s start=%s",
        schema_id,
        session_id,
        len(state.locations),
        len(state.npc_states),
        state.learner_location,
    )
    return state


def get_current_time_slot(state: WorldState) -> TimeSlot | None:
    current = state.time_system.current_time_of_day
    for slot in state.time_system.schedule:
        if slot.time_of_day == current:
            return slot
    return None


def is_location_accessible(state: WorldState, location_id: str) -> bool:
    if location_id not in state.locations:
        return False
    if not (state.time_system.enabled and state.time_system.time_affects_locations):
        return True
    slot = get_current_time_slot(state)
    if slot is None:
        return True
    return slot.location_accessibility.get(location_id, True) is not False


def navigate_to(state: WorldState, target_location_id: str) -> WorldState | None:
    current = state.locations.get(state.learner_location)
    if current is None:
        return None
    if target_location_id not in current.connections:
        log.debug("navigate_blocked reason=not_connected from=%s to=%s", current.id, target_location_id)
        return None
    if not is_location_accessible(state, target_location_id):
        log.debug("navigate_blocked reason=inaccessible from=%s to=%s", current.id, target_location_id)
        return None
    updated = state.model_copy(deep=True)
    updated.learner_location = target_location_id
    return updated


def _npc_available_now(state: WorldState, npc: NPCWorldState) -> bool:
    if not npc.available:
        return False
    if not (state.time_system.enabled and state.time_system.time_affects_npcs):
        return True
    slot = get_current_time_slot(state)
    if slot is None:
        return True
    return slot.npc_availability.get(npc.npc_id, True) is not False


def get_npcs_at_location(state: WorldState, location_id: str) -> list[NPCWorldState]:
    location = state.locations.get(location_id)
    if location is None:
        return []
    seen: set[str] = set()
    present: list[NPCWorldState] = []
    for npc_id in [*location.npcs.resident, *location.npcs.transient]:
        if npc_id in seen:
            continue
        seen.add(npc_id)
        npc = state.npc_states.get(npc_id)
        if npc is not None and _npc_available_now(state, npc):
            present.append(npc)
    return present


def advance_time(state: WorldState) -> WorldState:
    if not state.time_system.enabled:
        return state
    index = TIME_ORDER.index(state.time_system.current_time_of_day)
    updated = state.model_copy(deep=True)
    updated.time_system.current_time_of_day = TIME_ORDER[(index + 1) % len(TIME_ORDER)]
    return updated


def set_npc_mood(state: WorldState, npc_id: str, mood: NPCMood) -> WorldState:
    npc = state.npc_states.get(npc_id)
    if npc is None or npc.mood == mood:
        return state
    updated = state.model_copy(deep=True)
    updated.npc_states[npc_id].mood = mood
    return updated


def fire_ambient_event(state: WorldState, event_id: str) -> WorldState:
    event = next((evt for evt in state.ambient_events if evt.id == event_id), None)
    if event is None or event_id in state.active_events:
        return state
    updated = state.model_copy(deep=True)
    for npc_id, reaction in event.npc_reactions.items():
        npc = updated.npc_states.get(npc_id)
        if npc is None:
            continue
        if reaction not in MOOD_VALUES:
            log.debug("ambient_reaction_ignored event=%s npc=%s reaction=%s", event_id, npc_id, reaction)
            continue
        npc.mood = reaction
    if event.duration != "instant":
        updated.active_events.append(event_id)
    return updated


def clear_ambient_event(state: WorldState, event_id: str) -> WorldState:
    if event_id not in state.active_events:
        return state
    updated = state.model_copy(deep=True)
    updated.active_events = [active for active in updated.active_events if active != event_id]
    return updated


def update_reputation(state: WorldState, npc_id: str, delta: float) -> WorldState:
    npc = state.npc_states.get(npc_id)
    if npc is None:
        return state
    updated = state.model_copy(deep=True)
    target = updated.npc_states[npc_id]
    target.reputation_with_learner = _clamp(target.reputation_with_learner + float(delta), REPUTATION_MIN, REPUTATION_MAX)
    target.last_interaction_ts = time.time()
    return updated
