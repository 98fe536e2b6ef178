from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from pydantic import BaseModel

from social_sim.config import Settings
from social_sim.engine.dialogue import (
    apply_dialogue_outcome,
    build_npc_prompt_context,
    end_dialogue,
    record_learner_turn,
    record_npc_turn,
    start_dialogue,
)
from social_sim.engine.hooks import (
    DialogueEvent,
    HookRegistry,
    LocationEvent,
    SessionLifecycleEvent,
    TickEvent,
    TurnEvent,
    dispatch_hooks,
)
from social_sim.engine.random_source import RandomSource, SeededRandomSource
from social_sim.engine.world import (
    advance_time,
    clear_ambient_event,
    create_world_state,
    fire_ambient_event,
    get_current_time_slot,
    get_npcs_at_location,
    is_location_accessible,
    navigate_to,
    set_npc_mood,
)
from social_sim.events.bus import EventEmitter
from social_sim.events.fanout import call_isolated
from social_sim.models.dialogue import (
    BehaviorModifiers,
    DialogueOutcome,
    DialogueSession,
    FrictionEvent,
    RegisterAnalysis,
)
from social_sim.models.environment import NPCDefinition, SchemaEnvironment
from social_sim.models.events import (
    EventEnvelope,
    EventType,
    FrictionDetectedPayload,
    ModuleId,
    NpcMoodChangedPayload,
    ReputationDeltaPayload,
    SessionEndedPayload,
    SessionStartedPayload,
    WorldStateChangedPayload,
    create_event,
)
from social_sim.models.world import NPCWorldState, WorldState
from social_sim.npc.behavior import reputation_descriptor, resolve_behavior
from social_sim.npc.mood import should_decay_mood

log = logging.getLogger(__name__)

SessionStatus = Literal["active", "paused", "ended"]

FRICTION_TYPE_MAP: dict[str, str] = {
    "vocabulary": "lexical",
    "register": "register",
    "pragmatic": "pragmatic",
    "cultural": "cultural",
    "phonetic": "phonemic",
}


@dataclass(frozen=True)
class SimulationSession:
    """Immutable snapshot of one learner session.

    Every operation returns a new snapshot and leaves its input valid for
    queries. ``random_source`` is the one stateful member: all snapshots of a
    session share it, so ticking an older snapshot consumes draws that a newer
    one would otherwise see. Branch with ``dataclasses.replace`` and a fresh
    source when replaying from an earlier snapshot must be reproducible.
    """

    session_id: str
    learner_id: str
    schema_id: str
    world_state: WorldState
    npc_definitions: Mapping[str, NPCDefinition]
    hook_registry: HookRegistry
    random_source: RandomSource
    active_dialogue: DialogueSession | None = None
    global_turn_count: int = 0
    tick_count: int = 0
    npc_mood_turn_counters: Mapping[str, int] = field(default_factory=dict)
    event_log: tuple[EventEnvelope, ...] = ()
    mood_decay_turns: int = 10
    started_at: float = 0.0
    status: SessionStatus = "active"


@dataclass(frozen=True)
class FinishedDialogue:
    session: SimulationSession
    outcome: DialogueOutcome


@dataclass(frozen=True)
class VisibleNPC:
    npc_state: NPCWorldState
    definition: NPCDefinition
    behavior: BehaviorModifiers
    reputation_descriptor: str


@dataclass(frozen=True)
class NavigableLocation:
    id: str
    name: dict[str, str]
    accessible: bool
    description: str


class _Emissions:
    """Collects the envelopes one operation emits and forwards them to the emitter."""

    def __init__(self, session: SimulationSession, emitter: EventEmitter | None) -> None:
        self.session = session
        self.emitter = emitter
        self.envelopes: list[EventEnvelope] = []

    def emit(
        self,
        event_type: EventType,
        source: ModuleId,
        payload: BaseModel,
        *,
        correlation_id: str | None = None,
    ) -> EventEnvelope:
        envelope = create_event(
            event_type,
            source,
            self.session.learner_id,
            self.session.session_id,
            payload,
            correlation_id=correlation_id,
        )
        self.envelopes.append(envelope)
        if self.emitter is not None:
            call_isolated(f"emitter.{event_type}", self.emitter.emit, envelope)
        return envelope

    def commit(self, session: SimulationSession) -> SimulationSession:
        if not self.envelopes:
            return session
        return replace(session, event_log=session.event_log + tuple(self.envelopes))


def _friction_severity_band(severity: float) -> str:
    if severity >= 0.75:
        return "critical"
    if severity >= 0.5:
        return "high"
    if severity >= 0.25:
        return "medium"
    return "low"


def _is_ended(session: SimulationSession, operation: str) -> bool:
    if session.status == "ended":
        log.debug("operation_on_ended_session op=%s session=%s", operation, session.session_id)
        return True
    return False


def init_session(
    schema_id: str,
    learner_id: str,
    environment: SchemaEnvironment | dict[str, Any],
    emitter: EventEmitter | None = None,
    *,
    hook_registry: HookRegistry | None = None,
    random_source: RandomSource | None = None,
    settings: Settings | None = None,
    session_id: str | None = None,
) -> SimulationSession:
    """Create a session from an environment description.

    Raises InvalidEnvironmentError (or a pydantic ValidationError for shape
    problems) before any event is emitted or hook called.
    """
    settings = settings or Settings()
    env = environment if isinstance(environment, SchemaEnvironment) else SchemaEnvironment.model_validate(environment)
    session_id = session_id or f"sim-{int(time.time() * 1000)}-{learner_id}"
    world_state = create_world_state(schema_id, env, session_id)
    npc_definitions = {npc.id: npc.model_copy(deep=True) for npc in env.tier_2.npc_roster}

    session = SimulationSession(
        session_id=session_id,
        learner_id=learner_id,
        schema_id=schema_id,
        world_state=world_state,
        npc_definitions=npc_definitions,
        hook_registry=hook_registry if hook_registry is not None else HookRegistry(),
        random_source=random_source if random_source is not None else SeededRandomSource(settings.rng_seed),
        npc_mood_turn_counters={npc_id: 0 for npc_id in npc_definitions},
        mood_decay_turns=settings.mood_decay_turns,
        started_at=time.time(),
    )
    log.info(
        "session_started session=%s learner=%s schema=%s npcs=%s",
        session_id,
        learner_id,
        schema_id,
        len(npc_definitions),
    )

    emissions = _Emissions(session, emitter)
    emissions.emit(
        EventType.SESSION_STARTED,
        ModuleId.SESSION_ORCHESTRATOR,
        SessionStartedPayload(persona_schema_id=schema_id, npc_ids=list(npc_definitions)),
    )
    session = emissions.commit(session)
    dispatch_hooks(
        session.hook_registry,
        "on_session_start",
        SessionLifecycleEvent(session_id, learner_id, schema_id, session.started_at),
        world_state.model_copy(deep=True),
    )
    return session


def navigate(
    session: SimulationSession,
    target_location_id: str,
    emitter: EventEmitter | None = None,
) -> SimulationSession | None:
    if _is_ended(session, "navigate"):
        return None
    if session.active_dialogue is not None:
        log.debug("navigate_blocked reason=dialogue_active session=%s", session.session_id)
        return None
    world_state = navigate_to(session.world_state, target_location_id)
    if world_state is None:
        return None

    from_location = session.world_state.learner_location
    updated = replace(session, world_state=world_state)
    emissions = _Emissions(updated, emitter)
    emissions.emit(
        EventType.WORLD_STATE_CHANGED,
        ModuleId.WORLD_ENGINE,
        WorldStateChangedPayload(change="navigation", details={"from": from_location, "to": target_location_id}),
    )
    updated = emissions.commit(updated)

    location_event = LocationEvent(session.session_id, from_location, target_location_id, time.time())
    dispatch_hooks(session.hook_registry, "on_location_exit", location_event, session.world_state.model_copy(deep=True))
    dispatch_hooks(session.hook_registry, "on_location_enter", location_event, world_state.model_copy(deep=True))
    return updated


def _sync_dialogue_mood(dialogue: DialogueSession | None, npc_id: str, mood: str) -> DialogueSession | None:
    if dialogue is None or dialogue.npc_id != npc_id or dialogue.npc_mood == mood:
        return dialogue
    synced = dialogue.model_copy(deep=True)
    synced.npc_mood = mood
    return synced


def tick(session: SimulationSession, emitter: EventEmitter | None = None) -> SimulationSession:
    """Advance time one slot, decay stale moods and roll ambient events.

    Each ambient event that is not already active gets exactly one draw from
    the session's random source per tick while a schedule slot exists; it fires
    when the draw is below that slot's probability for it.
    """
    if _is_ended(session, "tick"):
        return session
    world_state = advance_time(session.world_state)
    counters = dict(session.npc_mood_turn_counters)
    dialogue = session.active_dialogue
    emissions = _Emissions(session, emitter)

    for npc_id, npc_state in session.world_state.npc_states.items():
        counters[npc_id] = counters.get(npc_id, 0) + 1
        if should_decay_mood(npc_state.mood, counters[npc_id], session.mood_decay_turns):
            world_state = set_npc_mood(world_state, npc_id, "neutral")
            counters[npc_id] = 0
            dialogue = _sync_dialogue_mood(dialogue, npc_id, "neutral")
            emissions.emit(
                EventType.NPC_MOOD_CHANGED,
                ModuleId.WORLD_ENGINE,
                NpcMoodChangedPayload(npc_id=npc_id, previous_mood=npc_state.mood, new_mood="neutral", reason="decay"),
            )

    fired: list[str] = []
    slot = get_current_time_slot(world_state)
    if slot is not None:
        for event in session.world_state.ambient_events:
            if event.id in world_state.active_events:
                continue
            draw = session.random_source.next()
            probability = slot.ambient_event_probability.get(event.id, 0.0)
            if probability <= 0 or draw >= probability:
                continue
            before = world_state
            world_state = fire_ambient_event(world_state, event.id)
            fired.append(event.id)
            emissions.emit(
                EventType.WORLD_STATE_CHANGED,
                ModuleId.WORLD_ENGINE,
                WorldStateChangedPayload(
                    change="ambient_event_fired",
                    details={"event_id": event.id, "event_name": event.name},
                ),
            )
            for npc_id, npc_state in world_state.npc_states.items():
                previous_mood = before.npc_states[npc_id].mood
                if npc_state.mood == previous_mood:
                    continue
                counters[npc_id] = 0
                dialogue = _sync_dialogue_mood(dialogue, npc_id, npc_state.mood)
                emissions.emit(
                    EventType.NPC_MOOD_CHANGED,
                    ModuleId.WORLD_ENGINE,
                    NpcMoodChangedPayload(
                        npc_id=npc_id,
                        previous_mood=previous_mood,
                        new_mood=npc_state.mood,
                        reason=f"ambient:{event.id}",
                    ),
                )

    updated = replace(
        session,
        world_state=world_state,
        active_dialogue=dialogue,
        npc_mood_turn_counters=counters,
        tick_count=session.tick_count + 1,
    )
    updated = emissions.commit(updated)
    log.debug(
        "tick session=%s tick=%s time=%s fired=%s",
        session.session_id,
        updated.tick_count,
        world_state.time_system.current_time_of_day,
        fired,
    )

    now = time.time()
    dispatch_hooks(
        session.hook_registry,
        "on_tick",
        TickEvent(
            session_id=session.session_id,
            tick_number=updated.tick_count,
            time_of_day=world_state.time_system.current_time_of_day,
            elapsed_seconds=now - session.started_at,
            timestamp=now,
            fired_events=tuple(fired),
        ),
        world_state.model_copy(deep=True),
    )
    return updated


def clear_active_event(
    session: SimulationSession,
    event_id: str,
    emitter: EventEmitter | None = None,
) -> SimulationSession | None:
    if _is_ended(session, "clear_active_event"):
        return None
    if event_id not in session.world_state.active_events:
        return None
    updated = replace(session, world_state=clear_ambient_event(session.world_state, event_id))
    emissions = _Emissions(updated, emitter)
    emissions.emit(
        EventType.WORLD_STATE_CHANGED,
        ModuleId.WORLD_ENGINE,
        WorldStateChangedPayload(change="ambient_event_cleared", details={"event_id": event_id}),
    )
    return emissions.commit(updated)


def start_npc_dialogue(
    session: SimulationSession,
    npc_id: str,
    goal: str,
    injection_targets: Iterable[str] | None = None,
    emitter: EventEmitter | None = None,
) -> SimulationSession | None:
    if _is_ended(session, "start_npc_dialogue"):
        return None
    if session.active_dialogue is not None:
        log.debug("dialogue_blocked reason=dialogue_active npc=%s", npc_id)
        return None
    npc_def = session.npc_definitions.get(npc_id)
    npc_state = session.world_state.npc_states.get(npc_id)
    if npc_def is None or npc_state is None:
        log.debug("dialogue_blocked reason=unknown_npc npc=%s", npc_id)
        return None
    present = get_npcs_at_location(session.world_state, session.world_state.learner_location)
    if npc_id not in {npc.npc_id for npc in present}:
        log.debug("dialogue_blocked reason=npc_not_present npc=%s", npc_id)
        return None

    location_id = session.world_state.learner_location
    dialogue = start_dialogue(npc_def, npc_state, location_id, goal, injection_targets)
    updated = replace(session, active_dialogue=dialogue)
    emissions = _Emissions(updated, emitter)
    emissions.emit(
        EventType.WORLD_STATE_CHANGED,
        ModuleId.DIALOGUE_ENGINE,
        WorldStateChangedPayload(
            change="dialogue_started",
            details={"npc_id": npc_id, "location_id": location_id, "goal": goal},
        ),
        correlation_id=dialogue.dialogue_id,
    )
    updated = emissions.commit(updated)
    dispatch_hooks(
        session.hook_registry,
        "on_dialogue_start",
        DialogueEvent(session.session_id, dialogue.dialogue_id, npc_id, location_id, time.time()),
        dialogue.model_copy(deep=True),
    )
    return updated


def _turn_event(session: SimulationSession, dialogue: DialogueSession) -> TurnEvent:
    last = dialogue.turns[-1]
    return TurnEvent(
        session_id=session.session_id,
        dialogue_id=dialogue.dialogue_id,
        turn_number=last.turn_number,
        speaker=last.speaker,
        friction_count=len(last.friction_events),
        timestamp=last.timestamp,
    )


def process_learner_turn(
    session: SimulationSession,
    content: str,
    friction_events: Iterable[FrictionEvent] = (),
    register_analysis: RegisterAnalysis | None = None,
    emitter: EventEmitter | None = None,
) -> SimulationSession | None:
    if _is_ended(session, "process_learner_turn"):
        return None
    dialogue = session.active_dialogue
    if dialogue is None:
        return None
    frictions = list(friction_events)
    updated_dialogue = record_learner_turn(dialogue, content, frictions, register_analysis)
    npc_id = dialogue.npc_id

    world_state = session.world_state
    counters = dict(session.npc_mood_turn_counters)
    previous_mood = world_state.npc_states[npc_id].mood
    new_mood = updated_dialogue.npc_mood
    if new_mood != previous_mood:
        world_state = set_npc_mood(world_state, npc_id, new_mood)
    # Every learner turn is a mood trigger, so it restarts the decay countdown.
    counters[npc_id] = 0

    updated = replace(
        session,
        world_state=world_state,
        active_dialogue=updated_dialogue,
        npc_mood_turn_counters=counters,
        global_turn_count=session.global_turn_count + 1,
    )
    emissions = _Emissions(updated, emitter)
    for friction in frictions:
        emissions.emit(
            EventType.FRICTION_DETECTED,
            ModuleId.DIALOGUE_ENGINE,
            FrictionDetectedPayload(
                friction_type=FRICTION_TYPE_MAP.get(friction.type, "lexical"),
                learner_utterance=content,
                detected_pattern=friction.description,
                severity=_friction_severity_band(friction.severity),
                npc_id=npc_id,
            ),
            correlation_id=dialogue.dialogue_id,
        )
    if new_mood != previous_mood:
        emissions.emit(
            EventType.NPC_MOOD_CHANGED,
            ModuleId.NPC_AGENT,
            NpcMoodChangedPayload(
                npc_id=npc_id,
                previous_mood=previous_mood,
                new_mood=new_mood,
                reason=updated_dialogue.turns[-1].mood_trigger or "dialogue",
            ),
            correlation_id=dialogue.dialogue_id,
        )
    updated = emissions.commit(updated)
    dispatch_hooks(
        session.hook_registry,
        "on_turn_complete",
        _turn_event(session, updated_dialogue),
        updated_dialogue.model_copy(deep=True),
    )
    return updated


def process_npc_turn(
    session: SimulationSession,
    content: str,
    emitter: EventEmitter | None = None,
) -> SimulationSession | None:
    if _is_ended(session, "process_npc_turn"):
        return None
    if session.active_dialogue is None:
        return None
    updated_dialogue = record_npc_turn(session.active_dialogue, content)
    updated = replace(
        session,
        active_dialogue=updated_dialogue,
        global_turn_count=session.global_turn_count + 1,
    )
    dispatch_hooks(
        session.hook_registry,
        "on_turn_complete",
        _turn_event(session, updated_dialogue),
        updated_dialogue.model_copy(deep=True),
    )
    return updated


def finish_dialogue(
    session: SimulationSession,
    goal_achieved: bool,
    emitter: EventEmitter | None = None,
) -> FinishedDialogue | None:
    """End the active dialogue and write its reputation delta to the world.

    The new session (dialogue cleared, reputation applied) is built before any
    event is emitted or hook called, so observers only see the final state.
    """
    if _is_ended(session, "finish_dialogue"):
        return None
    dialogue = session.active_dialogue
    if dialogue is None:
        return None
    npc_id = dialogue.npc_id
    _, outcome = end_dialogue(dialogue, goal_achieved)
    previous_score = session.world_state.npc_states[npc_id].reputation_with_learner
    world_state = apply_dialogue_outcome(session.world_state, npc_id, outcome)
    new_score = world_state.npc_states[npc_id].reputation_with_learner

    updated = replace(session, world_state=world_state, active_dialogue=None)
    emissions = _Emissions(updated, emitter)
    emissions.emit(
        EventType.REPUTATION_DELTA,
        ModuleId.WORLD_ENGINE,
        ReputationDeltaPayload(
            npc_id=npc_id,
            previous_score=previous_score,
            new_score=new_score,
            reason="dialogue_completed_successfully" if goal_achieved else "dialogue_ended",
        ),
        correlation_id=dialogue.dialogue_id,
    )
    updated = emissions.commit(updated)
    log.info(
        "dialogue_finished session=%s npc=%s reputation=%.3f->%.3f",
        session.session_id,
        npc_id,
        previous_score,
        new_score,
    )
    dispatch_hooks(
        session.hook_registry,
        "on_dialogue_end",
        DialogueEvent(session.session_id, dialogue.dialogue_id, npc_id, dialogue.location_id, time.time()),
        outcome,
    )
    return FinishedDialogue(session=updated, outcome=outcome)


def end_session(session: SimulationSession, emitter: EventEmitter | None = None) -> SimulationSession:
    if _is_ended(session, "end_session"):
        return session
    friction_count = sum(1 for envelope in session.event_log if envelope.type == EventType.FRICTION_DETECTED)
    ended = replace(session, status="ended")
    emissions = _Emissions(ended, emitter)
    emissions.emit(
        EventType.SESSION_ENDED,
        ModuleId.SESSION_ORCHESTRATOR,
        SessionEndedPayload(
            duration_ms=int((time.time() - session.started_at) * 1000),
            turn_count=session.global_turn_count,
            friction_count=friction_count,
        ),
    )
    ended = emissions.commit(ended)
    log.info(
        "session_ended session=%s turns=%s frictions=%s",
        session.session_id,
        session.global_turn_count,
        friction_count,
    )
    dispatch_hooks(
        session.hook_registry,
        "on_session_end",
        SessionLifecycleEvent(session.session_id, session.learner_id, session.schema_id, time.time()),
        session.world_state.model_copy(deep=True),
    )
    return ended


def _definition_for(session: SimulationSession, npc_id: str) -> NPCDefinition:
    definition = session.npc_definitions.get(npc_id)
    if definition is not None:
        return definition
    return NPCDefinition(id=npc_id, name=npc_id)


def get_visible_npcs(session: SimulationSession) -> list[VisibleNPC]:
    visible: list[VisibleNPC] = []
    for npc_state in get_npcs_at_location(session.world_state, session.world_state.learner_location):
        definition = _definition_for(session, npc_state.npc_id)
        visible.append(
            VisibleNPC(
                npc_state=npc_state,
                definition=definition,
                behavior=resolve_behavior(
                    definition.big_five,
                    npc_state.mood,
                    npc_state.reputation_with_learner,
                    definition.cultural_overlay,
                    definition.patience_level,
                ),
                reputation_descriptor=reputation_descriptor(npc_state.reputation_with_learner),
            )
        )
    return visible


def get_navigable_locations(session: SimulationSession) -> list[NavigableLocation]:
    world = session.world_state
    current = world.locations.get(world.learner_location)
    if current is None:
        return []
    navigable: list[NavigableLocation] = []
    for connection in current.connections:
        location = world.locations.get(connection)
        navigable.append(
            NavigableLocation(
                id=connection,
                name=dict(location.name) if location is not None else {"en": connection},
                accessible=is_location_accessible(world, connection),
                description=location.description if location is not None else "",
            )
        )
    return navigable


def get_dialogue_prompt_context(session: SimulationSession) -> dict[str, str] | None:
    dialogue = session.active_dialogue
    if dialogue is None:
        return None
    npc_def = session.npc_definitions.get(dialogue.npc_id)
    npc_state = session.world_state.npc_states.get(dialogue.npc_id)
    if npc_def is None or npc_state is None:
        return None
    location = session.world_state.locations.get(dialogue.location_id)
    description = location.ambient_description if location is not None else ""
    return build_npc_prompt_context(npc_def, npc_state, dialogue, description)


def world_snapshot(session: SimulationSession) -> dict[str, Any]:
    """JSON-ready view of what a renderer needs for the current scene."""
    world = session.world_state
    location = world.locations.get(world.learner_location)
    dialogue = session.active_dialogue
    return {
        "session_id": session.session_id,
        "status": session.status,
        "time_of_day": world.time_system.current_time_of_day,
        "location": {
            "id": world.learner_location,
            "name": dict(location.name) if location is not None else {},
            "description": location.description if location is not None else "",
            "ambient_description": location.ambient_description if location is not None else "",
        },
        "visible_npcs": [
            {
                "npc_id": npc.npc_state.npc_id,
                "name": npc.definition.name,
                "role": npc.definition.role,
                "mood": npc.npc_state.mood,
                "reputation": npc.npc_state.reputation_with_learner,
                "reputation_descriptor": npc.reputation_descriptor,
                "behavior": npc.behavior.model_dump(),
            }
            for npc in get_visible_npcs(session)
        ],
        "navigable_locations": [
            {"id": loc.id, "name": loc.name, "accessible": loc.accessible, "description": loc.description}
            for loc in get_navigable_locations(session)
        ],
        "active_events": list(world.active_events),
        "active_dialogue": None
        if dialogue is None
        else {
            "dialogue_id": dialogue.dialogue_id,
            "npc_id": dialogue.npc_id,
            "phase": dialogue.phase,
            "goal": dialogue.goal,
            "turns": len(dialogue.turns),
            "npc_mood": dialogue.npc_mood,
        },
    }
