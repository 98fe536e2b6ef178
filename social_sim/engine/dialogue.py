from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable

from social_sim.engine.world import update_reputation
from social_sim.models.core import DialogueEndedError
from social_sim.models.dialogue import (
    DialogueOutcome,
    DialogueSession,
    DialogueTurn,
    FrictionEvent,
    RegisterAnalysis,
)
from social_sim.models.environment import NPCDefinition
from social_sim.models.world import NPCWorldState, WorldState
from social_sim.npc.behavior import reputation_descriptor, resolve_behavior
from social_sim.npc.mood import classify_mood_trigger, compute_mood_shift

log = logging.getLogger(__name__)

NO_FRICTION_BONUS = 0.05
REGISTER_ALIGNED_BONUS = 0.05
GOAL_ACHIEVED_BONUS = 0.10

FRICTION_WEIGHTS: dict[str, float] = {
    "cultural": 0.15,
    "register": 0.10,
    "pragmatic": 0.08,
    "vocabulary": 0.05,
    "phonetic": 0.03,
}


def _ensure_open(session: DialogueSession) -> None:
    if session.phase == "ended":
        raise DialogueEndedError(f"dialogue_ended dialogue={session.dialogue_id}")


def turn_reputation_delta(
    friction_events: Iterable[FrictionEvent],
    register_analysis: RegisterAnalysis | None = None,
) -> float:
    frictions = list(friction_events)
    delta = 0.0
    if not frictions:
        delta += NO_FRICTION_BONUS
    if register_analysis is not None and register_analysis.aligned:
        delta += REGISTER_ALIGNED_BONUS
    for friction in frictions:
        delta -= FRICTION_WEIGHTS.get(friction.type, 0.0) * friction.severity
    return delta


def start_dialogue(
    npc_def: NPCDefinition,
    npc_state: NPCWorldState,
    location_id: str,
    goal: str,
    injection_targets: Iterable[str] | None = None,
) -> DialogueSession:
    """Open a conversation with one NPC.

    The behavior vector is resolved once here and stays fixed for the whole
    dialogue, even when the NPC's mood moves during it.
    """
    behavior = resolve_behavior(
        npc_def.big_five,
        npc_state.mood,
        npc_state.reputation_with_learner,
        npc_def.cultural_overlay,
        npc_def.patience_level,
    )
    targets = list(injection_targets or [])
    if not targets:
        targets = list(npc_state.injection_directives)
    session = DialogueSession(
        dialogue_id=str(uuid.uuid4()),
        npc_id=npc_def.id,
        location_id=location_id,
        phase="opening",
        goal=goal,
        injection_targets=targets,
        npc_behavior=behavior,
        npc_personality=npc_def.big_five.model_copy(deep=True),
        npc_mood=npc_state.mood,
        started_at=time.time(),
    )
    log.info(
        "dialogue_started dialogue=%s npc=%s location=%s targets=%s",
        session.dialogue_id,
        npc_def.id,
        location_id,
        len(targets),
    )
    return session


def record_learner_turn(
    session: DialogueSession,
    content: str,
    friction_events: Iterable[FrictionEvent] = (),
    register_analysis: RegisterAnalysis | None = None,
) -> DialogueSession:
    _ensure_open(session)
    frictions = list(friction_events)
    delta = turn_reputation_delta(frictions, register_analysis)
    trigger = classify_mood_trigger(frictions, register_analysis)

    updated = session.model_copy(deep=True)
    updated.turns.append(
        DialogueTurn(
            turn_number=len(session.turns) + 1,
            speaker="learner",
            content=content,
            timestamp=time.time(),
            friction_events=frictions,
            register_analysis=register_analysis,
            reputation_delta=delta,
            mood_trigger=trigger,
        )
    )
    updated.reputation_delta += delta
    updated.friction_events.extend(frictions)
    updated.npc_mood = compute_mood_shift(session.npc_mood, trigger, session.npc_personality)

    lowered = content.lower()
    for target in updated.injection_targets:
        if target in updated.injection_targets_hit:
            continue
        if target.lower() in lowered:
            updated.injection_targets_hit.append(target)

    if updated.phase == "opening":
        updated.phase = "active"
    log.debug(
        "learner_turn dialogue=%s turn=%s delta=%.3f trigger=%s mood=%s",
        updated.dialogue_id,
        len(updated.turns),
        delta,
        trigger,
        updated.npc_mood,
    )
    return updated


def record_npc_turn(session: DialogueSession, content: str) -> DialogueSession:
    _ensure_open(session)
    updated = session.model_copy(deep=True)
    updated.turns.append(
        DialogueTurn(
            turn_number=len(session.turns) + 1,
            speaker="npc",
            content=content,
            timestamp=time.time(),
        )
    )
    return updated


def close_dialogue(session: DialogueSession) -> DialogueSession:
    _ensure_open(session)
    if session.phase == "closing":
        return session
    updated = session.model_copy(deep=True)
    updated.phase = "closing"
    return updated


def _register_accuracy(session: DialogueSession) -> float:
    scores = [
        turn.register_analysis.score
        for turn in session.turns
        if turn.speaker == "learner" and turn.register_analysis is not None
    ]
    if not scores:
        return 1.0
    return sum(scores) / len(scores)


def end_dialogue(session: DialogueSession, goal_achieved: bool) -> tuple[DialogueSession, DialogueOutcome]:
    """Close the dialogue for good and derive its outcome.

    Returns the ended session alongside the outcome. The given session is left
    untouched; calling this on an already ended session raises DialogueEndedError.
    """
    _ensure_open(session)
    reputation_delta = session.reputation_delta
    if goal_achieved:
        reputation_delta += GOAL_ACHIEVED_BONUS

    outcome = DialogueOutcome(
        reputation_delta=reputation_delta,
        friction_events=tuple(session.friction_events),
        goal_achieved=goal_achieved,
        injection_targets_hit=tuple(session.injection_targets_hit),
        total_turns=len(session.turns),
        final_mood=session.npc_mood,
        register_accuracy=_register_accuracy(session),
    )
    ended = session.model_copy(deep=True)
    ended.phase = "ended"
    ended.reputation_delta = reputation_delta
    log.info(
        "dialogue_ended dialogue=%s npc=%s turns=%s delta=%.3f goal=%s",
        session.dialogue_id,
        session.npc_id,
        outcome.total_turns,
        outcome.reputation_delta,
        goal_achieved,
    )
    return ended, outcome


def apply_dialogue_outcome(world_state: WorldState, npc_id: str, outcome: DialogueOutcome) -> WorldState:
    return update_reputation(world_state, npc_id, outcome.reputation_delta)


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


def build_npc_prompt_context(
    npc_def: NPCDefinition,
    npc_state: NPCWorldState,
    session: DialogueSession,
    location_description: str,
) -> dict[str, str]:
    behavior = session.npc_behavior
    personality = "\n".join(
        [
            npc_def.personality,
            "",
            "BEHAVIORAL MODIFIERS (from Big Five x mood x reputation):",
            f"  Response length tendency: {_percent(behavior.response_length)}",
            f"  Patience: {_percent(behavior.patience)}",
            f"  Helpfulness: {_percent(behavior.helpfulness)}",
            f"  Register strictness: {_percent(behavior.register_strictness)}",
            f"  Topic initiative: {_percent(behavior.topic_initiative)}",
            f"  Expressiveness: {_percent(behavior.expressiveness)}",
            f"  Silence tolerance: {behavior.silence_tolerance_seconds}s",
        ]
    )
    if npc_state.injection_directives:
        forward_injection = "\n".join(npc_state.injection_directives)
    else:
        forward_injection = "No active injection directives."
    return {
        "npc_name": npc_def.name,
        "npc_role": npc_def.role,
        "npc_register": npc_def.npc_register,
        "npc_personality": personality,
        "reputation_score": f"{npc_state.reputation_with_learner:.2f}",
        "reputation_behavior": reputation_descriptor(npc_state.reputation_with_learner),
        "npc_vocabulary_focus": ", ".join(npc_def.vocabulary_focus),
        "current_location": location_description,
        "forward_injection": forward_injection,
        "current_mood": npc_state.mood,
        "dialogue_goal": session.goal,
    }
