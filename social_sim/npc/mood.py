from __future__ import annotations

from collections.abc import Iterable

from social_sim.models.core import MOOD_VALUES, MoodTriggerEvent, NPCMood
from social_sim.models.dialogue import FrictionEvent, RegisterAnalysis
from social_sim.models.environment import BigFiveProfile

DEFAULT_MOOD_DECAY_TURNS = 10


def _sensitivity(personality: BigFiveProfile) -> float:
    neuroticism = max(0.0, min(1.0, float(personality.neuroticism)))
    return 0.5 + neuroticism * 0.5


def compute_mood_shift(
    current: NPCMood,
    event: MoodTriggerEvent | str,
    personality: BigFiveProfile,
) -> NPCMood:
    """Deterministic mood transition; neuroticism selects the harsher negative mood."""
    sensitivity = _sensitivity(personality)
    agreeableness = personality.agreeableness
    if event == "successful-communication":
        return "pleased" if agreeableness > 0.6 else "neutral"
    if event == "register-violation":
        return "irritated" if sensitivity > 0.7 else "cold"
    if event == "communication-failure":
        return "neutral" if agreeableness > 0.5 else "impatient"
    if event == "cultural-insensitivity":
        return "cold" if sensitivity > 0.5 else "irritated"
    if event == "learner-hesitation":
        return "neutral" if agreeableness > 0.7 else "impatient"
    if event == "repair-attempt":
        return "warm" if personality.openness > 0.5 else "neutral"
    if event == "ambient-event-negative":
        return "anxious" if sensitivity > 0.6 else "busy"
    if event == "ambient-event-positive":
        return "amused"
    return current


def classify_mood_trigger(
    friction_events: Iterable[FrictionEvent],
    register_analysis: RegisterAnalysis | None = None,
) -> MoodTriggerEvent:
    kinds = {friction.type for friction in friction_events}
    if "cultural" in kinds:
        return "cultural-insensitivity"
    if "register" in kinds:
        return "register-violation"
    if "vocabulary" in kinds or "pragmatic" in kinds:
        return "communication-failure"
    if register_analysis is not None and not register_analysis.aligned:
        return "register-violation"
    return "successful-communication"


def should_decay_mood(
    mood: NPCMood | str,
    turns_since_change: int,
    decay_turns: int = DEFAULT_MOOD_DECAY_TURNS,
) -> bool:
    if mood == "neutral" or mood not in MOOD_VALUES:
        return False
    return turns_since_change >= max(1, decay_turns)
