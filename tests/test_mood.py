from __future__ import annotations

import pytest

from social_sim.models.dialogue import FrictionEvent, RegisterAnalysis
from social_sim.models.environment import BigFiveProfile
from social_sim.npc import classify_mood_trigger, compute_mood_shift, should_decay_mood


def _friction(kind: str, severity: float = 0.5) -> FrictionEvent:
    return FrictionEvent(id=f"f-{kind}", type=kind, severity=severity)


def test_agreeable_npc_is_pleased_by_success():
    assert compute_mood_shift("neutral", "successful-communication", BigFiveProfile(agreeableness=0.8)) == "pleased"
    assert compute_mood_shift("cold", "successful-communication", BigFiveProfile(agreeableness=0.4)) == "neutral"


def test_neuroticism_selects_harsher_register_reaction():
    calm = BigFiveProfile(neuroticism=0.2)
    anxious = BigFiveProfile(neuroticism=0.9)
    assert compute_mood_shift("neutral", "register-violation", calm) == "cold"
    assert compute_mood_shift("neutral", "register-violation", anxious) == "irritated"
    assert compute_mood_shift("neutral", "ambient-event-negative", calm) == "busy"
    assert compute_mood_shift("neutral", "ambient-event-negative", anxious) == "anxious"


@pytest.mark.parametrize(
    ("event", "personality", "expected"),
    [
        ("communication-failure", BigFiveProfile(agreeableness=0.6), "neutral"),
        ("communication-failure", BigFiveProfile(agreeableness=0.3), "impatient"),
        ("learner-hesitation", BigFiveProfile(agreeableness=0.8), "neutral"),
        ("learner-hesitation", BigFiveProfile(agreeableness=0.5), "impatient"),
        ("repair-attempt", BigFiveProfile(openness=0.9), "warm"),
        ("repair-attempt", BigFiveProfile(openness=0.2), "neutral"),
        ("ambient-event-positive", BigFiveProfile(), "amused"),
        ("cultural-insensitivity", BigFiveProfile(), "cold"),
    ],
)
def test_transition_table(event, personality, expected):
    assert compute_mood_shift("neutral", event, personality) == expected


def test_unknown_trigger_keeps_current_mood():
    assert compute_mood_shift("busy", "weather-change", BigFiveProfile()) == "busy"


def test_trigger_priority_prefers_cultural_then_register():
    frictions = [_friction("vocabulary"), _friction("register"), _friction("cultural")]
    assert classify_mood_trigger(frictions) == "cultural-insensitivity"
    assert classify_mood_trigger(frictions[:2]) == "register-violation"
    assert classify_mood_trigger([_friction("pragmatic")]) == "communication-failure"


def test_misaligned_register_without_friction_is_a_violation():
    misaligned = RegisterAnalysis(expected_register="formal", detected_register="informal", aligned=False, score=0.2)
    aligned = RegisterAnalysis(expected_register="formal", detected_register="formal", aligned=True, score=0.9)
    assert classify_mood_trigger([], misaligned) == "register-violation"
    assert classify_mood_trigger([], aligned) == "successful-communication"
    assert classify_mood_trigger([_friction("phonetic")]) == "successful-communication"


def test_decay_only_for_non_neutral_moods_after_threshold():
    assert not should_decay_mood("neutral", 50)
    assert not should_decay_mood("irritated", 9)
    assert should_decay_mood("irritated", 10)
    assert should_decay_mood("pleased", 2, decay_turns=2)
