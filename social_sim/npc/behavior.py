from __future__ import annotations

from social_sim.models.core import NPCMood
from social_sim.models.dialogue import BehaviorModifiers
from social_sim.models.environment import BigFiveProfile, CulturalOverlay

MOOD_VALENCE: dict[str, float] = {
    "neutral": 0.0,
    "pleased": 0.3,
    "warm": 0.4,
    "amused": 0.2,
    "busy": -0.1,
    "anxious": -0.2,
    "impatient": -0.3,
    "irritated": -0.4,
    "cold": -0.5,
    "panicking": -0.6,
}

# (lower bound, band, behavior adjustment), checked top to bottom.
REPUTATION_BANDS: tuple[tuple[float, str, float], ...] = (
    (0.5, "warm", 0.10),
    (0.0, "friendly", 0.05),
    (-0.5, "neutral", -0.05),
    (float("-inf"), "cold", -0.15),
)

REPUTATION_DESCRIPTORS: dict[str, str] = {
    "warm": (
        "Warm and trusting. Uses first name after greeting. Offers unsolicited help, tips, "
        "and insider information. More forgiving of minor errors."
    ),
    "friendly": (
        "Friendly and professional. Standard service interactions. Willing to help when asked "
        "but does not go out of their way."
    ),
    "neutral": (
        "Neutral to cool. Standard service but no warmth. Shorter responses. "
        "Less patient with communication difficulties."
    ),
    "cold": (
        "Cold and minimal. Does not offer help proactively. May reference previous negative "
        "interactions. Requires demonstrated improvement before warming up."
    ),
}


def _clamp(value: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    return max(minimum, min(maximum, float(value)))


def reputation_band(reputation: float) -> str:
    value = _clamp(reputation, -1.0, 1.0)
    for lower, band, _ in REPUTATION_BANDS:
        if value >= lower:
            return band
    return "cold"


def reputation_descriptor(reputation: float) -> str:
    return REPUTATION_DESCRIPTORS[reputation_band(reputation)]


def _band_adjustment(reputation: float) -> float:
    band = reputation_band(reputation)
    for _, name, adjustment in REPUTATION_BANDS:
        if name == band:
            return adjustment
    return 0.0


def resolve_behavior(
    personality: BigFiveProfile,
    mood: NPCMood | str,
    reputation: float,
    cultural_overlay: CulturalOverlay,
    base_patience: float,
) -> BehaviorModifiers:
    """Map personality x mood x reputation x culture onto a behavior vector.

    Pure and deterministic. Inputs outside their ranges are clamped rather than
    rejected: traits, overlay and patience to [0, 1], reputation to [-1, 1].
    Unknown moods count as neutral.
    """
    openness = _clamp(personality.openness)
    conscientiousness = _clamp(personality.conscientiousness)
    extraversion = _clamp(personality.extraversion)
    agreeableness = _clamp(personality.agreeableness)
    directness = _clamp(cultural_overlay.communicative_directness)
    formality = _clamp(cultural_overlay.formality_default)
    power_distance = _clamp(cultural_overlay.power_distance_sensitivity)
    emotional = _clamp(cultural_overlay.emotional_expressiveness)
    patience_level = _clamp(base_patience)
    rep = _clamp(reputation, -1.0, 1.0)

    valence = MOOD_VALENCE.get(str(mood), 0.0)
    mood_lift = 0.5 + valence
    rep_norm = (rep + 1.0) / 2.0
    band = _band_adjustment(rep)

    response_length = _clamp(
        extraversion * 0.45
        + emotional * 0.15
        + (1.0 - directness) * 0.1
        + mood_lift * 0.3
    )
    patience = _clamp(
        agreeableness * 0.35
        + rep_norm * 0.2
        + patience_level * 0.25
        + mood_lift * 0.2
        + band
    )
    helpfulness = _clamp(
        agreeableness * 0.35
        + openness * 0.2
        + rep_norm * 0.3
        + mood_lift * 0.15
        + band
    )
    register_strictness = _clamp(
        conscientiousness * 0.4
        + formality * 0.4
        + (0.5 - valence) * 0.2
    )
    topic_initiative = _clamp(
        extraversion * 0.4
        + openness * 0.25
        + mood_lift * 0.2
        + rep_norm * 0.15
    )
    expressiveness = _clamp(
        extraversion * 0.3
        + emotional * 0.5
        + mood_lift * 0.2
    )
    # 3 seconds for an impatient NPC up to 15 for a very patient one.
    silence_tolerance_seconds = int(round(3 + patience * 12))
    escalation_tendency = _clamp(
        (1.0 - agreeableness) * 0.4
        + power_distance * 0.3
        + max(0.0, -valence) * 0.5
        - band
    )

    return BehaviorModifiers(
        response_length=response_length,
        patience=patience,
        helpfulness=helpfulness,
        register_strictness=register_strictness,
        topic_initiative=topic_initiative,
        expressiveness=expressiveness,
        silence_tolerance_seconds=silence_tolerance_seconds,
        escalation_tendency=escalation_tendency,
    )
