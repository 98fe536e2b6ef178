from social_sim.npc.behavior import (
    MOOD_VALENCE,
    reputation_band,
    reputation_descriptor,
    resolve_behavior,
)
from social_sim.npc.mood import (
    DEFAULT_MOOD_DECAY_TURNS,
    classify_mood_trigger,
    compute_mood_shift,
    should_decay_mood,
)

__all__ = [
    "DEFAULT_MOOD_DECAY_TURNS",
    "MOOD_VALENCE",
    "classify_mood_trigger",
    "compute_mood_shift",
    "reputation_band",
    "reputation_descriptor",
    "resolve_behavior",
    "should_decay_mood",
]
