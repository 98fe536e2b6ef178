from __future__ import annotations

from typing import Literal, get_args

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]

TIME_ORDER: tuple[TimeOfDay, ...] = get_args(TimeOfDay)

NPCMood = Literal[
    "neutral",
    "pleased",
    "warm",
    "amused",
    "busy",
    "anxious",
    "impatient",
    "irritated",
    "cold",
    "panicking",
]

MOOD_VALUES: frozenset[str] = frozenset(get_args(NPCMood))

MoodTriggerEvent = Literal[
    "successful-communication",
    "register-violation",
    "communication-failure",
    "cultural-insensitivity",
    "learner-hesitation",
    "repair-attempt",
    "ambient-event-negative",
    "ambient-event-positive",
]

FrictionType = Literal["vocabulary", "register", "pragmatic", "cultural", "phonetic"]

DialoguePhase = Literal["opening", "active", "closing", "ended"]

Speaker = Literal["learner", "npc", "system"]


class InvalidEnvironmentError(ValueError):
    pass


class DialogueEndedError(RuntimeError):
    pass
