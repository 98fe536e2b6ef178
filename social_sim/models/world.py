from __future__ import annotations

from pydantic import BaseModel, Field

from social_sim.models.core import NPCMood, TimeOfDay
from social_sim.models.environment import (
    AmbientDuration,
    AmbientTrigger,
    InteractableType,
    LocationRoster,
    LocationType,
)

REPUTATION_MIN = -1.0
REPUTATION_MAX = 1.0


class Interactable(BaseModel):
    id: str
    name: dict[str, str] = Field(default_factory=dict)
    type: InteractableType = "object"
    vocabulary_domain: str = ""
    interaction_prompt: str = ""


class Location(BaseModel):
    id: str
    name: dict[str, str] = Field(default_factory=dict)
    description: str = ""
    type: LocationType = "public"
    connections: list[str] = Field(default_factory=list)
    npcs: LocationRoster = Field(default_factory=LocationRoster)
    interactables: list[Interactable] = Field(default_factory=list)
    ambient_description: str = ""
    unlock_condition: str | None = None


class TimeSlot(BaseModel):
    time_of_day: TimeOfDay
    npc_availability: dict[str, bool] = Field(default_factory=dict)
    location_accessibility: dict[str, bool] = Field(default_factory=dict)
    ambient_event_probability: dict[str, float] = Field(default_factory=dict)


class TimeSystem(BaseModel):
    enabled: bool = False
    day_length_minutes: int = 60
    current_time_of_day: TimeOfDay = "morning"
    time_affects_npcs: bool = False
    time_affects_locations: bool = False
    schedule: list[TimeSlot] = Field(default_factory=list)


class AmbientEvent(BaseModel):
    id: str
    name: str
    trigger: AmbientTrigger = "random"
    trigger_condition: str = ""
    description: str = ""
    npc_reactions: dict[str, str] = Field(default_factory=dict)
    vocabulary_domain: str = ""
    duration: AmbientDuration = "scene"
    learner_can_ignore: bool = True


class NPCWorldState(BaseModel):
    npc_id: str
    current_location: str
    available: bool = True
    mood: NPCMood = "neutral"
    reputation_with_learner: float = Field(default=0.0, ge=REPUTATION_MIN, le=REPUTATION_MAX)
    injection_directives: list[str] = Field(default_factory=list)
    last_interaction_ts: float = 0.0


class WorldState(BaseModel):
    schema_id: str
    session_id: str
    locations: dict[str, Location]
    time_system: TimeSystem = Field(default_factory=TimeSystem)
    ambient_events: list[AmbientEvent] = Field(default_factory=list)
    active_events: list[str] = Field(default_factory=list)
    learner_location: str
    npc_states: dict[str, NPCWorldState] = Field(default_factory=dict)
