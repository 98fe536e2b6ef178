from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from social_sim.models.core import TimeOfDay

LocationType = Literal["public", "private", "commercial", "institutional"]
InteractableType = Literal["object", "sign", "menu", "document", "device"]
AmbientTrigger = Literal["time-based", "reputation-gated", "random", "quest-triggered"]
AmbientDuration = Literal["instant", "scene", "persistent"]


class BigFiveProfile(BaseModel):
    openness: float = 0.5
    conscientiousness: float = 0.5
    extraversion: float = 0.5
    agreeableness: float = 0.5
    neuroticism: float = 0.5


class CulturalOverlay(BaseModel):
    communicative_directness: float = 0.5
    formality_default: float = 0.5
    power_distance_sensitivity: float = 0.5
    emotional_expressiveness: float = 0.5


class NPCDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    role: str = "unknown"
    # "register" would shadow BaseModel.register; the schema key stays "register".
    npc_register: str = Field(default="neutral", alias="register")
    personality: str = ""
    count: int = Field(default=1, ge=1)
    vocabulary_focus: list[str] = Field(default_factory=list)
    patience_level: float = 0.5
    big_five: BigFiveProfile = Field(default_factory=BigFiveProfile)
    cultural_overlay: CulturalOverlay = Field(default_factory=CulturalOverlay)


class LocationRoster(BaseModel):
    resident: list[str] = Field(default_factory=list)
    transient: list[str] = Field(default_factory=list)


class SchemaInteractable(BaseModel):
    id: str
    name: dict[str, str] = Field(default_factory=dict)
    type: InteractableType = "object"
    vocabulary_domain: str = ""
    interaction_prompt: str = ""


class SchemaLocation(BaseModel):
    id: str = Field(min_length=1)
    name: dict[str, str] = Field(default_factory=dict)
    description: str = ""
    type: LocationType = "public"
    connections: list[str] = Field(default_factory=list)
    npcs: LocationRoster = Field(default_factory=LocationRoster)
    interactables: list[SchemaInteractable] = Field(default_factory=list)
    ambient_description: str = ""
    unlock_condition: str | None = None


class SchemaAmbientEvent(BaseModel):
    id: str
    name: str
    trigger: AmbientTrigger = "random"
    trigger_condition: str = ""
    description: str = ""
    npc_reactions: dict[str, str] = Field(default_factory=dict)
    vocabulary_domain: str = ""
    duration: AmbientDuration = "scene"
    learner_can_ignore: bool = True


class SchemaTimeSlot(BaseModel):
    time_of_day: TimeOfDay
    npc_availability: dict[str, bool] = Field(default_factory=dict)
    location_accessibility: dict[str, bool] = Field(default_factory=dict)
    ambient_event_probability: dict[str, float] = Field(default_factory=dict)


class SchemaTimeSystem(BaseModel):
    enabled: bool = True
    day_length_minutes: int = 60
    time_affects_npcs: bool = True
    time_affects_locations: bool = True
    schedule: list[SchemaTimeSlot] = Field(default_factory=list)


class Tier2Environment(BaseModel):
    setting: str = ""
    locations: list[SchemaLocation] = Field(default_factory=list)
    npc_roster: list[NPCDefinition] = Field(default_factory=list)
    ambient_events: list[SchemaAmbientEvent] = Field(default_factory=list)


class SchemaEnvironment(BaseModel):
    tier_2: Tier2Environment
    time_system: SchemaTimeSystem | None = None
    start_location: str | None = None
