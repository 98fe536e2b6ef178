from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from social_sim.models.core import DialoguePhase, FrictionType, MoodTriggerEvent, NPCMood, Speaker
from social_sim.models.environment import BigFiveProfile


class BehaviorModifiers(BaseModel):
    model_config = ConfigDict(frozen=True)

    response_length: float = Field(ge=0.0, le=1.0)
    patience: float = Field(ge=0.0, le=1.0)
    helpfulness: float = Field(ge=0.0, le=1.0)
    register_strictness: float = Field(ge=0.0, le=1.0)
    topic_initiative: float = Field(ge=0.0, le=1.0)
    expressiveness: float = Field(ge=0.0, le=1.0)
    silence_tolerance_seconds: int = Field(ge=3, le=15)
    escalation_tendency: float = Field(ge=0.0, le=1.0)


class FrictionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: FrictionType
    description: str = ""
    target_form: str | None = None
    learner_production: str | None = None
    vocabulary_domain: str | None = None
    severity: float = Field(ge=0.0, le=1.0)


class RegisterAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    expected_register: str
    detected_register: str
    aligned: bool
    score: float = Field(ge=0.0, le=1.0)


class DialogueTurn(BaseModel):
    turn_number: int
    speaker: Speaker
    content: str
    timestamp: float
    friction_events: list[FrictionEvent] = Field(default_factory=list)
    register_analysis: RegisterAnalysis | None = None
    reputation_delta: float = 0.0
    mood_trigger: MoodTriggerEvent | None = None


class DialogueSession(BaseModel):
    dialogue_id: str
    npc_id: str
    location_id: str
    phase: DialoguePhase = "opening"
    goal: str = ""
    turns: list[DialogueTurn] = Field(default_factory=list)
    reputation_delta: float = 0.0
    friction_events: list[FrictionEvent] = Field(default_factory=list)
    injection_targets: list[str] = Field(default_factory=list)
    injection_targets_hit: list[str] = Field(default_factory=list)
    npc_behavior: BehaviorModifiers
    npc_personality: BigFiveProfile = Field(default_factory=BigFiveProfile)
    npc_mood: NPCMood = "neutral"
    started_at: float


class DialogueOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    reputation_delta: float
    friction_events: tuple[FrictionEvent, ...] = ()
    goal_achieved: bool
    injection_targets_hit: tuple[str, ...] = ()
    total_turns: int
    final_mood: NPCMood
    register_accuracy: float
