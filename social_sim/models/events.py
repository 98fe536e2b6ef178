from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_VERSION = "1.0"


class EventType(StrEnum):
    FRICTION_DETECTED = "FRICTION_DETECTED"
    AFFECTIVE_STATE_CHANGED = "AFFECTIVE_STATE_CHANGED"
    FORWARD_INJECTION_READY = "FORWARD_INJECTION_READY"
    REPUTATION_DELTA = "REPUTATION_DELTA"
    WORLD_STATE_CHANGED = "WORLD_STATE_CHANGED"
    CURRICULUM_GENERATED = "CURRICULUM_GENERATED"
    TIER_TRANSITION = "TIER_TRANSITION"
    NPC_MOOD_CHANGED = "NPC_MOOD_CHANGED"
    SCHEMA_ACTIVATED = "SCHEMA_ACTIVATED"
    CONTROL_MODE_CHANGED = "CONTROL_MODE_CHANGED"
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"
    PIPELINE_PHASE_COMPLETED = "PIPELINE_PHASE_COMPLETED"
    SCAFFOLDING_ESCALATED = "SCAFFOLDING_ESCALATED"


class ModuleId(StrEnum):
    WORLD_ENGINE = "world-engine"
    DIALOGUE_ENGINE = "dialogue-engine"
    NPC_AGENT = "npc-agent"
    SESSION_ORCHESTRATOR = "session-orchestrator"
    PERSISTENCE = "persistence"
    RETENTION = "retention"


class EventEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    # Plain string: envelopes carrying types added later must still parse.
    type: str
    emitted_at: str
    source: str
    learner_id: str
    session_id: str | None
    correlation_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    schema_version: Literal["1.0"] = SCHEMA_VERSION

    def is_known_type(self) -> bool:
        return self.type in {member.value for member in EventType}


class FrictionDetectedPayload(BaseModel):
    friction_type: Literal["lexical", "phonemic", "morphosyntactic", "pragmatic", "cultural", "register"]
    learner_utterance: str
    detected_pattern: str
    severity: Literal["low", "medium", "high", "critical"]
    npc_id: str | None = None


class ReputationDeltaPayload(BaseModel):
    npc_id: str
    previous_score: float
    new_score: float
    reason: str


class NpcMoodChangedPayload(BaseModel):
    npc_id: str
    previous_mood: str
    new_mood: str
    reason: str


class WorldStateChangedPayload(BaseModel):
    change: str
    details: dict[str, Any] = Field(default_factory=dict)


class SessionStartedPayload(BaseModel):
    tier: Literal[1, 2, 3] = 2
    persona_schema_id: str
    npc_ids: list[str] = Field(default_factory=list)


class SessionEndedPayload(BaseModel):
    tier: Literal[1, 2, 3] = 2
    duration_ms: int
    turn_count: int
    friction_count: int


def create_event(
    event_type: str,
    source: str,
    learner_id: str,
    session_id: str | None,
    payload: BaseModel | dict[str, Any],
    *,
    correlation_id: str | None = None,
) -> EventEnvelope:
    data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
    return EventEnvelope(
        event_id=str(uuid.uuid4()),
        type=str(event_type),
        emitted_at=datetime.now(UTC).isoformat(),
        source=str(source),
        learner_id=learner_id,
        session_id=session_id,
        correlation_id=correlation_id or session_id or learner_id,
        payload=data,
    )
