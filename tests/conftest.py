from __future__ import annotations

import copy
from typing import Any

import pytest

from social_sim.config import Settings
from social_sim.engine.random_source import SequenceRandomSource

AIRPORT_ENVIRONMENT: dict[str, Any] = {
    "tier_2": {
        "setting": "Regional airport terminal",
        "locations": [
            {
                "id": "gate-area",
                "name": {"en": "Gate Area", "es": "Zona de embarque"},
                "description": "Rows of seats facing the boarding desk.",
                "type": "public",
                "connections": ["lounge", "cafe"],
                "npcs": {"resident": ["attendant"], "transient": ["traveler"]},
                "interactables": [
                    {"id": "departures-board", "name": {"en": "Departures board"}, "type": "sign"},
                ],
                "ambient_description": "Announcements echo over the gate.",
            },
            {
                "id": "lounge",
                "name": {"en": "Business Lounge"},
                "description": "Quiet lounge with leather chairs.",
                "type": "private",
                "connections": ["gate-area"],
                "npcs": {"resident": ["host"]},
                "unlock_condition": "business-class",
            },
            {
                "id": "cafe",
                "name": {"en": "Cafe"},
                "description": "A small espresso counter.",
                "type": "commercial",
                "connections": ["gate-area"],
                "npcs": {"resident": ["barista"], "transient": ["traveler"]},
                "ambient_description": "The espresso machine hisses.",
            },
        ],
        "npc_roster": [
            {
                "id": "attendant",
                "name": "Lucia",
                "role": "gate attendant",
                "register": "formal",
                "personality": "Efficient and courteous under pressure.",
                "vocabulary_focus": ["boarding", "documents"],
                "patience_level": 0.6,
                "big_five": {
                    "openness": 0.6,
                    "conscientiousness": 0.8,
                    "extraversion": 0.5,
                    "agreeableness": 0.7,
                    "neuroticism": 0.3,
                },
                "cultural_overlay": {
                    "communicative_directness": 0.6,
                    "formality_default": 0.8,
                    "power_distance_sensitivity": 0.5,
                    "emotional_expressiveness": 0.4,
                },
            },
            {
                "id": "traveler",
                "name": "Marco",
                "role": "fellow passenger",
                "register": "informal",
                "personality": "Nervous flyer, chatty when calm.",
                "big_five": {"agreeableness": 0.4, "neuroticism": 0.9, "extraversion": 0.7},
            },
            {
                "id": "host",
                "name": "Elena",
                "role": "lounge host",
                "register": "formal",
                "big_five": {"agreeableness": 0.8},
            },
            {
                "id": "barista",
                "name": "Pablo",
                "role": "barista",
                "register": "informal",
                "vocabulary_focus": ["coffee", "ordering"],
                "big_five": {"agreeableness": 0.65, "openness": 0.7},
            },
        ],
        "ambient_events": [
            {
                "id": "boarding-call",
                "name": "Final boarding call",
                "trigger": "time-based",
                "description": "The final call for the flight is announced.",
                "npc_reactions": {"traveler": "anxious", "attendant": "busy", "host": "bemused"},
                "vocabulary_domain": "boarding",
                "duration": "scene",
            },
            {
                "id": "announcement-chime",
                "name": "Announcement chime",
                "npc_reactions": {"barista": "amused"},
                "duration": "instant",
            },
        ],
    },
    "time_system": {
        "enabled": True,
        "day_length_minutes": 40,
        "time_affects_npcs": True,
        "time_affects_locations": True,
        "schedule": [
            {
                "time_of_day": "morning",
                "npc_availability": {"barista": True, "host": True},
                "location_accessibility": {"lounge": True},
                "ambient_event_probability": {"boarding-call": 0.5},
            },
            {
                "time_of_day": "afternoon",
                "npc_availability": {"barista": True},
                "ambient_event_probability": {"boarding-call": 0.5},
            },
            {
                "time_of_day": "evening",
                "npc_availability": {"barista": False},
                "location_accessibility": {"lounge": False},
                "ambient_event_probability": {"boarding-call": 0.2, "announcement-chime": 0.9},
            },
            {
                "time_of_day": "night",
                "npc_availability": {"barista": False, "host": False},
                "location_accessibility": {"lounge": False},
            },
        ],
    },
}

TRIANGLE_ENVIRONMENT: dict[str, Any] = {
    "tier_2": {
        "locations": [
            {"id": "A", "type": "public", "connections": ["B", "C"]},
            {"id": "B", "connections": ["A"]},
            {"id": "C", "connections": ["A"]},
        ],
        "npc_roster": [],
        "ambient_events": [],
    },
}


@pytest.fixture
def airport_env() -> dict[str, Any]:
    return copy.deepcopy(AIRPORT_ENVIRONMENT)


@pytest.fixture
def triangle_env() -> dict[str, Any]:
    return copy.deepcopy(TRIANGLE_ENVIRONMENT)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        dev_mode=True,
        rng_seed=7,
        mood_decay_turns=10,
        event_bus_max_queue=1000,
        session_db_path=str(tmp_path / "sessions.db"),
        retention_review_ticks=2,
    )


@pytest.fixture
def quiet_random() -> SequenceRandomSource:
    """Draws that never fire an ambient event."""
    return SequenceRandomSource([0.99])
