from __future__ import annotations

import sqlite3

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    row_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL UNIQUE,
    session_id TEXT,
    learner_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    source TEXT NOT NULL,
    correlation_id TEXT NOT NULL,
    payload_json TEXT NOT NULL,
    emitted_at TEXT NOT NULL,
    ts DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS world_checkpoints (
    session_id TEXT NOT NULL,
    label TEXT NOT NULL,
    state_json TEXT NOT NULL,
    updated_ts DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY(session_id, label)
);
CREATE TABLE IF NOT EXISTS dialogue_outcomes (
    outcome_id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    dialogue_id TEXT NOT NULL,
    npc_id TEXT NOT NULL,
    reputation_delta REAL NOT NULL,
    goal_achieved INTEGER NOT NULL,
    outcome_json TEXT NOT NULL,
    ts DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_events_session_id ON events(session_id, row_id);
CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type);
CREATE INDEX IF NOT EXISTS idx_outcomes_session_npc ON dialogue_outcomes(session_id, npc_id);
"""


def init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()
