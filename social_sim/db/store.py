from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from social_sim.db.schema import init_db
from social_sim.models.dialogue import DialogueOutcome
from social_sim.models.events import EventEnvelope
from social_sim.models.world import WorldState

log = logging.getLogger(__name__)


class Store:
    """SQLite persistence for session events, world checkpoints and dialogue outcomes."""

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Hooks may settle on a worker thread when a loop is already running.
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        init_db(self.conn)

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def tx(self) -> Iterator[sqlite3.Connection]:
        log.debug("transaction_start")
        try:
            yield self.conn
            self.conn.commit()
            log.debug("transaction_commit")
        except Exception:
            self.conn.rollback()
            log.exception("transaction_rollback")
            raise

    def write_event(self, envelope: EventEnvelope) -> None:
        log.info("event_write session=%s type=%s", envelope.session_id, envelope.type)
        with self.tx() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO events(
                    event_id, session_id, learner_id, event_type, source, correlation_id, payload_json, emitted_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    envelope.event_id,
                    envelope.session_id,
                    envelope.learner_id,
                    envelope.type,
                    envelope.source,
                    envelope.correlation_id,
                    json.dumps(envelope.payload, sort_keys=True),
                    envelope.emitted_at,
                ),
            )

    def get_recent_events(self, session_id: str, limit: int = 6, event_type: str | None = None) -> list[dict[str, Any]]:
        query = """
            SELECT event_id, event_type, source, correlation_id, payload_json, emitted_at
            FROM events
            WHERE session_id = ?
        """
        params: list[Any] = [session_id]
        if event_type is not None:
            query += " AND event_type = ?"
            params.append(event_type)
        query += " ORDER BY row_id DESC LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(query, params).fetchall()
        items: list[dict[str, Any]] = []
        for row in reversed(rows):
            try:
                payload = json.loads(row["payload_json"])
            except json.JSONDecodeError:
                log.warning("event_payload_unreadable event=%s", row["event_id"])
                payload = {}
            items.append(
                {
                    "event_id": row["event_id"],
                    "event_type": row["event_type"],
                    "source": row["source"],
                    "correlation_id": row["correlation_id"],
                    "payload": payload,
                    "emitted_at": row["emitted_at"],
                }
            )
        return items

    def save_checkpoint(self, world_state: WorldState, label: str = "latest") -> None:
        log.info("checkpoint_write session=%s label=%s", world_state.session_id, label)
        with self.tx() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO world_checkpoints(session_id, label, state_json) VALUES (?, ?, ?)",
                (world_state.session_id, label, world_state.model_dump_json()),
            )

    def get_checkpoint(self, session_id: str, label: str = "latest") -> WorldState | None:
        row = self.conn.execute(
            "SELECT state_json FROM world_checkpoints WHERE session_id = ? AND label = ?",
            (session_id, label),
        ).fetchone()
        if row is None:
            return None
        return WorldState.model_validate_json(row["state_json"])

    def record_outcome(self, session_id: str, dialogue_id: str, npc_id: str, outcome: DialogueOutcome) -> None:
        log.info("outcome_write session=%s npc=%s delta=%.3f", session_id, npc_id, outcome.reputation_delta)
        with self.tx() as conn:
            conn.execute(
                """
                INSERT INTO dialogue_outcomes(session_id, dialogue_id, npc_id, reputation_delta, goal_achieved, outcome_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    dialogue_id,
                    npc_id,
                    outcome.reputation_delta,
                    1 if outcome.goal_achieved else 0,
                    outcome.model_dump_json(),
                ),
            )

    def list_outcomes(self, session_id: str, npc_id: str | None = None) -> list[DialogueOutcome]:
        if npc_id is None:
            rows = self.conn.execute(
                "SELECT outcome_json FROM dialogue_outcomes WHERE session_id = ? ORDER BY outcome_id",
                (session_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT outcome_json FROM dialogue_outcomes WHERE session_id = ? AND npc_id = ? ORDER BY outcome_id",
                (session_id, npc_id),
            ).fetchall()
        return [DialogueOutcome.model_validate_json(row["outcome_json"]) for row in rows]
