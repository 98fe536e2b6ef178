from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    dev_mode: bool = os.getenv("DEV_MODE", "0") == "1"
    rng_seed: int = _env_int("RNG_SEED", 1337)
    mood_decay_turns: int = _env_int("MOOD_DECAY_TURNS", 10)
    event_bus_max_queue: int = _env_int("EVENT_BUS_MAX_QUEUE", 1000)
    session_db_path: str = os.getenv("SESSION_DB_PATH", "sessions.db")
    retention_review_ticks: int = _env_int("RETENTION_REVIEW_TICKS", 3)

    def redacted(self) -> dict[str, object]:
        return {
            "dev_mode": self.dev_mode,
            "rng_seed": self.rng_seed,
            "mood_decay_turns": self.mood_decay_turns,
            "event_bus_max_queue": self.event_bus_max_queue,
            "session_db_path": self.session_db_path,
            "retention_review_ticks": self.retention_review_ticks,
        }


def configure_logging(dev_mode: bool) -> None:
    level = logging.DEBUG if dev_mode else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
