from __future__ import annotations

import logging

import pytest

from social_sim.config import Settings, _env_int, configure_logging


def test_env_int_reads_environment(monkeypatch):
    monkeypatch.setenv("MOOD_DECAY_TURNS", "4")
    assert _env_int("MOOD_DECAY_TURNS", 10) == 4
    monkeypatch.delenv("MOOD_DECAY_TURNS")
    assert _env_int("MOOD_DECAY_TURNS", 10) == 10


def test_env_int_rejects_garbage(monkeypatch):
    monkeypatch.setenv("RNG_SEED", "not-a-number")
    with pytest.raises(ValueError):
        _env_int("RNG_SEED", 1337)


def test_explicit_values_override_environment():
    settings = Settings(dev_mode=True, rng_seed=42, mood_decay_turns=4, session_db_path="x.db")
    assert settings.dev_mode is True
    assert settings.rng_seed == 42
    assert settings.mood_decay_turns == 4
    assert settings.redacted()["session_db_path"] == "x.db"


def test_redacted_lists_every_setting():
    assert set(Settings().redacted()) == {
        "dev_mode",
        "rng_seed",
        "mood_decay_turns",
        "event_bus_max_queue",
        "session_db_path",
        "retention_review_ticks",
    }


def test_configure_logging_uses_debug_in_dev_mode(monkeypatch):
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
    configure_logging(dev_mode=True)
    assert captured["level"] == logging.DEBUG
    configure_logging(dev_mode=False)
    assert captured["level"] == logging.INFO
