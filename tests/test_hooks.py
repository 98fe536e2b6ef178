from __future__ import annotations

import asyncio

import pytest

from social_sim.engine.hooks import HookRegistry, TickEvent, dispatch_hooks
from social_sim.engine.orchestrator import init_session, tick


class Recorder:
    def __init__(self, module_id: str) -> None:
        self.module_id = module_id
        self.calls: list[tuple] = []

    def on_tick(self, event, world_state):
        self.calls.append(("on_tick", event.tick_number))
        return self.module_id


class Exploder:
    module_id = "exploder"

    def on_tick(self, event, world_state):
        raise RuntimeError("boom")


class SlowAsync:
    module_id = "slow"

    def __init__(self) -> None:
        self.finished = False

    async def on_tick(self, event, world_state):
        await asyncio.sleep(0.01)
        self.finished = True
        return "saved"


class FailingAsync:
    module_id = "failing-async"

    async def on_tick(self, event, world_state):
        raise ValueError("disk full")


class Silent:
    module_id = "silent"


def _tick_event(number: int = 1) -> TickEvent:
    return TickEvent(session_id="s1", tick_number=number, time_of_day="morning", elapsed_seconds=0.0, timestamp=0.0)


def test_registry_keeps_one_entry_per_module():
    registry = HookRegistry()
    first = Recorder("retention")
    second = Recorder("retention")
    registry.register(first)
    registry.register(second)
    assert len(registry) == 1
    assert registry.get("retention") is second
    assert "retention" in registry
    assert registry.has("retention")
    assert registry.unregister("retention")
    assert not registry.unregister("retention")
    assert registry.get_all() == []


def test_registry_requires_module_id():
    with pytest.raises(ValueError):
        HookRegistry().register(object())


def test_clear_removes_everything():
    registry = HookRegistry()
    registry.register(Recorder("a"))
    registry.register(Recorder("b"))
    registry.clear()
    assert len(registry) == 0


def test_dispatch_skips_modules_without_callback():
    registry = HookRegistry()
    recorder = Recorder("a")
    registry.register(recorder)
    registry.register(Silent())
    results = dispatch_hooks(registry, "on_tick", _tick_event(), None)
    assert results == {"a": "a"}
    assert recorder.calls == [("on_tick", 1)]


def test_failing_hook_does_not_block_others():
    registry = HookRegistry()
    recorder = Recorder("a")
    registry.register(Exploder())
    registry.register(recorder)
    results = dispatch_hooks(registry, "on_tick", _tick_event(), None)
    assert recorder.calls == [("on_tick", 1)]
    assert "exploder" not in results


def test_async_hooks_are_settled_before_return():
    registry = HookRegistry()
    slow = SlowAsync()
    registry.register(slow)
    registry.register(FailingAsync())
    results = dispatch_hooks(registry, "on_tick", _tick_event(), None)
    assert slow.finished
    assert results["slow"] == "saved"
    assert results["failing-async"] is None


def test_async_hooks_settle_inside_running_loop():
    registry = HookRegistry()
    slow = SlowAsync()
    registry.register(slow)

    async def caller():
        return dispatch_hooks(registry, "on_tick", _tick_event(), None)

    results = asyncio.run(caller())
    assert slow.finished
    assert results == {"slow": "saved"}


def test_unknown_callback_and_missing_registry_are_noops():
    registry = HookRegistry()
    registry.register(Recorder("a"))
    assert dispatch_hooks(registry, "on_lunch", _tick_event()) == {}
    assert dispatch_hooks(None, "on_tick", _tick_event(), None) == {}


class TaskSpawner:
    """Schedules its work on the caller's loop and hands back the task."""

    module_id = "spawner"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.saved = False
        self.task = None

    def on_tick(self, event, world_state):
        self.task = asyncio.get_running_loop().create_task(self._save())
        return self.task

    async def _save(self):
        await asyncio.sleep(0)
        if self.fail:
            raise OSError("checkpoint volume gone")
        self.saved = True


def test_hook_returning_loop_task_does_not_reach_caller(caplog):
    registry = HookRegistry()
    spawner = TaskSpawner(fail=True)
    registry.register(spawner)
    registry.register(Recorder("a"))

    async def caller():
        results = dispatch_hooks(registry, "on_tick", _tick_event(), None)
        await asyncio.wait([spawner.task])
        await asyncio.sleep(0)
        return results

    results = asyncio.run(caller())
    assert results == {"spawner": None, "a": "a"}
    assert "consumer_async_failed consumer=spawner" in caplog.text


def test_tick_inside_running_loop_survives_task_hook(airport_env, quiet_random):
    registry = HookRegistry()
    spawner = TaskSpawner()
    registry.register(spawner)
    session = init_session("airport", "learner-1", airport_env, hook_registry=registry, random_source=quiet_random)

    async def caller():
        advanced = tick(session)
        await spawner.task
        return advanced

    advanced = asyncio.run(caller())
    assert advanced.tick_count == 1
    assert advanced.world_state.time_system.current_time_of_day == "afternoon"
    assert spawner.saved
