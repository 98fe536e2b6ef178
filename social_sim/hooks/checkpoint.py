from __future__ import annotations

import logging

from social_sim.db.store import Store
from social_sim.engine.hooks import DialogueEvent, LocationEvent, SessionLifecycleEvent
from social_sim.models.dialogue import DialogueOutcome
from social_sim.models.events import ModuleId
from social_sim.models.world import WorldState

log = logging.getLogger(__name__)


class CheckpointHook:
    """Persists world checkpoints and dialogue outcomes to the session store.

    Callbacks are coroutines; the hook dispatcher settles them before the
    triggering operation returns.
    """

    module_id = ModuleId.PERSISTENCE.value

    def __init__(self, store: Store) -> None:
        self.store = store

    async def on_session_start(self, event: SessionLifecycleEvent, world_state: WorldState) -> None:
        self.store.save_checkpoint(world_state, label="start")
        self.store.save_checkpoint(world_state)

    async def on_location_enter(self, event: LocationEvent, world_state: WorldState) -> None:
        self.store.save_checkpoint(world_state)

    async def on_dialogue_end(self, event: DialogueEvent, outcome: DialogueOutcome) -> None:
        self.store.record_outcome(event.session_id, event.dialogue_id, event.npc_id, outcome)

    async def on_session_end(self, event: SessionLifecycleEvent, world_state: WorldState) -> None:
        self.store.save_checkpoint(world_state, label="final")
        log.info("checkpoint_final session=%s", event.session_id)
