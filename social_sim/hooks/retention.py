from __future__ import annotations

import logging
from dataclasses import dataclass

from social_sim.engine.hooks import DialogueEvent, TickEvent
from social_sim.models.dialogue import DialogueOutcome
from social_sim.models.events import ModuleId
from social_sim.models.world import WorldState

log = logging.getLogger(__name__)


@dataclass
class RetentionItem:
    form: str
    npc_id: str
    vocabulary_domain: str | None
    ticks_remaining: int
    review_count: int = 0


class RetentionHook:
    """Schedules forms the learner struggled with for later review.

    Every friction with a target form found in a finished dialogue becomes a
    review item that falls due after ``review_ticks`` world ticks. A form that
    is already scheduled is rescheduled instead of duplicated.
    """

    module_id = ModuleId.RETENTION.value

    def __init__(self, review_ticks: int = 3) -> None:
        self.review_ticks = max(1, int(review_ticks))
        self.items: dict[str, RetentionItem] = {}

    def on_dialogue_end(self, event: DialogueEvent, outcome: DialogueOutcome) -> list[str]:
        scheduled: list[str] = []
        for friction in outcome.friction_events:
            if not friction.target_form:
                continue
            item = self.items.get(friction.target_form)
            if item is None:
                self.items[friction.target_form] = RetentionItem(
                    form=friction.target_form,
                    npc_id=event.npc_id,
                    vocabulary_domain=friction.vocabulary_domain,
                    ticks_remaining=self.review_ticks,
                )
            else:
                item.ticks_remaining = self.review_ticks
                item.review_count += 1
            scheduled.append(friction.target_form)
        if scheduled:
            log.info("retention_scheduled npc=%s forms=%s", event.npc_id, scheduled)
        return scheduled

    def on_tick(self, event: TickEvent, world_state: WorldState) -> None:
        for item in self.items.values():
            if item.ticks_remaining > 0:
                item.ticks_remaining -= 1

    def due_items(self) -> list[RetentionItem]:
        return [item for item in self.items.values() if item.ticks_remaining == 0]

    def mark_reviewed(self, form: str) -> bool:
        return self.items.pop(form, None) is not None
