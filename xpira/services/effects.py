"""Effect executors: the session decides *when* an action runs, these decide *what* it does."""

from __future__ import annotations

from typing import Callable

from xpira.core.dialogue.models import (
    CompleteMissionAction,
    DialogueAction,
    GiveItemAction,
    GiveXpAction,
    StartMissionAction,
    TakeItemAction,
    TeachWordAction,
)
from xpira.core.event_bus import EngineEvent, EventBus
from xpira.core.event_types import EventTypes
from xpira.core.logging import get_logger

logger = get_logger(__name__)


class EffectExecutor:
    """Dispatches decoded actions to one method per action kind.

    Subclasses override the kinds they care about. Kinds without an
    override (and unknown objects) are logged and ignored.
    """

    def execute(self, action: DialogueAction) -> None:
        handlers: dict[type, Callable] = {
            GiveItemAction: self.give_item,
            TakeItemAction: self.take_item,
            GiveXpAction: self.give_xp,
            StartMissionAction: self.start_mission,
            CompleteMissionAction: self.complete_mission,
            TeachWordAction: self.teach_word,
        }
        handler = handlers.get(type(action))
        if handler is None:
            logger.warning("Ignoring unknown dialogue action: %r", action)
            return
        handler(action)

    def give_item(self, action: GiveItemAction) -> None:
        self._ignored(action)

    def take_item(self, action: TakeItemAction) -> None:
        self._ignored(action)

    def give_xp(self, action: GiveXpAction) -> None:
        self._ignored(action)

    def start_mission(self, action: StartMissionAction) -> None:
        self._ignored(action)

    def complete_mission(self, action: CompleteMissionAction) -> None:
        self._ignored(action)

    def teach_word(self, action: TeachWordAction) -> None:
        self._ignored(action)

    def _ignored(self, action: DialogueAction) -> None:
        logger.debug("%s has no handler for %s", type(self).__name__, type(action).__name__)


class EventBusEffectExecutor(EffectExecutor):
    """Publishes every action on the EventBus for inventory/XP/mission owners."""

    SOURCE = "dialogue_effects"

    def __init__(self, event_bus: EventBus) -> None:
        self._bus = event_bus

    def _publish(self, event_type: str, data: dict) -> None:
        self._bus.emit(EngineEvent(event_type=event_type, data=data, source=self.SOURCE))

    def give_item(self, action: GiveItemAction) -> None:
        self._publish(
            EventTypes.ITEM_GIVEN,
            {"item_id": action.item_id, "quantity": action.quantity},
        )

    def take_item(self, action: TakeItemAction) -> None:
        self._publish(
            EventTypes.ITEM_TAKEN,
            {"item_id": action.item_id, "quantity": action.quantity},
        )

    def give_xp(self, action: GiveXpAction) -> None:
        self._publish(EventTypes.XP_GRANTED, {"amount": action.amount})

    def start_mission(self, action: StartMissionAction) -> None:
        self._publish(EventTypes.MISSION_STARTED, {"mission_id": action.mission_id})

    def complete_mission(self, action: CompleteMissionAction) -> None:
        self._publish(EventTypes.MISSION_COMPLETED, {"mission_id": action.mission_id})

    def teach_word(self, action: TeachWordAction) -> None:
        self._publish(
            EventTypes.WORD_TAUGHT,
            {
                "words": [
                    {"word": entry.word, "translation": entry.translation}
                    for entry in action.words
                ]
            },
        )
