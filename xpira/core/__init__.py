"""XPira core: domain model, logging and event bus (no network, no framework)."""

from xpira.core.event_bus import EngineEvent, EventBus
from xpira.core.event_types import EventTypes

__all__ = [
    "EngineEvent",
    "EventBus",
    "EventTypes",
]
