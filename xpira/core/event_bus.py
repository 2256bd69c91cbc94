"""EventBus - in-process notifications between the dialogue engine and its collaborators.

Rules:
- Sessions never call inventory/XP/mission code directly; they publish events
- Events carry identifiers and small payloads only
- Propagation depth is capped at MAX_DEPTH
- The same source may not emit the same event type twice within one chain
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set

from xpira.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # maximum nesting of emits triggered from handlers


@dataclass
class EngineEvent:
    """Event payload container

    Args:
        event_type: event name (see EventTypes)
        data: event payload (ids and scalars, no heavy objects)
        source: emitting component name
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    # internal tracking, not set by callers
    _depth: int = field(default=0, repr=False)


EventHandler = Callable[[EngineEvent], None]


class EventBus:
    """Synchronous event bus

    Usage:
        bus = EventBus()
        bus.subscribe("item_given", inventory.handle_item_given)
        bus.emit(EngineEvent(event_type="item_given", data={"item_id": "apple"}, source="effects"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0
        self._emitted_in_chain: Set[str] = set()  # "source:event_type"

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("EventBus subscribe: %s -> %s", event_type, _handler_name(handler))

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(
                    "EventBus unsubscribe: %s -> %s", event_type, _handler_name(handler)
                )
            except ValueError:
                logger.warning(
                    "Handler not registered: %s -> %s",
                    event_type,
                    _handler_name(handler),
                )

    def emit(self, event: EngineEvent) -> None:
        """Publish an event, calling every subscribed handler synchronously.

        Guards:
        1. events nested deeper than MAX_DEPTH are dropped
        2. a repeated source:event_type within one chain is dropped

        Handler exceptions are logged and do not reach the emitter.
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                "EventBus depth exceeded (%d): %s:%s dropped",
                MAX_DEPTH,
                event.source,
                event.event_type,
            )
            return

        chain_key = f"{event.source}:{event.event_type}"
        if chain_key in self._emitted_in_chain:
            logger.warning("EventBus duplicate event blocked: %s", chain_key)
            return

        self._emitted_in_chain.add(chain_key)
        event._depth = self._current_depth

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug("EventBus: no subscribers for %s", event.event_type)
            return

        logger.debug(
            "EventBus dispatch: %s (source=%s, depth=%d, handlers=%d)",
            event.event_type,
            event.source,
            self._current_depth,
            len(handlers),
        )

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "EventBus handler error: %s (event=%s)",
                        _handler_name(handler),
                        event.event_type,
                    )
        finally:
            self._current_depth -= 1

    def reset_chain(self) -> None:
        """Called at the start of every session command. Clears duplicate tracking.

        No-op while a dispatch is in progress (a handler issuing a command).
        """
        if self._current_depth > 0:
            return
        self._emitted_in_chain.clear()

    def clear(self) -> None:
        """Drop every subscription (tests)."""
        self._handlers.clear()
        self.reset_chain()

    @property
    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", repr(handler))
