"""One DialogueSession per UI surface."""

from __future__ import annotations

from typing import Callable, Optional

from xpira.core.dialogue.evaluation import LearnerProfile
from xpira.core.logging import get_logger
from xpira.engine import DialogueEngine
from xpira.services.dialogue_session import DialogueSession
from xpira.services.effects import EffectExecutor, EventBusEffectExecutor
from xpira.services.tiers import UserTier

logger = get_logger(__name__)


class SessionManager:
    """Keeps the single session of each surface (browser tab, device, ...).

    A surface whose tier changes gets a fresh session, since the
    strategies are bound at construction.
    """

    def __init__(
        self,
        engine: DialogueEngine,
        executor_factory: Optional[Callable[[str], EffectExecutor]] = None,
        auto_close_delay: Optional[float] = None,
    ) -> None:
        self._engine = engine
        self._executor_factory = executor_factory or (
            lambda surface_id: EventBusEffectExecutor(engine.event_bus)
        )
        self._auto_close_delay = auto_close_delay
        self._sessions: dict[str, DialogueSession] = {}

    def get(self, surface_id: str) -> Optional[DialogueSession]:
        return self._sessions.get(surface_id)

    def get_or_create(
        self,
        surface_id: str,
        tier: UserTier | str = UserTier.FREE,
        learner: Optional[LearnerProfile] = None,
    ) -> DialogueSession:
        resolved = UserTier.parse(tier)
        session = self._sessions.get(surface_id)
        if session is not None and session.tier is resolved:
            if learner is not None:
                session.learner = learner
            return session

        if session is not None:
            logger.info("Surface %s switched tier to %s", surface_id, resolved.value)
            session.close()

        session = self._engine.create_session(
            self._executor_factory(surface_id),
            tier=resolved,
            learner=learner,
            surface_id=surface_id,
            auto_close_delay=self._auto_close_delay,
        )
        self._sessions[surface_id] = session
        return session

    def close_all(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
