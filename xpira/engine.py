"""DialogueEngine: owns content, AI provider and per-tier strategy caches.

There are no module-level registries. Build one engine per process (or
per test) and inject it into sessions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from xpira.config import settings
from xpira.core.dialogue.content import DialogueContentRegistry
from xpira.core.dialogue.evaluation import LearnerProfile
from xpira.core.event_bus import EventBus
from xpira.core.logging import get_logger
from xpira.services.ai import AIProvider, get_ai_provider
from xpira.services.dialogue_session import DialogueSession
from xpira.services.effects import EffectExecutor
from xpira.services.tiers import ServiceFactory, UserTier

logger = get_logger(__name__)


class DialogueEngine:
    def __init__(
        self,
        registry: DialogueContentRegistry,
        ai_provider: Optional[AIProvider] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.registry = registry
        self.ai_provider = ai_provider
        self.event_bus = event_bus or EventBus()
        self._factories: dict[UserTier, ServiceFactory] = {}

    @classmethod
    def from_settings(cls, content_path: Optional[str | Path] = None) -> DialogueEngine:
        """Load content and pick the AI provider from configuration."""
        registry = DialogueContentRegistry()
        registry.load_from_json(content_path or settings.CONTENT_PATH)
        provider = get_ai_provider()
        logger.info(
            "DialogueEngine ready: %d trees, AI provider %s",
            registry.count(),
            provider.name,
        )
        return cls(registry, ai_provider=provider)

    def get_service_factory(self, tier: UserTier | str) -> ServiceFactory:
        """Cached factory for ``tier``; same instance on every call until reset."""
        resolved = UserTier.parse(tier)
        factory = self._factories.get(resolved)
        if factory is None:
            factory = ServiceFactory(resolved, self.registry, self.ai_provider)
            self._factories[resolved] = factory
        return factory

    def reset_service_factories(self) -> None:
        """Drop cached factories (tier change, tests)."""
        self._factories.clear()

    def create_session(
        self,
        executor: EffectExecutor,
        tier: UserTier | str = UserTier.FREE,
        learner: Optional[LearnerProfile] = None,
        surface_id: str = "default",
        auto_close_delay: Optional[float] = None,
    ) -> DialogueSession:
        return DialogueSession(
            self,
            executor,
            tier=tier,
            learner=learner,
            surface_id=surface_id,
            auto_close_delay=auto_close_delay,
        )
