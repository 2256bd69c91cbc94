"""Service factory: one cached strategy bundle per user tier."""

from __future__ import annotations

from typing import Optional

from xpira.config import settings
from xpira.core.dialogue.content import DialogueContentRegistry
from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider
from xpira.services.tiers.base import (
    DialogueContentProvider,
    FeedbackGenerator,
    ResponseEvaluator,
    UserTier,
)
from xpira.services.tiers.evaluator import FreeResponseEvaluator, PremiumResponseEvaluator
from xpira.services.tiers.feedback import AIFeedbackGenerator, SimpleFeedbackGenerator
from xpira.services.tiers.provider import AIDialogueProvider, StaticDialogueProvider

logger = get_logger(__name__)


class ServiceFactory:
    """Creates the evaluator, content provider and feedback generator for a tier.

    Each ``create_*`` call returns the same instance for the lifetime of
    the factory. Premium is honoured only when an AI provider that
    supports it was supplied; otherwise the free implementations are
    returned and the substitution is logged.
    """

    def __init__(
        self,
        tier: UserTier,
        registry: DialogueContentRegistry,
        ai_provider: Optional[AIProvider] = None,
    ) -> None:
        self.tier = tier
        self._registry = registry
        self._ai_provider = ai_provider
        self._premium_provider: Optional[AIProvider] = None

        if tier is UserTier.PREMIUM:
            if ai_provider is not None and ai_provider.supports_premium:
                self._premium_provider = ai_provider
            else:
                logger.warning(
                    "Premium tier requested but no premium AI provider is configured "
                    "(%s); using free implementations",
                    ai_provider.name if ai_provider else "none",
                )

        self._evaluator: Optional[ResponseEvaluator] = None
        self._dialogue_provider: Optional[DialogueContentProvider] = None
        self._feedback_generator: Optional[FeedbackGenerator] = None
        logger.info("ServiceFactory initialized with tier: %s", tier.value)

    @property
    def is_premium(self) -> bool:
        """True when premium implementations are actually in use."""
        return self._premium_provider is not None

    def create_response_evaluator(self) -> ResponseEvaluator:
        if self._evaluator is None:
            if self._premium_provider is not None:
                self._evaluator = PremiumResponseEvaluator(
                    self._premium_provider, settings.PREMIUM_SIMILARITY_THRESHOLD
                )
            else:
                self._evaluator = FreeResponseEvaluator(settings.FREE_SIMILARITY_THRESHOLD)
        return self._evaluator

    def create_dialogue_provider(self) -> DialogueContentProvider:
        if self._dialogue_provider is None:
            if self._premium_provider is not None:
                self._dialogue_provider = AIDialogueProvider(
                    self._registry, self._premium_provider
                )
            else:
                self._dialogue_provider = StaticDialogueProvider(self._registry)
        return self._dialogue_provider

    def create_feedback_generator(self) -> FeedbackGenerator:
        if self._feedback_generator is None:
            if self._premium_provider is not None:
                self._feedback_generator = AIFeedbackGenerator(
                    self._premium_provider, settings.PARTIAL_FEEDBACK_THRESHOLD
                )
            else:
                self._feedback_generator = SimpleFeedbackGenerator(
                    settings.PARTIAL_FEEDBACK_THRESHOLD
                )
        return self._feedback_generator
