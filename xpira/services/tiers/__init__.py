"""Tier-swappable dialogue strategies."""

from xpira.services.tiers.base import (
    DialogueContentProvider,
    DynamicResponseGenerator,
    FeedbackGenerator,
    ResponseEvaluator,
    UserTier,
)
from xpira.services.tiers.evaluator import FreeResponseEvaluator, PremiumResponseEvaluator
from xpira.services.tiers.factory import ServiceFactory
from xpira.services.tiers.feedback import AIFeedbackGenerator, SimpleFeedbackGenerator
from xpira.services.tiers.provider import AIDialogueProvider, StaticDialogueProvider

__all__ = [
    "AIDialogueProvider",
    "AIFeedbackGenerator",
    "DialogueContentProvider",
    "DynamicResponseGenerator",
    "FeedbackGenerator",
    "FreeResponseEvaluator",
    "PremiumResponseEvaluator",
    "ResponseEvaluator",
    "ServiceFactory",
    "SimpleFeedbackGenerator",
    "StaticDialogueProvider",
    "UserTier",
]
