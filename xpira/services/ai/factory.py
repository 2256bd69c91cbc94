"""Factory for creating AI provider instances."""

from typing import Optional

from xpira.config import settings
from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider
from xpira.services.ai.gemini import GeminiProvider
from xpira.services.ai.mock import MockProvider

logger = get_logger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"


def get_ai_provider(provider_name: Optional[str] = None) -> AIProvider:
    """Get an AI provider instance.

    Args:
        provider_name: Optional provider name. If not specified,
                      uses AI_PROVIDER from config.

    Returns:
        An AIProvider instance. Misconfiguration never raises; it yields
        MockProvider, which in turn keeps the engine on the free tier.
    """
    name = (provider_name or settings.AI_PROVIDER or "mock").lower()

    if name == "mock":
        logger.debug("Using MockProvider")
        return MockProvider()

    if name == "gemini":
        if settings.AI_API_KEY:
            model = settings.AI_MODEL or DEFAULT_GEMINI_MODEL
            logger.debug("Using GeminiProvider with model: %s", model)
            return GeminiProvider(api_key=settings.AI_API_KEY, model=model)
        logger.warning("AI_API_KEY not set, falling back to MockProvider")
        return MockProvider()

    logger.warning("Unknown provider '%s', falling back to MockProvider", name)
    return MockProvider()
