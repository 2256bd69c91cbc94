"""Mock AI provider for testing and fallback."""

import json
from typing import Optional

from xpira.services.ai.base import AIProvider

MOCK_JSON_RESPONSE = json.dumps(
    {
        "matched": False,
        "similarity": 0.0,
        "best_match": None,
        "semantic_match": None,
        "pronunciation_score": None,
        "grammar_correct": None,
        "corrections": [],
        "feedback": None,
    },
    ensure_ascii=False,
)


class MockProvider(AIProvider):
    """Mock AI provider that returns static text.

    Used for testing and as the default when no API key is configured.
    Never backs the premium tier.
    """

    @property
    def name(self) -> str:
        """Return the provider name."""
        return "mock"

    def is_available(self) -> bool:
        """Check if the provider is available."""
        return True

    @property
    def supports_premium(self) -> bool:
        return False

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
        json_mode: bool = False,
    ) -> str:
        """Generate mock text response.

        Returns a neutral JSON verdict in json_mode, otherwise static text.
        """
        if json_mode:
            return MOCK_JSON_RESPONSE
        return "[Mock] ¡Hola! ¿En qué puedo ayudarte?"
