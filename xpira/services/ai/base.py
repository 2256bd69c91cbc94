"""Abstract base class for AI providers."""

from abc import ABC, abstractmethod
from typing import Optional


class AIProvider(ABC):
    """Abstract base class for AI providers.

    Premium dialogue strategies talk to an LLM only through this
    interface, so the backing API can be swapped by configuration.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available and configured."""
        ...

    @property
    def supports_premium(self) -> bool:
        """Whether premium strategies may be built on this provider.

        Stand-in providers (mock) return False so the service factory
        falls back to the free tier.
        """
        return self.is_available()

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
        json_mode: bool = False,
    ) -> str:
        """Generate text based on the prompt.

        Args:
            prompt: The user prompt to send to the AI model.
            system_prompt: Optional system prompt for role/instruction.
            max_tokens: Maximum tokens for the response.
            json_mode: Ask the model for a bare JSON object.

        Returns:
            Generated text response.
        """
        ...
