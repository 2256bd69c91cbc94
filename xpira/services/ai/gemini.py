"""Gemini AI provider implementation."""

from typing import Optional

import google.generativeai as genai

from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider

logger = get_logger(__name__)


class GeminiProvider(AIProvider):
    """AI provider using Google Gemini API."""

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash") -> None:
        """Initialize the Gemini provider.

        Args:
            api_key: Google API key for Gemini.
            model: Model name to use.
        """
        self._api_key = api_key
        self._model_name = model
        self._model = None

        if self._api_key:
            genai.configure(api_key=self._api_key)
            self._model = genai.GenerativeModel(self._model_name)
            logger.info("GeminiProvider initialized with model: %s", self._model_name)

    @property
    def name(self) -> str:
        return "gemini"

    def is_available(self) -> bool:
        return bool(self._api_key) and self._model is not None

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
        json_mode: bool = False,
    ) -> str:
        """Generate text using Gemini API.

        Raises:
            RuntimeError: If API call fails or provider is not available.
        """
        if not self.is_available():
            raise RuntimeError("GeminiProvider is not available. Check API key.")

        assert self._model is not None

        # System instructions are bound at model construction time
        model = self._model
        if system_prompt:
            model = genai.GenerativeModel(
                self._model_name,
                system_instruction=system_prompt,
            )

        config_kwargs: dict = {"max_output_tokens": max_tokens}
        if json_mode:
            config_kwargs["response_mime_type"] = "application/json"
        generation_config = genai.types.GenerationConfig(**config_kwargs)

        try:
            response = model.generate_content(
                prompt,
                generation_config=generation_config,
            )
            result: str = response.text.strip()
            return result
        except Exception as e:
            logger.error("Gemini API error: %s", e)
            raise RuntimeError(f"Gemini API error: {e}") from e
