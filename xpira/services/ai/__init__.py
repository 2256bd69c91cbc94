"""AI provider module."""

from xpira.services.ai.base import AIProvider
from xpira.services.ai.factory import get_ai_provider
from xpira.services.ai.gemini import GeminiProvider
from xpira.services.ai.mock import MockProvider
from xpira.services.ai.parser import ReplyParseError, parse_json_reply

__all__ = [
    "AIProvider",
    "GeminiProvider",
    "MockProvider",
    "ReplyParseError",
    "get_ai_provider",
    "parse_json_reply",
]
