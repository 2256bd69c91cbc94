"""LLM reply parsing: extract the JSON object premium strategies ask for."""

import json
import logging
import re

logger = logging.getLogger(__name__)


class ReplyParseError(ValueError):
    """The model reply did not contain a JSON object."""


def parse_json_reply(raw: str) -> dict:
    """Parse an LLM reply into a dict.

    Steps:
    1. whole reply as JSON
    2. first ```json ... ``` fenced block
    3. first {...} span
    Raises ReplyParseError when all three fail.
    """
    parsed = _try_parse_json(raw.strip())
    if parsed is not None:
        return parsed

    block = _extract_json_block(raw)
    if block is not None:
        parsed = _try_parse_json(block)
        if parsed is not None:
            return parsed

    start, end = raw.find("{"), raw.rfind("}")
    if 0 <= start < end:
        parsed = _try_parse_json(raw[start : end + 1])
        if parsed is not None:
            return parsed

    logger.warning("Failed to parse JSON reply (%d chars)", len(raw))
    raise ReplyParseError("reply does not contain a JSON object")


def _try_parse_json(text: str) -> dict | None:
    try:
        result = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return result if isinstance(result, dict) else None


def _extract_json_block(text: str) -> str | None:
    match = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if match:
        return match.group(1)
    return None


def as_str_tuple(value: object) -> tuple[str, ...] | None:
    """Coerce a JSON list of strings; anything else becomes None."""
    if not isinstance(value, list):
        return None
    items = tuple(str(v) for v in value if isinstance(v, str) and v.strip())
    return items or None


def as_optional_bool(value: object) -> bool | None:
    return value if isinstance(value, bool) else None


def clamp(value: object, low: float, high: float) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(low, min(high, float(value)))
