"""Response evaluators: Levenshtein matching (free) and LLM judging (premium)."""

from __future__ import annotations

import asyncio
import json

from xpira.core.dialogue.evaluation import DialogueContext, ResponseEvaluation
from xpira.core.dialogue.similarity import calculate_similarity, normalize
from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider
from xpira.services.ai.parser import (
    as_optional_bool,
    as_str_tuple,
    clamp,
    parse_json_reply,
)
from xpira.services.tiers.base import ResponseEvaluator

logger = get_logger(__name__)

DEFAULT_FREE_THRESHOLD = 0.5
DEFAULT_PREMIUM_THRESHOLD = 0.4


class FreeResponseEvaluator(ResponseEvaluator):
    """Scores the transcript against each accepted phrase and keeps the best.

    Deterministic: identical inputs always give identical results. The
    context is accepted for interface parity and ignored.
    """

    def __init__(self, threshold: float = DEFAULT_FREE_THRESHOLD) -> None:
        self._threshold = threshold

    def get_similarity_threshold(self) -> float:
        return self._threshold

    async def _evaluate(
        self,
        transcript: str,
        expected_phrases: list[str],
        context: DialogueContext,
    ) -> ResponseEvaluation:
        return self.score(transcript, expected_phrases)

    def score(self, transcript: str, expected_phrases: list[str]) -> ResponseEvaluation:
        spoken = normalize(transcript)
        if not spoken:
            return ResponseEvaluation.no_match()

        best_match: str | None = None
        best_similarity = 0.0
        for phrase in expected_phrases:
            similarity = calculate_similarity(spoken, normalize(phrase))
            if similarity > best_similarity:
                best_similarity = similarity
                best_match = phrase

        return ResponseEvaluation(
            matched=best_similarity >= self._threshold,
            similarity=best_similarity,
            best_match=best_match,
        )


EVALUATION_SYSTEM_PROMPT = (
    "You are a patient {language} tutor grading a beginner's spoken answer in a "
    "role-play with {npc_name} ({npc_role}). Judge meaning, not exact wording: "
    "paraphrases that a native speaker would accept count as correct. "
    "Reply with a single JSON object only."
)

EVALUATION_PROMPT = """Expected answers (any one is fine):
{phrases}

The learner said: "{transcript}"
Learner level: {level}. Words the learner knows: {words}

Return JSON with keys:
"matched" (bool), "similarity" (0-1), "best_match" (one of the expected answers or null),
"semantic_match" (bool), "pronunciation_score" (0-100 or null),
"grammar_correct" (bool), "corrections" (list of strings), "feedback" (one short sentence in English)."""


class PremiumResponseEvaluator(ResponseEvaluator):
    """Asks the AI provider for a semantic verdict.

    The provider call is blocking, so it runs in a worker thread. Any
    failure is absorbed by ``ResponseEvaluator.evaluate``.
    """

    def __init__(
        self,
        provider: AIProvider,
        threshold: float = DEFAULT_PREMIUM_THRESHOLD,
    ) -> None:
        self._provider = provider
        self._threshold = threshold

    def get_similarity_threshold(self) -> float:
        return self._threshold

    async def _evaluate(
        self,
        transcript: str,
        expected_phrases: list[str],
        context: DialogueContext,
    ) -> ResponseEvaluation:
        system_prompt = EVALUATION_SYSTEM_PROMPT.format(
            language=context.target_language.name,
            npc_name=context.npc_name,
            npc_role=context.npc_role.value,
        )
        prompt = EVALUATION_PROMPT.format(
            phrases=json.dumps(expected_phrases, ensure_ascii=False),
            transcript=transcript,
            level=context.player_level,
            words=", ".join(context.learned_words) or "none yet",
        )

        raw = await asyncio.to_thread(
            self._provider.generate,
            prompt,
            system_prompt,
            512,
            True,
        )
        verdict = parse_json_reply(raw)

        similarity = clamp(verdict.get("similarity"), 0.0, 1.0) or 0.0
        semantic_match = as_optional_bool(verdict.get("semantic_match"))
        model_matched = as_optional_bool(verdict.get("matched"))
        matched = similarity >= self._threshold or bool(model_matched or semantic_match)

        best_match = verdict.get("best_match")
        if best_match not in expected_phrases:
            best_match = None

        feedback = verdict.get("feedback")
        logger.debug(
            "Premium verdict: matched=%s similarity=%.2f (%s)",
            matched,
            similarity,
            self._provider.name,
        )
        return ResponseEvaluation(
            matched=matched,
            similarity=similarity,
            best_match=best_match,
            semantic_match=semantic_match,
            pronunciation_score=clamp(verdict.get("pronunciation_score"), 0.0, 100.0),
            grammar_correct=as_optional_bool(verdict.get("grammar_correct")),
            corrections=as_str_tuple(verdict.get("corrections")),
            feedback=feedback if isinstance(feedback, str) and feedback else None,
        )
