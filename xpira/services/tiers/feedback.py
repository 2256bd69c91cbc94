"""Feedback generators: canned messages (free) and AI tips (premium)."""

from __future__ import annotations

import asyncio
import dataclasses
import itertools

from xpira.core.dialogue.evaluation import (
    DialogueContext,
    FeedbackType,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider
from xpira.services.ai.parser import as_str_tuple, parse_json_reply
from xpira.services.tiers.base import FeedbackGenerator

logger = get_logger(__name__)

DEFAULT_PARTIAL_THRESHOLD = 0.3

SUCCESS_MESSAGES = (
    "¡Perfecto! Excellent!",
    "¡Muy bien! Very good!",
    "¡Correcto! Correct!",
    "¡Excelente! Excellent!",
)

GENERIC_HINTS = (
    'Click "Listen again" to hear the correct phrase.',
    "Try speaking more slowly and clearly.",
    "You can also switch to writing if speaking is difficult.",
)

RETRY_HINT = "Listen to the phrase again and try once more."


class SimpleFeedbackGenerator(FeedbackGenerator):
    """Three-way feedback keyed on the evaluation.

    - matched                      -> success, rotating affirmation
    - similarity > partial cutoff  -> partial, quote best match
    - otherwise                    -> incorrect, expected phrase or rotating hint
    """

    def __init__(self, partial_threshold: float = DEFAULT_PARTIAL_THRESHOLD) -> None:
        self._partial_threshold = partial_threshold
        self._affirmations = itertools.cycle(SUCCESS_MESSAGES)
        self._hints = itertools.cycle(GENERIC_HINTS)

    async def generate_feedback(
        self,
        transcript: str,
        evaluation: ResponseEvaluation,
        context: DialogueContext,
    ) -> SpeechFeedback:
        return self.build(transcript, evaluation)

    def build(self, transcript: str, evaluation: ResponseEvaluation) -> SpeechFeedback:
        if evaluation.matched:
            return SpeechFeedback(type=FeedbackType.SUCCESS, message=next(self._affirmations))

        if evaluation.similarity > self._partial_threshold:
            hint = (
                f'Try saying: "{evaluation.best_match}"'
                if evaluation.best_match
                else RETRY_HINT
            )
            return SpeechFeedback(
                type=FeedbackType.PARTIAL,
                message=f'Almost! You said "{transcript}"',
                hint=hint,
            )

        hint = (
            f'The expected phrase was: "{evaluation.best_match}"'
            if evaluation.best_match
            else next(self._hints)
        )
        return SpeechFeedback(
            type=FeedbackType.INCORRECT,
            message="I didn't quite catch that.",
            hint=hint,
        )


TIPS_PROMPT = """A {language} learner (level {level}) tried to say one of: {expected}
They said: "{transcript}"

Return JSON with keys:
"pronunciation_tips" (list of 1-3 short tips in English),
"grammar_explanation" (one sentence or null),
"encouragement" (one short, warm sentence)."""


class AIFeedbackGenerator(FeedbackGenerator):
    """Simple feedback enriched with the evaluator's notes and model-written tips.

    Successful attempts skip the model call. If the provider fails, the
    simple feedback is returned unchanged.
    """

    def __init__(
        self,
        provider: AIProvider,
        partial_threshold: float = DEFAULT_PARTIAL_THRESHOLD,
    ) -> None:
        self._provider = provider
        self._simple = SimpleFeedbackGenerator(partial_threshold)

    async def generate_feedback(
        self,
        transcript: str,
        evaluation: ResponseEvaluation,
        context: DialogueContext,
    ) -> SpeechFeedback:
        feedback = self._simple.build(transcript, evaluation)
        if evaluation.feedback:
            feedback = dataclasses.replace(feedback, message=evaluation.feedback)
        if evaluation.corrections:
            feedback = dataclasses.replace(
                feedback, hint="; ".join(evaluation.corrections)
            )

        if evaluation.matched:
            return feedback

        try:
            tips = await self._ask_tips(transcript, evaluation, context)
        except Exception as e:
            logger.warning("AI feedback tips failed, using simple feedback: %s", e)
            return feedback

        grammar = tips.get("grammar_explanation")
        encouragement = tips.get("encouragement")
        return dataclasses.replace(
            feedback,
            pronunciation_tips=as_str_tuple(tips.get("pronunciation_tips")),
            grammar_explanation=grammar if isinstance(grammar, str) and grammar else None,
            encouragement=(
                encouragement if isinstance(encouragement, str) and encouragement else None
            ),
        )

    async def _ask_tips(
        self,
        transcript: str,
        evaluation: ResponseEvaluation,
        context: DialogueContext,
    ) -> dict:
        prompt = TIPS_PROMPT.format(
            language=context.target_language.name,
            level=context.player_level,
            expected=evaluation.best_match or "the suggested phrases",
            transcript=transcript,
        )
        raw = await asyncio.to_thread(self._provider.generate, prompt, None, 300, True)
        return parse_json_reply(raw)
