"""Strategy interfaces swapped per user tier.

                    ServiceFactory (per UserTier)
                 /            |             \\
    ResponseEvaluator  DialogueContentProvider  FeedbackGenerator
      free: pattern      free: static trees      free: canned messages
      premium: LLM       premium: + dynamic      premium: + AI tips

Call sites only see these ABCs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence

from xpira.core.dialogue.evaluation import (
    DialogueContext,
    DialogueProviderResponse,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.dialogue.models import DialogueNode, DialogueTree
from xpira.core.logging import get_logger

logger = get_logger(__name__)


class UserTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: str | UserTier) -> UserTier:
        """Resolve a raw tier string once, at the edge.

        The billing backend calls the paid tier "pro". Unknown values
        resolve to FREE.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "pro":
            return cls.PREMIUM
        try:
            return cls(normalized)
        except ValueError:
            logger.warning("Unknown user tier '%s', using free", value)
            return cls.FREE


class ResponseEvaluator(ABC):
    """Decides whether a transcript answers a response option.

    ``evaluate`` is the error boundary: implementation failures (a
    network call timing out, a malformed model reply) degrade to a
    no-match result instead of propagating into the session.
    """

    async def evaluate(
        self,
        transcript: str,
        expected_phrases: Sequence[str],
        context: DialogueContext,
    ) -> ResponseEvaluation:
        if not transcript.strip() or not expected_phrases:
            return ResponseEvaluation.no_match()
        try:
            return await self._evaluate(transcript, list(expected_phrases), context)
        except Exception:
            logger.exception(
                "%s failed, treating input as unmatched", type(self).__name__
            )
            return ResponseEvaluation.no_match()

    @abstractmethod
    async def _evaluate(
        self,
        transcript: str,
        expected_phrases: list[str],
        context: DialogueContext,
    ) -> ResponseEvaluation: ...

    @abstractmethod
    def get_similarity_threshold(self) -> float: ...


class DynamicResponseGenerator(ABC):
    """Capability: build an NPC reply for input the static tree cannot handle."""

    @abstractmethod
    async def generate_dynamic_response(
        self,
        transcript: str,
        context: DialogueContext,
    ) -> DialogueProviderResponse: ...


class DialogueContentProvider(ABC):
    @abstractmethod
    async def get_dialogue_tree(
        self,
        tree_id: str,
        context: Optional[DialogueContext] = None,
    ) -> Optional[DialogueTree]:
        """Look up a tree. Not-found returns None; it is never raised."""
        ...

    def get_node(self, tree: DialogueTree, node_id: str) -> Optional[DialogueNode]:
        return tree.find_node(node_id)

    @property
    def dynamic_responses(self) -> Optional[DynamicResponseGenerator]:
        """The dynamic response capability, or None when not offered.

        Callers must check for None before generating.
        """
        return None


class FeedbackGenerator(ABC):
    @abstractmethod
    async def generate_feedback(
        self,
        transcript: str,
        evaluation: ResponseEvaluation,
        context: DialogueContext,
    ) -> SpeechFeedback: ...
