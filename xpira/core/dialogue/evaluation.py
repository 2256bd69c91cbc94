"""Evaluation, feedback and context value types shared by every tier.

Fields documented as premium-only are left as ``None`` by free
implementations. ``None`` means "not assessed", never an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from xpira.core.dialogue.models import DialogueNode, NpcRole, Speaker


class FeedbackType(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    INCORRECT = "incorrect"


@dataclass(frozen=True)
class ResponseEvaluation:
    matched: bool
    similarity: float  # 0~1
    best_match: Optional[str] = None

    # premium-only
    semantic_match: Optional[bool] = None
    pronunciation_score: Optional[float] = None  # 0~100
    grammar_correct: Optional[bool] = None
    corrections: Optional[tuple[str, ...]] = None
    feedback: Optional[str] = None

    @classmethod
    def no_match(cls) -> ResponseEvaluation:
        return cls(matched=False, similarity=0.0)


@dataclass(frozen=True)
class SpeechFeedback:
    type: FeedbackType
    message: str
    hint: Optional[str] = None

    # premium-only
    pronunciation_tips: Optional[tuple[str, ...]] = None
    grammar_explanation: Optional[str] = None
    encouragement: Optional[str] = None
    audio_example: Optional[str] = None


@dataclass(frozen=True)
class LanguageConfig:
    code: str  # "es"
    name: str  # "Spanish"
    speech_recognition_code: str  # "es-ES"


SPANISH = LanguageConfig(code="es", name="Spanish", speech_recognition_code="es-ES")


@dataclass(frozen=True)
class ConversationLine:
    speaker: Speaker
    text: str
    text_in_target_language: str = ""


@dataclass
class LearnerProfile:
    """What the session knows about the player. Owned by the caller."""

    player_level: int = 1
    target_language: LanguageConfig = SPANISH
    learned_words: list[str] = field(default_factory=list)
    current_mission: Optional[str] = None


@dataclass(frozen=True)
class DialogueContext:
    """Snapshot handed to evaluators, providers and feedback generators."""

    npc_id: str
    npc_name: str
    npc_role: NpcRole
    current_node_id: str
    previous_nodes: tuple[str, ...]
    player_level: int
    target_language: LanguageConfig
    learned_words: tuple[str, ...]
    current_mission: Optional[str] = None

    # premium-only
    conversation_history: Optional[tuple[ConversationLine, ...]] = None


@dataclass(frozen=True)
class DialogueProviderResponse:
    node: DialogueNode
    is_generated: bool
    suggested_responses: Optional[tuple[str, ...]] = None
