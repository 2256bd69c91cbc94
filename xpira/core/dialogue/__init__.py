"""Dialogue core package.

Pure Python domain model, content loading and similarity scoring.
No network, no framework imports.
"""

from xpira.core.dialogue.content import (
    ContentError,
    DialogueContentRegistry,
    decode_action,
    decode_tree,
)
from xpira.core.dialogue.evaluation import (
    ConversationLine,
    DialogueContext,
    DialogueProviderResponse,
    FeedbackType,
    LanguageConfig,
    LearnerProfile,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.dialogue.models import (
    CompleteMissionAction,
    DialogueAction,
    DialogueNode,
    DialogueResponse,
    DialogueTree,
    GiveItemAction,
    GiveXpAction,
    InputType,
    NpcProfile,
    NpcRole,
    Speaker,
    StartMissionAction,
    TakeItemAction,
    TeachWordAction,
    VocabularyEntry,
)
from xpira.core.dialogue.similarity import (
    calculate_similarity,
    levenshtein_distance,
    normalize,
)
from xpira.core.dialogue.state import SessionSnapshot, SessionState

__all__ = [
    "ContentError",
    "DialogueContentRegistry",
    "decode_action",
    "decode_tree",
    "ConversationLine",
    "DialogueContext",
    "DialogueProviderResponse",
    "FeedbackType",
    "LanguageConfig",
    "LearnerProfile",
    "ResponseEvaluation",
    "SpeechFeedback",
    "CompleteMissionAction",
    "DialogueAction",
    "DialogueNode",
    "DialogueResponse",
    "DialogueTree",
    "GiveItemAction",
    "GiveXpAction",
    "InputType",
    "NpcProfile",
    "NpcRole",
    "Speaker",
    "StartMissionAction",
    "TakeItemAction",
    "TeachWordAction",
    "VocabularyEntry",
    "calculate_similarity",
    "levenshtein_distance",
    "normalize",
    "SessionSnapshot",
    "SessionState",
]
