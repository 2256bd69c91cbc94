"""Dialogue session state (in-memory, one per UI surface)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from xpira.core.dialogue.evaluation import (
    ConversationLine,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.dialogue.models import DialogueNode


@dataclass
class SessionState:
    is_active: bool = False
    current_tree_id: Optional[str] = None
    current_npc_id: Optional[str] = None
    current_node: Optional[DialogueNode] = None

    # attempts on the current node
    failed_attempts: int = 0
    hint_visible: bool = False

    last_input: str = ""
    last_evaluation: Optional[ResponseEvaluation] = None
    last_feedback: Optional[SpeechFeedback] = None

    # history
    previous_nodes: list[str] = field(default_factory=list)
    transcript: list[ConversationLine] = field(default_factory=list)

    def reset_attempts(self) -> None:
        self.failed_attempts = 0
        self.hint_visible = False


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view handed to the presentation layer."""

    is_active: bool
    current_node: Optional[DialogueNode]
    failed_attempts: int
    show_hint: bool
    last_input: str
    last_evaluation: Optional[ResponseEvaluation]
    last_feedback: Optional[SpeechFeedback]
    tree_id: Optional[str] = None
    npc_id: Optional[str] = None
