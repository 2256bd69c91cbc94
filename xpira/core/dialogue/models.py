"""Dialogue content domain model (immutable, no I/O).

Loaded once from JSON by ``xpira.core.dialogue.content``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class Speaker(str, Enum):
    NPC = "npc"
    PLAYER = "player"


class InputType(str, Enum):
    SPEAK = "speak"
    WRITE = "write"
    CHOICE = "choice"


class NpcRole(str, Enum):
    VENDOR = "vendor"
    TEACHER = "teacher"
    QUESTGIVER = "questgiver"
    CITIZEN = "citizen"


# Modalities that are scored by a ResponseEvaluator
EVALUATED_INPUT_TYPES = frozenset({InputType.SPEAK, InputType.WRITE})


# --- actions ---


@dataclass(frozen=True)
class GiveItemAction:
    item_id: str
    quantity: int = 1


@dataclass(frozen=True)
class TakeItemAction:
    item_id: str
    quantity: int = 1


@dataclass(frozen=True)
class GiveXpAction:
    amount: int


@dataclass(frozen=True)
class StartMissionAction:
    mission_id: str


@dataclass(frozen=True)
class CompleteMissionAction:
    mission_id: str


@dataclass(frozen=True)
class VocabularyEntry:
    word: str
    translation: str


@dataclass(frozen=True)
class TeachWordAction:
    words: tuple[VocabularyEntry, ...]


DialogueAction = Union[
    GiveItemAction,
    TakeItemAction,
    GiveXpAction,
    StartMissionAction,
    CompleteMissionAction,
    TeachWordAction,
]


# --- tree ---


@dataclass(frozen=True)
class DialogueResponse:
    """One option the player can answer with."""

    id: str
    text: str  # label shown to the player
    next_node_id: str
    requires_type: InputType
    expected_speech: tuple[str, ...] = ()  # accepted phrases, case-insensitive

    @property
    def is_evaluated(self) -> bool:
        return self.requires_type in EVALUATED_INPUT_TYPES


@dataclass(frozen=True)
class DialogueNode:
    id: str
    speaker: Speaker
    text: str  # native language
    text_in_target_language: str
    responses: tuple[DialogueResponse, ...] = ()
    action: Optional[DialogueAction] = None
    audio_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """A node without responses ends the conversation."""
        return not self.responses

    def find_response(self, response_id: str) -> Optional[DialogueResponse]:
        for response in self.responses:
            if response.id == response_id:
                return response
        return None


@dataclass(frozen=True)
class DialogueTree:
    id: str
    start_node_id: str
    nodes: tuple[DialogueNode, ...]

    def find_node(self, node_id: str) -> Optional[DialogueNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]


@dataclass(frozen=True)
class NpcProfile:
    npc_id: str
    name: str
    role: NpcRole = NpcRole.CITIZEN

    @classmethod
    def anonymous(cls, npc_id: str) -> NpcProfile:
        """Profile for an NPC id the content does not describe."""
        return cls(npc_id=npc_id, name=npc_id)
