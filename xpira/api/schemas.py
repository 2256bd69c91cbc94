"""API request/response schemas."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class OpenDialogueRequest(BaseModel):
    """Start a conversation on a surface"""

    tree_id: str = Field(..., min_length=1, description="Dialogue tree id")
    npc_id: str = Field(..., min_length=1, description="NPC the player talks to")
    tier: Optional[str] = Field(
        default=None, description="free | premium (pro); server default when omitted"
    )
    player_level: int = Field(default=1, ge=1)
    learned_words: list[str] = Field(default_factory=list)
    current_mission: Optional[str] = None


class InputRequest(BaseModel):
    """Transcript or typed text"""

    text: str = Field(..., max_length=500)
    modality: Optional[Literal["speak", "write"]] = Field(
        default=None, description="Restrict matching to one input type"
    )


class ChoiceRequest(BaseModel):
    response_id: str = Field(..., min_length=1)


# === Response Schemas ===


class ResponseOptionInfo(BaseModel):
    id: str
    text: str
    requires_type: str
    expected_speech: list[str] = []


class NodeInfo(BaseModel):
    id: str
    speaker: str
    text: str
    text_in_target_language: str
    audio_url: Optional[str] = None
    responses: list[ResponseOptionInfo] = []
    is_terminal: bool


class EvaluationInfo(BaseModel):
    matched: bool
    similarity: float
    best_match: Optional[str] = None
    semantic_match: Optional[bool] = None
    pronunciation_score: Optional[float] = None
    grammar_correct: Optional[bool] = None
    corrections: Optional[list[str]] = None
    feedback: Optional[str] = None


class FeedbackInfo(BaseModel):
    type: str
    message: str
    hint: Optional[str] = None
    pronunciation_tips: Optional[list[str]] = None
    grammar_explanation: Optional[str] = None
    encouragement: Optional[str] = None
    audio_example: Optional[str] = None


class DialogueStateResponse(BaseModel):
    """Presentation view of a surface's session"""

    surface_id: str
    is_active: bool
    tree_id: Optional[str] = None
    npc_id: Optional[str] = None
    current_node: Optional[NodeInfo] = None
    failed_attempts: int = 0
    show_hint: bool = False
    last_input: str = ""
    last_evaluation: Optional[EvaluationInfo] = None
    last_feedback: Optional[FeedbackInfo] = None


class TurnResponse(BaseModel):
    """Result of an input or choice command"""

    accepted: bool
    feedback: Optional[FeedbackInfo] = None
    state: DialogueStateResponse

