"""Dialogue API endpoints (presentation boundary)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from xpira.api.schemas import (
    ChoiceRequest,
    DialogueStateResponse,
    EvaluationInfo,
    FeedbackInfo,
    InputRequest,
    NodeInfo,
    OpenDialogueRequest,
    ResponseOptionInfo,
    TurnResponse,
)
from xpira.config import settings
from xpira.core.dialogue.evaluation import (
    LearnerProfile,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.dialogue.models import DialogueNode, InputType
from xpira.core.logging import get_logger
from xpira.services.dialogue_session import DialogueSession
from xpira.services.session_manager import SessionManager

logger = get_logger(__name__)

router = APIRouter(prefix="/dialogue", tags=["dialogue"])


def get_session_manager(request: Request) -> SessionManager:
    """SessionManager instance (dependency injection)"""
    manager: SessionManager = request.app.state.session_manager
    return manager


def _build_node_info(node: DialogueNode) -> NodeInfo:
    return NodeInfo(
        id=node.id,
        speaker=node.speaker.value,
        text=node.text,
        text_in_target_language=node.text_in_target_language,
        audio_url=node.audio_url,
        responses=[
            ResponseOptionInfo(
                id=r.id,
                text=r.text,
                requires_type=r.requires_type.value,
                expected_speech=list(r.expected_speech),
            )
            for r in node.responses
        ],
        is_terminal=node.is_terminal,
    )


def _build_evaluation_info(evaluation: ResponseEvaluation) -> EvaluationInfo:
    return EvaluationInfo(
        matched=evaluation.matched,
        similarity=evaluation.similarity,
        best_match=evaluation.best_match,
        semantic_match=evaluation.semantic_match,
        pronunciation_score=evaluation.pronunciation_score,
        grammar_correct=evaluation.grammar_correct,
        corrections=list(evaluation.corrections) if evaluation.corrections else None,
        feedback=evaluation.feedback,
    )


def _build_feedback_info(feedback: SpeechFeedback) -> FeedbackInfo:
    return FeedbackInfo(
        type=feedback.type.value,
        message=feedback.message,
        hint=feedback.hint,
        pronunciation_tips=(
            list(feedback.pronunciation_tips) if feedback.pronunciation_tips else None
        ),
        grammar_explanation=feedback.grammar_explanation,
        encouragement=feedback.encouragement,
        audio_example=feedback.audio_example,
    )


def _build_state(surface_id: str, session: Optional[DialogueSession]) -> DialogueStateResponse:
    if session is None or not session.is_active:
        return DialogueStateResponse(surface_id=surface_id, is_active=False)

    snapshot = session.snapshot()
    return DialogueStateResponse(
        surface_id=surface_id,
        is_active=True,
        tree_id=snapshot.tree_id,
        npc_id=snapshot.npc_id,
        current_node=_build_node_info(snapshot.current_node) if snapshot.current_node else None,
        failed_attempts=snapshot.failed_attempts,
        show_hint=snapshot.show_hint,
        last_input=snapshot.last_input,
        last_evaluation=(
            _build_evaluation_info(snapshot.last_evaluation)
            if snapshot.last_evaluation
            else None
        ),
        last_feedback=(
            _build_feedback_info(snapshot.last_feedback) if snapshot.last_feedback else None
        ),
    )


def _require_active(manager: SessionManager, surface_id: str) -> DialogueSession:
    session = manager.get(surface_id)
    if session is None or not session.is_active:
        raise HTTPException(status_code=409, detail="No active dialogue on this surface")
    return session


@router.get("/{surface_id}", response_model=DialogueStateResponse)
async def get_dialogue_state(
    surface_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> DialogueStateResponse:
    """Current presentation state of a surface (inactive if none)."""
    return _build_state(surface_id, manager.get(surface_id))


@router.post("/{surface_id}/open", response_model=DialogueStateResponse)
async def open_dialogue(
    surface_id: str,
    request: OpenDialogueRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> DialogueStateResponse:
    """
    Start a conversation.

    Replaces any conversation already active on the surface. Unknown
    trees return 404 and leave the surface closed.
    """
    learner = LearnerProfile(
        player_level=request.player_level,
        learned_words=list(request.learned_words),
        current_mission=request.current_mission,
    )
    tier = request.tier or settings.DEFAULT_USER_TIER
    session = manager.get_or_create(surface_id, tier, learner)
    opened = await session.open(request.tree_id, request.npc_id)
    if not opened:
        logger.info("Open failed on surface %s: %s", surface_id, request.tree_id)
        raise HTTPException(
            status_code=404, detail=f"Dialogue tree not found: {request.tree_id}"
        )
    return _build_state(surface_id, session)


@router.post("/{surface_id}/input", response_model=TurnResponse)
async def submit_input(
    surface_id: str,
    request: InputRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> TurnResponse:
    """Evaluate a transcript or typed answer."""
    session = _require_active(manager, surface_id)
    modality = InputType(request.modality) if request.modality else None
    feedback = await session.submit_input(request.text, modality)
    return TurnResponse(
        accepted=feedback is not None,
        feedback=_build_feedback_info(feedback) if feedback else None,
        state=_build_state(surface_id, session),
    )


@router.post("/{surface_id}/choice", response_model=TurnResponse)
async def select_choice(
    surface_id: str,
    request: ChoiceRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> TurnResponse:
    """Follow a choice response."""
    session = _require_active(manager, surface_id)
    if not await session.select_choice(request.response_id):
        raise HTTPException(
            status_code=400, detail=f"Not a choice on this node: {request.response_id}"
        )
    return TurnResponse(accepted=True, state=_build_state(surface_id, session))


@router.post("/{surface_id}/close", response_model=DialogueStateResponse)
async def close_dialogue(
    surface_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> DialogueStateResponse:
    """Close the surface's conversation. Idempotent."""
    session = manager.get(surface_id)
    if session is not None:
        session.close()
    return _build_state(surface_id, session)
