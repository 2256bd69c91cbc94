"""Dialogue session state machine (one per UI surface).

    Closed --open()--> Active(start, 0, hint=False)
    Active --submit_input() match--> Active(next, 0, False)   [+ action, auto-close if terminal]
    Active --submit_input() miss---> Active(node, n+1, n+1 >= 2)  [fallback node at n+1 >= 3]
    Active --select_choice()-------> Active(next, 0, False)
    *      --close()---------------> Closed

Input on a terminal node is ignored; the pending auto-close ends it.
Only one evaluation may be in flight. Every mutation after an ``await``
is guarded by the session generation, which open() and close() bump, so
a late evaluator result never lands on a closed or reopened session.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from xpira.config import settings
from xpira.core.dialogue.evaluation import (
    ConversationLine,
    DialogueContext,
    LearnerProfile,
    ResponseEvaluation,
    SpeechFeedback,
)
from xpira.core.dialogue.models import (
    DialogueNode,
    DialogueResponse,
    DialogueTree,
    InputType,
    NpcProfile,
    Speaker,
)
from xpira.core.dialogue.state import SessionSnapshot, SessionState
from xpira.core.event_bus import EngineEvent, EventBus
from xpira.core.event_types import EventTypes
from xpira.core.logging import get_logger
from xpira.services.effects import EffectExecutor
from xpira.services.tiers.base import UserTier

if TYPE_CHECKING:
    from xpira.engine import DialogueEngine

logger = get_logger(__name__)


class DialogueSession:
    """Conversation driver for a single UI surface."""

    def __init__(
        self,
        engine: DialogueEngine,
        executor: EffectExecutor,
        tier: UserTier | str = UserTier.FREE,
        learner: Optional[LearnerProfile] = None,
        surface_id: str = "default",
        auto_close_delay: Optional[float] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        factory = engine.get_service_factory(tier)
        self._evaluator = factory.create_response_evaluator()
        self._provider = factory.create_dialogue_provider()
        self._feedback = factory.create_feedback_generator()
        self._include_history = factory.is_premium

        self._engine = engine
        self._executor = executor
        self._bus = event_bus or engine.event_bus
        self.learner = learner or LearnerProfile()
        self.surface_id = surface_id
        self.tier = factory.tier

        self._auto_close_delay = (
            settings.AUTO_CLOSE_DELAY_SECONDS if auto_close_delay is None else auto_close_delay
        )
        self._hint_after = settings.HINT_AFTER_ATTEMPTS
        self._fallback_after = settings.FALLBACK_AFTER_ATTEMPTS
        self._fallback_node_id = settings.FALLBACK_NODE_ID

        self._state = SessionState()
        self._tree: Optional[DialogueTree] = None
        self._npc: Optional[NpcProfile] = None
        self._generation = 0
        self._evaluating = False
        self._auto_close_handle: Optional[asyncio.TimerHandle] = None

    # === presentation boundary ===

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def current_node(self) -> Optional[DialogueNode]:
        return self._state.current_node

    @property
    def failed_attempts(self) -> int:
        return self._state.failed_attempts

    @property
    def show_hint(self) -> bool:
        return self._state.hint_visible

    @property
    def last_input(self) -> str:
        return self._state.last_input

    @property
    def last_evaluation(self) -> Optional[ResponseEvaluation]:
        return self._state.last_evaluation

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def auto_close_pending(self) -> bool:
        return self._auto_close_handle is not None

    def snapshot(self) -> SessionSnapshot:
        state = self._state
        return SessionSnapshot(
            is_active=state.is_active,
            current_node=state.current_node,
            failed_attempts=state.failed_attempts,
            show_hint=state.hint_visible,
            last_input=state.last_input,
            last_evaluation=state.last_evaluation,
            last_feedback=state.last_feedback,
            tree_id=state.current_tree_id,
            npc_id=state.current_npc_id,
        )

    # === commands ===

    async def open(self, tree_id: str, npc_id: str) -> bool:
        """Start a conversation. Returns False when the tree or its start node is missing."""
        self._bus.reset_chain()
        if self._state.is_active:
            logger.info("Replacing active dialogue on surface %s", self.surface_id)
            self._close("replaced")

        self._generation += 1
        generation = self._generation
        npc = self._engine.registry.get_npc(npc_id)

        tree = await self._provider.get_dialogue_tree(tree_id, self._build_context(npc))
        if generation != self._generation:
            logger.info("open(%s) superseded before the tree resolved", tree_id)
            return False
        self._bus.reset_chain()

        start = self._provider.get_node(tree, tree.start_node_id) if tree else None
        if tree is None or start is None:
            if tree is not None:
                logger.warning("Start node not found: %s/%s", tree_id, tree.start_node_id)
            self._emit(EventTypes.DIALOGUE_NOT_FOUND, {"tree_id": tree_id, "npc_id": npc_id})
            return False

        self._tree = tree
        self._npc = npc
        self._state = SessionState(
            is_active=True,
            current_tree_id=tree.id,
            current_npc_id=npc_id,
            current_node=start,
        )
        self._record_line(Speaker.NPC, start.text, start.text_in_target_language)

        logger.info(
            "Dialogue started: %s (npc=%s, surface=%s, tier=%s)",
            tree.id,
            npc_id,
            self.surface_id,
            self.tier.value,
        )
        self._emit(
            EventTypes.DIALOGUE_STARTED,
            {"tree_id": tree.id, "npc_id": npc_id, "node_id": start.id},
        )
        if start.is_terminal:
            self._schedule_auto_close()
        return True

    async def submit_input(
        self,
        text: str,
        modality: Optional[InputType] = None,
    ) -> Optional[SpeechFeedback]:
        """Evaluate spoken or written input against the current node.

        Args:
            text: transcript from the speech service, or typed text.
            modality: restrict evaluation to responses requiring this input
                type. None evaluates both speak and write responses.

        Returns:
            Feedback for the attempt, or None when the input was ignored
            (no active session, terminal node, evaluation already in
            flight, or the session closed while evaluating).
        """
        if not self._state.is_active or self._state.current_node is None:
            logger.warning("submit_input ignored: no active dialogue on %s", self.surface_id)
            return None
        if self._state.current_node.is_terminal:
            logger.debug(
                "submit_input ignored: node %s has no responses",
                self._state.current_node.id,
            )
            return None
        if self._evaluating:
            logger.info("submit_input ignored: evaluation already in flight")
            return None

        generation = self._generation
        node = self._state.current_node
        self._state.last_input = text
        context = self._build_context()

        self._evaluating = True
        try:
            response, evaluation = await self._find_match(text, node, context, modality)
            if self._is_stale(generation):
                return None

            feedback = await self._feedback.generate_feedback(text, evaluation, context)
            if self._is_stale(generation):
                return None

            # effects and events below form one new chain
            self._bus.reset_chain()

            self._state.last_evaluation = evaluation
            self._state.last_feedback = feedback
            self._record_line(Speaker.PLAYER, text)

            if response is not None:
                self._emit(
                    EventTypes.DIALOGUE_RESPONSE_MATCHED,
                    {
                        "node_id": node.id,
                        "response_id": response.id,
                        "requires_type": response.requires_type.value,
                        "similarity": evaluation.similarity,
                    },
                )
                self._advance(response.next_node_id)
                return feedback

            await self._register_miss(text, context, generation)
            return feedback
        finally:
            if generation == self._generation:
                self._evaluating = False

    async def select_choice(self, response_id: str) -> bool:
        """Follow a choice response. No evaluation is performed."""
        node = self._state.current_node
        if not self._state.is_active or node is None:
            logger.warning("select_choice ignored: no active dialogue on %s", self.surface_id)
            return False
        if self._evaluating:
            logger.info("select_choice ignored: evaluation in flight")
            return False

        response = node.find_response(response_id)
        if response is None or response.requires_type is not InputType.CHOICE:
            logger.warning("No choice response '%s' on node %s", response_id, node.id)
            return False

        self._bus.reset_chain()
        self._record_line(Speaker.PLAYER, response.text)
        return self._advance(response.next_node_id)

    def close(self) -> None:
        """End the conversation. Safe to call any number of times."""
        self._bus.reset_chain()
        self._close("closed")

    # === internals ===

    async def _find_match(
        self,
        text: str,
        node: DialogueNode,
        context: DialogueContext,
        modality: Optional[InputType],
    ) -> tuple[Optional[DialogueResponse], ResponseEvaluation]:
        """First matched response in content order, else the closest miss."""
        best_miss = ResponseEvaluation.no_match()
        for response in node.responses:
            if not response.is_evaluated:
                continue
            if modality is not None and response.requires_type is not modality:
                continue

            evaluation = await self._evaluator.evaluate(
                text, response.expected_speech, context
            )
            if evaluation.matched:
                return response, evaluation
            if evaluation.similarity > best_miss.similarity:
                best_miss = evaluation
        return None, best_miss

    async def _register_miss(
        self,
        text: str,
        context: DialogueContext,
        generation: int,
    ) -> None:
        state = self._state
        state.failed_attempts += 1
        state.hint_visible = state.failed_attempts >= self._hint_after
        logger.debug(
            "No match on %s (attempt %d)", context.current_node_id, state.failed_attempts
        )
        self._emit(
            EventTypes.DIALOGUE_RESPONSE_MISSED,
            {
                "node_id": context.current_node_id,
                "failed_attempts": state.failed_attempts,
            },
        )

        if state.failed_attempts < self._fallback_after or self._tree is None:
            return

        fallback = self._provider.get_node(self._tree, self._fallback_node_id)
        if fallback is not None:
            if state.current_node is None or state.current_node.id != fallback.id:
                self._enter_fallback(fallback, generated=False)
            return

        # No static fallback node: try the provider's dynamic capability once
        # per tree node; otherwise stay put and keep counting.
        generator = self._provider.dynamic_responses
        if generator is None or self._tree.find_node(context.current_node_id) is None:
            return

        result = await generator.generate_dynamic_response(text, context)
        if self._is_stale(generation):
            return
        self._bus.reset_chain()
        self._enter_fallback(result.node, generated=result.is_generated)

    def _enter_fallback(self, node: DialogueNode, generated: bool) -> None:
        """Show a re-orientation node without resetting attempt/hint state."""
        state = self._state
        if state.current_node is not None:
            state.previous_nodes.append(state.current_node.id)
        state.current_node = node
        self._record_line(Speaker.NPC, node.text, node.text_in_target_language)
        logger.info("Dialogue fallback to %s (generated=%s)", node.id, generated)
        self._emit(
            EventTypes.DIALOGUE_FALLBACK,
            {"node_id": node.id, "generated": generated},
        )

    def _advance(self, node_id: str) -> bool:
        if self._tree is None:
            return False

        next_node = self._provider.get_node(self._tree, node_id)
        if next_node is None:
            logger.error("Node not found: %s/%s", self._tree.id, node_id)
            return False

        if next_node.action is not None:
            self._executor.execute(next_node.action)

        state = self._state
        if state.current_node is not None:
            state.previous_nodes.append(state.current_node.id)
        state.current_node = next_node
        state.reset_attempts()
        self._record_line(Speaker.NPC, next_node.text, next_node.text_in_target_language)

        self._emit(
            EventTypes.DIALOGUE_NODE_ENTERED,
            {"node_id": next_node.id, "terminal": next_node.is_terminal},
        )
        if next_node.is_terminal:
            self._schedule_auto_close()
        return True

    def _schedule_auto_close(self) -> None:
        self._cancel_auto_close()
        loop = asyncio.get_running_loop()
        self._auto_close_handle = loop.call_later(
            self._auto_close_delay, self._auto_close, self._generation
        )
        logger.debug("Auto-close scheduled in %.1fs", self._auto_close_delay)

    def _auto_close(self, generation: int) -> None:
        self._auto_close_handle = None
        if generation != self._generation or not self._state.is_active:
            return
        self._bus.reset_chain()
        self._close("completed")

    def _cancel_auto_close(self) -> None:
        if self._auto_close_handle is not None:
            self._auto_close_handle.cancel()
            self._auto_close_handle = None

    def _close(self, reason: str) -> None:
        self._cancel_auto_close()
        # also invalidates an open() that is still resolving its tree
        self._generation += 1
        self._evaluating = False
        if not self._state.is_active:
            return

        ended = self._state
        self._state = SessionState()
        self._tree = None
        self._npc = None

        logger.info(
            "Dialogue ended: %s (reason=%s, surface=%s)",
            ended.current_tree_id,
            reason,
            self.surface_id,
        )
        self._emit(
            EventTypes.DIALOGUE_ENDED,
            {
                "tree_id": ended.current_tree_id,
                "npc_id": ended.current_npc_id,
                "node_id": ended.current_node.id if ended.current_node else None,
                "reason": reason,
            },
        )

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or not self._state.is_active

    def _build_context(self, npc: Optional[NpcProfile] = None) -> DialogueContext:
        npc = npc or self._npc or NpcProfile.anonymous("")
        state = self._state
        learner = self.learner
        return DialogueContext(
            npc_id=npc.npc_id,
            npc_name=npc.name,
            npc_role=npc.role,
            current_node_id=state.current_node.id if state.current_node else "",
            previous_nodes=tuple(state.previous_nodes),
            player_level=learner.player_level,
            target_language=learner.target_language,
            learned_words=tuple(learner.learned_words),
            current_mission=learner.current_mission,
            conversation_history=tuple(state.transcript) if self._include_history else None,
        )

    def _record_line(self, speaker: Speaker, text: str, target_text: str = "") -> None:
        self._state.transcript.append(
            ConversationLine(speaker=speaker, text=text, text_in_target_language=target_text)
        )

    def _emit(self, event_type: str, data: dict) -> None:
        payload = {"surface_id": self.surface_id, **data}
        self._bus.emit(
            EngineEvent(
                event_type=event_type,
                data=payload,
                source=f"dialogue_session:{self.surface_id}",
            )
        )
