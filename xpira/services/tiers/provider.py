"""Dialogue content providers: static trees (free) and AI-extended (premium)."""

from __future__ import annotations

import asyncio
import uuid
from typing import Optional

from xpira.core.dialogue.content import DialogueContentRegistry
from xpira.core.dialogue.evaluation import DialogueContext, DialogueProviderResponse
from xpira.core.dialogue.models import (
    DialogueNode,
    DialogueResponse,
    DialogueTree,
    InputType,
    Speaker,
)
from xpira.core.logging import get_logger
from xpira.services.ai.base import AIProvider
from xpira.services.ai.parser import as_str_tuple, parse_json_reply
from xpira.services.tiers.base import DialogueContentProvider, DynamicResponseGenerator

logger = get_logger(__name__)


class StaticDialogueProvider(DialogueContentProvider):
    """Serves the trees loaded into the registry. Offers no dynamic responses."""

    def __init__(self, registry: DialogueContentRegistry) -> None:
        self._registry = registry

    async def get_dialogue_tree(
        self,
        tree_id: str,
        context: Optional[DialogueContext] = None,
    ) -> Optional[DialogueTree]:
        tree = self._registry.get_tree(tree_id)
        if tree is None:
            logger.warning("Dialogue tree not found: %s", tree_id)
        return tree


DYNAMIC_SYSTEM_PROMPT = (
    "You are {npc_name}, a {npc_role} in a {language}-speaking town, talking with "
    "a beginner learner (level {level}). Use simple {language}, 1-2 sentences. "
    "If the learner's message makes no sense, gently steer them back to the topic. "
    "Reply with a single JSON object only."
)

DYNAMIC_PROMPT = """Conversation so far:
{history}

The learner just said: "{transcript}"

Return JSON with keys:
"text_in_target_language" (your reply in {language}),
"text" (the same reply in English),
"suggested_responses" (2-3 short {language} phrases the learner could say next)."""

FALLBACK_TEXT = (
    "I'm not sure I understood. Could you try again with one of the phrases "
    "I suggested?"
)
FALLBACK_TEXT_TARGET = (
    "No estoy seguro de haber entendido. ¿Puedes intentarlo de nuevo con una de "
    "las frases que sugerí?"
)


def build_return_node(
    node_id: str,
    return_to: str,
    text: str,
    text_in_target_language: str,
) -> DialogueNode:
    """An NPC line with a single choice that goes back to ``return_to``."""
    return DialogueNode(
        id=node_id,
        speaker=Speaker.NPC,
        text=text,
        text_in_target_language=text_in_target_language,
        responses=(
            DialogueResponse(
                id="return-to-main",
                text="Try again",
                next_node_id=return_to,
                requires_type=InputType.CHOICE,
            ),
        ),
    )


class AIDialogueProvider(StaticDialogueProvider, DynamicResponseGenerator):
    """Static trees as the base, plus LLM replies for off-script input."""

    def __init__(self, registry: DialogueContentRegistry, provider: AIProvider) -> None:
        super().__init__(registry)
        self._provider = provider

    @property
    def dynamic_responses(self) -> Optional[DynamicResponseGenerator]:
        return self

    async def generate_dynamic_response(
        self,
        transcript: str,
        context: DialogueContext,
    ) -> DialogueProviderResponse:
        try:
            reply = await self._ask(transcript, context)
        except Exception as e:
            logger.warning("Dynamic response failed, using fallback node: %s", e)
            return self._fallback(context)

        target_text = reply.get("text_in_target_language")
        if not isinstance(target_text, str) or not target_text.strip():
            logger.warning("Dynamic response has no target-language text, using fallback node")
            return self._fallback(context)

        native_text = reply.get("text")
        node = build_return_node(
            f"generated-{uuid.uuid4().hex[:8]}",
            context.current_node_id,
            native_text if isinstance(native_text, str) and native_text else target_text,
            target_text.strip(),
        )
        return DialogueProviderResponse(
            node=node,
            is_generated=True,
            suggested_responses=as_str_tuple(reply.get("suggested_responses")),
        )

    @staticmethod
    def _fallback(context: DialogueContext) -> DialogueProviderResponse:
        return DialogueProviderResponse(
            node=build_return_node(
                "fallback-response",
                context.current_node_id,
                FALLBACK_TEXT,
                FALLBACK_TEXT_TARGET,
            ),
            is_generated=False,
        )

    async def _ask(self, transcript: str, context: DialogueContext) -> dict:
        language = context.target_language.name
        history_lines = [
            f"{line.speaker.value}: {line.text_in_target_language or line.text}"
            for line in context.conversation_history or ()
        ]
        system_prompt = DYNAMIC_SYSTEM_PROMPT.format(
            npc_name=context.npc_name,
            npc_role=context.npc_role.value,
            language=language,
            level=context.player_level,
        )
        prompt = DYNAMIC_PROMPT.format(
            history="\n".join(history_lines) or "(none)",
            transcript=transcript,
            language=language,
        )
        raw = await asyncio.to_thread(
            self._provider.generate, prompt, system_prompt, 400, True
        )
        return parse_json_reply(raw)
