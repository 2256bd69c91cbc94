"""DialogueSession state machine tests"""

import asyncio
import json

import pytest

from xpira.core.dialogue.content import DialogueContentRegistry
from xpira.core.dialogue.evaluation import FeedbackType, ResponseEvaluation
from xpira.core.dialogue.models import (
    GiveItemAction,
    GiveXpAction,
    InputType,
    Speaker,
    TeachWordAction,
)
from xpira.core.event_types import EventTypes
from xpira.engine import DialogueEngine
from xpira.services.tiers.base import ResponseEvaluator

TREE = "market-vendor-fruits"
NO_MATCH = "xyz"  # below the partial threshold for every phrase


def _types(events):
    return [e.event_type for e in events]


class GatedEvaluator(ResponseEvaluator):
    """Matches everything, but only once the test opens the gate."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    def get_similarity_threshold(self) -> float:
        return 0.5

    async def _evaluate(self, transcript, expected_phrases, context):
        self.calls += 1
        await self.gate.wait()
        return ResponseEvaluation(matched=True, similarity=1.0, best_match=expected_phrases[0])


async def _wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0)


def _two_match_content() -> dict:
    """One prompt whose two responses both accept "manzana"."""

    def end(node_id):
        return {"id": node_id, "speaker": "npc", "text": "Ok", "textInTargetLanguage": "Vale"}

    def speak(response_id, phrase, next_node_id):
        return {
            "id": response_id,
            "text": response_id,
            "expectedSpeech": [phrase],
            "nextNodeId": next_node_id,
            "requiresType": "speak",
        }

    ask = {
        "id": "ask",
        "speaker": "npc",
        "text": "What do you want?",
        "textInTargetLanguage": "¿Qué quieres?",
        "responses": [
            speak("first", "quiero manzana", "first-node"),
            speak("second", "manzana", "second-node"),
        ],
    }
    return {
        "trees": [
            {
                "id": "two-matches",
                "startNodeId": "ask",
                "nodes": [ask, end("first-node"), end("second-node")],
            }
        ]
    }


@pytest.fixture()
def session(engine, executor):
    return engine.create_session(executor, surface_id="tab-1", auto_close_delay=0.02)


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_enters_start_node(self, session, events):
        assert await session.open(TREE, "vendor-1") is True
        assert session.is_active
        assert session.current_node.id == "greeting"
        assert session.failed_attempts == 0
        assert session.show_hint is False
        assert _types(events) == [EventTypes.DIALOGUE_STARTED]
        assert events[0].data["surface_id"] == "tab-1"

    @pytest.mark.asyncio
    async def test_unknown_tree_stays_closed(self, session, events):
        assert await session.open("no-such-tree", "vendor-1") is False
        assert session.is_active is False
        assert session.current_node is None
        assert _types(events) == [EventTypes.DIALOGUE_NOT_FOUND]

    @pytest.mark.asyncio
    async def test_open_replaces_active_conversation(self, session, events):
        await session.open(TREE, "vendor-1")
        await session.submit_input("quiero manzanas")

        assert await session.open("cafe-maria-errand", "maria") is True
        assert session.current_node.id == "hello"
        ended = [e for e in events if e.event_type == EventTypes.DIALOGUE_ENDED]
        assert ended[0].data["reason"] == "replaced"
        assert ended[0].data["node_id"] == "apples-response"
        assert session.state.previous_nodes == []

    @pytest.mark.asyncio
    async def test_snapshot(self, session):
        await session.open(TREE, "vendor-1")
        snapshot = session.snapshot()
        assert snapshot.is_active
        assert snapshot.tree_id == TREE
        assert snapshot.npc_id == "vendor-1"
        assert snapshot.current_node.id == "greeting"
        assert snapshot.last_input == ""
        assert snapshot.last_feedback is None


class TestSubmitInput:
    @pytest.mark.asyncio
    async def test_match_advances_and_runs_action(self, session, executor, events):
        await session.open(TREE, "vendor-1")
        feedback = await session.submit_input("quiero manzanas")

        assert feedback.type is FeedbackType.SUCCESS
        assert session.current_node.id == "apples-response"
        assert executor.actions == [GiveItemAction("apple", 3)]
        assert session.last_evaluation.matched
        assert session.last_input == "quiero manzanas"
        assert _types(events)[1:] == [
            EventTypes.DIALOGUE_RESPONSE_MATCHED,
            EventTypes.DIALOGUE_NODE_ENTERED,
        ]
        assert events[1].data["response_id"] == "ask-apples"

    @pytest.mark.asyncio
    async def test_sibling_fruit_does_not_cross_match(self, session, executor):
        await session.open(TREE, "vendor-1")
        await session.submit_input("quiero limones")
        assert session.current_node.id == "lemons-response"
        assert executor.actions == [GiveItemAction("lemon", 3)]

    @pytest.mark.asyncio
    async def test_first_matched_response_wins(self, executor):
        registry = DialogueContentRegistry()
        registry.load_from_dict(_two_match_content())
        session = DialogueEngine(registry).create_session(executor)

        await session.open("two-matches", "vendor-1")
        # 0.5 against the first response, 1.0 against the second
        await session.submit_input("manzana")
        assert session.current_node.id == "first-node"
        assert session.last_evaluation.similarity == 0.5

    @pytest.mark.asyncio
    async def test_case_insensitive_match(self, session):
        await session.open(TREE, "vendor-1")
        await session.submit_input("  PLÁTANOS ")
        assert session.current_node.id == "bananas-response"

    @pytest.mark.asyncio
    async def test_miss_counts_and_shows_hint(self, session, executor, events):
        await session.open(TREE, "vendor-1")

        feedback = await session.submit_input(NO_MATCH)
        assert feedback.type is FeedbackType.INCORRECT
        assert session.current_node.id == "greeting"
        assert session.failed_attempts == 1
        assert session.show_hint is False

        await session.submit_input(NO_MATCH)
        assert session.failed_attempts == 2
        assert session.show_hint is True
        assert executor.actions == []
        assert _types(events).count(EventTypes.DIALOGUE_RESPONSE_MISSED) == 2

    @pytest.mark.asyncio
    async def test_third_miss_moves_to_fallback_node(self, session, events):
        await session.open(TREE, "vendor-1")
        for _ in range(3):
            await session.submit_input(NO_MATCH)

        assert session.current_node.id == "not-understood"
        assert session.failed_attempts == 3
        assert session.show_hint is True
        fallback = [e for e in events if e.event_type == EventTypes.DIALOGUE_FALLBACK]
        assert fallback[0].data == {
            "surface_id": "tab-1",
            "node_id": "not-understood",
            "generated": False,
        }

    @pytest.mark.asyncio
    async def test_misses_on_fallback_node_keep_counting(self, session):
        await session.open(TREE, "vendor-1")
        for _ in range(4):
            await session.submit_input(NO_MATCH)
        assert session.current_node.id == "not-understood"
        assert session.failed_attempts == 4

    @pytest.mark.asyncio
    async def test_match_from_fallback_resets_attempts(self, session):
        await session.open(TREE, "vendor-1")
        for _ in range(3):
            await session.submit_input(NO_MATCH)

        await session.submit_input("dame")
        assert session.current_node.id == "greeting"
        assert session.failed_attempts == 0
        assert session.show_hint is False

    @pytest.mark.asyncio
    async def test_no_fallback_node_stays_put(self, no_fallback_content, executor):
        registry = DialogueContentRegistry()
        registry.load_from_dict(no_fallback_content)
        session = DialogueEngine(registry).create_session(executor)

        await session.open(TREE, "vendor-1")
        for _ in range(3):
            await session.submit_input(NO_MATCH)
        assert session.current_node.id == "greeting"
        assert session.failed_attempts == 3

    @pytest.mark.asyncio
    async def test_partial_feedback_quotes_best_phrase(self, session):
        await session.open(TREE, "vendor-1")
        await session.submit_input("manzanas")
        await session.submit_input("gra")  # 3/7 against "gracias"

        feedback = session.state.last_feedback
        assert session.current_node.id == "apples-response"
        assert feedback.type is FeedbackType.PARTIAL
        assert feedback.hint == 'Try saying: "gracias"'

    @pytest.mark.asyncio
    async def test_modality_restricts_eligible_responses(self, session, executor):
        await session.open(TREE, "vendor-1")
        await session.select_choice("write-fallback")
        assert session.current_node.id == "write-prompt"
        assert isinstance(executor.actions[0], TeachWordAction)

        await session.submit_input("manzanas", InputType.SPEAK)
        assert session.current_node.id == "write-prompt"
        assert session.failed_attempts == 1

        await session.submit_input("manzanas", InputType.WRITE)
        assert session.current_node.id == "apples-response"

    @pytest.mark.asyncio
    async def test_ignored_when_closed(self, session):
        assert await session.submit_input("manzanas") is None
        assert session.last_input == ""

    @pytest.mark.asyncio
    async def test_transcript_recorded(self, session):
        await session.open(TREE, "vendor-1")
        await session.submit_input("manzanas")
        speakers = [(line.speaker, line.text) for line in session.state.transcript]
        assert speakers[0][0] is Speaker.NPC
        assert speakers[1] == (Speaker.PLAYER, "manzanas")
        assert speakers[2][0] is Speaker.NPC
        assert session.state.previous_nodes == ["greeting"]


class TestSelectChoice:
    @pytest.mark.asyncio
    async def test_choice_transitions_without_evaluation(self, session, executor):
        await session.open(TREE, "vendor-1")
        for _ in range(2):
            await session.submit_input(NO_MATCH)

        assert await session.select_choice("write-fallback") is True
        assert session.current_node.id == "write-prompt"
        assert session.failed_attempts == 0
        assert session.show_hint is False
        assert session.last_evaluation is not None  # untouched by choices

    @pytest.mark.asyncio
    async def test_speak_response_is_not_a_choice(self, session):
        await session.open(TREE, "vendor-1")
        assert await session.select_choice("ask-apples") is False
        assert await session.select_choice("nope") is False
        assert session.current_node.id == "greeting"

    @pytest.mark.asyncio
    async def test_choice_when_closed(self, session):
        assert await session.select_choice("write-fallback") is False


class TestAutoClose:
    @pytest.mark.asyncio
    async def test_full_conversation(self, session, executor, events):
        await session.open(TREE, "vendor-1")
        await session.submit_input("quiero manzanas")
        await session.submit_input("muchas gracias")

        assert session.current_node.id == "farewell"
        assert session.current_node.is_terminal
        assert executor.actions == [GiveItemAction("apple", 3), GiveXpAction(25)]
        assert session.auto_close_pending

        await _wait_for(lambda: not session.is_active)
        assert session.auto_close_pending is False
        assert events[-1].event_type == EventTypes.DIALOGUE_ENDED
        assert events[-1].data["reason"] == "completed"

    @pytest.mark.asyncio
    async def test_input_on_terminal_node_ignored(self, session, events):
        await session.open(TREE, "vendor-1")
        await session.submit_input("quiero manzanas")
        await session.submit_input("gracias")
        assert session.current_node.id == "farewell"

        for _ in range(3):
            assert await session.submit_input("hola") is None

        assert session.current_node.id == "farewell"
        assert session.failed_attempts == 0
        assert session.show_hint is False
        assert session.last_input == "gracias"
        assert EventTypes.DIALOGUE_RESPONSE_MISSED not in _types(events)
        assert session.auto_close_pending

    @pytest.mark.asyncio
    async def test_close_before_delay_cancels_auto_close(self, session, events):
        await session.open(TREE, "vendor-1")
        await session.submit_input("manzanas")
        await session.submit_input("gracias")

        session.close()
        assert session.auto_close_pending is False
        await asyncio.sleep(0.05)

        ended = [e for e in events if e.event_type == EventTypes.DIALOGUE_ENDED]
        assert len(ended) == 1
        assert ended[0].data["reason"] == "closed"

    @pytest.mark.asyncio
    async def test_reopen_before_delay_survives(self, session):
        await session.open(TREE, "vendor-1")
        await session.submit_input("manzanas")
        await session.submit_input("gracias")

        await session.open(TREE, "vendor-1")
        await asyncio.sleep(0.05)
        assert session.is_active
        assert session.current_node.id == "greeting"

    @pytest.mark.asyncio
    async def test_terminal_start_node(self, executor):
        registry = DialogueContentRegistry()
        registry.load_from_dict(
            {
                "trees": [
                    {
                        "id": "bark",
                        "startNodeId": "only",
                        "nodes": [
                            {
                                "id": "only",
                                "speaker": "npc",
                                "text": "Busy!",
                                "textInTargetLanguage": "¡Ocupado!",
                            }
                        ],
                    }
                ]
            }
        )
        session = DialogueEngine(registry).create_session(executor, auto_close_delay=0.01)
        assert await session.open("bark", "anyone")
        await _wait_for(lambda: not session.is_active)


class TestClose:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, session, events):
        await session.open(TREE, "vendor-1")
        session.close()
        session.close()
        assert session.is_active is False
        assert _types(events).count(EventTypes.DIALOGUE_ENDED) == 1

    def test_close_never_opened(self, session, events):
        session.close()
        assert events == []


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_second_input_ignored_while_evaluating(self, session, executor):
        gated = GatedEvaluator()
        session._evaluator = gated
        await session.open(TREE, "vendor-1")

        first = asyncio.create_task(session.submit_input("manzanas"))
        await _wait_for(lambda: gated.calls > 0)

        assert await session.submit_input("limones") is None
        assert await session.select_choice("write-fallback") is False

        gated.gate.set()
        feedback = await first
        assert feedback is not None
        assert session.current_node.id == "apples-response"
        assert executor.actions == [GiveItemAction("apple", 3)]

    @pytest.mark.asyncio
    async def test_late_result_after_close_discarded(self, session, executor, events):
        gated = GatedEvaluator()
        session._evaluator = gated
        await session.open(TREE, "vendor-1")

        pending = asyncio.create_task(session.submit_input("manzanas"))
        await _wait_for(lambda: gated.calls > 0)
        session.close()
        gated.gate.set()

        assert await pending is None
        assert session.is_active is False
        assert executor.actions == []
        assert EventTypes.DIALOGUE_RESPONSE_MATCHED not in _types(events)

    @pytest.mark.asyncio
    async def test_late_result_after_reopen_discarded(self, session, executor):
        gated = GatedEvaluator()
        session._evaluator = gated
        await session.open(TREE, "vendor-1")

        pending = asyncio.create_task(session.submit_input("manzanas"))
        await _wait_for(lambda: gated.calls > 0)
        assert await session.open("cafe-maria-errand", "maria")
        gated.gate.set()

        assert await pending is None
        assert session.current_node.id == "hello"
        assert session.failed_attempts == 0
        assert executor.actions == []


def _premium_reply(prompt: str) -> str:
    if "Expected answers" in prompt:
        return json.dumps({"matched": False, "similarity": 0.1, "semantic_match": False})
    if "The learner just said" in prompt:
        return json.dumps(
            {
                "text_in_target_language": "¿Peras? No tengo. ¿Quieres manzanas?",
                "text": "Pears? I don't have any. Do you want apples?",
                "suggested_responses": ["sí, manzanas"],
            }
        )
    return json.dumps({"pronunciation_tips": ["Speak slowly"], "encouragement": "¡Ánimo!"})


class TestPremiumSession:
    @pytest.mark.asyncio
    async def test_generated_fallback_when_tree_has_none(
        self, no_fallback_content, fake_ai, executor, event_bus, events
    ):
        registry = DialogueContentRegistry()
        registry.load_from_dict(no_fallback_content)
        fake_ai.reply = _premium_reply
        engine = DialogueEngine(registry, ai_provider=fake_ai, event_bus=event_bus)
        session = engine.create_session(executor, tier="pro")

        await session.open(TREE, "vendor-1")
        for _ in range(3):
            feedback = await session.submit_input("quiero peras")

        assert feedback.pronunciation_tips == ("Speak slowly",)
        assert session.current_node.id.startswith("generated-")
        assert session.failed_attempts == 3
        fallback = [e for e in events if e.event_type == EventTypes.DIALOGUE_FALLBACK]
        assert fallback[0].data["generated"] is True

        assert await session.select_choice("return-to-main")
        assert session.current_node.id == "greeting"
        assert session.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_static_fallback_preferred(self, premium_engine, fake_ai, executor):
        fake_ai.reply = _premium_reply
        session = premium_engine.create_session(executor, tier="premium")

        await session.open(TREE, "vendor-1")
        for _ in range(3):
            await session.submit_input("quiero peras")
        assert session.current_node.id == "not-understood"
        assert not any("The learner just said" in p for p in fake_ai.prompts)

    @pytest.mark.asyncio
    async def test_semantic_match_advances(self, premium_engine, fake_ai, executor):
        def reply(prompt):
            if "Expected answers" in prompt and "limones" in prompt:
                return json.dumps({"matched": True, "similarity": 0.8, "semantic_match": True})
            return json.dumps({"matched": False, "similarity": 0.0})

        fake_ai.reply = reply
        session = premium_engine.create_session(executor, tier="premium")
        await session.open(TREE, "vendor-1")
        await session.submit_input("me llevo unos limoncitos")
        assert session.current_node.id == "lemons-response"

    @pytest.mark.asyncio
    async def test_history_only_passed_on_premium(self, premium_engine, engine, executor):
        premium = premium_engine.create_session(executor, tier="premium")
        free = engine.create_session(executor)
        await premium.open(TREE, "vendor-1")
        await free.open(TREE, "vendor-1")

        assert premium._build_context().conversation_history is not None
        assert free._build_context().conversation_history is None
