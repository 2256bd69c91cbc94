"""Shared test fixtures."""

import copy
import json
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from xpira.config import DEFAULT_CONTENT_PATH
from xpira.core.dialogue.content import DialogueContentRegistry
from xpira.core.dialogue.evaluation import SPANISH, DialogueContext
from xpira.core.dialogue.models import NpcRole
from xpira.core.event_bus import EventBus
from xpira.core.event_types import EventTypes
from xpira.engine import DialogueEngine
from xpira.main import app
from xpira.services.ai import AIProvider, MockProvider
from xpira.services.effects import EffectExecutor


with open(DEFAULT_CONTENT_PATH, encoding="utf-8") as f:
    BUNDLED_CONTENT = json.load(f)


def market_content() -> dict:
    """Fresh copy of the bundled content (tests may mutate it)."""
    return copy.deepcopy(BUNDLED_CONTENT)


def tree_without_fallback() -> dict:
    """Market tree minus its "not-understood" node."""
    content = market_content()
    market = content["trees"][0]
    market["nodes"] = [n for n in market["nodes"] if n["id"] != "not-understood"]
    return content


class RecordingExecutor(EffectExecutor):
    """Collects every executed action in order."""

    def __init__(self) -> None:
        self.actions: list = []

    def execute(self, action) -> None:
        self.actions.append(action)
        super().execute(action)


class FakeAIProvider(AIProvider):
    """Premium-capable provider with scripted replies.

    ``reply`` is either a string returned for every call or a callable
    receiving the prompt. Tests reassign it freely.
    """

    def __init__(self, reply: str | Callable[[str], str] = "{}") -> None:
        self.reply = reply
        self.prompts: list[str] = []
        self.system_prompts: list[Optional[str]] = []

    @property
    def name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
        json_mode: bool = False,
    ) -> str:
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class FailingAIProvider(FakeAIProvider):
    def generate(self, prompt, system_prompt=None, max_tokens=512, json_mode=False) -> str:
        self.prompts.append(prompt)
        raise RuntimeError("provider unavailable")


def make_context(**overrides) -> DialogueContext:
    values = dict(
        npc_id="vendor-1",
        npc_name="Carlos",
        npc_role=NpcRole.VENDOR,
        current_node_id="greeting",
        previous_nodes=(),
        player_level=1,
        target_language=SPANISH,
        learned_words=(),
    )
    values.update(overrides)
    return DialogueContext(**values)


@pytest.fixture()
def registry() -> DialogueContentRegistry:
    """Registry loaded with the bundled market content."""
    reg = DialogueContentRegistry()
    reg.load_from_dict(market_content())
    return reg


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def engine(registry: DialogueContentRegistry, event_bus: EventBus) -> DialogueEngine:
    """Free-tier engine (MockProvider never backs premium)."""
    return DialogueEngine(registry, ai_provider=MockProvider(), event_bus=event_bus)


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def events(event_bus: EventBus) -> list:
    """Every event published on the bus, in order."""
    received: list = []
    for name, value in vars(EventTypes).items():
        if name.isupper():
            event_bus.subscribe(value, received.append)
    return received


@pytest.fixture()
def client() -> TestClient:
    """FastAPI TestClient with the lifespan running (bundled content)."""
    with TestClient(app) as tc:
        yield tc


@pytest.fixture()
def context() -> DialogueContext:
    return make_context()


@pytest.fixture()
def context_factory() -> Callable[..., DialogueContext]:
    return make_context


@pytest.fixture()
def fake_ai() -> FakeAIProvider:
    return FakeAIProvider()


@pytest.fixture()
def failing_ai() -> FailingAIProvider:
    return FailingAIProvider()


@pytest.fixture()
def premium_engine(
    registry: DialogueContentRegistry, event_bus: EventBus, fake_ai: FakeAIProvider
) -> DialogueEngine:
    """Engine whose premium tier is backed by ``fake_ai``."""
    return DialogueEngine(registry, ai_provider=fake_ai, event_bus=event_bus)


@pytest.fixture()
def content() -> dict:
    """Mutable copy of the bundled content."""
    return market_content()


@pytest.fixture()
def no_fallback_content() -> dict:
    return tree_without_fallback()
