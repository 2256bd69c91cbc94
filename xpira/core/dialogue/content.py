"""Dialogue content loading: JSON -> immutable models, validated once.

Malformed content raises ContentError at load time so that a broken tree
never reaches a live session.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

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

logger = logging.getLogger(__name__)


class ContentError(ValueError):
    """Raised when dialogue content cannot be decoded."""


# --- primitives ---


def _require(raw: dict, key: str, where: str) -> Any:
    if not isinstance(raw, dict):
        raise ContentError(f"{where}: expected an object, got {type(raw).__name__}")
    if key not in raw:
        raise ContentError(f"{where}: missing '{key}'")
    return raw[key]


def _require_str(raw: dict, key: str, where: str) -> str:
    value = _require(raw, key, where)
    if not isinstance(value, str) or not value:
        raise ContentError(f"{where}: '{key}' must be a non-empty string")
    return value


def _positive_int(value: Any, where: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ContentError(f"{where}: expected a positive integer, got {value!r}")
    return value


def _enum(enum_cls, value: Any, where: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ContentError(f"{where}: '{value}' is not one of {allowed}") from None


# --- actions ---


def _decode_quantity(payload: dict, where: str) -> int:
    quantity = payload.get("quantity", payload.get("qty", 1))
    return _positive_int(quantity, f"{where}.quantity")


def _decode_give_item(payload: dict, where: str) -> GiveItemAction:
    return GiveItemAction(
        item_id=_require_str(payload, "itemId", where),
        quantity=_decode_quantity(payload, where),
    )


def _decode_take_item(payload: dict, where: str) -> TakeItemAction:
    return TakeItemAction(
        item_id=_require_str(payload, "itemId", where),
        quantity=_decode_quantity(payload, where),
    )


def _decode_give_xp(payload: dict, where: str) -> GiveXpAction:
    return GiveXpAction(amount=_positive_int(_require(payload, "amount", where), where))


def _decode_start_mission(payload: dict, where: str) -> StartMissionAction:
    return StartMissionAction(mission_id=_require_str(payload, "missionId", where))


def _decode_complete_mission(payload: dict, where: str) -> CompleteMissionAction:
    return CompleteMissionAction(mission_id=_require_str(payload, "missionId", where))


def _decode_teach_word(payload: dict, where: str) -> TeachWordAction:
    """Accepts {"word", "translation"} or {"words": [{"word", "translation"}, ...]}."""
    if "words" in payload:
        raw_words = payload["words"]
        if not isinstance(raw_words, list) or not raw_words:
            raise ContentError(f"{where}: 'words' must be a non-empty list")
    else:
        raw_words = [payload]

    words = tuple(
        VocabularyEntry(
            word=_require_str(raw, "word", f"{where}.words[{i}]"),
            translation=_require_str(raw, "translation", f"{where}.words[{i}]"),
        )
        for i, raw in enumerate(raw_words)
    )
    return TeachWordAction(words=words)


ACTION_DECODERS: dict[str, Callable[[dict, str], DialogueAction]] = {
    "give_item": _decode_give_item,
    "take_item": _decode_take_item,
    "give_xp": _decode_give_xp,
    "start_mission": _decode_start_mission,
    "complete_mission": _decode_complete_mission,
    "teach_word": _decode_teach_word,
}


def decode_action(raw: dict, where: str = "action") -> DialogueAction:
    action_type = _require_str(raw, "type", where)
    decoder = ACTION_DECODERS.get(action_type)
    if decoder is None:
        raise ContentError(f"{where}: unknown action type '{action_type}'")

    payload = raw.get("payload", {})
    if not isinstance(payload, dict):
        raise ContentError(f"{where}: 'payload' must be an object")
    return decoder(payload, f"{where}[{action_type}]")


# --- tree ---


def decode_response(raw: dict, where: str) -> DialogueResponse:
    expected = raw.get("expectedSpeech") or []
    if not isinstance(expected, list) or not all(isinstance(p, str) for p in expected):
        raise ContentError(f"{where}: 'expectedSpeech' must be a list of strings")

    return DialogueResponse(
        id=_require_str(raw, "id", where),
        text=_require_str(raw, "text", where),
        next_node_id=_require_str(raw, "nextNodeId", where),
        requires_type=_enum(InputType, _require(raw, "requiresType", where), where),
        expected_speech=tuple(p for p in expected if p.strip()),
    )


def decode_node(raw: dict, where: str) -> DialogueNode:
    node_id = _require_str(raw, "id", where)
    where = f"{where}[{node_id}]"

    raw_responses = raw.get("responses") or []
    if not isinstance(raw_responses, list):
        raise ContentError(f"{where}: 'responses' must be a list")

    responses = tuple(
        decode_response(r, f"{where}.responses[{i}]") for i, r in enumerate(raw_responses)
    )
    seen: set[str] = set()
    for response in responses:
        if response.id in seen:
            raise ContentError(f"{where}: duplicate response id '{response.id}'")
        seen.add(response.id)

    raw_action = raw.get("action")
    action = decode_action(raw_action, f"{where}.action") if raw_action else None

    return DialogueNode(
        id=node_id,
        speaker=_enum(Speaker, _require(raw, "speaker", where), where),
        text=_require_str(raw, "text", where),
        text_in_target_language=_require_str(raw, "textInTargetLanguage", where),
        responses=responses,
        action=action,
        audio_url=raw.get("audioUrl"),
    )


def decode_tree(raw: dict) -> DialogueTree:
    """Decode and validate one tree.

    Checks:
    - node ids unique
    - startNodeId resolves
    - every response nextNodeId resolves
    """
    tree_id = _require_str(raw, "id", "tree")
    where = f"tree[{tree_id}]"

    raw_nodes = _require(raw, "nodes", where)
    if not isinstance(raw_nodes, list) or not raw_nodes:
        raise ContentError(f"{where}: 'nodes' must be a non-empty list")

    nodes = tuple(decode_node(n, f"{where}.nodes") for n in raw_nodes)

    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise ContentError(f"{where}: duplicate node id '{node.id}'")
        node_ids.add(node.id)

    start_node_id = _require_str(raw, "startNodeId", where)
    if start_node_id not in node_ids:
        raise ContentError(f"{where}: start node '{start_node_id}' not found")

    for node in nodes:
        for response in node.responses:
            if response.next_node_id not in node_ids:
                raise ContentError(
                    f"{where}: response '{node.id}/{response.id}' points to "
                    f"unknown node '{response.next_node_id}'"
                )

    return DialogueTree(id=tree_id, start_node_id=start_node_id, nodes=nodes)


def decode_npc(raw: dict) -> NpcProfile:
    npc_id = _require_str(raw, "id", "npc")
    where = f"npc[{npc_id}]"
    return NpcProfile(
        npc_id=npc_id,
        name=raw.get("name") or npc_id,
        role=_enum(NpcRole, raw.get("role", NpcRole.CITIZEN.value), where),
    )


class DialogueContentRegistry:
    """
    Immutable-after-load store of dialogue trees and NPC profiles.
    Owned by a DialogueEngine; there is no module-level instance.
    """

    def __init__(self) -> None:
        self._trees: dict[str, DialogueTree] = {}
        self._npcs: dict[str, NpcProfile] = {}

    def load_from_json(self, path: str | Path) -> int:
        """Load a content file. Returns the number of trees loaded."""
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)

        count = self.load_from_dict(raw)
        logger.info("Loaded %d dialogue trees from %s", count, path)
        return count

    def load_from_dict(self, raw: dict) -> int:
        """Load ``{"npcs": [...], "trees": [...]}``. All-or-nothing."""
        if not isinstance(raw, dict):
            raise ContentError("content root must be an object")

        raw_trees = raw.get("trees", [])
        raw_npcs = raw.get("npcs", [])
        if not isinstance(raw_trees, list) or not isinstance(raw_npcs, list):
            raise ContentError("'trees' and 'npcs' must be lists")

        trees = [decode_tree(t) for t in raw_trees]
        npcs = [decode_npc(n) for n in raw_npcs]

        tree_ids = [tree.id for tree in trees] + list(self._trees)
        if len(tree_ids) != len(set(tree_ids)):
            raise ContentError("duplicate tree id in content")

        for tree in trees:
            self.register_tree(tree)
        for npc in npcs:
            self._npcs[npc.npc_id] = npc
        return len(trees)

    def register_tree(self, tree: DialogueTree) -> None:
        if tree.id in self._trees:
            raise ContentError(f"duplicate tree id '{tree.id}'")
        self._trees[tree.id] = tree

    def get_tree(self, tree_id: str) -> Optional[DialogueTree]:
        return self._trees.get(tree_id)

    def get_npc(self, npc_id: str) -> NpcProfile:
        """Known profile, or an anonymous one for ids the content does not list."""
        return self._npcs.get(npc_id) or NpcProfile.anonymous(npc_id)

    def tree_ids(self) -> list[str]:
        return list(self._trees)

    def count(self) -> int:
        return len(self._trees)
