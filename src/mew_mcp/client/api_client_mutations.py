"""Mew API client - mutation engine.

Every public mutation builds its full op list locally and submits it as a
single transaction, so the remote applies all of it or none of it.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..models import (
    CHILD_RELATION_TYPE,
    TYPE_RELATION_TYPE,
    BatchOperationError,
    MCPError,
    NodeOperationError,
    RelationOperationError,
    ReplacementContent,
    TextBlock,
    TextContent,
    parse_node_content,
)
from .api_client_core import MewClientCore
from .client_log import ClientLogger
from .thinking import ThoughtNode, parse_thinking_markdown

logger = ClientLogger("MUTATION")

AUTHOR_MODEL_IDS: dict[str, str | None] = {
    "Claude": "noreply@anthropic.com",
    "ChatGPT": "noreply@openai.com",
    "Grok": "noreply@x.ai",
    "Gemini": "noreply@google.com",
    "User": None,
}

AGENT_AUTHOR_ID = AUTHOR_MODEL_IDS["Claude"]

FRAC = "a0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddNodeResult(_CamelModel):
    new_node_id: str
    new_relation_label_node_id: str = ""
    parent_child_relation_id: str = ""
    reference_node_id: str = ""
    reference_canonical_relation_id: str = ""
    is_checked: bool | None = None
    transaction_id: str


class NodeMove(_CamelModel):
    node_id: str
    old_parent_id: str
    new_parent_id: str


class MoveBatchResult(BaseModel):
    moved: list[dict[str, Any]]
    errors: list[dict[str, Any]]

    @property
    def success(self) -> bool:
        return not self.errors


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _position(ms: int) -> dict[str, Any]:
    return {"int": ms, "frac": FRAC}


def _new_id() -> str:
    return str(uuid.uuid4())


def _node_record(node_id: str, author_id: str | None, ms: int, content: list[dict[str, Any]],
                 canonical_relation_id: str | None, is_checked: bool | None) -> dict[str, Any]:
    return {
        "version": 1,
        "id": node_id,
        "authorId": author_id,
        "createdAt": _iso(ms),
        "updatedAt": _iso(ms),
        "content": content,
        "isPublic": True,
        "isNewRelatedObjectsPublic": False,
        "canonicalRelationId": canonical_relation_id,
        "isChecked": is_checked,
        "accessMode": 0,
        "attributes": {},
    }


def _relation_record(relation_id: str, author_id: str | None, ms: int, from_id: str, to_id: str,
                     relation_type_id: str, canonical_relation_id: str | None = None) -> dict[str, Any]:
    return {
        "version": 1,
        "id": relation_id,
        "authorId": author_id,
        "createdAt": ms,
        "updatedAt": ms,
        "fromId": from_id,
        "toId": to_id,
        "relationTypeId": relation_type_id,
        "isPublic": True,
        "canonicalRelationId": canonical_relation_id,
    }


def _add_relation_op(relation: dict[str, Any], ms: int) -> dict[str, Any]:
    return {
        "operation": "addRelation",
        "relation": relation,
        "fromPos": _position(ms),
        "toPos": _position(ms),
    }


def _relation_list_op(relation_id: str, author_id: str | None, node_id: str, related_node_id: str,
                      old_position: dict[str, Any] | None, new_position: dict[str, Any] | None) -> dict[str, Any]:
    return {
        "operation": "updateRelationList",
        "relationId": relation_id,
        "oldPosition": old_position,
        "newPosition": new_position,
        "authorId": author_id,
        "type": "all",
        "oldIsPublic": True,
        "newIsPublic": True,
        "nodeId": node_id,
        "relatedNodeId": related_node_id,
    }


def _update_relation_op(old_props: dict[str, Any], new_props: dict[str, Any]) -> dict[str, Any]:
    return {"operation": "updateRelation", "oldProps": old_props, "newProps": new_props}


class MutationEngine:
    """Node and relation mutations over a shared ``MewClientCore``."""

    def __init__(self, core: MewClientCore):
        self.core = core

    def resolve_author_id(self, author_model: str | None = None, author_id: str | None = None) -> str | None:
        """Effective author: a named model wins over an explicit id, which wins over the session user."""
        if author_model:
            if author_model not in AUTHOR_MODEL_IDS:
                raise ValueError(
                    f"Unknown author model {author_model!r}; expected one of {sorted(AUTHOR_MODEL_IDS)}"
                )
            return AUTHOR_MODEL_IDS[author_model] or self.core.current_user_id
        return author_id or self.core.current_user_id

    async def add_node(
        self,
        content: Any,
        parent_node_id: str | None = None,
        relation_label: str | None = None,
        is_checked: bool | None = None,
        author_id: str | None = None,
    ) -> AddNodeResult:
        """Create a node, optionally under a parent and with a labeled child edge.

        Raises:
            ContentFormatError: ``content`` is not an accepted shape
            ValueError: a relation label or replacement content was given without a parent
            NodeOperationError: the transaction was rejected
        """
        parsed = parse_node_content(content)
        is_replacement = isinstance(parsed, ReplacementContent)
        if relation_label and not parent_node_id:
            raise ValueError("relation_label requires parent_node_id")
        if is_replacement and not parent_node_id:
            raise ValueError("Replacement content requires parent_node_id")

        used_author = author_id or self.core.current_user_id
        ms = _now_ms()
        new_node_id = _new_id()
        parent_child_relation_id = _new_id()
        label_node_id = ""
        blocks = [block.to_wire() for block in parsed.to_blocks()]

        updates: list[dict[str, Any]] = [{
            "operation": "addNode",
            "node": _node_record(
                new_node_id, used_author, ms, blocks,
                parent_child_relation_id if parent_node_id else None, is_checked,
            ),
        }]

        if parent_node_id:
            child_relation = _relation_record(
                parent_child_relation_id, used_author, ms, parent_node_id, new_node_id, CHILD_RELATION_TYPE
            )
            updates.append(_add_relation_op(child_relation, ms))
            updates.append(_relation_list_op(
                parent_child_relation_id, used_author, parent_node_id, new_node_id, None, _position(ms)
            ))

            if relation_label:
                label_node_id = _new_id()
                type_relation_id = _new_id()
                label_block = TextBlock(value=relation_label, styles=0).to_wire()
                updates.append({
                    "operation": "addNode",
                    "node": _node_record(label_node_id, used_author, ms, [label_block], None, None),
                })
                updates.append(_add_relation_op(
                    _relation_record(
                        type_relation_id, used_author, ms, parent_child_relation_id, label_node_id, TYPE_RELATION_TYPE
                    ),
                    ms,
                ))
                updates.append(_relation_list_op(
                    type_relation_id, used_author, parent_child_relation_id, label_node_id, None, _position(ms)
                ))
                updates.append(_update_relation_op(
                    child_relation, {**child_relation, "canonicalRelationId": type_relation_id}
                ))

            if is_replacement:
                updates.append(_update_relation_op(
                    child_relation,
                    {
                        **child_relation,
                        "toId": parsed.reference_node_id,
                        "canonicalRelationId": parsed.reference_canonical_relation_id,
                    },
                ))
                updates.append(_relation_list_op(
                    parent_child_relation_id, used_author, parent_node_id, parsed.reference_node_id,
                    None, _position(ms),
                ))

        try:
            transaction_id = await self.core.apply_transaction(updates, used_author)
        except BatchOperationError as err:
            raise NodeOperationError(
                f"Failed to add node: {err.message}", new_node_id, err.status, err.details
            ) from err

        logger.info(f"Added node {new_node_id} under {parent_node_id or '<none>'} ({len(updates)} ops)")
        return AddNodeResult(
            new_node_id=new_node_id,
            new_relation_label_node_id=label_node_id,
            parent_child_relation_id=parent_child_relation_id if parent_node_id else "",
            reference_node_id=parsed.reference_node_id if is_replacement else "",
            reference_canonical_relation_id=(parsed.reference_canonical_relation_id or "") if is_replacement else "",
            is_checked=is_checked,
            transaction_id=transaction_id,
        )

    async def update_node(self, node_id: str, updates: dict[str, Any]) -> str:
        """Read-modify-write update of one node; returns the transaction id.

        ``updates`` uses server field names (``content``, ``isChecked``, ...).
        Identity fields are pinned to the stored record.
        """
        existing = await self.core.get_node(node_id)
        if existing is None:
            raise NodeOperationError(f"Node with ID {node_id} not found.", node_id, status=404)

        old_props = existing.to_wire()
        new_props = {**old_props, **{k: v for k, v in updates.items() if k != "content"}}
        if updates.get("content") is not None:
            new_props["content"] = [block.to_wire() for block in parse_node_content(updates["content"]).to_blocks()]
        new_props.update({
            "id": node_id,
            "authorId": existing.author_id,
            "createdAt": existing.created_at,
            "updatedAt": _iso(_now_ms()),
        })

        op = {"operation": "updateNode", "oldProps": old_props, "newProps": new_props}
        try:
            return await self.core.apply_transaction([op], self.core.current_user_id)
        except BatchOperationError as err:
            raise NodeOperationError(
                f"Failed to update node {node_id}: {err.message}", node_id, err.status, err.details
            ) from err

    async def delete_node(self, node_id: str) -> bool:
        """Delete a node. Returns False, without a transaction, when it does not exist."""
        existing = await self.core.get_node(node_id)
        if existing is None:
            logger.info(f"Delete skipped, node {node_id} not found")
            return False

        op = {"operation": "deleteNode", "node": {"id": node_id}}
        try:
            await self.core.apply_transaction([op], self.core.current_user_id)
        except BatchOperationError as err:
            raise NodeOperationError(
                f"Failed to delete node {node_id}: {err.message}", node_id, err.status, err.details
            ) from err
        return True

    async def move_node(self, node_id: str, old_parent_id: str, new_parent_id: str) -> str:
        """Re-point the ``old_parent -> node`` child edge at ``new_parent``; returns the relation id."""
        layer = await self.core.fetch_layer([old_parent_id, node_id])
        relation = next(
            (rel for rel in layer.child_relations(old_parent_id) if rel.to_id == node_id),
            None,
        )
        if relation is None:
            raise NodeOperationError(
                f"No parent-child relationship found between {old_parent_id} and {node_id}",
                node_id,
                status=404,
            )

        ms = _now_ms()
        author = self.core.current_user_id
        old_props = relation.to_wire()
        updates = [
            _update_relation_op(old_props, {**old_props, "fromId": new_parent_id, "updatedAt": ms}),
            _relation_list_op(relation.id, author, old_parent_id, node_id, _position(ms), None),
            _relation_list_op(relation.id, author, new_parent_id, node_id, None, _position(ms)),
        ]
        try:
            await self.core.apply_transaction(updates, author)
        except BatchOperationError as err:
            raise RelationOperationError(
                f"Failed to move node {node_id}: {err.message}", relation.id, err.status, err.details
            ) from err

        logger.info(f"Moved {node_id}: {old_parent_id} -> {new_parent_id}")
        return relation.id

    async def move_nodes(self, moves: list[NodeMove | dict[str, Any]]) -> MoveBatchResult:
        """Apply moves one by one; a failed move is recorded and the rest continue."""
        moved: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        for raw in moves:
            move = raw if isinstance(raw, NodeMove) else NodeMove.model_validate(raw)
            try:
                relation_id = await self.move_node(move.node_id, move.old_parent_id, move.new_parent_id)
            except MCPError as err:
                errors.append({**move.model_dump(), "error": err.to_payload()})
                continue
            moved.append({**move.model_dump(), "relation_id": relation_id})
        return MoveBatchResult(moved=moved, errors=errors)

    async def create_relation(
        self,
        from_node_id: str,
        to_node_id: str,
        relation_label: str,
        author_id: str | None = None,
    ) -> str:
        """Add a semantic edge typed ``relation_label``; returns the relation id."""
        if not relation_label:
            raise ValueError("relation_label is required")

        author = author_id or self.core.current_user_id
        ms = _now_ms()
        relation_id = _new_id()
        updates = [
            _add_relation_op(
                _relation_record(relation_id, author, ms, from_node_id, to_node_id, relation_label), ms
            ),
            _relation_list_op(relation_id, author, from_node_id, to_node_id, None, _position(ms)),
            _relation_list_op(relation_id, author, to_node_id, from_node_id, None, _position(ms)),
        ]
        try:
            await self.core.apply_transaction(updates, author)
        except BatchOperationError as err:
            raise RelationOperationError(
                f"Failed to create relation: {err.message}", relation_id, err.status, err.details
            ) from err
        return relation_id

    async def create_thought_tree(
        self,
        parent_node_id: str,
        markdown: str,
        author_id: str | None = AGENT_AUTHOR_ID,
    ) -> list[dict[str, Any]]:
        """Create one labeled node per thought, parents before children."""
        thoughts = parse_thinking_markdown(markdown)
        if not thoughts:
            raise ValueError("Thinking markdown contains no thoughts")
        return await self._create_thoughts(thoughts, parent_node_id, author_id)

    async def _create_thoughts(
        self, thoughts: list[ThoughtNode], parent_id: str, author_id: str | None
    ) -> list[dict[str, Any]]:
        created = []
        for thought in thoughts:
            result = await self.add_node(
                TextContent(text=thought.content),
                parent_node_id=parent_id,
                relation_label=thought.relation_label,
                author_id=author_id,
            )
            created.append({
                "node_id": result.new_node_id,
                "content": thought.content,
                "relation_label": thought.relation_label,
                "children": await self._create_thoughts(thought.children, result.new_node_id, author_id),
            })
        return created
