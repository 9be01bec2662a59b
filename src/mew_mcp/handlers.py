"""Operation handlers shared by the MCP tools and the legacy HTTP endpoints.

Handlers take a ``MewClient``, return plain dicts and let typed errors
propagate; each surface decides how to present a failure.
"""

from collections import Counter
from typing import Any
from urllib.parse import urlparse

from .client import MewClient, NodeMove, render_content, render_structure
from .client.api_client_mutations import AGENT_AUTHOR_ID
from .client.api_client_traversal import DEFAULT_API_BUDGET
from .models import MCPError, StructureMapResult


def _child_rows(children) -> list[dict[str, Any]]:
    return [child.to_wire() for child in children]


async def get_current_user(client: MewClient) -> dict[str, Any]:
    return client.get_current_user()


async def get_user_root_node_id(client: MewClient) -> dict[str, Any]:
    return {"user_root_node_id": client.user_root_node_id}


async def find_node_by_text(client: MewClient, parent_node_id: str, node_text: str) -> dict[str, Any]:
    node = await client.find_node_by_text(parent_node_id, node_text)
    return {"found": node is not None, "node": node.to_wire() if node is not None else None}


async def get_child_nodes(client: MewClient, parent_node_id: str) -> dict[str, Any]:
    listing = await client.get_children(parent_node_id)
    return {
        "parent_node": listing.parent_node.to_wire() if listing.parent_node is not None else None,
        "child_nodes": _child_rows(listing.child_nodes),
        "child_count": len(listing.child_nodes),
    }


async def get_layer_data(client: MewClient, object_ids: list[str]) -> dict[str, Any]:
    if not object_ids:
        raise ValueError("object_ids must not be empty")
    return {"data": await client.get_layer_data(object_ids)}


async def add_node(
    client: MewClient,
    content: Any,
    parent_node_id: str | None = None,
    relation_label: str | None = None,
    is_checked: bool | None = None,
    author_id: str | None = None,
    author_model: str | None = None,
) -> dict[str, Any]:
    """Create a node; defaults to the session user's root as parent."""
    parent = parent_node_id or client.user_root_node_id
    author = client.mutations.resolve_author_id(author_model=author_model, author_id=author_id)
    result = await client.mutations.add_node(
        content,
        parent_node_id=parent,
        relation_label=relation_label,
        is_checked=is_checked,
        author_id=author,
    )
    return {
        "success": True,
        **result.model_dump(),
        "parent_node_id": parent,
        "node_url": client.get_node_url(result.new_node_id),
    }


async def update_node(client: MewClient, node_id: str, updates: dict[str, Any]) -> dict[str, Any]:
    transaction_id = await client.mutations.update_node(node_id, updates)
    return {"success": True, "node_id": node_id, "transaction_id": transaction_id}


async def delete_node(client: MewClient, node_id: str) -> dict[str, Any]:
    deleted = await client.mutations.delete_node(node_id)
    return {
        "success": True,
        "node_id": node_id,
        "deleted": deleted,
        "message": "Node deleted" if deleted else "Node not found; nothing to delete",
    }


async def move_nodes(client: MewClient, moves: list[dict[str, Any] | NodeMove]) -> dict[str, Any]:
    """Apply moves, then map the structure of the busiest destination."""
    parsed = [m if isinstance(m, NodeMove) else NodeMove.model_validate(m) for m in moves]
    if not parsed:
        raise ValueError("moves must not be empty")

    result = await client.mutations.move_nodes(parsed)
    response: dict[str, Any] = {
        "success": result.success,
        "moved": result.moved,
        "errors": result.errors,
        "moved_count": len(result.moved),
        "error_count": len(result.errors),
    }

    if result.moved:
        destination, _ = Counter(m["new_parent_id"] for m in result.moved).most_common(1)[0]
        structure = await client.traversal.map_structure(destination)
        response["updated_structure"] = _structure_payload(destination, structure)
    return response


async def create_relation(
    client: MewClient,
    from_node_id: str,
    to_node_id: str,
    relation_label: str,
    author_model: str | None = "Claude",
) -> dict[str, Any]:
    author = client.mutations.resolve_author_id(author_model=author_model)
    relation_id = await client.mutations.create_relation(from_node_id, to_node_id, relation_label, author_id=author)
    return {
        "success": True,
        "relation_id": relation_id,
        "from_node_id": from_node_id,
        "to_node_id": to_node_id,
        "relation_label": relation_label,
        "from_node_url": client.get_node_url(from_node_id),
        "to_node_url": client.get_node_url(to_node_id),
    }


async def think_tree(client: MewClient, thinking_markdown: str, parent_node_id: str | None = None) -> dict[str, Any]:
    """Create a thought tree; without a parent it lands in the agent's own space."""
    parent = parent_node_id or client.config.agent_root_id
    created = await client.mutations.create_thought_tree(parent, thinking_markdown, author_id=AGENT_AUTHOR_ID)

    def count(nodes: list[dict[str, Any]]) -> int:
        return sum(1 + count(n["children"]) for n in nodes)

    return {
        "success": True,
        "parent_node_id": parent,
        "thought_tree": created,
        "node_count": count(created),
        "location": "specified parent" if parent_node_id else "agent space",
    }


async def get_node_url(client: MewClient, node_id: str) -> dict[str, Any]:
    return {"url": client.get_node_url(node_id)}


async def get_node_from_url(client: MewClient, mew_url: str) -> dict[str, Any]:
    expected_host = urlparse(client.config.base_node_url).netloc
    if expected_host and urlparse(mew_url).netloc != expected_host:
        raise ValueError(f"Not a Mew URL (expected host {expected_host}): {mew_url}")

    node_id = client.parse_node_id_from_url(mew_url)
    listing = await client.get_children(node_id)
    return {
        "node_id": node_id,
        "original_url": mew_url,
        "node": listing.parent_node.to_wire() if listing.parent_node is not None else None,
        "children": _child_rows(listing.child_nodes),
        "child_count": len(listing.child_nodes),
    }


async def _list_notes(client: MewClient, root_id: str, space: str) -> dict[str, Any]:
    notes = await client.list_top_level_notes(root_id)
    return {
        "root_node_id": root_id,
        "notes": notes,
        "total_count": len(notes),
        "message": f"Found {len(notes)} top-level notes in the {space}."
        if notes else f"No notes found in the {space}.",
    }


async def get_global_notes(client: MewClient) -> dict[str, Any]:
    return await _list_notes(client, client.config.global_root_id, "global shared space")


async def get_user_notes(client: MewClient) -> dict[str, Any]:
    return await _list_notes(client, client.user_root_node_id, "user's personal space")


async def get_agent_notes(client: MewClient) -> dict[str, Any]:
    return await _list_notes(client, client.config.agent_root_id, "agent's space")


def _structure_payload(node_id: str, result: StructureMapResult) -> dict[str, Any]:
    if result.structure is not None:
        return {
            "success": True,
            "node_id": node_id,
            "structure": render_structure(result.structure.tree, show_ids=True),
            "tree": result.structure.tree.model_dump(),
            "depth_reached": result.structure.depth_reached,
            "total_nodes": result.structure.total_nodes,
            "api_calls": result.structure.api_calls,
        }
    payload: dict[str, Any] = {
        "success": False,
        "node_id": node_id,
        "error": result.error,
        "message": result.message,
    }
    if result.fallback_tree is not None:
        payload["fallback_structure"] = render_structure(result.fallback_tree, show_ids=True)
        payload["fallback_tree"] = result.fallback_tree.model_dump()
    if result.fallback_error is not None:
        payload["fallback_error"] = result.fallback_error
    return payload


async def map_structure(client: MewClient, node_id: str) -> dict[str, Any]:
    return _structure_payload(node_id, await client.traversal.map_structure(node_id))


async def preview_content(client: MewClient, node_id: str, api_budget: int = DEFAULT_API_BUDGET) -> dict[str, Any]:
    """Adaptive tree rendered as content previews."""
    result = await client.traversal.load_adaptive_tree(node_id, api_budget=api_budget)
    return {
        "success": True,
        "node_id": node_id,
        "content_tree": render_content(result.tree),
        "stats": result.stats.model_dump(),
    }


async def view_tree_context(
    client: MewClient,
    node_id: str,
    api_budget: int = DEFAULT_API_BUDGET,
    per_level_sampling: bool = False,
) -> dict[str, Any]:
    """Adaptive tree rendered as titles, with the materialized tree attached."""
    result = await client.traversal.load_adaptive_tree(
        node_id, api_budget=api_budget, per_level_sampling=per_level_sampling
    )
    return {
        "success": True,
        "node_id": node_id,
        "structure": render_structure(result.tree),
        "tree": result.tree.model_dump(),
        "stats": result.stats.model_dump(),
    }


def error_payload(err: Exception) -> dict[str, Any]:
    """Structured failure body for a handler exception."""
    if isinstance(err, MCPError):
        return {"success": False, "error": err.to_payload()}
    return {
        "success": False,
        "error": {"kind": type(err).__name__, "message": str(err), "status": None, "details": None},
    }
