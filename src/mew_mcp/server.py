"""Mew MCP server implementation using FastMCP."""

import logging
from collections.abc import Awaitable
from contextlib import asynccontextmanager
from typing import Any, Literal

import httpx
from fastmcp import FastMCP

from . import handlers
from .client import MewClient
from .config import ServerConfig, setup_logging
from .models import MCPError

logger = logging.getLogger(__name__)

# Global client instance
_client: MewClient | None = None
_config: ServerConfig | None = None

AuthorModel = Literal["Claude", "ChatGPT", "Grok", "Gemini", "User"]


def get_client() -> MewClient:
    """Get the global Mew client instance."""
    if _client is None:
        raise RuntimeError("Mew client not initialized. Server not started properly.")
    return _client


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _client

    logger.info("Starting Mew MCP server")
    config = _config or ServerConfig()  # type: ignore[call-arg]
    api_config = config.get_api_config()
    _client = MewClient(api_config)
    logger.info(f"Mew client initialized with base URL: {api_config.base_url}")

    try:
        yield
    finally:
        logger.info("Shutting down Mew MCP server")
        if _client:
            await _client.close()
            _client = None


mcp = FastMCP(
    "Mew MCP Server",
    instructions="MCP server for reading, exploring and writing the Mew graph note space",
    lifespan=lifespan,
)


async def _run(operation: Awaitable[dict[str, Any]], action: str) -> dict[str, Any]:
    """Await a handler, turning known failures into a structured error result."""
    try:
        return await operation
    except (MCPError, ValueError, httpx.HTTPError) as e:
        logger.warning(f"{action} failed: {e}")
        return handlers.error_payload(e)


@mcp.tool(name="mew_get_current_user", description="Get the Mew user ID for this session")
async def get_current_user() -> dict:
    return await _run(handlers.get_current_user(get_client()), "get_current_user")


@mcp.tool(name="mew_get_user_root_node_id", description="Get the root node ID of the current user's notes")
async def get_user_root_node_id() -> dict:
    return await _run(handlers.get_user_root_node_id(get_client()), "get_user_root_node_id")


@mcp.tool(
    name="mew_find_node_by_text",
    description="Find the first direct child of a parent whose text exactly matches",
)
async def find_node_by_text(parent_node_id: str, node_text: str) -> dict:
    """Find a child node by exact text.

    Args:
        parent_node_id: Node whose direct children are searched
        node_text: Exact text of the node's first content block
    """
    return await _run(
        handlers.find_node_by_text(get_client(), parent_node_id, node_text), "find_node_by_text"
    )


@mcp.tool(name="mew_get_child_nodes", description="List the direct children of a node with their child counts")
async def get_child_nodes(parent_node_id: str) -> dict:
    return await _run(handlers.get_child_nodes(get_client(), parent_node_id), "get_child_nodes")


@mcp.tool(name="mew_get_layer_data", description="Fetch raw node and relation records for a set of object IDs")
async def get_layer_data(object_ids: list[str]) -> dict:
    return await _run(handlers.get_layer_data(get_client(), object_ids), "get_layer_data")


@mcp.tool(
    name="mew_add_node",
    description=(
        "Create a node. Content is plain text, {'text': ...}, a mention "
        "({'type': 'mention', 'mentionData': {...}}) or a replacement "
        "({'type': 'replacement', 'replacementNodeData': {...}}). "
        "Parent defaults to the user's root; author_model overrides author_id."
    ),
)
async def add_node(
    content: str | dict[str, Any] | list[dict[str, Any]],
    parent_node_id: str | None = None,
    relation_label: str | None = None,
    is_checked: bool | None = None,
    author_id: str | None = None,
    author_model: AuthorModel | None = None,
) -> dict:
    """Create a node.

    Args:
        content: Node content in any accepted shape
        parent_node_id: Parent node (defaults to the user root)
        relation_label: Optional label for the parent->child edge
        is_checked: Optional checkbox state
        author_id: Explicit author ID
        author_model: Named model author; wins over author_id
    """
    return await _run(
        handlers.add_node(
            get_client(),
            content,
            parent_node_id=parent_node_id,
            relation_label=relation_label,
            is_checked=is_checked,
            author_id=author_id,
            author_model=author_model,
        ),
        "add_node",
    )


@mcp.tool(name="mew_update_node", description="Update fields of an existing node (content, isChecked, ...)")
async def update_node(node_id: str, updates: dict[str, Any]) -> dict:
    return await _run(handlers.update_node(get_client(), node_id, updates), "update_node")


@mcp.tool(name="mew_delete_node", description="Delete a node (no-op if it does not exist)")
async def delete_node(node_id: str) -> dict:
    return await _run(handlers.delete_node(get_client(), node_id), "delete_node")


@mcp.tool(
    name="mew_move_nodes",
    description=(
        "Move nodes between parents. Each move is {nodeId, oldParentId, newParentId}. "
        "Failed moves are reported without stopping the rest; the structure of the "
        "most common destination is returned afterwards."
    ),
)
async def move_nodes(moves: list[dict[str, str]]) -> dict:
    return await _run(handlers.move_nodes(get_client(), moves), "move_nodes")


@mcp.tool(
    name="mew_create_relation",
    description="Create a semantic relation (e.g. 'inspires', 'contradicts') between two existing nodes",
)
async def create_relation(
    from_node_id: str,
    to_node_id: str,
    relation_label: str,
    author_model: AuthorModel | None = "Claude",
) -> dict:
    return await _run(
        handlers.create_relation(get_client(), from_node_id, to_node_id, relation_label, author_model),
        "create_relation",
    )


@mcp.tool(
    name="mew_think_tree",
    description=(
        "Capture indented thinking markdown as a tree of labeled nodes. Two spaces per level; "
        "'→ text' is labeled flows_to and 'label: text' uses the label. Without a parent the "
        "tree goes to the agent's own space."
    ),
)
async def think_tree(thinking_markdown: str, parent_node_id: str | None = None) -> dict:
    return await _run(handlers.think_tree(get_client(), thinking_markdown, parent_node_id), "think_tree")


@mcp.tool(name="mew_get_node_url", description="Get the browser URL of a node")
async def get_node_url(node_id: str) -> dict:
    return await _run(handlers.get_node_url(get_client(), node_id), "get_node_url")


@mcp.tool(name="mew_get_node_from_url", description="Resolve a Mew node URL to the node and its children")
async def get_node_from_url(mew_url: str) -> dict:
    return await _run(handlers.get_node_from_url(get_client(), mew_url), "get_node_from_url")


@mcp.tool(name="mew_get_global_notes", description="List top-level notes of the global shared space")
async def get_global_notes() -> dict:
    return await _run(handlers.get_global_notes(get_client()), "get_global_notes")


@mcp.tool(name="mew_get_user_notes", description="List top-level notes of the current user's space")
async def get_user_notes() -> dict:
    return await _run(handlers.get_user_notes(get_client()), "get_user_notes")


@mcp.tool(name="mew_get_agent_notes", description="List top-level notes of the agent's own space")
async def get_agent_notes() -> dict:
    return await _run(handlers.get_agent_notes(get_client()), "get_agent_notes")


@mcp.tool(
    name="mew_map_structure",
    description="Map the full structure under a node (titles only, up to 12 levels / 2000 nodes)",
)
async def map_structure(node_id: str) -> dict:
    return await _run(handlers.map_structure(get_client(), node_id), "map_structure")


@mcp.tool(
    name="mew_preview_content",
    description="Preview content under a node with an adaptive, call-budgeted traversal",
)
async def preview_content(node_id: str, api_budget: int = 8) -> dict:
    return await _run(handlers.preview_content(get_client(), node_id, api_budget), "preview_content")


@mcp.tool(
    name="mew_view_tree_context",
    description="Show the tree around a node as titles using an adaptive, call-budgeted traversal",
)
async def view_tree_context(node_id: str, api_budget: int = 8, per_level_sampling: bool = False) -> dict:
    return await _run(
        handlers.view_tree_context(get_client(), node_id, api_budget, per_level_sampling),
        "view_tree_context",
    )


def main() -> None:
    """Run the stdio MCP server."""
    global _config

    _config = ServerConfig()  # type: ignore[call-arg]
    setup_logging(_config.log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
