"""Tests for the shared operation handlers and the MCP error wrapper."""

import pytest

from mew_mcp import handlers, server
from mew_mcp.models import NodeOperationError

from .conftest import USER_ID

USER_ROOT = f"user-root-id-{USER_ID}"


@pytest.mark.asyncio
async def test_user_notes_listing(client, fake):
    fake.add_node(USER_ROOT, "Mine")
    fake.children(USER_ROOT, ["a", "b"])
    fake.children("a", ["a1"])

    result = await handlers.get_user_notes(client)

    assert result["root_node_id"] == USER_ROOT
    assert result["total_count"] == 2
    assert result["message"] == "Found 2 top-level notes in the user's personal space."
    assert result["notes"][0]["exploration_recommended"] is True


@pytest.mark.asyncio
async def test_empty_agent_space(client):
    result = await handlers.get_agent_notes(client)
    assert result["notes"] == []
    assert result["message"] == "No notes found in the agent's space."


@pytest.mark.asyncio
async def test_add_node_defaults_to_user_root(client, fake):
    result = await handlers.add_node(client, "Remember milk")

    assert result["success"] is True
    assert result["parent_node_id"] == USER_ROOT
    assert result["node_url"].endswith(f"/node-{result['new_node_id']}")
    assert fake.transactions[0]["updates"][1]["relation"]["fromId"] == USER_ROOT


@pytest.mark.asyncio
async def test_add_node_author_model(client, fake):
    await handlers.add_node(client, "From the model", parent_node_id="p", author_model="Gemini")
    assert fake.transactions[0]["userId"] == "noreply@google.com"


@pytest.mark.asyncio
async def test_think_tree_lands_in_agent_space(client, fake):
    result = await handlers.think_tree(client, "Idea\n  → follow-up\n  → another")

    assert result["parent_node_id"] == client.config.agent_root_id
    assert result["location"] == "agent space"
    assert result["node_count"] == 3
    assert len(fake.transactions) == 3


@pytest.mark.asyncio
async def test_node_from_url(client, fake):
    fake.add_node("n1", "Target")
    fake.children("n1", ["k1"])

    result = await handlers.get_node_from_url(client, client.get_node_url("n1"))

    assert result["node_id"] == "n1"
    assert result["node"]["content"] == [{"type": "text", "value": "Target"}]
    assert result["child_count"] == 1


@pytest.mark.asyncio
async def test_node_from_foreign_url_rejected(client):
    with pytest.raises(ValueError):
        await handlers.get_node_from_url(client, "https://example.com/g/all/node-n1")


@pytest.mark.asyncio
async def test_move_nodes_reports_destination_structure(client, fake):
    fake.add_node("p2", "Destination")
    fake.children("p1", ["a", "b"])

    result = await handlers.move_nodes(client, [
        {"nodeId": "a", "oldParentId": "p1", "newParentId": "p2"},
        {"nodeId": "b", "oldParentId": "p1", "newParentId": "p2"},
        {"nodeId": "zzz", "oldParentId": "p1", "newParentId": "p3"},
    ])

    assert result["moved_count"] == 2
    assert result["error_count"] == 1
    assert result["success"] is False
    assert result["updated_structure"]["node_id"] == "p2"
    assert result["updated_structure"]["success"] is True
    assert result["updated_structure"]["structure"].startswith("Destination [p2]")


@pytest.mark.asyncio
async def test_move_nodes_without_success_skips_structure(client, fake):
    result = await handlers.move_nodes(client, [{"nodeId": "x", "oldParentId": "p1", "newParentId": "p2"}])
    assert "updated_structure" not in result


@pytest.mark.asyncio
async def test_map_structure_renders_tree(client, fake):
    fake.add_node("r", "Root")
    fake.children("r", ["c1"])

    result = await handlers.map_structure(client, "r")

    assert result["success"] is True
    assert result["structure"] == "Root/ [r]\n└── Note c1 [c1]"
    assert result["tree"]["children"][0]["id"] == "c1"
    assert result["total_nodes"] == 2


@pytest.mark.asyncio
async def test_map_structure_fallback_payload(client, fake):
    fake.add_node("r", "Root")
    fake.children("r", ["c1"])
    fake.children("c1", ["g1"])
    fake.fail_layer_for = {"g1"}

    result = await handlers.map_structure(client, "r")

    assert result["success"] is False
    assert result["fallback_structure"] == "Root/ [r]\n└── Note c1/ [c1]"
    assert result["fallback_tree"]["children"][0]["total_children"] == 1


@pytest.mark.asyncio
async def test_traversal_views(client, fake):
    fake.add_node("r", "Root")
    fake.children("r", ["c1", "c2"])

    preview = await handlers.preview_content(client, "r")
    context = await handlers.view_tree_context(client, "r", api_budget=3)

    assert preview["content_tree"].splitlines()[0] == "Root [r]"
    assert preview["stats"]["api_budget"] == 8
    assert context["structure"] == "Root/\n├── Note c1\n└── Note c2"
    assert context["tree"]["total_children"] == 2
    assert context["stats"]["api_calls_used"] <= 3


@pytest.mark.asyncio
async def test_layer_data_requires_ids(client):
    with pytest.raises(ValueError):
        await handlers.get_layer_data(client, [])


@pytest.mark.asyncio
async def test_layer_data_uses_server_field_names(client, fake):
    fake.children("p", ["c"])
    result = await handlers.get_layer_data(client, ["p"])
    assert "rel-p-c-child" in result["data"]["relationsById"]


@pytest.mark.asyncio
async def test_tool_wrapper_turns_errors_into_results():
    async def failing():
        raise NodeOperationError("Node with ID n not found.", "n", status=404)

    result = await server._run(failing(), "update_node")

    assert result == {
        "success": False,
        "error": {
            "kind": "node_operation_error",
            "message": "Node with ID n not found.",
            "status": 404,
            "details": None,
            "node_id": "n",
        },
    }


def test_error_payload_for_plain_value_error():
    assert handlers.error_payload(ValueError("bad")) == {
        "success": False,
        "error": {"kind": "ValueError", "message": "bad", "status": None, "details": None},
    }
