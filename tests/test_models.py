"""Tests for content parsing, layer loading and error payloads."""

import pytest

from mew_mcp.models import (
    BlockListContent,
    ContentFormatError,
    GraphNode,
    LayerData,
    MentionContent,
    NodeOperationError,
    ReplacementContent,
    TextContent,
    content_to_blocks,
    get_node_text_content,
    parse_node_content,
)


class TestParseNodeContent:
    def test_plain_string_is_text(self):
        assert parse_node_content("hello") == TextContent(text="hello")

    def test_text_object_without_type(self):
        assert parse_node_content({"text": "hi"}) == TextContent(text="hi")

    def test_mention_expands_to_three_blocks(self):
        parsed = parse_node_content({
            "type": "mention",
            "mentionData": {"preMentionText": "see ", "mentionNodeId": "n1", "postMentionText": " now"},
        })
        assert isinstance(parsed, MentionContent)
        blocks = [b.to_wire() for b in parsed.to_blocks()]
        assert blocks == [
            {"type": "text", "value": "see "},
            {"type": "mention", "value": "n1", "mentionTrigger": "@"},
            {"type": "text", "value": " now"},
        ]

    def test_replacement_renders_placeholder(self):
        parsed = parse_node_content({
            "type": "replacement",
            "replacementNodeData": {"referenceNodeId": "ref", "referenceCanonicalRelationId": "crel"},
        })
        assert isinstance(parsed, ReplacementContent)
        assert parsed.reference_node_id == "ref"
        assert [b.to_wire() for b in parsed.to_blocks()] == [{"type": "text", "value": "replacement"}]

    def test_block_list_passes_through(self):
        parsed = parse_node_content([{"type": "text", "value": "a", "styles": 0}])
        assert isinstance(parsed, BlockListContent)
        assert [b.to_wire() for b in parsed.to_blocks()] == [{"type": "text", "value": "a", "styles": 0}]

    @pytest.mark.parametrize(
        "raw",
        [
            42,
            None,
            {"type": "video", "url": "x"},
            {"type": "text"},
            {"type": "mention", "mentionData": {"preMentionText": "x"}},
            {"type": "replacement"},
            [{"value": "no type"}],
        ],
    )
    def test_unrecognized_input_is_reported(self, raw):
        with pytest.raises(ContentFormatError):
            parse_node_content(raw)

    def test_content_format_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            content_to_blocks({"type": "bogus"})


class TestLayerData:
    def test_drops_null_and_malformed_entries(self):
        layer = LayerData.from_response({
            "data": {
                "nodesById": {"a": {"content": [{"type": "text", "value": "A"}]}, "gone": None},
                "relationsById": {
                    "r1": {"fromId": "a", "toId": "b", "relationTypeId": "child"},
                    "r2": None,
                    "r3": {"fromId": "a"},
                },
                "usersById": {"u": {"name": "x"}, "v": None},
            }
        })
        assert list(layer.nodes_by_id) == ["a"]
        assert list(layer.relations_by_id) == ["r1"]
        assert list(layer.users_by_id) == ["u"]

    def test_child_relations_keep_response_order(self):
        layer = LayerData.from_response({
            "data": {
                "relationsById": {
                    "r2": {"fromId": "p", "toId": "c2", "relationTypeId": "child"},
                    "r1": {"fromId": "p", "toId": "c1", "relationTypeId": "child"},
                    "r3": {"fromId": "p", "toId": "c3", "relationTypeId": "inspires"},
                    "r4": {"fromId": "x", "toId": "p", "relationTypeId": "child"},
                }
            }
        })
        assert [r.to_id for r in layer.child_relations("p")] == ["c2", "c1"]

    def test_unknown_fields_round_trip(self):
        node = GraphNode.model_validate({"id": "n", "accessMode": 0, "attributes": {"k": 1}, "isChecked": True})
        wire = node.to_wire()
        assert wire["accessMode"] == 0
        assert wire["attributes"] == {"k": 1}
        assert wire["isChecked"] is True


def test_text_content_only_from_leading_text_block():
    assert get_node_text_content(GraphNode(id="a", content=[{"type": "text", "value": "x"}])) == "x"
    assert get_node_text_content(GraphNode(id="b", content=[{"type": "mention", "value": "n"}])) is None
    assert get_node_text_content(GraphNode(id="c")) is None
    assert get_node_text_content(None) is None


def test_error_payload_carries_context():
    err = NodeOperationError("Failed to fetch layer data: boom", "n1", 500, "body")
    assert err.to_payload() == {
        "kind": "node_operation_error",
        "message": "Failed to fetch layer data: boom",
        "status": 500,
        "details": "body",
        "node_id": "n1",
    }
