"""Loose node-content input accepted by the tools, parsed into explicit variants."""

from typing import Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import ContentFormatError
from .node import ContentBlock, MentionBlock, TextBlock

REPLACEMENT_PLACEHOLDER = "replacement"


class TextContent(BaseModel):
    kind: Literal["text"] = "text"
    text: str

    def to_blocks(self) -> list[ContentBlock]:
        return [TextBlock(value=self.text)]


class MentionContent(BaseModel):
    kind: Literal["mention"] = "mention"
    pre_mention_text: str = ""
    mention_node_id: str
    post_mention_text: str = ""

    def to_blocks(self) -> list[ContentBlock]:
        return [
            TextBlock(value=self.pre_mention_text),
            MentionBlock(value=self.mention_node_id, mention_trigger="@"),
            TextBlock(value=self.post_mention_text),
        ]


class ReplacementContent(BaseModel):
    kind: Literal["replacement"] = "replacement"
    reference_node_id: str
    reference_canonical_relation_id: str | None = None

    def to_blocks(self) -> list[ContentBlock]:
        return [TextBlock(value=REPLACEMENT_PLACEHOLDER)]


class BlockListContent(BaseModel):
    kind: Literal["blocks"] = "blocks"
    blocks: list[ContentBlock] = Field(default_factory=list)

    def to_blocks(self) -> list[ContentBlock]:
        return list(self.blocks)


NodeContent = TextContent | MentionContent | ReplacementContent | BlockListContent

_blocks_adapter = TypeAdapter(list[ContentBlock])


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def parse_node_content(raw: Any) -> NodeContent:
    """Parse tool input into a content variant.

    Accepted shapes:
        "plain text"
        {"text": "..."}
        {"type": "text", "text": "..."}
        {"type": "mention", "mentionData": {"preMentionText", "mentionNodeId", "postMentionText"}}
        {"type": "replacement", "replacementNodeData": {"referenceNodeId", "referenceCanonicalRelationId"}}
        [{"type": "text", "value": "..."}, ...]   (already formatted blocks)

    Raises:
        ContentFormatError: for anything else.
    """
    if isinstance(raw, (TextContent, MentionContent, ReplacementContent, BlockListContent)):
        return raw

    if isinstance(raw, str):
        return TextContent(text=raw)

    if isinstance(raw, list):
        if not all(isinstance(item, dict) and "type" in item for item in raw):
            raise ContentFormatError("Every content block needs a 'type'", raw)
        try:
            return BlockListContent(blocks=_blocks_adapter.validate_python(raw))
        except ValidationError as err:
            raise ContentFormatError(f"Invalid content block list: {err.error_count()} error(s)", raw) from err

    if not isinstance(raw, dict):
        raise ContentFormatError(f"Unsupported content type: {type(raw).__name__}", raw)

    content_type = raw.get("type")

    if content_type is None or content_type == "text":
        text = raw.get("text")
        if not isinstance(text, str):
            raise ContentFormatError("Text content requires a string 'text' field", raw)
        return TextContent(text=text)

    if content_type == "mention":
        data = _pick(raw, "mentionData", "mention_data")
        if not isinstance(data, dict):
            raise ContentFormatError("Mention content requires a 'mentionData' object", raw)
        node_id = _pick(data, "mentionNodeId", "mention_node_id")
        if not node_id:
            raise ContentFormatError("Mention content requires 'mentionNodeId'", raw)
        return MentionContent(
            pre_mention_text=_pick(data, "preMentionText", "pre_mention_text") or "",
            mention_node_id=node_id,
            post_mention_text=_pick(data, "postMentionText", "post_mention_text") or "",
        )

    if content_type == "replacement":
        data = _pick(raw, "replacementNodeData", "replacement_node_data")
        if not isinstance(data, dict):
            raise ContentFormatError("Replacement content requires a 'replacementNodeData' object", raw)
        reference = _pick(data, "referenceNodeId", "reference_node_id")
        if not reference:
            raise ContentFormatError("Replacement content requires 'referenceNodeId'", raw)
        return ReplacementContent(
            reference_node_id=reference,
            reference_canonical_relation_id=_pick(
                data, "referenceCanonicalRelationId", "reference_canonical_relation_id"
            ),
        )

    raise ContentFormatError(f"Unknown content type: {content_type!r}", raw)


def content_to_blocks(raw: Any) -> list[ContentBlock]:
    """Normalize any accepted content input to the wire block list."""
    return parse_node_content(raw).to_blocks()
