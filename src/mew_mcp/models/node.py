"""Wire models for Mew graph nodes, relations and layer responses."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

CHILD_RELATION_TYPE = "child"
TYPE_RELATION_TYPE = "__type__"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using server field names, keeping only fields that were set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class _Block(_WireModel):
    def model_post_init(self, __context: Any) -> None:
        # the discriminator is always serialized, even when defaulted
        self.__pydantic_fields_set__.add("type")


class TextBlock(_Block):
    type: Literal["text"] = "text"
    value: str = ""
    styles: int | None = None


class MentionBlock(_Block):
    type: Literal["mention"] = "mention"
    value: str
    mention_trigger: str | None = None


class ReplacementBlock(_Block):
    type: Literal["replacement"] = "replacement"
    value: str = ""


class OtherBlock(_Block):
    """Any block type this client does not interpret (links, embeds, ...)."""

    type: str
    value: Any = None


ContentBlock = Annotated[
    TextBlock | MentionBlock | ReplacementBlock | OtherBlock,
    Field(union_mode="left_to_right"),
]


class GraphNode(_WireModel):
    """A content-bearing vertex as returned by the layer endpoint."""

    id: str
    version: int | None = None
    author_id: str | None = None
    created_at: str | int | None = None
    updated_at: str | int | None = None
    content: list[ContentBlock] = Field(default_factory=list)
    is_public: bool | None = None
    is_new_related_objects_public: bool | None = None
    relation_id: str | None = None
    canonical_relation_id: str | None = None
    is_checked: bool | None = None

    @property
    def text(self) -> str | None:
        return get_node_text_content(self)


class Relation(_WireModel):
    """A directed, typed edge between two nodes (or a relation and a label node)."""

    id: str
    version: int | None = None
    author_id: str | None = None
    created_at: str | int | None = None
    updated_at: str | int | None = None
    from_id: str
    to_id: str
    relation_type_id: str
    is_public: bool | None = None
    canonical_relation_id: str | None = None

    @property
    def is_child(self) -> bool:
        return self.relation_type_id == CHILD_RELATION_TYPE


class LayerData(BaseModel):
    """The node/relation/user maps of one layer fetch.

    Null and malformed entries are dropped on load; callers only ever see
    records they can use.
    """

    nodes_by_id: dict[str, GraphNode] = Field(default_factory=dict)
    relations_by_id: dict[str, Relation] = Field(default_factory=dict)
    users_by_id: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> "LayerData":
        data = payload.get("data") or {}
        nodes: dict[str, GraphNode] = {}
        for node_id, raw in (data.get("nodesById") or {}).items():
            if not isinstance(raw, dict):
                continue
            try:
                nodes[node_id] = GraphNode.model_validate({"id": node_id, **raw})
            except ValidationError:
                continue

        relations: dict[str, Relation] = {}
        for relation_id, raw in (data.get("relationsById") or {}).items():
            if not isinstance(raw, dict):
                continue
            try:
                relations[relation_id] = Relation.model_validate({"id": relation_id, **raw})
            except ValidationError:
                continue

        users = {k: v for k, v in (data.get("usersById") or {}).items() if v is not None}
        return cls(nodes_by_id=nodes, relations_by_id=relations, users_by_id=users)

    def child_relations(self, parent_id: str) -> list[Relation]:
        """Structural edges out of ``parent_id`` in response order."""
        return [
            rel for rel in self.relations_by_id.values()
            if rel.from_id == parent_id and rel.is_child
        ]

    def to_wire(self) -> dict[str, Any]:
        return {
            "nodesById": {k: v.to_wire() for k, v in self.nodes_by_id.items()},
            "relationsById": {k: v.to_wire() for k, v in self.relations_by_id.items()},
            "usersById": self.users_by_id,
        }


class ChildNode(GraphNode):
    """A child record annotated with its own child count."""

    has_children: bool = False
    child_count: int = 0


class ChildListing(BaseModel):
    parent_node: GraphNode | None = None
    child_nodes: list[ChildNode] = Field(default_factory=list)


def get_node_text_content(node: GraphNode | None) -> str | None:
    """Text of the first content block, if that block is text."""
    if node is None or not node.content:
        return None
    first = node.content[0]
    if isinstance(first, TextBlock):
        return first.value
    return None
