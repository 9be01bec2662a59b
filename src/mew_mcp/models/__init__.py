"""Data models and errors for the Mew MCP server."""

from .api_config import APIConfiguration
from .content import (
    BlockListContent,
    MentionContent,
    NodeContent,
    ReplacementContent,
    TextContent,
    content_to_blocks,
    parse_node_content,
)
from .errors import (
    AuthenticationError,
    BatchOperationError,
    ContentFormatError,
    InvalidUserIdFormatError,
    MCPError,
    NodeOperationError,
    RelationOperationError,
)
from .node import (
    CHILD_RELATION_TYPE,
    TYPE_RELATION_TYPE,
    ChildListing,
    ChildNode,
    ContentBlock,
    GraphNode,
    LayerData,
    MentionBlock,
    OtherBlock,
    Relation,
    ReplacementBlock,
    TextBlock,
    get_node_text_content,
)
from .traversal import (
    CYCLE_SENTINEL_TEXT,
    MAX_DEPTH_SENTINEL_TEXT,
    NO_TEXT,
    BulkExpansion,
    StructureMap,
    StructureMapResult,
    TraversalBudget,
    TraversalResult,
    TraversalStats,
    TraversalStrategy,
    TreeNode,
)

__all__ = [
    "APIConfiguration",
    "AuthenticationError",
    "BatchOperationError",
    "BlockListContent",
    "BulkExpansion",
    "CHILD_RELATION_TYPE",
    "CYCLE_SENTINEL_TEXT",
    "ChildListing",
    "ChildNode",
    "ContentBlock",
    "ContentFormatError",
    "GraphNode",
    "InvalidUserIdFormatError",
    "LayerData",
    "MAX_DEPTH_SENTINEL_TEXT",
    "MCPError",
    "MentionBlock",
    "MentionContent",
    "NO_TEXT",
    "NodeContent",
    "NodeOperationError",
    "OtherBlock",
    "Relation",
    "RelationOperationError",
    "ReplacementBlock",
    "ReplacementContent",
    "StructureMap",
    "StructureMapResult",
    "TYPE_RELATION_TYPE",
    "TextBlock",
    "TextContent",
    "TraversalBudget",
    "TraversalResult",
    "TraversalStats",
    "TraversalStrategy",
    "TreeNode",
    "content_to_blocks",
    "get_node_text_content",
    "parse_node_content",
]
