"""Mew API client package."""

from .api_client import MewClient
from .api_client_core import MewClientCore
from .api_client_mutations import AUTHOR_MODEL_IDS, AddNodeResult, MoveBatchResult, MutationEngine, NodeMove
from .api_client_traversal import AdaptiveTraversal, adjust_strategy, initial_strategy, level_breadth_limit
from .auth import TokenProvider
from .cache import TTLCache
from .request_queue import RequestQueue
from .thinking import ThoughtNode, parse_thinking_markdown
from .tree_render import render_content, render_structure, truncate_title

__all__ = [
    "AUTHOR_MODEL_IDS",
    "AdaptiveTraversal",
    "AddNodeResult",
    "MewClient",
    "MewClientCore",
    "MoveBatchResult",
    "MutationEngine",
    "NodeMove",
    "RequestQueue",
    "TTLCache",
    "ThoughtNode",
    "TokenProvider",
    "adjust_strategy",
    "initial_strategy",
    "level_breadth_limit",
    "parse_thinking_markdown",
    "render_content",
    "render_structure",
    "truncate_title",
]
