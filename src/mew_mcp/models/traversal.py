"""Traversal strategy, budget and materialized tree models."""

from dataclasses import dataclass, replace
from typing import Any, Literal

from pydantic import BaseModel, Field

from .node import GraphNode

Priority = Literal["breadth", "balanced", "depth"]
Marker = Literal["cycle", "max_depth"]

CYCLE_SENTINEL_TEXT = "[CYCLE DETECTED]"
MAX_DEPTH_SENTINEL_TEXT = "[MAX DEPTH REACHED]"
NO_TEXT = "No text content"


@dataclass(frozen=True)
class TraversalStrategy:
    priority: Priority
    max_breadth: int
    target_depth: int

    def with_limits(self, max_breadth: int, target_depth: int) -> "TraversalStrategy":
        return replace(self, max_breadth=max_breadth, target_depth=target_depth)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "max_breadth": self.max_breadth,
            "target_depth": self.target_depth,
        }


class TraversalBudget:
    """Counts external calls against a fixed allowance for one traversal."""

    def __init__(self, total: int):
        if total < 1:
            raise ValueError(f"api_budget must be at least 1, got {total}")
        self.total = total
        self.used = 0

    @property
    def remaining(self) -> int:
        return self.total - self.used

    def can_afford(self, cost: int) -> bool:
        return self.remaining >= cost

    def spend(self, cost: int) -> None:
        if not self.can_afford(cost):
            raise RuntimeError(f"Budget exceeded: need {cost}, have {self.remaining}")
        self.used += cost


class TreeNode(BaseModel):
    """One node of a materialized view. Owned by the call that built it."""

    id: str
    text: str = NO_TEXT
    created_at: str | int | None = None
    updated_at: str | int | None = None
    depth: int = 0
    total_children: int = 0
    shown_children: int = 0
    has_more_children: bool = False
    children: list["TreeNode"] = Field(default_factory=list)
    marker: Marker | None = None

    def iter_nodes(self):
        yield self
        for child in self.children:
            yield from child.iter_nodes()


class TraversalStats(BaseModel):
    api_calls_used: int
    api_budget: int
    initial_strategy: dict[str, Any]
    final_strategy: dict[str, Any]
    root_breadth: int
    levels_expanded: int
    nodes_loaded: int
    duration_ms: int


class TraversalResult(BaseModel):
    tree: TreeNode
    stats: TraversalStats


class BulkExpansion(BaseModel):
    """Raw output of the structure-only BFS."""

    root_ids: list[str]
    nodes_by_id: dict[str, GraphNode] = Field(default_factory=dict)
    children_by_id: dict[str, list[str]] = Field(default_factory=dict)
    child_counts: dict[str, int] = Field(default_factory=dict)
    depth_reached: int = 0
    total_nodes: int = 0
    api_calls: int = 0


class StructureMap(BaseModel):
    tree: TreeNode
    depth_reached: int
    total_nodes: int
    api_calls: int


class StructureMapResult(BaseModel):
    """Outcome of ``map_structure``: a full map or a one-level fallback."""

    success: bool
    structure: StructureMap | None = None
    error: str | None = None
    fallback_tree: TreeNode | None = None
    fallback_error: str | None = None
    message: str | None = None
