"""Mew API client - adaptive bulk traversal.

Two traversal modes live here:

- ``load_adaptive_tree``: budgeted, level-by-level BFS whose depth/breadth
  trade-off adapts to the root's fan-out. Bounded by the target depth, the
  call budget and the frontier, so it needs no explicit cycle detection.
- ``bulk_expand`` / ``build_structure_tree`` / ``map_structure``:
  structure-only discovery up to hard depth, width and node ceilings, with
  explicit cycle sentinels.
"""

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from ..models import (
    CYCLE_SENTINEL_TEXT,
    MAX_DEPTH_SENTINEL_TEXT,
    NO_TEXT,
    BulkExpansion,
    ChildListing,
    ChildNode,
    GraphNode,
    MCPError,
    StructureMap,
    StructureMapResult,
    TraversalBudget,
    TraversalResult,
    TraversalStats,
    TraversalStrategy,
    TreeNode,
)
from .api_client_core import USER_ROOT_PREFIX, MewClientCore
from .client_log import ClientLogger

logger = ClientLogger("TRAVERSAL")

DEFAULT_API_BUDGET = 8
# one discovery call plus one hydration call per level
ROUND_COST = 2
SAMPLE_COST = 1

WIDE_FANOUT = 30
NARROW_FANOUT = 5
MAX_TARGET_DEPTH = 4

LEVEL_SAMPLE_SIZE = 3

STRUCTURE_MAX_DEPTH = 12
STRUCTURE_MAX_WIDTH = 200
STRUCTURE_MAX_NODES = 2000


def initial_strategy(root_id: str, global_root_id: str) -> TraversalStrategy:
    """Pick a starting shape from what kind of root this is."""
    if root_id == global_root_id:
        return TraversalStrategy(priority="breadth", max_breadth=20, target_depth=2)
    if USER_ROOT_PREFIX in root_id:
        return TraversalStrategy(priority="balanced", max_breadth=12, target_depth=3)
    return TraversalStrategy(priority="depth", max_breadth=8, target_depth=4)


def adjust_strategy(strategy: TraversalStrategy, fanout: int) -> TraversalStrategy:
    """Adjust once for the root's observed fan-out.

    Wide roots get shallower and wider, narrow roots one level deeper.
    """
    if fanout > WIDE_FANOUT:
        return strategy.with_limits(
            max_breadth=min(25, max(15, fanout)),
            target_depth=min(2, strategy.target_depth),
        )
    if fanout < NARROW_FANOUT:
        return strategy.with_limits(
            max_breadth=max(8, fanout),
            target_depth=min(MAX_TARGET_DEPTH, strategy.target_depth + 1),
        )
    return strategy


def level_breadth_limit(max_breadth: int, sampled_fanouts: list[int]) -> int:
    """Per-level breadth from a small fan-out sample of that level."""
    if not sampled_fanouts:
        return max_breadth
    average = sum(sampled_fanouts) / len(sampled_fanouts)
    if average > 15:
        return min(8, max_breadth)
    if average < 3:
        return max(5, min(12, max_breadth))
    return max_breadth


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


@dataclass
class _Expansion:
    limited: list[ChildNode]
    total: int


class AdaptiveTraversal:
    """Budgeted tree loading over a shared ``MewClientCore``."""

    def __init__(self, core: MewClientCore):
        self.core = core

    def initial_strategy(self, root_id: str) -> TraversalStrategy:
        return initial_strategy(root_id, self.core.config.global_root_id)

    async def _gather_children(self, node_ids: list[str]) -> dict[str, ChildListing]:
        """Children of every id concurrently; the first failure is raised once all settle."""
        results = await asyncio.gather(
            *(self.core.get_children(node_id) for node_id in node_ids),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return dict(zip(node_ids, results))

    async def load_adaptive_tree(
        self,
        root_id: str,
        api_budget: int = DEFAULT_API_BUDGET,
        per_level_sampling: bool = False,
    ) -> TraversalResult:
        """Build the most informative subtree of ``root_id`` that ``api_budget`` allows.

        Args:
            root_id: Node to start from
            api_budget: Total calls allowed (sample = 1, each level round = 2)
            per_level_sampling: Re-derive breadth for each level from a
                3-node fan-out sample (costs 1 extra unit per level)

        Returns:
            The materialized tree plus traversal stats
        """
        started = time.monotonic()
        budget = TraversalBudget(api_budget)
        initial = self.initial_strategy(root_id)

        budget.spend(SAMPLE_COST)
        sample = await self.core.get_children(root_id)
        root_breadth = len(sample.child_nodes)
        strategy = adjust_strategy(initial, root_breadth)
        logger.info(
            f"Root {root_id}: fan-out {root_breadth}, strategy {initial.to_dict()} -> {strategy.to_dict()}"
        )

        node_data: dict[str, GraphNode] = {}
        discovered: dict[str, ChildNode] = {}
        expansions: dict[str, _Expansion] = {}

        if sample.parent_node is not None:
            node_data[root_id] = sample.parent_node
        root_limited = sample.child_nodes[: strategy.max_breadth]
        expansions[root_id] = _Expansion(root_limited, root_breadth)
        discovered.update((child.id, child) for child in root_limited)

        levels: dict[int, list[str]] = {0: [root_id], 1: _unique(c.id for c in root_limited)}
        levels_expanded = 0

        for depth in range(1, strategy.target_depth + 1):
            frontier = levels.get(depth) or []
            if not frontier:
                break

            listings: dict[str, ChildListing] = {}
            breadth = strategy.max_breadth
            if per_level_sampling:
                if not budget.can_afford(SAMPLE_COST + ROUND_COST):
                    break
                budget.spend(SAMPLE_COST)
                listings.update(await self._gather_children(frontier[:LEVEL_SAMPLE_SIZE]))
                breadth = level_breadth_limit(
                    strategy.max_breadth, [len(listing.child_nodes) for listing in listings.values()]
                )
            elif not budget.can_afford(ROUND_COST):
                break

            budget.spend(1)
            listings.update(await self._gather_children([i for i in frontier if i not in listings]))

            next_level: list[str] = []
            for node_id in frontier:
                children = listings[node_id].child_nodes
                limited = children[:breadth]
                expansions[node_id] = _Expansion(limited, len(children))
                discovered.update((child.id, child) for child in limited)
                if depth < strategy.target_depth:
                    next_level.extend(child.id for child in limited)
            levels[depth + 1] = _unique(next_level)

            budget.spend(1)
            layer = await self.core.fetch_layer(frontier)
            node_data.update((i, layer.nodes_by_id[i]) for i in frontier if i in layer.nodes_by_id)
            levels_expanded += 1

        if levels.get(levels_expanded + 1) and levels_expanded < strategy.target_depth:
            logger.info(f"Budget exhausted after {levels_expanded} level(s) ({budget.used}/{budget.total} calls)")

        tree = self._materialize(root_id, 0, strategy, expansions, node_data, discovered)
        stats = TraversalStats(
            api_calls_used=budget.used,
            api_budget=budget.total,
            initial_strategy=initial.to_dict(),
            final_strategy=strategy.to_dict(),
            root_breadth=root_breadth,
            levels_expanded=levels_expanded,
            nodes_loaded=sum(1 for _ in tree.iter_nodes()),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return TraversalResult(tree=tree, stats=stats)

    def _materialize(
        self,
        node_id: str,
        depth: int,
        strategy: TraversalStrategy,
        expansions: dict[str, _Expansion],
        node_data: dict[str, GraphNode],
        discovered: dict[str, ChildNode],
    ) -> TreeNode:
        data = node_data.get(node_id) or discovered.get(node_id)
        expansion = expansions.get(node_id)

        children: list[TreeNode] = []
        if expansion is not None:
            total = expansion.total
            if depth < strategy.target_depth:
                children = [
                    self._materialize(child.id, depth + 1, strategy, expansions, node_data, discovered)
                    for child in expansion.limited
                ]
        else:
            # never expanded: fall back to the count its parent's listing carried
            record = discovered.get(node_id)
            total = record.child_count if record is not None else 0

        return TreeNode(
            id=node_id,
            text=(data.text if data is not None else None) or NO_TEXT,
            created_at=data.created_at if data is not None else None,
            updated_at=data.updated_at if data is not None else None,
            depth=depth,
            total_children=total,
            shown_children=len(children),
            has_more_children=total > len(children),
            children=children,
        )

    # ------------------------------------------------------------------
    # Structure-only mapping
    # ------------------------------------------------------------------

    async def bulk_expand(
        self,
        root_ids: list[str],
        max_depth: int = STRUCTURE_MAX_DEPTH,
        max_nodes: int = STRUCTURE_MAX_NODES,
        max_width: int = STRUCTURE_MAX_WIDTH,
    ) -> BulkExpansion:
        """Discover structure breadth-first with one layer fetch per level.

        Each id is expanded at most once. A final bulk fetch hydrates every
        discovered node and supplies child lists for the unexpanded frontier.
        """
        roots = _unique(root_ids)
        seen: set[str] = set(roots)
        order: list[str] = list(roots)
        children_by_id: dict[str, list[str]] = {}
        child_counts: dict[str, int] = {}
        api_calls = 0
        depth_reached = 0

        level = list(roots)
        depth = 0
        while level and depth < max_depth and len(seen) < max_nodes:
            layer = await self.core.fetch_layer(level)
            api_calls += 1

            next_level: list[str] = []
            for node_id in level:
                kids = _unique(rel.to_id for rel in layer.child_relations(node_id))
                child_counts[node_id] = len(kids)
                children_by_id[node_id] = kids[:max_width]
                for kid in children_by_id[node_id]:
                    if kid in seen or len(seen) >= max_nodes:
                        continue
                    seen.add(kid)
                    order.append(kid)
                    next_level.append(kid)

            depth += 1
            if next_level:
                depth_reached = depth
            level = next_level

        final = await self.core.fetch_layer(order)
        api_calls += 1
        for node_id in order:
            if node_id not in children_by_id:
                kids = _unique(rel.to_id for rel in final.child_relations(node_id))
                child_counts[node_id] = len(kids)
                children_by_id[node_id] = kids[:max_width]

        logger.info(f"Bulk expand from {roots}: {len(order)} nodes, depth {depth_reached}, {api_calls} calls")
        return BulkExpansion(
            root_ids=roots,
            nodes_by_id={i: final.nodes_by_id[i] for i in order if i in final.nodes_by_id},
            children_by_id=children_by_id,
            child_counts=child_counts,
            depth_reached=depth_reached,
            total_nodes=len(order),
            api_calls=api_calls,
        )

    def build_structure_tree(
        self,
        root_id: str,
        expansion: BulkExpansion,
        max_depth: int = STRUCTURE_MAX_DEPTH,
        max_nodes: int = STRUCTURE_MAX_NODES,
    ) -> TreeNode | None:
        """Materialize an expansion, replacing revisits and over-deep nodes with sentinels.

        ``visited`` is copied on descent, so only a node's own ancestors
        count as revisits. Nodes with no hydrated data are dropped. Output
        stops growing after ``max_nodes`` tree nodes.
        """
        emitted = [0]

        def build(node_id: str, depth: int, visited: frozenset[str]) -> TreeNode | None:
            if node_id in visited:
                return TreeNode(id=node_id, text=CYCLE_SENTINEL_TEXT, depth=depth, marker="cycle")
            if depth > max_depth:
                return TreeNode(id=node_id, text=MAX_DEPTH_SENTINEL_TEXT, depth=depth, marker="max_depth")

            data = expansion.nodes_by_id.get(node_id)
            if data is None:
                return None
            emitted[0] += 1

            path = visited | {node_id}
            children: list[TreeNode] = []
            for kid in expansion.children_by_id.get(node_id, []):
                if emitted[0] >= max_nodes:
                    break
                child = build(kid, depth + 1, path)
                if child is not None:
                    children.append(child)

            total = expansion.child_counts.get(node_id, len(expansion.children_by_id.get(node_id, [])))
            return TreeNode(
                id=node_id,
                text=data.text or NO_TEXT,
                created_at=data.created_at,
                updated_at=data.updated_at,
                depth=depth,
                total_children=total,
                shown_children=len(children),
                has_more_children=total > len(children),
                children=children,
            )

        return build(root_id, 0, frozenset())

    async def map_structure(self, root_id: str) -> StructureMapResult:
        """Full structure map of ``root_id``, degrading to a one-level listing on failure."""
        try:
            expansion = await self.bulk_expand([root_id])
        except (MCPError, httpx.HTTPError) as err:
            logger.warning(f"Bulk expansion of {root_id} failed: {err}; trying one-level fallback")
            return await self._one_level_fallback(root_id, err)

        tree = self.build_structure_tree(root_id, expansion) or TreeNode(id=root_id)
        return StructureMapResult(
            success=True,
            structure=StructureMap(
                tree=tree,
                depth_reached=expansion.depth_reached,
                total_nodes=expansion.total_nodes,
                api_calls=expansion.api_calls,
            ),
        )

    async def _one_level_fallback(self, root_id: str, error: Exception) -> StructureMapResult:
        try:
            listing = await self.core.get_children(root_id)
        except (MCPError, httpx.HTTPError) as fallback_err:
            return StructureMapResult(
                success=False,
                error=str(error),
                fallback_error=str(fallback_err),
                message="Structure mapping failed and the one-level fallback failed too",
            )

        parent = listing.parent_node
        children = [
            TreeNode(
                id=child.id,
                text=child.text or NO_TEXT,
                created_at=child.created_at,
                updated_at=child.updated_at,
                depth=1,
                total_children=child.child_count,
                has_more_children=child.child_count > 0,
            )
            for child in listing.child_nodes
        ]
        fallback = TreeNode(
            id=root_id,
            text=(parent.text if parent is not None else None) or NO_TEXT,
            created_at=parent.created_at if parent is not None else None,
            updated_at=parent.updated_at if parent is not None else None,
            total_children=len(children),
            shown_children=len(children),
            children=children,
        )
        return StructureMapResult(
            success=False,
            error=str(error),
            fallback_tree=fallback,
            message="Structure mapping failed; returned a one-level fallback tree",
        )
