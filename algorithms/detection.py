"""
Deadlock Detection Algorithm for the Resource Allocation Graph.

Implements cycle detection (depth-first search with an on-stack set) on
the bipartite process/resource digraph.
"""

from dataclasses import dataclass
from typing import Iterator, List, Set, Tuple

from models.graph import ResourceAllocationGraph
from models.node import NodeKind


@dataclass(frozen=True)
class DeadlockResult:
    """
    Outcome of one detection run.

    Attributes:
        deadlocked: True if a cycle was found
        cycle: Node ids forming the cycle, start node not repeated at the
            end (the sequence wraps). Empty when no deadlock.
    """
    deadlocked: bool
    cycle: Tuple[str, ...] = ()

    def cycle_edges(self) -> List[Tuple[str, str]]:
        """Consecutive (source, target) pairs of the cycle, including the closing edge."""
        n = len(self.cycle)
        return [(self.cycle[i], self.cycle[(i + 1) % n]) for i in range(n)]

    def processes_in_cycle(self, graph: ResourceAllocationGraph) -> List[str]:
        return [
            node_id for node_id in self.cycle
            if graph.get_node(node_id).kind is NodeKind.PROCESS
        ]

    def format_cycle(self) -> str:
        if not self.cycle:
            return ""
        return " -> ".join(self.cycle + (self.cycle[0],))


def detect_deadlock(graph: ResourceAllocationGraph) -> DeadlockResult:
    """
    Detect deadlock by searching the graph for a directed cycle.

    Algorithm:
    1. visited = {}, on_stack = {}
    2. For each node r in node insertion order, skip if visited, else DFS:
       - mark r visited and on-stack, push r onto the path
       - for each neighbour v in edge insertion order:
         * v unvisited -> descend into v
         * v on-stack  -> back edge: cycle = path[path.index(v):], stop
       - when all neighbours are exhausted, pop r (it stays visited)
    3. Stop at the first cycle found

    The DFS keeps an explicit stack of neighbour iterators instead of
    recursing, so deep graphs cannot exceed the recursion limit. The
    visiting order is the same as the recursive formulation, so the
    reported cycle depends only on insertion order.

    Only valid as a deadlock test for single-instance resources; the
    instance count on resource nodes is ignored.

    Time Complexity: O(V + E) adjacency walks

    Args:
        graph: Graph to inspect. Must not be mutated during the call.

    Returns:
        DeadlockResult with the first cycle found, if any
    """
    adjacency = {node_id: graph.adjacency_of(node_id) for node_id in graph.node_ids()}
    visited: Set[str] = set()

    for root in adjacency:
        if root in visited:
            continue
        cycle = _search(root, adjacency, visited)
        if cycle:
            return DeadlockResult(True, tuple(cycle))

    return DeadlockResult(False, ())


def _search(root: str, adjacency: dict, visited: Set[str]) -> List[str]:
    """
    Depth-first search from root.

    Returns:
        The cycle found (path slice from the back-edge target), or an
        empty list
    """
    path: List[str] = []
    on_stack: Set[str] = set()
    frames: List[Iterator[str]] = []

    def enter(node_id: str) -> None:
        visited.add(node_id)
        on_stack.add(node_id)
        path.append(node_id)
        frames.append(iter(adjacency[node_id]))

    enter(root)
    while frames:
        neighbour = next(frames[-1], None)
        if neighbour is None:
            # All neighbours explored: backtrack
            frames.pop()
            on_stack.discard(path.pop())
            continue

        if neighbour not in visited:
            enter(neighbour)
        elif neighbour in on_stack:
            return path[path.index(neighbour):]

    return []
