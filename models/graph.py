"""
Resource Allocation Graph model for the Deadlock Detector.

Holds the authoritative set of nodes and directed edges, enforces the
bipartite connection rules at insertion time and answers the structural
queries the detector needs.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from models.node import Node, NodeKind, ProcessNode, ResourceNode
from models.edge import Edge, EdgeKind, infer_edge_kind


class Rejection(Enum):
    """Reasons a mutation can be refused. All are recoverable."""
    INVALID_ID = "invalid_id"
    DUPLICATE_ID = "duplicate_id"
    INVALID_INSTANCE_COUNT = "invalid_instance_count"
    UNKNOWN_NODE = "unknown_node"
    SAME_KIND_CONNECTION = "same_kind_connection"
    DUPLICATE_EDGE = "duplicate_edge"


class UnknownNodeError(KeyError):
    """Raised when a query names a node id that is not in the graph."""
    pass


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a graph mutation.

    Attributes:
        accepted: Whether the graph was changed
        rejection: Reason for refusal (None when accepted)
        message: Human-readable description suitable for a status line
        edge_kind: Inferred kind of an accepted edge
    """
    accepted: bool
    rejection: Optional[Rejection] = None
    message: str = ""
    edge_kind: Optional[EdgeKind] = None

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def ok(cls, message: str, edge_kind: Optional[EdgeKind] = None) -> "MutationResult":
        return cls(True, None, message, edge_kind)

    @classmethod
    def reject(cls, rejection: Rejection, message: str) -> "MutationResult":
        return cls(False, rejection, message)


class ResourceAllocationGraph:
    """
    Bipartite directed graph of processes and resources.

    Nodes are kept in insertion order keyed by id and edges in an
    insertion-ordered list; both orders drive deterministic traversal in
    deadlock detection.

    Invariants:
        - node ids are unique
        - every edge joins a process and a resource
        - no two edges share the same (source, target) pair
    """

    def __init__(self):
        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []
        # Indexes kept in step with _edges
        self._edge_index: Dict[Tuple[str, str], Edge] = {}
        self._outgoing: Dict[str, List[str]] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(
        self,
        node_id: str,
        kind: NodeKind,
        instances: int = 1,
        extra: Optional[Dict[str, Any]] = None
    ) -> MutationResult:
        """
        Add a process or resource node.

        Args:
            node_id: Unique identifier (case-sensitive)
            kind: PROCESS or RESOURCE
            instances: Instance count, used only for resources
            extra: Opaque presentation data stored with the node

        Returns:
            MutationResult, rejected with INVALID_ID, DUPLICATE_ID or
            INVALID_INSTANCE_COUNT
        """
        kind = NodeKind(kind)

        if not isinstance(node_id, str) or not node_id.strip():
            return MutationResult.reject(Rejection.INVALID_ID, "Node name must not be empty")

        if node_id in self._nodes:
            return MutationResult.reject(
                Rejection.DUPLICATE_ID,
                f"Node with name {node_id} already exists"
            )

        if kind is NodeKind.RESOURCE:
            if isinstance(instances, bool) or not isinstance(instances, int) or instances < 1:
                return MutationResult.reject(
                    Rejection.INVALID_INSTANCE_COUNT,
                    f"Resource {node_id} needs a positive instance count, got {instances!r}"
                )
            node = ResourceNode(id=node_id, instances=instances, extra=dict(extra or {}))
        else:
            node = ProcessNode(id=node_id, extra=dict(extra or {}))

        self._nodes[node_id] = node
        self._outgoing[node_id] = []
        return MutationResult.ok(f"{kind.label} {node_id} added")

    def add_edge(self, source: str, target: str) -> MutationResult:
        """
        Add a directed edge, inferring its kind from the endpoints.

        Checks are applied in order: unknown endpoint, same-kind
        connection, duplicate edge.

        Args:
            source: Id of the source node
            target: Id of the target node

        Returns:
            MutationResult carrying the inferred EdgeKind on success
        """
        for node_id in (source, target):
            if not isinstance(node_id, str) or node_id not in self._nodes:
                return MutationResult.reject(
                    Rejection.UNKNOWN_NODE,
                    f"Node {node_id} does not exist"
                )

        edge_kind = infer_edge_kind(self._nodes[source].kind, self._nodes[target].kind)
        if edge_kind is None:
            return MutationResult.reject(
                Rejection.SAME_KIND_CONNECTION,
                "Invalid edge: can only connect Process->Resource or Resource->Process"
            )

        if self.has_edge(source, target):
            return MutationResult.reject(
                Rejection.DUPLICATE_EDGE,
                f"Edge already exists from {source} to {target}"
            )

        edge = Edge(source=source, target=target, kind=edge_kind)
        self._edges.append(edge)
        self._edge_index[edge.key] = edge
        self._outgoing[source].append(target)
        return MutationResult.ok(
            f"{edge_kind.label} edge added: {source} -> {target}",
            edge_kind
        )

    def remove_edge(self, source: str, target: str) -> bool:
        """
        Remove the edge source -> target if present.

        Returns:
            True if an edge was removed, False if there was none
        """
        if not isinstance(source, str) or not isinstance(target, str):
            return False
        edge = self._edge_index.pop((source, target), None)
        if edge is None:
            return False
        self._edges.remove(edge)
        self._outgoing[source].remove(target)
        return True

    def clear(self) -> None:
        """Reset to the empty graph."""
        self._nodes.clear()
        self._edges.clear()
        self._edge_index.clear()
        self._outgoing.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def nodes(self) -> Iterator[Node]:
        """Iterate nodes in insertion order."""
        return iter(tuple(self._nodes.values()))

    def edges(self) -> Tuple[Edge, ...]:
        """All edges in insertion order."""
        return tuple(self._edges)

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def processes(self) -> List[ProcessNode]:
        return [n for n in self._nodes.values() if n.kind is NodeKind.PROCESS]

    def resources(self) -> List[ResourceNode]:
        return [n for n in self._nodes.values() if n.kind is NodeKind.RESOURCE]

    def edges_of_kind(self, kind: EdgeKind) -> List[Edge]:
        return [e for e in self._edges if e.kind is kind]

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Node:
        """
        Look up a node by id.

        Raises:
            UnknownNodeError: If the id is not in the graph
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def has_edge(self, source: str, target: str) -> bool:
        return self.find_edge(source, target) is not None

    def find_edge(self, source: str, target: str) -> Optional[Edge]:
        return self._edge_index.get((source, target))

    def adjacency_of(self, node_id: str) -> List[str]:
        """
        Targets of all edges leaving node_id, in edge insertion order.

        Raises:
            UnknownNodeError: If node_id is not in the graph. Ids come only
                from this graph, so this is a caller bug.
        """
        if node_id not in self._nodes:
            raise UnknownNodeError(node_id)
        return list(self._outgoing[node_id])

    def snapshot(self) -> "ResourceAllocationGraph":
        """
        Independent copy of the current state.

        Detection assumes the graph does not change during traversal; a
        host that mutates from another thread can detect on a snapshot.
        """
        clone = ResourceAllocationGraph()
        clone._nodes = copy.deepcopy(self._nodes)
        clone._edges = list(self._edges)
        clone._edge_index = dict(self._edge_index)
        clone._outgoing = {k: list(v) for k, v in self._outgoing.items()}
        return clone

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __repr__(self) -> str:
        return f"ResourceAllocationGraph(nodes={self.node_count}, edges={self.edge_count})"

    def display(self) -> str:
        """
        Generate readable listing of nodes and edges.

        Returns:
            Formatted multi-line string
        """
        output = []
        output.append("\n=== Resource Allocation Graph ===")
        output.append(f"Nodes ({self.node_count}):")
        for node in self._nodes.values():
            output.append(f"  {node.describe()}")

        output.append(f"\nEdges ({self.edge_count}):")
        for edge in self._edges:
            output.append(f"  {edge}")
        return "\n".join(output)
