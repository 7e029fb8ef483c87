"""
Edge model for the Resource Allocation Graph Deadlock Detector.

Edge kinds are never supplied by callers; they are inferred from the
kinds of the two endpoints.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models.node import NodeKind


class EdgeKind(Enum):
    """Directed relationships between processes and resources."""
    REQUEST = "request"        # Process -> Resource: process is waiting for resource
    ALLOCATION = "allocation"  # Resource -> Process: resource is held by process

    @property
    def label(self) -> str:
        return self.value.capitalize()


def infer_edge_kind(source_kind: NodeKind, target_kind: NodeKind) -> Optional[EdgeKind]:
    """
    Derive the edge kind from the endpoint kinds.

    Args:
        source_kind: Kind of the edge's source node
        target_kind: Kind of the edge's target node

    Returns:
        REQUEST for Process->Resource, ALLOCATION for Resource->Process,
        None for a same-kind pair (not a valid edge)
    """
    if source_kind is NodeKind.PROCESS and target_kind is NodeKind.RESOURCE:
        return EdgeKind.REQUEST
    if source_kind is NodeKind.RESOURCE and target_kind is NodeKind.PROCESS:
        return EdgeKind.ALLOCATION
    return None


@dataclass(frozen=True)
class Edge:
    """
    Directed edge between a process and a resource.

    Attributes:
        source: Id of the node the edge leaves
        target: Id of the node the edge enters
        kind: REQUEST or ALLOCATION, derived from endpoint kinds
    """
    source: str
    target: str
    kind: EdgeKind

    @property
    def key(self):
        return (self.source, self.target)

    def __str__(self) -> str:
        return f"{self.source} -> {self.target} [{self.kind.value}]"
