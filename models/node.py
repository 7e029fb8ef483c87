"""
Node models for the Resource Allocation Graph Deadlock Detector.

A node is either a process or a resource. Only resources carry an
instance count, so the two kinds are separate dataclasses sharing a
common base rather than one class with an optional field.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class NodeKind(Enum):
    """Kinds of node in a resource allocation graph."""
    PROCESS = "process"
    RESOURCE = "resource"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Node(ABC):
    """
    Abstract base node type; instantiate ProcessNode or ResourceNode.

    Attributes:
        id: Unique, case-sensitive, non-empty identifier
        extra: Opaque per-node data owned by the presentation layer
            (canvas position, radius, ...). Never read by the core.
    """
    id: str
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        """Validate node identifier."""
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError(f"Node id must be a non-empty string, got {self.id!r}")

    @property
    @abstractmethod
    def kind(self) -> NodeKind:
        """PROCESS or RESOURCE, fixed by the subclass."""

    @property
    def is_process(self) -> bool:
        return self.kind is NodeKind.PROCESS

    @property
    def is_resource(self) -> bool:
        return self.kind is NodeKind.RESOURCE

    def describe(self) -> str:
        """One-line label, e.g. ``P1 [Process]``."""
        return f"{self.id} [{self.kind.label}]"


@dataclass(frozen=True)
class ProcessNode(Node):
    """An active computation that may hold or wait for resources."""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.PROCESS

    @property
    def instances(self) -> int:
        return 1


@dataclass(frozen=True)
class ResourceNode(Node):
    """
    An allocatable unit with one or more interchangeable instances.

    The instance count is descriptive only: cycle detection treats every
    resource as single-instance.

    Invariant:
        instances >= 1
    """
    instances: int = 1

    def __post_init__(self):
        """Validate resource state."""
        super().__post_init__()
        if isinstance(self.instances, bool) or not isinstance(self.instances, int):
            raise ValueError(f"Resource {self.id}: instances must be an integer")
        if self.instances < 1:
            raise ValueError(
                f"Resource {self.id}: instances must be positive, got {self.instances}"
            )

    @property
    def kind(self) -> NodeKind:
        return NodeKind.RESOURCE

    def describe(self) -> str:
        return f"{self.id} [{self.kind.label}, Instances: {self.instances}]"
