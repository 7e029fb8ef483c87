"""
Event Model for the Resource Allocation Graph Deadlock Detector.

Defines event types for tracking session actions.
"""

from dataclasses import dataclass
from enum import Enum


class EventType(Enum):
    """Types of events in a session."""
    NODE_ADDED = "node_added"
    EDGE_ADDED = "edge_added"
    EDGE_REMOVED = "edge_removed"
    REJECTED = "rejected"
    CLEARED = "cleared"
    DEADLOCK = "deadlock"
    SAFE = "safe"


@dataclass
class GraphEvent:
    """
    Represents a single action applied to the graph.

    Attributes:
        step: Position of the action in the session (0-based)
        event_type: Type of event
        subject: Node id or "source -> target" the event concerns
        message: Human-readable description
    """
    step: int
    event_type: EventType
    subject: str = ""
    message: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"Step {self.step}"

        if self.event_type == EventType.DEADLOCK:
            return f"{base}: DEADLOCK DETECTED in cycle: {self.message}"
        elif self.event_type == EventType.SAFE:
            return f"{base}: System is deadlock-free"
        elif self.event_type == EventType.REJECTED:
            return f"{base}: REJECTED {self.subject} ({self.message})"
        elif self.event_type == EventType.CLEARED:
            return f"{base}: System cleared"
        else:
            return f"{base}: {self.message}"


@dataclass
class EventLog:
    """Collection of session events."""
    events: list = None

    def __post_init__(self):
        if self.events is None:
            self.events = []

    def add(self, event: GraphEvent) -> None:
        """Add an event to the log."""
        self.events.append(event)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def tail(self, count: int = 10) -> list:
        """Newest events first, at most count of them."""
        return list(reversed(self.events[-count:])) if count > 0 else []

    def __len__(self) -> int:
        return len(self.events)

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
