"""
Graph Metrics for the Resource Allocation Graph Deadlock Detector.

Summarises a graph into the counts shown on a status panel and builds a
numpy adjacency matrix for numeric analysis.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from models.graph import ResourceAllocationGraph
from models.edge import EdgeKind


@dataclass
class GraphMetrics:
    """
    Structural summary of one graph state.

    Attributes:
        process_count: Number of process nodes
        resource_count: Number of resource nodes
        request_count: Number of Process -> Resource edges
        allocation_count: Number of Resource -> Process edges
        total_instances: Sum of instances across all resources
        waiting_processes: Processes with at least one outgoing request
        holding_processes: Processes with at least one incoming allocation
        multi_instance_resources: Resources with more than one instance.
            A cycle through one of these may not be a real deadlock.
        held_by_resource: Resource id -> number of processes it is allocated to
    """
    process_count: int = 0
    resource_count: int = 0
    request_count: int = 0
    allocation_count: int = 0
    total_instances: int = 0
    waiting_processes: List[str] = field(default_factory=list)
    holding_processes: List[str] = field(default_factory=list)
    multi_instance_resources: List[str] = field(default_factory=list)
    held_by_resource: Dict[str, int] = field(default_factory=dict)

    def display(self) -> str:
        lines = [
            "\nGraph Statistics:",
            f"  Processes: {self.process_count}",
            f"  Resources: {self.resource_count} ({self.total_instances} instances)",
            f"  Request edges: {self.request_count}",
            f"  Allocation edges: {self.allocation_count}",
            f"  Waiting processes: {', '.join(self.waiting_processes) or 'none'}",
            f"  Holding processes: {', '.join(self.holding_processes) or 'none'}",
        ]
        if self.multi_instance_resources:
            lines.append(
                "  Multi-instance resources (cycle test may over-report): "
                + ", ".join(self.multi_instance_resources)
            )
        return "\n".join(lines)


def adjacency_matrix(graph: ResourceAllocationGraph) -> np.ndarray:
    """
    Build the adjacency matrix [V][V] of the graph.

    Rows and columns follow node insertion order (graph.node_ids()).
    matrix[i][j] == 1 iff there is an edge from node i to node j.
    """
    index = {node_id: i for i, node_id in enumerate(graph.node_ids())}
    matrix = np.zeros((len(index), len(index)), dtype=int)
    for edge in graph.edges():
        matrix[index[edge.source], index[edge.target]] = 1
    return matrix


def compute_graph_metrics(graph: ResourceAllocationGraph) -> GraphMetrics:
    """
    Compute structural metrics for the current graph.

    Args:
        graph: Graph to summarise

    Returns:
        GraphMetrics for the graph's current state
    """
    node_ids = graph.node_ids()
    matrix = adjacency_matrix(graph)
    processes = graph.processes()
    resources = graph.resources()

    is_process = np.array([graph.get_node(n).is_process for n in node_ids], dtype=bool)

    # Out-degree of processes counts requests; in-degree counts allocations
    out_degree = matrix.sum(axis=1)
    in_degree = matrix.sum(axis=0)

    waiting = [n for i, n in enumerate(node_ids) if is_process[i] and out_degree[i] > 0]
    holding = [n for i, n in enumerate(node_ids) if is_process[i] and in_degree[i] > 0]
    held_by = {
        n: int(out_degree[i]) for i, n in enumerate(node_ids) if not is_process[i]
    }

    return GraphMetrics(
        process_count=len(processes),
        resource_count=len(resources),
        request_count=len(graph.edges_of_kind(EdgeKind.REQUEST)),
        allocation_count=len(graph.edges_of_kind(EdgeKind.ALLOCATION)),
        total_instances=int(sum(r.instances for r in resources)),
        waiting_processes=waiting,
        holding_processes=holding,
        multi_instance_resources=[r.id for r in resources if r.instances > 1],
        held_by_resource=held_by,
    )
