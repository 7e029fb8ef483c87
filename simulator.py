#!/usr/bin/env python3
"""
Resource Allocation Graph Deadlock Detector
Main entry point for the detector.

Builds a process/resource graph from a scenario file (or the built-in
demonstration graphs), replays the scenario's actions and reports whether
the graph contains a deadlock cycle.
"""

import argparse
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.node import NodeKind
from models.graph import ResourceAllocationGraph
from utils.scenario_loader import load_scenario, Scenario, ScenarioLoadError
from utils.logger import GraphLogger
from algorithms.detection import detect_deadlock, DeadlockResult
from analysis.events import EventLog, GraphEvent, EventType
from analysis.metrics import compute_graph_metrics


@dataclass
class SessionReport:
    """
    Result of replaying a scenario.

    Attributes:
        graph: Graph in its final state
        event_log: Every action applied, in order
        detections: Results of each detection run, in order
    """
    graph: ResourceAllocationGraph
    event_log: EventLog = field(default_factory=EventLog)
    detections: List[DeadlockResult] = field(default_factory=list)

    @property
    def final_result(self) -> Optional[DeadlockResult]:
        return self.detections[-1] if self.detections else None

    @property
    def rejections(self) -> list:
        return self.event_log.get_events_by_type(EventType.REJECTED)


def run_session(scenario: Scenario, logger: GraphLogger) -> SessionReport:
    """
    Replay a scenario's actions against its graph.

    Actions run in file order. When the scenario contains no 'detect'
    action, one detection runs after the last action.

    Args:
        scenario: Loaded scenario
        logger: Logger instance

    Returns:
        SessionReport with the final graph, event log and detection results

    Raises:
        ScenarioLoadError: If the scenario is strict and an action is rejected
    """
    graph = scenario.graph
    report = SessionReport(graph=graph)

    logger.log(f"Graph loaded: {graph.node_count} nodes, {graph.edge_count} edges")
    logger.log_graph(graph.display())

    for step, action in enumerate(scenario.actions):
        _apply_action(step, action, scenario, report, logger)

    if not any(a['type'] == 'detect' for a in scenario.actions):
        _run_detection(len(scenario.actions), report, logger)

    return report


def _apply_action(
    step: int,
    action: Dict,
    scenario: Scenario,
    report: SessionReport,
    logger: GraphLogger
) -> None:
    """
    Apply a single action and record it.

    Args:
        step: Position of the action in the scenario
        action: Validated action dictionary
        scenario: Scenario being replayed (for the strict flag)
        report: Report receiving events
        logger: Logger instance
    """
    graph = report.graph
    action_type = action['type']

    if action_type == 'add_node':
        result = graph.add_node(
            action['id'], action['kind'], action.get('instances', 1), extra=action.get('extra')
        )
        if result:
            logger.log_node(graph.get_node(action['id']))
            report.event_log.add(GraphEvent(step, EventType.NODE_ADDED, action['id'], result.message))
        else:
            _record_rejection(step, 'add_node', str(action['id']), result, scenario, report, logger)

    elif action_type == 'add_edge':
        subject = f"{action['from']} -> {action['to']}"
        result = graph.add_edge(action['from'], action['to'])
        if result:
            logger.log_edge(result)
            report.event_log.add(GraphEvent(step, EventType.EDGE_ADDED, subject, result.message))
        else:
            _record_rejection(step, 'add_edge', subject, result, scenario, report, logger)

    elif action_type == 'remove_edge':
        # Removing a missing edge is a no-op, not a rejection
        removed = graph.remove_edge(action['from'], action['to'])
        logger.log_edge_removed(action['from'], action['to'], removed)
        if removed:
            report.event_log.add(GraphEvent(
                step,
                EventType.EDGE_REMOVED,
                f"{action['from']} -> {action['to']}",
                f"Removed edge: {action['from']} -> {action['to']}"
            ))

    elif action_type == 'clear':
        graph.clear()
        logger.log("System cleared.")
        report.event_log.add(GraphEvent(step, EventType.CLEARED))

    elif action_type == 'detect':
        _run_detection(step, report, logger)


def _record_rejection(step, action_name, subject, result, scenario, report, logger) -> None:
    """Log a rejected mutation, or fail the run if the scenario is strict."""
    if scenario.strict:
        raise ScenarioLoadError(f"Step {step}: {action_name} rejected: {result.message}")
    logger.log_rejection(action_name, result)
    report.event_log.add(GraphEvent(step, EventType.REJECTED, subject, result.rejection.value))


def _run_detection(step: int, report: SessionReport, logger: GraphLogger) -> DeadlockResult:
    """Run deadlock detection on the current graph and record the outcome."""
    logger.log("Starting deadlock detection...")
    result = detect_deadlock(report.graph)
    report.detections.append(result)
    logger.log_deadlock(result)

    if result.deadlocked:
        processes = result.processes_in_cycle(report.graph)
        logger.log(f"  Processes in deadlock: {processes}", "debug")
        report.event_log.add(GraphEvent(
            step, EventType.DEADLOCK, ", ".join(processes), result.format_cycle()
        ))
    else:
        report.event_log.add(GraphEvent(step, EventType.SAFE))
    return result


def build_demo_graphs() -> Dict[str, ResourceAllocationGraph]:
    """
    Build the two demonstration graphs.

    - "classic_deadlock": P1 -> R1 -> P2 -> R2 -> P1, single-instance resources
    - "multi_instance": P1 and P2 both request and hold a two-instance R1.
      The cycle test reports a deadlock here even though the second
      instance lets both proceed.
    """
    deadlock = ResourceAllocationGraph()
    deadlock.add_node("P1", NodeKind.PROCESS)
    deadlock.add_node("P2", NodeKind.PROCESS)
    deadlock.add_node("R1", NodeKind.RESOURCE, 1)
    deadlock.add_node("R2", NodeKind.RESOURCE, 1)
    deadlock.add_edge("P1", "R1")  # P1 requests R1
    deadlock.add_edge("R1", "P2")  # R1 allocated to P2
    deadlock.add_edge("P2", "R2")  # P2 requests R2
    deadlock.add_edge("R2", "P1")  # R2 allocated to P1

    multi = ResourceAllocationGraph()
    multi.add_node("P1", NodeKind.PROCESS)
    multi.add_node("P2", NodeKind.PROCESS)
    multi.add_node("R1", NodeKind.RESOURCE, 2)
    multi.add_edge("P1", "R1")
    multi.add_edge("R1", "P1")
    multi.add_edge("P2", "R1")
    multi.add_edge("R1", "P2")

    return {"classic_deadlock": deadlock, "multi_instance": multi}


def run_demo(logger: GraphLogger, show_stats: bool = False) -> Dict[str, DeadlockResult]:
    """Run detection on the demonstration graphs."""
    results = {}
    for name, graph in build_demo_graphs().items():
        logger.log(f"\n=== {name.replace('_', ' ').title()} ===")
        logger.log(graph.display())
        if show_stats:
            logger.log(compute_graph_metrics(graph).display())
        results[name] = detect_deadlock(graph)
        logger.log_deadlock(results[name])
    return results


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the detector."""
    parser = argparse.ArgumentParser(
        description='Resource Allocation Graph Deadlock Detector'
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--scenario',
        type=str,
        help='Path to scenario JSON file'
    )
    source.add_argument(
        '--demo',
        action='store_true',
        help='Run the built-in demonstration graphs'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--show-graph',
        action='store_true',
        help='Print the final graph listing'
    )
    parser.add_argument(
        '--stats',
        action='store_true',
        help='Print graph statistics'
    )

    args = parser.parse_args(argv)

    logger = GraphLogger(verbose=args.verbose, log_file=args.log_file)
    try:
        if args.demo:
            results = run_demo(logger, args.stats)
            return 2 if any(r.deadlocked for r in results.values()) else 0

        try:
            scenario = load_scenario(args.scenario)
            if scenario.description:
                logger.log(f"Scenario: {scenario.description}")
            report = run_session(scenario, logger)
        except ScenarioLoadError as e:
            logger.log(f"Failed to load scenario: {e}", "error")
            return 1

        if args.show_graph:
            logger.log(report.graph.display())
        if args.stats:
            logger.log(compute_graph_metrics(report.graph).display())

        result = report.final_result
        return 2 if result is not None and result.deadlocked else 0
    finally:
        logger.close()


if __name__ == '__main__':
    sys.exit(main())
