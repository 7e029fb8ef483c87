"""
Scenario Replay Tests

Tests scenario loading, session replay, the command line entry point,
graph metrics, the event log and the logger.
"""

import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.node import NodeKind
from models.graph import ResourceAllocationGraph, Rejection
from algorithms.detection import detect_deadlock
from analysis.events import EventLog, GraphEvent, EventType
from analysis.metrics import adjacency_matrix, compute_graph_metrics
from utils.logger import GraphLogger
from utils.scenario_loader import (
    build_scenario,
    load_scenario,
    ScenarioLoadError,
)
from simulator import build_demo_graphs, main, run_session


# Bundled scenarios directory
SCENARIOS_DIR = project_root / "scenarios"


def write_scenario(tmp_path, data, name="scenario.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def quiet_logger():
    return GraphLogger(verbose=False, timestamps=False)


# ----------------------------------------------------------------------
# Scenario loading
# ----------------------------------------------------------------------

def test_load_classic_deadlock_scenario():
    """Load bundled classic_deadlock.json and detect on it."""
    print("\n" + "="*60)
    print("TEST 1: Load Classic Deadlock Scenario")
    print("="*60)

    scenario = load_scenario(str(SCENARIOS_DIR / "classic_deadlock.json"))
    graph = scenario.graph

    assert graph.node_count == 4
    assert graph.edge_count == 4
    assert scenario.actions == []
    assert not scenario.strict
    assert "hold one resource" in scenario.description

    result = detect_deadlock(graph)
    assert result.cycle == ("P1", "R1", "P2", "R2")
    print(f"  ✓ {result.format_cycle()}")


def test_missing_file():
    with pytest.raises(ScenarioLoadError, match="not found"):
        load_scenario("does/not/exist.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ScenarioLoadError, match="Invalid JSON"):
        load_scenario(str(path))


@pytest.mark.parametrize("data, message", [
    ([], "JSON object"),
    ({"description": "nothing"}, "'nodes' or an 'actions'"),
    ({"nodes": [{"type": "process"}]}, "missing required field: id"),
    ({"nodes": [{"id": "X", "type": "thread"}]}, "Unknown node type"),
    ({"nodes": [{"id": "R1", "type": "resource", "instances": 0}]}, "positive instance count"),
    ({"nodes": [{"id": "P1", "type": "process"}, {"id": "P1", "type": "process"}]}, "already exists"),
    ({"nodes": [{"id": "P1", "type": "process"}], "edges": [{"from": "P1"}]}, "missing required field: to"),
    ({"nodes": [{"id": "P1", "type": "process"}, {"id": "P2", "type": "process"}],
      "edges": [{"from": "P1", "to": "P2"}]}, "Invalid edge"),
    ({"actions": [{"from": "P1"}]}, "missing 'type'"),
    ({"actions": [{"type": "explode"}]}, "unknown action type"),
    ({"actions": [{"type": "add_node", "id": "P1"}]}, "missing 'kind'"),
    ({"actions": [{"type": "remove_edge", "to": "P1"}]}, "missing 'from'"),
    ({"nodes": 5}, "'nodes' must be a list"),
    ({"nodes": [], "edges": {}}, "'edges' must be a list"),
    ({"actions": "detect"}, "'actions' must be a list"),
    ({"nodes": [{"id": 7, "type": "process"}]}, "'id' must be a string"),
    ({"nodes": [{"id": "P1", "type": "process", "extra": [1, 2]}]}, "'extra' must be an object"),
    ({"nodes": [{"id": "P1", "type": "process"}], "edges": [{"from": ["P1"], "to": "P1"}]},
     "'from' must be a string"),
    ({"actions": [{"type": "add_edge", "from": "P1", "to": {"id": "R1"}}]}, "'to' must be a string"),
    ({"actions": [{"type": "remove_edge", "from": 3, "to": "R1"}]}, "'from' must be a string"),
    ({"actions": [{"type": "add_node", "id": None, "kind": "process"}]}, "'id' must be a string"),
])
def test_invalid_scenarios(data, message):
    with pytest.raises(ScenarioLoadError, match=message):
        build_scenario(data)


def test_node_type_is_case_insensitive():
    scenario = build_scenario({
        "nodes": [{"id": "P1", "type": "Process"}, {"id": "R1", "type": "RESOURCE", "instances": 4}]
    })
    assert scenario.graph.get_node("R1").instances == 4
    assert scenario.graph.get_node("P1").kind is NodeKind.PROCESS


# ----------------------------------------------------------------------
# Session replay
# ----------------------------------------------------------------------

def test_replay_break_the_cycle():
    """Replay bundled break_the_cycle.json: deadlock, then resolved."""
    print("\n" + "="*60)
    print("TEST 2: Replay Break-The-Cycle Scenario")
    print("="*60)

    scenario = load_scenario(str(SCENARIOS_DIR / "break_the_cycle.json"))
    report = run_session(scenario, quiet_logger())

    assert len(report.detections) == 2
    first, final = report.detections
    assert first.deadlocked
    assert first.cycle == ("P1", "R2", "P2", "R1")
    assert not final.deadlocked
    assert report.final_result is final

    rejected = [e.message for e in report.rejections]
    assert rejected == [Rejection.SAME_KIND_CONNECTION.value, Rejection.DUPLICATE_EDGE.value]

    log = report.event_log
    assert len(log.get_events_by_type(EventType.DEADLOCK)) == 1
    assert len(log.get_events_by_type(EventType.SAFE)) == 1
    assert len(log.get_events_by_type(EventType.EDGE_REMOVED)) == 1
    deadlock_event = log.get_events_by_type(EventType.DEADLOCK)[0]
    assert deadlock_event.subject == "P1, P2"
    print(f"  ✓ Events:\n{log.display()}")


def test_implicit_detection_when_no_detect_action():
    scenario = load_scenario(str(SCENARIOS_DIR / "safe_chain.json"))
    report = run_session(scenario, quiet_logger())
    assert len(report.detections) == 1
    assert not report.final_result.deadlocked


def test_replay_add_node_clear_and_missing_removal():
    scenario = build_scenario({
        "actions": [
            {"type": "add_node", "id": "P1", "kind": "process"},
            {"type": "add_node", "id": "R1", "kind": "resource", "instances": 1},
            {"type": "add_node", "id": "R1", "kind": "resource"},
            {"type": "add_edge", "from": "P1", "to": "R1"},
            {"type": "add_edge", "from": "R1", "to": "P1"},
            {"type": "detect"},
            {"type": "remove_edge", "from": "P1", "to": "R9"},
            {"type": "clear"},
            {"type": "detect"},
        ]
    })
    report = run_session(scenario, quiet_logger())

    assert [r.deadlocked for r in report.detections] == [True, False]
    assert report.graph.node_count == 0
    assert [e.message for e in report.rejections] == [Rejection.DUPLICATE_ID.value]
    assert len(report.event_log.get_events_by_type(EventType.CLEARED)) == 1
    # A missing edge removal is not recorded as a removal or a rejection
    assert report.event_log.get_events_by_type(EventType.EDGE_REMOVED) == []


def test_strict_scenario_fails_on_rejection():
    scenario = build_scenario({
        "strict": True,
        "nodes": [{"id": "P1", "type": "process"}],
        "actions": [{"type": "add_node", "id": "P1", "kind": "process"}]
    })
    with pytest.raises(ScenarioLoadError, match="rejected"):
        run_session(scenario, quiet_logger())


# ----------------------------------------------------------------------
# Command line
# ----------------------------------------------------------------------

def test_cli_exit_codes(tmp_path, capsys):
    """0 = deadlock-free, 2 = deadlock, 1 = scenario error."""
    assert main(["--scenario", str(SCENARIOS_DIR / "safe_chain.json")]) == 0
    assert main(["--scenario", str(SCENARIOS_DIR / "classic_deadlock.json")]) == 2
    assert main(["--scenario", str(tmp_path / "missing.json")]) == 1

    out = capsys.readouterr().out
    assert "System is deadlock-free" in out
    assert "DEADLOCK DETECTED in cycle: P1 -> R1 -> P2 -> R2 -> P1" in out
    assert "[ERROR] Failed to load scenario" in out


def test_cli_malformed_scenario_files(tmp_path, capsys):
    """Bad files are reported as load errors, not tracebacks."""
    bad_endpoint = write_scenario(tmp_path, {
        "nodes": [{"id": "P1", "type": "process"}],
        "edges": [{"from": ["P1"], "to": "P1"}]
    })
    bad_bytes = tmp_path / "binary.json"
    bad_bytes.write_bytes(b"\xff\xfe{")

    assert main(["--scenario", bad_endpoint]) == 1
    assert main(["--scenario", str(bad_bytes)]) == 1
    assert main(["--scenario", str(tmp_path)]) == 1

    out = capsys.readouterr().out
    assert out.count("[ERROR] Failed to load scenario") == 3
    assert "must be a string" in out
    assert "not valid UTF-8" in out
    assert "Cannot read scenario file" in out


def test_load_scenario_wraps_read_errors(tmp_path):
    bad_bytes = tmp_path / "latin1.json"
    bad_bytes.write_bytes(b'{"description": "caf\xe9"}')
    with pytest.raises(ScenarioLoadError, match="not valid UTF-8"):
        load_scenario(str(bad_bytes))
    with pytest.raises(ScenarioLoadError, match="Cannot read scenario file"):
        load_scenario(str(tmp_path))


def test_cli_options_and_log_file(tmp_path, capsys):
    log_file = tmp_path / "run.log"
    code = main([
        "--scenario", str(SCENARIOS_DIR / "classic_deadlock.json"),
        "--show-graph", "--stats", "--verbose", "--log-file", str(log_file)
    ])
    assert code == 2

    out = capsys.readouterr().out
    assert "=== Resource Allocation Graph ===" in out
    assert "Graph Statistics:" in out
    assert "[DEBUG]   Processes in deadlock: ['P1', 'P2']" in out

    content = log_file.read_text(encoding="utf-8")
    assert content.startswith("Deadlock Detector Log")
    assert "DEADLOCK DETECTED" in content


def test_cli_demo(capsys):
    assert main(["--demo", "--stats"]) == 2
    out = capsys.readouterr().out
    assert "Classic Deadlock" in out
    assert "Multi Instance" in out
    assert "Multi-instance resources (cycle test may over-report): R1" in out


def test_cli_requires_a_source():
    with pytest.raises(SystemExit):
        main([])


def test_demo_graphs():
    graphs = build_demo_graphs()
    assert detect_deadlock(graphs["classic_deadlock"]).cycle == ("P1", "R1", "P2", "R2")
    # Over-reported: R1 has two instances
    assert detect_deadlock(graphs["multi_instance"]).deadlocked


# ----------------------------------------------------------------------
# Metrics, events, logger
# ----------------------------------------------------------------------

def test_graph_metrics():
    graph = ResourceAllocationGraph()
    graph.add_node("P1", NodeKind.PROCESS)
    graph.add_node("P2", NodeKind.PROCESS)
    graph.add_node("P3", NodeKind.PROCESS)
    graph.add_node("R1", NodeKind.RESOURCE, 1)
    graph.add_node("R2", NodeKind.RESOURCE, 3)
    graph.add_edge("P1", "R1")
    graph.add_edge("R1", "P2")
    graph.add_edge("R2", "P2")
    graph.add_edge("R2", "P3")

    metrics = compute_graph_metrics(graph)
    assert metrics.process_count == 3
    assert metrics.resource_count == 2
    assert metrics.request_count == 1
    assert metrics.allocation_count == 3
    assert metrics.total_instances == 4
    assert metrics.waiting_processes == ["P1"]
    assert metrics.holding_processes == ["P2", "P3"]
    assert metrics.multi_instance_resources == ["R2"]
    assert metrics.held_by_resource == {"R1": 1, "R2": 2}
    assert "Request edges: 1" in metrics.display()


def test_adjacency_matrix():
    graph = ResourceAllocationGraph()
    graph.add_node("P1", NodeKind.PROCESS)
    graph.add_node("R1", NodeKind.RESOURCE)
    graph.add_edge("P1", "R1")

    matrix = adjacency_matrix(graph)
    assert matrix.shape == (2, 2)
    assert np.array_equal(matrix, np.array([[0, 1], [0, 0]]))

    empty = compute_graph_metrics(ResourceAllocationGraph())
    assert empty.process_count == 0 and empty.waiting_processes == []


def test_event_log_tail_and_format():
    log = EventLog()
    for i in range(12):
        log.add(GraphEvent(i, EventType.NODE_ADDED, f"P{i}", f"Process P{i} added"))
    log.add(GraphEvent(12, EventType.DEADLOCK, "P1", "P1 -> R1 -> P1"))

    tail = log.tail(10)
    assert len(tail) == 10
    assert tail[0].step == 12
    assert tail[-1].step == 3
    assert log.tail(0) == []
    assert str(tail[0]) == "Step 12: DEADLOCK DETECTED in cycle: P1 -> R1 -> P1"
    assert str(GraphEvent(1, EventType.REJECTED, "P1 -> P2", "same_kind_connection")) == \
        "Step 1: REJECTED P1 -> P2 (same_kind_connection)"
    assert len(log) == 13


def test_logger_levels(capsys):
    logger = GraphLogger(verbose=False, timestamps=False)
    logger.log("hidden", "debug")
    logger.log("shown")
    logger.log("careful", "warning")
    result = ResourceAllocationGraph().add_edge("P1", "R1")
    logger.log_rejection("add_edge", result)
    logger.close()
    logger.close()

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "shown",
        "[WARNING] careful",
        "[WARNING] add_edge rejected (unknown_node): Node P1 does not exist",
    ]
