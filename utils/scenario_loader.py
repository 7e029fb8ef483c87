"""
Scenario Loader for the Resource Allocation Graph Deadlock Detector.

Loads and validates JSON scenario files. A scenario declares an initial
graph (nodes and edges) and an optional ordered list of actions that are
replayed against it.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Any

from models.node import NodeKind
from models.graph import ResourceAllocationGraph


ACTION_TYPES = ('add_node', 'add_edge', 'remove_edge', 'detect', 'clear')


class ScenarioLoadError(Exception):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


@dataclass
class Scenario:
    """
    A loaded scenario.

    Attributes:
        graph: Graph built from the static nodes/edges sections
        actions: Validated actions to replay, in file order
        description: Free-text description from the file
        strict: Treat a rejected action as a load error instead of logging it
    """
    graph: ResourceAllocationGraph
    actions: List[Dict[str, Any]] = field(default_factory=list)
    description: str = ""
    strict: bool = False


def load_scenario(file_path: str) -> Scenario:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file

    Returns:
        Scenario with the initial graph built and actions validated

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")
    except UnicodeDecodeError as e:
        raise ScenarioLoadError(f"Scenario file is not valid UTF-8: {e}")
    except OSError as e:
        raise ScenarioLoadError(f"Cannot read scenario file {file_path}: {e}")

    return build_scenario(data)


def build_scenario(data: Dict[str, Any]) -> Scenario:
    """
    Build a Scenario from already-parsed JSON data.

    Raises:
        ScenarioLoadError: If the data is invalid
    """
    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")
    if 'nodes' not in data and 'actions' not in data:
        raise ScenarioLoadError("Scenario needs a 'nodes' or an 'actions' field")

    graph = ResourceAllocationGraph()

    for node_data in _get_list(data, 'nodes'):
        _validate_node(node_data)
        result = graph.add_node(
            node_data['id'],
            parse_node_kind(node_data['type']),
            node_data.get('instances', 1),
            extra=node_data.get('extra')
        )
        if not result:
            raise ScenarioLoadError(f"Invalid node {node_data['id']!r}: {result.message}")

    for edge_data in _get_list(data, 'edges'):
        _validate_edge(edge_data)
        result = graph.add_edge(edge_data['from'], edge_data['to'])
        if not result:
            raise ScenarioLoadError(
                f"Invalid edge {edge_data['from']} -> {edge_data['to']}: {result.message}"
            )

    actions = [_validate_action(i, action) for i, action in enumerate(_get_list(data, 'actions'))]

    return Scenario(
        graph=graph,
        actions=actions,
        description=str(data.get('description', '')),
        strict=bool(data.get('strict', False))
    )


def parse_node_kind(value: str) -> NodeKind:
    """
    Parse a node type string ("process" or "resource", any case).

    Raises:
        ScenarioLoadError: If the type is unknown
    """
    try:
        return NodeKind(str(value).strip().lower())
    except ValueError:
        raise ScenarioLoadError(
            f"Unknown node type {value!r} (expected 'process' or 'resource')"
        ) from None


def _get_list(data: Dict, key: str) -> List:
    """
    Fetch an optional list-valued section.

    Raises:
        ScenarioLoadError: If the section is present but not a list
    """
    value = data.get(key, [])
    if not isinstance(value, list):
        raise ScenarioLoadError(f"Scenario '{key}' must be a list, got {type(value).__name__}")
    return value


def _require_string(entry: Dict, key: str, context: str) -> None:
    if key not in entry:
        raise ScenarioLoadError(f"{context} missing required field: {key}")
    if not isinstance(entry[key], str):
        raise ScenarioLoadError(
            f"{context} field '{key}' must be a string, got {type(entry[key]).__name__}"
        )


def _validate_extra(entry: Dict, context: str) -> None:
    if entry.get('extra') is not None and not isinstance(entry['extra'], dict):
        raise ScenarioLoadError(f"{context} field 'extra' must be an object")


def _validate_node(node_data: Dict) -> None:
    """
    Validate a node entry.

    Raises:
        ScenarioLoadError: If a required field is missing or has the wrong type
    """
    if not isinstance(node_data, dict):
        raise ScenarioLoadError(f"Node entry must be an object, got {node_data!r}")
    if 'id' not in node_data:
        raise ScenarioLoadError("Node missing required field: id")
    if 'type' not in node_data:
        raise ScenarioLoadError("Node missing required field: type")
    _require_string(node_data, 'id', "Node")
    _validate_extra(node_data, f"Node {node_data['id']}")


def _validate_edge(edge_data: Dict) -> None:
    if not isinstance(edge_data, dict):
        raise ScenarioLoadError(f"Edge entry must be an object, got {edge_data!r}")
    for required in ('from', 'to'):
        _require_string(edge_data, required, "Edge")


def _validate_action(index: int, action: Dict) -> Dict:
    """
    Validate one action entry.

    Args:
        index: Position of the action in the file (for error messages)
        action: Action dictionary

    Returns:
        The action, with node type normalised for add_node

    Raises:
        ScenarioLoadError: If action is invalid
    """
    if not isinstance(action, dict) or 'type' not in action:
        raise ScenarioLoadError(f"Action {index}: missing 'type' field")

    action_type = action['type']
    if action_type not in ACTION_TYPES:
        raise ScenarioLoadError(f"Action {index}: unknown action type '{action_type}'")

    if action_type == 'add_node':
        for required in ('id', 'kind'):
            if required not in action:
                raise ScenarioLoadError(f"Action {index}: add_node missing '{required}'")
        _require_string(action, 'id', f"Action {index}: add_node")
        _validate_extra(action, f"Action {index}: add_node")
        return {**action, 'kind': parse_node_kind(action['kind'])}

    if action_type in ('add_edge', 'remove_edge'):
        for required in ('from', 'to'):
            if required not in action:
                raise ScenarioLoadError(f"Action {index}: {action_type} missing '{required}'")
            _require_string(action, required, f"Action {index}: {action_type}")

    return dict(action)
