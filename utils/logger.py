"""
Logger utility for the Resource Allocation Graph Deadlock Detector.

Provides session logging with verbosity levels.
"""

from typing import Optional
from datetime import datetime

from models.node import Node
from models.graph import MutationResult


class GraphLogger:
    """
    Logger for graph mutations and detection results.

    Format: "[HH:MM:SS] Request edge added: P1 -> R1"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None,
                 timestamps: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose output
            log_file: Optional file path for logging
            timestamps: Prefix each line with the wall-clock time
        """
        self.verbose = verbose
        self.log_file = log_file
        self.timestamps = timestamps
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Deadlock Detector Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        print(formatted)

        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level and time prefix."""
        if level == "error":
            message = f"[ERROR] {message}"
        elif level == "warning":
            message = f"[WARNING] {message}"
        elif level == "debug":
            message = f"[DEBUG] {message}"

        if self.timestamps:
            return f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        return message

    def log_node(self, node: Node) -> None:
        """Log a node that was added."""
        self.log(f"{node.kind.label} \"{node.id}\" added")
        self.log(f"  {node.describe()}", "debug")

    def log_edge(self, result: MutationResult) -> None:
        """Log an accepted add_edge result."""
        self.log(result.message)

    def log_edge_removed(self, source: str, target: str, removed: bool) -> None:
        if removed:
            self.log(f"Removed edge: {source} -> {target}")
        else:
            self.log(f"No edge found from {source} to {target}", "warning")

    def log_rejection(self, action: str, result: MutationResult) -> None:
        """
        Log a rejected mutation.

        Args:
            action: Name of the attempted operation
            result: Rejected MutationResult
        """
        self.log(f"{action} rejected ({result.rejection.value}): {result.message}", "warning")

    def log_deadlock(self, result) -> None:
        """
        Log a detection result.

        Args:
            result: DeadlockResult from detect_deadlock
        """
        if result.deadlocked:
            self.log(f"DEADLOCK DETECTED in cycle: {result.format_cycle()}")
        else:
            self.log("System is deadlock-free")

    def log_graph(self, graph_str: str) -> None:
        """Log a formatted graph listing (verbose only)."""
        if self.verbose:
            self.log(f"Graph State:\n{graph_str}")

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
