"""Data collection and CSV logging for control cycles.

This module provides CSV data logging for:
- Telemetry (vehicle pose and speed) and the state handed to the optimizer
- Commands (internal actuation, normalized actuator values, cycle status)
- Solver diagnostics (success, iterations, solve time, objective value)
"""

import csv
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET
from .frame import Pose
from .model import ControlState

TELEMETRY_HEADER = ["timestamp", "x", "y", "psi", "speed", "cte", "epsi", "v0"]
COMMANDS_HEADER = ["timestamp", "status", "steering", "throttle", "delta", "acceleration"]
SOLVER_HEADER = ["timestamp", "success", "status", "iterations", "solve_time_ms", "cost"]


class DataCollector:
    """Manages CSV file creation and logging for control cycles.

    This class handles all data logging responsibilities:
    - Creates timestamped output directories
    - Initializes CSV files with headers
    - Writes telemetry, command, and solver rows
    - Ensures proper cleanup on shutdown

    Attributes:
        run_dir: Directory path for this run's output files.
        telemetry_output_path: Path of the telemetry CSV.
        commands_output_path: Path of the commands CSV.
        solver_output_path: Path of the solver diagnostics CSV.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.telemetry_csv_file: Optional[TextIO] = None
        self.telemetry_csv_writer: Any = None
        self.commands_csv_file: Optional[TextIO] = None
        self.commands_csv_writer: Any = None
        self.solver_csv_file: Optional[TextIO] = None
        self.solver_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.telemetry_output_path: Path = self.run_dir / "telemetry.csv"
        self.commands_output_path: Path = self.run_dir / "commands.csv"
        self.solver_output_path: Path = self.run_dir / "solver.csv"

    def setup(self) -> None:
        """Initialize CSV files with headers.

        Must be called before writing data.
        """
        self.telemetry_csv_file = open(self.telemetry_output_path, "w", newline="")
        self.telemetry_csv_writer = csv.writer(self.telemetry_csv_file)
        self.telemetry_csv_writer.writerow(TELEMETRY_HEADER)
        self.telemetry_csv_file.flush()

        self.commands_csv_file = open(self.commands_output_path, "w", newline="")
        self.commands_csv_writer = csv.writer(self.commands_csv_file)
        self.commands_csv_writer.writerow(COMMANDS_HEADER)
        self.commands_csv_file.flush()

        self.solver_csv_file = open(self.solver_output_path, "w", newline="")
        self.solver_csv_writer = csv.writer(self.solver_csv_file)
        self.solver_csv_writer.writerow(SOLVER_HEADER)
        self.solver_csv_file.flush()

        print(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def log_telemetry(self, timestamp: float, pose: Pose, state: ControlState) -> None:
        """Log the received pose and the state passed to the optimizer.

        Args:
            timestamp: Current time (seconds).
            pose: World-frame pose from telemetry.
            state: Initial optimizer state (after any latency projection).
        """
        if self.telemetry_csv_writer is None:
            return
        self.telemetry_csv_writer.writerow(
            [timestamp, pose.x, pose.y, pose.psi, pose.speed, state.cte, state.epsi, state.v]
        )
        if self.telemetry_csv_file:
            self.telemetry_csv_file.flush()

    def log_command(
        self,
        timestamp: float,
        status: str,
        steering: float,
        throttle: float,
        delta: float,
        acceleration: float,
    ) -> None:
        """Log the command sent for a cycle.

        Args:
            timestamp: Current time (seconds).
            status: Cycle status ("ok", "fallback").
            steering: Normalized steering sent.
            throttle: Normalized throttle sent.
            delta: Internal steering angle (radians).
            acceleration: Internal acceleration.
        """
        if self.commands_csv_writer is None:
            return
        self.commands_csv_writer.writerow(
            [timestamp, status, steering, throttle, delta, acceleration]
        )
        if self.commands_csv_file:
            self.commands_csv_file.flush()

    def log_solver(
        self,
        timestamp: float,
        success: bool,
        status: str = "",
        iterations: Optional[int] = None,
        solve_time: Optional[float] = None,
        cost: Optional[float] = None,
    ) -> None:
        """Log solver diagnostics for a cycle.

        Args:
            timestamp: Current time (seconds).
            success: Whether the solve produced a usable plan.
            status: Solver return status, for failures.
            iterations: Iteration count, if known.
            solve_time: Solve time in seconds, if known.
            cost: Objective value, if known.
        """
        if self.solver_csv_writer is None:
            return
        self.solver_csv_writer.writerow(
            [
                timestamp,
                int(success),
                status,
                iterations if iterations is not None else "",
                solve_time * 1000.0 if solve_time is not None else "",
                cost if cost is not None else "",
            ]
        )
        if self.solver_csv_file:
            self.solver_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.telemetry_csv_file:
            self.telemetry_csv_file.close()
        if self.commands_csv_file:
            self.commands_csv_file.close()
        if self.solver_csv_file:
            self.solver_csv_file.close()

        print(f"{TERM_BLUE}✓ Saved run data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
