"""
Visualization of logged control runs.

Loads the CSV files written by DataCollector and plots tracking errors,
commands and solver statistics over time.
"""

from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .plot_styles import (
    PLOT_BLUE,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_YELLOW_ORANGE,
    add_legend,
    load_csv_to_dict,
    save_figure,
    style_axis,
)


def _relative_time(timestamps: np.ndarray) -> np.ndarray:
    if timestamps.size == 0:
        return timestamps
    return timestamps - timestamps[0]


def plot_tracking_errors(
    telemetry: Dict[str, np.ndarray], title: str = "Tracking Errors", save_path: Optional[Path] = None
) -> Figure:
    """Plot cross-track error, heading error and speed over time.

    Args:
        telemetry: Columns of telemetry.csv.
        title: Plot title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(12, 9), sharex=True, facecolor=PLOT_DARK_BLUE)
    t = _relative_time(telemetry["timestamp"])

    ax1.plot(t, telemetry["cte"], color=PLOT_ORANGE, label="cte")
    ax1.axhline(0.0, color=PLOT_BLUE, linestyle="--", linewidth=1.0)
    style_axis(ax1, title=f"{title} - Cross-Track Error", ylabel="cte", dark_mode=True)

    ax2.plot(t, np.degrees(telemetry["epsi"]), color=PLOT_ORANGE, label="epsi")
    ax2.axhline(0.0, color=PLOT_BLUE, linestyle="--", linewidth=1.0)
    style_axis(ax2, title=f"{title} - Heading Error", ylabel="epsi (deg)", dark_mode=True)

    ax3.plot(t, telemetry["speed"], color=PLOT_ORANGE, label="Measured")
    ax3.plot(t, telemetry["v0"], color=PLOT_BLUE, alpha=0.7, label="Optimizer initial")
    style_axis(ax3, title=f"{title} - Speed", xlabel="Time (s)", ylabel="Speed", dark_mode=True)
    add_legend(ax3, dark_mode=True)

    plt.tight_layout()

    if save_path:
        save_figure(fig, save_path)

    return fig


def plot_commands(
    commands: Dict[str, np.ndarray],
    solver: Dict[str, np.ndarray],
    title: str = "Commands",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot normalized steering/throttle and solver time over time.

    Failed solves are marked on the solve time axis.

    Args:
        commands: Columns of commands.csv.
        solver: Columns of solver.csv.
        title: Plot title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True, facecolor=PLOT_DARK_BLUE)
    t0 = commands["timestamp"][0] if commands["timestamp"].size else 0.0

    ax1.plot(commands["timestamp"] - t0, commands["steering"], color=PLOT_ORANGE, label="Steering")
    ax1.plot(commands["timestamp"] - t0, commands["throttle"], color=PLOT_BLUE, label="Throttle")
    ax1.set_ylim(-1.05, 1.05)
    style_axis(ax1, title=f"{title} - Actuators", ylabel="Normalized", dark_mode=True)
    add_legend(ax1, dark_mode=True)

    solver_t = solver["timestamp"] - t0
    success = solver["success"] == 1
    ax2.plot(solver_t[success], solver["solve_time_ms"][success], ".", color=PLOT_BLUE, label="Solved")
    if np.any(~success):
        ax2.vlines(
            solver_t[~success], 0.0, 1.0, transform=ax2.get_xaxis_transform(),
            color=PLOT_YELLOW_ORANGE, label="Failed",
        )
    style_axis(ax2, title=f"{title} - Solver", xlabel="Time (s)", ylabel="Solve time (ms)", dark_mode=True)
    add_legend(ax2, dark_mode=True)

    plt.tight_layout()

    if save_path:
        save_figure(fig, save_path)

    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> None:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing telemetry.csv, commands.csv and solver.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Raises:
        FileNotFoundError: If required CSV files are not found.
    """
    telemetry = load_csv_to_dict(run_dir / "telemetry.csv")
    commands = load_csv_to_dict(run_dir / "commands.csv")
    solver = load_csv_to_dict(run_dir / "solver.csv")

    run_name = run_dir.name
    plot_tracking_errors(
        telemetry,
        title=run_name,
        save_path=run_dir / "tracking_errors.png" if save_plots else None,
    )
    plot_commands(
        commands,
        solver,
        title=run_name,
        save_path=run_dir / "commands.png" if save_plots else None,
    )

    if show_plots:
        plt.show()
    else:
        plt.close("all")
