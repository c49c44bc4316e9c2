"""Shared plotting utilities and styles for run visualizations.

This module provides:
- Color scheme
- CSV data loading functions
- Common plot styling functions

All visualization modules should import from this module to ensure consistency.
"""

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes

from .config import (
    PLOT_BLUE,
    PLOT_CREAM,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW_ORANGE,
)

__all__ = [
    "PLOT_ORANGE",
    "PLOT_BLUE",
    "PLOT_CREAM",
    "PLOT_TAUPE",
    "PLOT_YELLOW_ORANGE",
    "PLOT_DARK_BLUE",
    "load_csv_data",
    "load_csv_to_dict",
    "style_axis",
    "add_legend",
    "save_figure",
]

# ============================================================================
# CSV Data Loading
# ============================================================================


def load_csv_data(filepath: Path) -> Tuple[List[str], List[List[str]]]:
    """Load CSV file and return headers and data rows.

    Args:
        filepath: Path to the CSV file.

    Returns:
        Tuple containing (headers, data_rows).

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    with open(filepath, newline="") as f:
        reader = csv.reader(f)
        headers = next(reader)
        data_rows = list(reader)

    return headers, data_rows


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Numeric values become floats; non-numeric or empty values become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> data = load_csv_to_dict(Path("telemetry.csv"))
        >>> data["cte"].shape
        (500,)
    """
    headers, rows = load_csv_data(csv_path)

    data: Dict[str, List[float]] = {key: [] for key in headers}
    for row in rows:
        for key, value in zip(headers, row):
            try:
                data[key].append(float(value))
            except (ValueError, TypeError):
                data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


# ============================================================================
# Plot Styling Functions
# ============================================================================


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = False,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: False).
    """
    text_kwargs = {"color": PLOT_CREAM} if dark_mode else {}

    if title:
        ax.set_title(title, fontweight="bold", **text_kwargs)
    if xlabel:
        ax.set_xlabel(xlabel, **text_kwargs)
    if ylabel:
        ax.set_ylabel(ylabel, **text_kwargs)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(PLOT_DARK_BLUE)
        ax.tick_params(colors=PLOT_CREAM)
        for spine in ax.spines.values():
            spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes, loc: str = "best", dark_mode: bool = False, **kwargs) -> None:
    """Add a legend with the shared styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: False).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": PLOT_TAUPE,
    }

    if dark_mode:
        legend_kwargs["facecolor"] = PLOT_DARK_BLUE
        legend_kwargs["labelcolor"] = PLOT_CREAM

    # User kwargs take precedence
    legend_kwargs.update(kwargs)

    ax.legend(**legend_kwargs)


def save_figure(
    fig: plt.Figure, filepath: Path, dpi: int = 150, bbox_inches: str = "tight"
) -> None:
    """Save figure with consistent settings.

    Args:
        fig: Matplotlib figure to save.
        filepath: Path where to save the figure.
        dpi: Resolution in dots per inch (default: 150).
        bbox_inches: Bounding box setting (default: "tight").
    """
    fig.savefig(filepath, dpi=dpi, bbox_inches=bbox_inches)
    print(f"Saved figure to {filepath}")
