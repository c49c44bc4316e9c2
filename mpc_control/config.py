"""Configuration parameters for the MPC path tracking controller.

This module centralizes all configuration parameters including:
- Vehicle geometry and actuator limits
- Prediction horizon and cost weights
- Solver budget
- Latency handling and fallback behaviour
- WebSocket server parameters
- Terminal and plot colors

Module-level constants are the single source of truth. The optimizer never
reads them directly: ``VehicleParameters.from_config()`` snapshots them into
an immutable value at startup, which is then passed explicitly to every solve.
"""

import math
from dataclasses import dataclass

# ============================================================================
# Vehicle Geometry
# ============================================================================

LF = 2.67
"""Distance between the front axle and the center of gravity (meters).

Obtained by measuring the simulator vehicle's turning radius at constant
steering angle and speed on flat ground, then tuning Lf until a kinematic
model driven with the same inputs reproduced that radius.
"""


# ============================================================================
# Prediction Horizon
# ============================================================================

HORIZON_STEPS = 10
"""Number of predicted states N (the optimizer also chooses N-1 actuations).

Tuning rationale:
- N * dt = 1.0s looks far enough ahead for the curves in the waypoint window
- Larger N mostly costs solve time, the fitted cubic is unreliable beyond
  the last waypoint anyway
"""

HORIZON_DT = 0.1
"""Time between predicted states (seconds).

Kept equal to the actuator latency so the first actuation maps onto the
interval during which it is actually applied.
"""

REFERENCE_SPEED = 40.0
"""Target speed for the speed tracking cost term (same units as telemetry)."""


# ============================================================================
# Cost Weights
# ============================================================================

W_CTE = 2000.0
"""Weight of squared cross-track error."""

W_EPSI = 2000.0
"""Weight of squared heading error."""

W_SPEED = 1.0
"""Weight of squared deviation from REFERENCE_SPEED.

Small compared to the tracking weights so the car slows down in curves
instead of cutting them.
"""

W_STEER = 5.0
"""Weight of squared steering angle (actuator magnitude)."""

W_ACCEL = 5.0
"""Weight of squared acceleration (actuator magnitude)."""

W_STEER_RATE = 200.0
"""Weight of squared change in steering between consecutive steps.

Tuning rationale:
- Dominant smoothing term, removes the left/right oscillation seen on
  straights with lower values
"""

W_ACCEL_RATE = 10.0
"""Weight of squared change in acceleration between consecutive steps."""


# ============================================================================
# Actuator Limits
# ============================================================================

MAX_STEER = math.radians(25.0)
"""Maximum steering angle magnitude (radians). Hardware limit of the
simulator, which maps +/-25 degrees onto the normalized range [-1, 1]."""

MAX_ACCEL = 1.0
"""Maximum acceleration command (model units). Maps to throttle +1."""

MAX_DECEL = 1.0
"""Maximum deceleration command magnitude (model units). Maps to throttle -1."""


# ============================================================================
# Solver Budget
# ============================================================================

SOLVER_MAX_ITERATIONS = 200
"""IPOPT iteration cutoff per control cycle."""

SOLVER_MAX_CPU_TIME = 0.5
"""IPOPT CPU time cutoff per control cycle (seconds).

A stalled solve is reported as a failure instead of blocking the control
loop past this budget.
"""

SOLVER_TOLERANCE = 1e-6
"""IPOPT convergence tolerance."""


# ============================================================================
# Latency and Fallback
# ============================================================================

LATENCY_SECONDS = 0.1
"""Actuation latency between computing and applying a command (seconds)."""

LATENCY_MODE = "project"
"""How latency is compensated, exactly one of:

- "project": advance the initial state by LATENCY_SECONDS with the kinematic
  model and the last executed actuation, then send the command immediately
- "delay": optimize from the measured state and hold the outgoing command
  for LATENCY_SECONDS before sending it

Mixing both would compensate the delay twice.
"""

FALLBACK_POLICY = "decelerate"
"""What to send when the optimizer fails: "hold" or "decelerate"."""

FALLBACK_DECELERATION = 0.5
"""Deceleration magnitude commanded by the "decelerate" fallback (model units).
Clipped to MAX_DECEL."""

STEERING_SIGN = -1.0
"""Sign applied when converting internal steering to the actuator command.

Internally a positive steering angle turns the vehicle counter-clockwise
(left). The simulator turns right for positive values, hence -1.
"""


# ============================================================================
# Reference Path Fit
# ============================================================================

POLY_ORDER = 3
"""Degree of the polynomial fitted to the local-frame waypoints."""


# ============================================================================
# Terminal Colors
# ============================================================================

TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for warnings worth noticing (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for status messages (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# Plot Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - measurements, executed commands."""

PLOT_BLUE = "#2374f7"
"""Secondary color - references, predictions."""

PLOT_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for guides, grids, and secondary elements."""

PLOT_YELLOW_ORANGE = "#ffa726"
"""Accent color for highlights such as solver failures."""

PLOT_DARK_BLUE = "#0d1b2a"
"""Dark background color."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_HOST = "127.0.0.1"
"""Interface the telemetry server binds to."""

WS_PORT = 4567
"""Port the simulator connects to."""


@dataclass(frozen=True)
class VehicleParameters:
    """Immutable optimizer configuration shared read-only by every solve.

    Attributes:
        horizon: Number of predicted states N.
        dt: Time between predicted states (seconds).
        lf: Front axle to center of gravity distance.
        ref_speed: Target speed for the speed tracking term.
        w_cte, w_epsi, w_speed: Tracking weights.
        w_steer, w_accel: Actuator magnitude weights.
        w_steer_rate, w_accel_rate: Actuator rate weights.
        max_steer: Steering bound (radians), applied symmetrically.
        max_accel: Upper acceleration bound.
        max_decel: Magnitude of the lower acceleration bound.
        max_iterations: Solver iteration cutoff.
        max_cpu_time: Solver CPU time cutoff (seconds).
        tolerance: Solver convergence tolerance.
    """

    horizon: int = HORIZON_STEPS
    dt: float = HORIZON_DT
    lf: float = LF
    ref_speed: float = REFERENCE_SPEED
    w_cte: float = W_CTE
    w_epsi: float = W_EPSI
    w_speed: float = W_SPEED
    w_steer: float = W_STEER
    w_accel: float = W_ACCEL
    w_steer_rate: float = W_STEER_RATE
    w_accel_rate: float = W_ACCEL_RATE
    max_steer: float = MAX_STEER
    max_accel: float = MAX_ACCEL
    max_decel: float = MAX_DECEL
    max_iterations: int = SOLVER_MAX_ITERATIONS
    max_cpu_time: float = SOLVER_MAX_CPU_TIME
    tolerance: float = SOLVER_TOLERANCE

    def __post_init__(self) -> None:
        if self.horizon < 3:
            raise ValueError(f"Horizon must have at least 3 steps, got {self.horizon}")
        if self.dt <= 0 or self.lf <= 0:
            raise ValueError(f"dt and lf must be positive, got dt={self.dt}, lf={self.lf}")
        if self.max_steer <= 0 or self.max_accel <= 0 or self.max_decel <= 0:
            raise ValueError("Actuator bounds must be positive")

    @classmethod
    def from_config(cls) -> "VehicleParameters":
        """Snapshot the module-level constants into a parameter value."""
        return cls()
