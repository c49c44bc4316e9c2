"""
Kinematic bicycle model used for prediction and latency compensation.

The state tracked by the controller is (x, y, psi, v, cte, epsi). Between two
steps separated by dt, with steering angle delta and acceleration a:

    x'    = x + v * cos(psi) * dt
    y'    = y + v * sin(psi) * dt
    psi'  = psi + v / Lf * delta * dt
    v'    = v + a * dt
    cte'  = (f(x) - y) + v * sin(epsi) * dt
    epsi' = (psi - atan(f'(x))) + v / Lf * delta * dt

where f is the reference curve. The optimizer imposes exactly these equations
as constraints; this module evaluates them numerically.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import numpy.typing as npt

from .path import ReferenceCurve

STATE_SIZE = 6
ACTUATION_SIZE = 2


@dataclass(frozen=True)
class ControlState:
    """Controller state in the vehicle frame.

    Attributes:
        x: Longitudinal position.
        y: Lateral position.
        psi: Heading (radians).
        v: Speed.
        cte: Cross-track error f(x) - y.
        epsi: Heading error psi - atan(f'(x)).
    """

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def as_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=float)

    @classmethod
    def from_array(cls, values: npt.ArrayLike) -> "ControlState":
        x, y, psi, v, cte, epsi = (float(value) for value in np.asarray(values, dtype=float))
        return cls(x, y, psi, v, cte, epsi)

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.as_array())))


@dataclass(frozen=True)
class Actuation:
    """Steering angle (radians, positive turns left) and acceleration."""

    steering: float = 0.0
    acceleration: float = 0.0

    def clipped(self, max_steer: float, max_accel: float, max_decel: float) -> "Actuation":
        """Return a copy with both values clamped to their bounds."""
        steering = max(-max_steer, min(max_steer, self.steering))
        acceleration = max(-max_decel, min(max_accel, self.acceleration))
        return Actuation(steering, acceleration)


def kinematic_step(
    state: ControlState, actuation: Actuation, curve: ReferenceCurve, dt: float, lf: float
) -> ControlState:
    """Advance the state by one step of the kinematic bicycle model.

    Args:
        state: State at time t.
        actuation: Steering and acceleration applied during [t, t + dt].
        curve: Reference curve used for the cross-track and heading errors.
        dt: Step length (seconds).
        lf: Front axle to center of gravity distance.

    Returns:
        State at time t + dt.

    Example:
        >>> s = ControlState(0.0, 0.0, 0.0, 10.0, 0.0, 0.0)
        >>> kinematic_step(s, Actuation(), curve, dt=0.1, lf=2.67).x
        1.0
    """
    x, y, psi, v, _, epsi = state.x, state.y, state.psi, state.v, state.cte, state.epsi
    delta, a = actuation.steering, actuation.acceleration

    yaw_step = v / lf * delta * dt

    return ControlState(
        x=x + v * math.cos(psi) * dt,
        y=y + v * math.sin(psi) * dt,
        psi=psi + yaw_step,
        v=v + a * dt,
        cte=float(curve.evaluate(x)) - y + v * math.sin(epsi) * dt,
        epsi=psi - math.atan(float(curve.derivative(x))) + yaw_step,
    )


def rollout(
    state: ControlState,
    actuations: npt.ArrayLike,
    curve: ReferenceCurve,
    dt: float,
    lf: float,
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Simulate a sequence of actuations from an initial state.

    Args:
        state: Initial state.
        actuations: Array of shape (K, 2) with (steering, acceleration) rows.
        curve: Reference curve.
        dt: Step length (seconds).
        lf: Front axle to center of gravity distance.

    Returns:
        Tuple of (states, actuations) arrays with shapes (K + 1, 6) and (K, 2).
    """
    controls = np.asarray(actuations, dtype=float).reshape(-1, ACTUATION_SIZE)
    states = np.zeros((controls.shape[0] + 1, STATE_SIZE))
    states[0] = state.as_array()

    current = state
    for k, (delta, a) in enumerate(controls):
        current = kinematic_step(current, Actuation(float(delta), float(a)), curve, dt, lf)
        states[k + 1] = current.as_array()

    return states, controls
