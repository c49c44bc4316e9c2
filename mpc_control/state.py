"""Initial state construction for the optimizer.

Because the waypoints are expressed in the vehicle frame, the car is always at
the origin with zero heading when the telemetry is taken. The cross-track and
heading errors then only depend on the fitted curve at x = 0.
"""

import math

from .config import VehicleParameters
from .model import Actuation, ControlState, kinematic_step
from .path import ReferenceCurve


def build_state(curve: ReferenceCurve, speed: float) -> ControlState:
    """Assemble the control state at the current instant.

    cte  = f(0) - 0       = c0
    epsi = 0 - atan(f'(0)) = -atan(c1)

    Args:
        curve: Reference curve fitted in the vehicle frame.
        speed: Current vehicle speed.

    Returns:
        ControlState (0, 0, 0, speed, cte, epsi).
    """
    cte = float(curve.evaluate(0.0))
    epsi = -math.atan(float(curve.derivative(0.0)))
    return ControlState(x=0.0, y=0.0, psi=0.0, v=float(speed), cte=cte, epsi=epsi)


def project_state(
    state: ControlState,
    curve: ReferenceCurve,
    actuation: Actuation,
    latency: float,
    params: VehicleParameters,
) -> ControlState:
    """Predict where the vehicle will be once the next command takes effect.

    The actuation currently applied to the vehicle stays in effect for the
    latency period, so the state is advanced by one kinematic step of length
    ``latency`` using it. A non-positive latency returns the state unchanged.

    Args:
        state: State built from the latest telemetry.
        curve: Reference curve in the same frame as ``state``.
        actuation: Actuation in effect during the latency period.
        latency: Delay between telemetry and actuation (seconds).
        params: Vehicle parameters (only ``lf`` is used).

    Returns:
        Projected ControlState.
    """
    if latency <= 0.0:
        return state
    return kinematic_step(state, actuation, curve, dt=latency, lf=params.lf)
