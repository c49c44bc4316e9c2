"""Command emitter: optimizer output to actuator commands and wire messages.

Internally steering is an angle in radians, positive to the left, and the
longitudinal command is an acceleration. The simulator expects both values
normalized to [-1, 1]:

- steering_angle = STEERING_SIGN * delta / max_steer   (+1 turns right)
- throttle       = a / max_accel  if a >= 0  (accelerate)
                   a / max_decel  if a <  0  (brake)

Both are clipped to [-1, 1] before leaving this module.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from .config import STEERING_SIGN, VehicleParameters
from .exceptions import InvalidInput
from .model import Actuation

STEER_EVENT = "steer"
MANUAL_EVENT = "manual"
MESSAGE_PREFIX = "42"


def _clip_unit(value: float) -> float:
    return max(-1.0, min(1.0, value))


@dataclass(frozen=True)
class Command:
    """Normalized command plus display-only trajectories.

    Attributes:
        steering: Normalized steering in [-1, 1], actuator sign convention.
        throttle: Normalized throttle in [-1, 1], negative brakes.
        mpc_x, mpc_y: Predicted trajectory in the vehicle frame.
        next_x, next_y: Local-frame waypoints (reference line).
    """

    steering: float
    throttle: float
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "steering_angle": self.steering,
            "throttle": self.throttle,
            "mpc_x": self.mpc_x,
            "mpc_y": self.mpc_y,
            "next_x": self.next_x,
            "next_y": self.next_y,
        }


def normalize_steering(
    steering: float, params: VehicleParameters, steering_sign: float = STEERING_SIGN
) -> float:
    """Convert an internal steering angle (radians) to the actuator range."""
    return _clip_unit(steering_sign * steering / params.max_steer)


def normalize_throttle(acceleration: float, params: VehicleParameters) -> float:
    """Convert an internal acceleration to the actuator throttle range."""
    if acceleration >= 0.0:
        return _clip_unit(acceleration / params.max_accel)
    return _clip_unit(acceleration / params.max_decel)


def _finite_list(values: Sequence[float]) -> List[float]:
    # Display data is dropped rather than failing the command
    array = np.asarray(values, dtype=float)
    if not np.all(np.isfinite(array)):
        return []
    return [float(v) for v in array]


def to_command(
    actuation: Actuation,
    params: VehicleParameters,
    predicted_xy: Sequence[Sequence[float]] = ((), ()),
    reference_xy: Sequence[Sequence[float]] = ((), ()),
    steering_sign: float = STEERING_SIGN,
) -> Command:
    """Map an actuation (and display trajectories) to an outbound command.

    Args:
        actuation: Internal actuation to execute.
        params: Vehicle parameters providing the actuator bounds.
        predicted_xy: (xs, ys) predicted trajectory, vehicle frame.
        reference_xy: (xs, ys) local-frame waypoints.
        steering_sign: Internal-to-actuator steering sign (default: config).

    Returns:
        Command with both values in [-1, 1].

    Raises:
        InvalidInput: If the actuation is not finite.
    """
    if not (math.isfinite(actuation.steering) and math.isfinite(actuation.acceleration)):
        raise InvalidInput(f"Refusing to emit non-finite actuation: {actuation}")

    clipped = actuation.clipped(params.max_steer, params.max_accel, params.max_decel)
    mpc_x, mpc_y = predicted_xy
    next_x, next_y = reference_xy

    return Command(
        steering=normalize_steering(clipped.steering, params, steering_sign),
        throttle=normalize_throttle(clipped.acceleration, params),
        mpc_x=_finite_list(mpc_x),
        mpc_y=_finite_list(mpc_y),
        next_x=_finite_list(next_x),
        next_y=_finite_list(next_y),
    )


def actuation_from_command(
    steering: float,
    throttle: float,
    params: VehicleParameters,
    steering_sign: float = STEERING_SIGN,
) -> Actuation:
    """Recover the internal actuation from normalized actuator values.

    Inverse of ``to_command`` for values inside the bounds. Used to read back
    the command the vehicle reports as currently applied.
    """
    steering = _clip_unit(steering)
    throttle = _clip_unit(throttle)
    acceleration = throttle * (params.max_accel if throttle >= 0.0 else params.max_decel)
    return Actuation(steering=steering * params.max_steer / steering_sign, acceleration=acceleration)


def encode_steer(command: Command) -> str:
    """Frame a command as a socket.io steer event."""
    return f'{MESSAGE_PREFIX}["{STEER_EVENT}",{json.dumps(command.to_payload())}]'


def encode_manual() -> str:
    """Frame the neutral message that leaves the vehicle under manual control."""
    return f'{MESSAGE_PREFIX}["{MANUAL_EVENT}",{{}}]'
