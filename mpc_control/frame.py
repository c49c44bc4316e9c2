"""World to vehicle frame conversion for waypoints.

In the vehicle frame the car sits at the origin with heading zero: the x axis
points along the heading and the y axis points to the left of the car.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .exceptions import InvalidInput


@dataclass(frozen=True)
class Pose:
    """Vehicle pose in world coordinates plus scalar speed.

    Attributes:
        x: World x position.
        y: World y position.
        psi: Heading (radians, counter-clockwise from the world x axis).
        speed: Current speed.
    """

    x: float
    y: float
    psi: float
    speed: float = 0.0


def to_vehicle_frame(
    ptsx: Sequence[float], ptsy: Sequence[float], pose: Pose
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Express world-frame waypoints in the vehicle frame.

    Translates by -(px, py) then rotates by -psi:
        local_x =  cos(psi) * (wx - px) + sin(psi) * (wy - py)
        local_y = -sin(psi) * (wx - px) + cos(psi) * (wy - py)

    Args:
        ptsx: World x coordinates of the waypoints, in path order.
        ptsy: World y coordinates of the waypoints, same length as ptsx.
        pose: Current vehicle pose.

    Returns:
        Tuple of (local_x, local_y) arrays, same order as the input.

    Raises:
        InvalidInput: If the waypoint sequence is empty, the coordinate
            sequences differ in length, or any value is not finite.
    """
    xs = np.asarray(ptsx, dtype=float)
    ys = np.asarray(ptsy, dtype=float)

    if xs.ndim != 1 or ys.ndim != 1:
        raise InvalidInput("Waypoint coordinates must be flat sequences")
    if xs.size == 0:
        raise InvalidInput("Waypoint sequence is empty")
    if xs.size != ys.size:
        raise InvalidInput(f"Waypoint length mismatch: {xs.size} x values, {ys.size} y values")
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise InvalidInput("Waypoints contain non-finite values")
    if not all(math.isfinite(v) for v in (pose.x, pose.y, pose.psi)):
        raise InvalidInput(f"Pose contains non-finite values: {pose}")

    dx = xs - pose.x
    dy = ys - pose.y
    cos_psi = math.cos(pose.psi)
    sin_psi = math.sin(pose.psi)

    local_x = cos_psi * dx + sin_psi * dy
    local_y = -sin_psi * dx + cos_psi * dy

    return local_x, local_y
