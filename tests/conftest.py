"""Shared fixtures for the control pipeline tests."""

import math
from typing import Dict, List, Optional

import numpy as np
import pytest

from mpc_control.config import VehicleParameters
from mpc_control.model import Actuation, ControlState
from mpc_control.optimizer import HorizonPlan, IpoptTrajectorySolver, SolveResult

# First telemetry frame sent by the simulator at the start of the lake track
SIMULATOR_FRAME = (
    '42["telemetry",{"ptsx":[-32.16173,-43.49173,-61.09,-78.29172,-93.05002,-107.7717],'
    '"ptsy":[113.361,105.941,92.88499,78.73102,65.34102,50.57938],"psi_unity":4.12033,'
    '"psi":3.733651,"x":-40.62,"y":108.73,"steering_angle":0,"throttle":0,"speed":0}]'
)


@pytest.fixture
def params() -> VehicleParameters:
    return VehicleParameters.from_config()


@pytest.fixture
def solver() -> IpoptTrajectorySolver:
    return IpoptTrajectorySolver()


def world_waypoints(
    coeffs: List[float],
    x: float,
    y: float,
    psi: float,
    xs: Optional[np.ndarray] = None,
) -> Dict[str, List[float]]:
    """World-frame waypoints whose vehicle-frame shape is y = cubic(coeffs)."""
    if xs is None:
        xs = np.linspace(0.0, 60.0, 6)
    ys = sum(c * xs**i for i, c in enumerate(coeffs))
    cos_psi, sin_psi = math.cos(psi), math.sin(psi)
    ptsx = x + cos_psi * xs - sin_psi * ys
    ptsy = y + sin_psi * xs + cos_psi * ys
    return {"ptsx": [float(v) for v in ptsx], "ptsy": [float(v) for v in ptsy]}


def telemetry_data(
    coeffs: List[float] = (0.0, 0.0, 0.0, 0.0),
    x: float = 10.0,
    y: float = -5.0,
    psi: float = 0.3,
    speed: float = 30.0,
    **extra,
) -> Dict:
    """Telemetry event data object for a vehicle at (x, y, psi)."""
    data = world_waypoints(list(coeffs), x, y, psi)
    data.update({"x": x, "y": y, "psi": psi, "speed": speed})
    data.update(extra)
    return data


class StubSolver:
    """Solver returning a fixed actuation, or failing, without running IPOPT."""

    def __init__(self, actuation: Actuation = Actuation(0.1, 0.5), fail_with=None) -> None:
        self.actuation = actuation
        self.fail_with = fail_with
        self.calls: List[ControlState] = []

    def solve(self, state, curve, params):
        self.calls.append(state)
        if self.fail_with is not None:
            raise self.fail_with
        states = np.tile(state.as_array(), (params.horizon, 1))
        states[:, 0] = np.arange(params.horizon, dtype=float)
        actuations = np.tile([self.actuation.steering, self.actuation.acceleration], (params.horizon - 1, 1))
        return SolveResult(
            actuation=self.actuation,
            plan=HorizonPlan(states=states, actuations=actuations),
            iterations=3,
            solve_time=0.001,
            cost=1.0,
        )
