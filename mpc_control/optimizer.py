"""Receding-horizon trajectory optimizer.

Each control cycle solves a nonlinear program over N predicted states and
N-1 actuations:

    minimize    sum_t  w_cte*cte_t^2 + w_epsi*epsi_t^2 + w_speed*(v_t - v_ref)^2
              + sum_t  w_steer*delta_t^2 + w_accel*a_t^2
              + sum_t  w_steer_rate*(delta_t+1 - delta_t)^2 + w_accel_rate*(a_t+1 - a_t)^2

    subject to  state_0 = s0
                state_t+1 = kinematic_step(state_t, actuation_t)   (see model.py)
                -max_steer <= delta_t <= max_steer
                -max_decel <= a_t     <= max_accel

The problem is written once with casadi's Opti stack (s0 and the curve
coefficients are parameters) and solved by IPOPT with exact derivatives from
casadi's automatic differentiation. Only the first actuation is meant to be
executed; the rest of the plan is for display and warm starting.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import casadi as ca
import numpy as np
import numpy.typing as npt

from .config import VehicleParameters
from .exceptions import InvalidInput, OptimizationFailed
from .model import ACTUATION_SIZE, STATE_SIZE, Actuation, ControlState, rollout
from .path import ReferenceCurve, polyderiv, polyeval

# Row indices into the state matrix
X_IDX, Y_IDX, PSI_IDX, V_IDX, CTE_IDX, EPSI_IDX = range(STATE_SIZE)
STEER_IDX, ACCEL_IDX = range(ACTUATION_SIZE)


@dataclass(frozen=True)
class HorizonPlan:
    """Predicted trajectory and actuation sequence from one solve.

    Attributes:
        states: Array of shape (N, 6), one ControlState row per step.
        actuations: Array of shape (N-1, 2), (steering, acceleration) rows.
    """

    states: npt.NDArray[np.float64]
    actuations: npt.NDArray[np.float64]

    @property
    def horizon(self) -> int:
        return int(self.states.shape[0])

    def predicted_xy(self) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """(x, y) of every predicted state, in the vehicle frame. Display only."""
        return self.states[:, X_IDX].copy(), self.states[:, Y_IDX].copy()

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.states)) and np.all(np.isfinite(self.actuations)))


@dataclass(frozen=True)
class SolveResult:
    """Outcome of a successful solve.

    Attributes:
        actuation: Actuation at horizon index 0, clipped to its bounds.
        plan: Full predicted horizon.
        iterations: Solver iterations used.
        solve_time: Wall-clock solve time (seconds).
        cost: Objective value at the solution.
    """

    actuation: Actuation
    plan: HorizonPlan
    iterations: int
    solve_time: float
    cost: float


@dataclass(frozen=True)
class WarmStart:
    """Actuation sequence carried from one successful solve to the next.

    The waypoints are re-expressed in a new vehicle frame every cycle, so the
    previous predicted states are not reused. Only the actuations are kept,
    shifted one step forward with the last one repeated, and the states are
    re-simulated from the new initial state.
    """

    actuations: npt.NDArray[np.float64]

    @classmethod
    def from_plan(cls, plan: HorizonPlan) -> "WarmStart":
        shifted = np.vstack([plan.actuations[1:], plan.actuations[-1:]])
        shifted.setflags(write=False)
        return cls(shifted)


class TrajectorySolver(Protocol):
    """Anything that turns an initial state and a reference curve into a plan."""

    def solve(
        self, state: ControlState, curve: ReferenceCurve, params: VehicleParameters
    ) -> SolveResult:
        """Solve one horizon.

        Raises:
            OptimizationFailed: If no valid solution was found within budget.
        """
        ...


class _HorizonProblem:
    """Opti problem for one parameter set and curve order, built once and reused."""

    def __init__(self, params: VehicleParameters, order: int) -> None:
        self.params = params
        self.order = order

        n = params.horizon
        opti = ca.Opti()
        states = opti.variable(STATE_SIZE, n)
        controls = opti.variable(ACTUATION_SIZE, n - 1)
        initial = opti.parameter(STATE_SIZE)
        coeffs = opti.parameter(order + 1)
        coeff_terms = [coeffs[i] for i in range(order + 1)]

        opti.subject_to(states[:, 0] == initial)

        for t in range(n - 1):
            x = states[X_IDX, t]
            y = states[Y_IDX, t]
            psi = states[PSI_IDX, t]
            v = states[V_IDX, t]
            epsi = states[EPSI_IDX, t]
            delta = controls[STEER_IDX, t]
            a = controls[ACCEL_IDX, t]

            f_x = polyeval(coeff_terms, x)
            psi_des = ca.atan(polyderiv(coeff_terms, x))
            yaw_step = v / params.lf * delta * params.dt

            opti.subject_to(states[X_IDX, t + 1] == x + v * ca.cos(psi) * params.dt)
            opti.subject_to(states[Y_IDX, t + 1] == y + v * ca.sin(psi) * params.dt)
            opti.subject_to(states[PSI_IDX, t + 1] == psi + yaw_step)
            opti.subject_to(states[V_IDX, t + 1] == v + a * params.dt)
            opti.subject_to(states[CTE_IDX, t + 1] == (f_x - y) + v * ca.sin(epsi) * params.dt)
            opti.subject_to(states[EPSI_IDX, t + 1] == (psi - psi_des) + yaw_step)

        opti.subject_to(opti.bounded(-params.max_steer, controls[STEER_IDX, :], params.max_steer))
        opti.subject_to(opti.bounded(-params.max_decel, controls[ACCEL_IDX, :], params.max_accel))

        steer = controls[STEER_IDX, :]
        accel = controls[ACCEL_IDX, :]

        cost = (
            params.w_cte * ca.sumsqr(states[CTE_IDX, :])
            + params.w_epsi * ca.sumsqr(states[EPSI_IDX, :])
            + params.w_speed * ca.sumsqr(states[V_IDX, :] - params.ref_speed)
            + params.w_steer * ca.sumsqr(steer)
            + params.w_accel * ca.sumsqr(accel)
        )
        cost += params.w_steer_rate * ca.sumsqr(steer[0, 1 : n - 1] - steer[0, 0 : n - 2])
        cost += params.w_accel_rate * ca.sumsqr(accel[0, 1 : n - 1] - accel[0, 0 : n - 2])
        opti.minimize(cost)

        plugin_opts = {"expand": True, "print_time": False}
        solver_opts = {
            "max_iter": params.max_iterations,
            "max_cpu_time": params.max_cpu_time,
            "tol": params.tolerance,
            "print_level": 0,
            "sb": "yes",
        }
        opti.solver("ipopt", plugin_opts, solver_opts)

        self.opti = opti
        self.states = states
        self.controls = controls
        self.initial = initial
        self.coeffs = coeffs

    def matches(self, params: VehicleParameters, order: int) -> bool:
        return self.params == params and self.order == order


class IpoptTrajectorySolver:
    """Trajectory optimizer backed by casadi + IPOPT.

    The instance owns the warm-start cache, so one instance must serve exactly
    one control loop. The cache is replaced in a single assignment after each
    successful solve and dropped after each failure.

    Attributes:
        use_warm_start: Seed each solve with the previous shifted actuations.
    """

    def __init__(self, use_warm_start: bool = True) -> None:
        """Initialize the solver.

        Args:
            use_warm_start: If True, reuse the previous solution as the
                initial guess. Default: True.
        """
        self.use_warm_start = use_warm_start
        self._problem: Optional[_HorizonProblem] = None
        self._warm_start: Optional[WarmStart] = None

    @property
    def warm_start(self) -> Optional[WarmStart]:
        return self._warm_start

    def reset(self) -> None:
        """Drop the warm-start cache."""
        self._warm_start = None

    def _get_problem(self, params: VehicleParameters, order: int) -> _HorizonProblem:
        if self._problem is None or not self._problem.matches(params, order):
            logging.debug(f"Building horizon problem (N={params.horizon}, order={order})")
            self._problem = _HorizonProblem(params, order)
            self._warm_start = None
        return self._problem

    def _initial_guess(
        self, state: ControlState, curve: ReferenceCurve, params: VehicleParameters
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        warm = self._warm_start if self.use_warm_start else None
        if warm is not None and warm.actuations.shape == (params.horizon - 1, ACTUATION_SIZE):
            actuations = warm.actuations
        else:
            actuations = np.zeros((params.horizon - 1, ACTUATION_SIZE))
        states, actuations = rollout(state, actuations, curve, params.dt, params.lf)
        if not np.all(np.isfinite(states)):
            states = np.tile(state.as_array(), (params.horizon, 1))
        return states, actuations

    def solve(
        self, state: ControlState, curve: ReferenceCurve, params: VehicleParameters
    ) -> SolveResult:
        """Solve one horizon from ``state`` along ``curve``.

        Args:
            state: Initial state s0 (vehicle frame).
            curve: Reference curve (vehicle frame).
            params: Horizon, weights, bounds and solver budget.

        Returns:
            SolveResult whose actuation is the command to execute now.

        Raises:
            InvalidInput: If the initial state is not finite.
            OptimizationFailed: If IPOPT does not converge within its budget
                or returns non-finite values.
        """
        if not state.is_finite():
            raise InvalidInput(f"Initial state is not finite: {state}")

        problem = self._get_problem(params, curve.order)
        opti = problem.opti

        guess_states, guess_actuations = self._initial_guess(state, curve, params)
        opti.set_value(problem.initial, state.as_array())
        opti.set_value(problem.coeffs, curve.coeffs)
        opti.set_initial(problem.states, guess_states.T)
        opti.set_initial(problem.controls, guess_actuations.T)

        start = time.perf_counter()
        try:
            solution = opti.solve()
        except RuntimeError as e:
            self._warm_start = None
            status = opti.stats().get("return_status")
            raise OptimizationFailed(f"IPOPT failed: {status}", status=status) from e
        solve_time = time.perf_counter() - start

        stats = solution.stats()
        states = np.reshape(solution.value(problem.states), (STATE_SIZE, params.horizon)).T
        actuations = np.reshape(
            solution.value(problem.controls), (ACTUATION_SIZE, params.horizon - 1)
        ).T
        plan = HorizonPlan(states=states, actuations=actuations)
        cost = float(solution.value(opti.f))

        if not plan.is_finite() or not np.isfinite(cost):
            self._warm_start = None
            raise OptimizationFailed("Solver returned non-finite values", status="non_finite")

        first = Actuation(
            steering=float(actuations[0, STEER_IDX]),
            acceleration=float(actuations[0, ACCEL_IDX]),
        ).clipped(params.max_steer, params.max_accel, params.max_decel)

        self._warm_start = WarmStart.from_plan(plan)

        return SolveResult(
            actuation=first,
            plan=plan,
            iterations=int(stats.get("iter_count", 0)),
            solve_time=solve_time,
            cost=cost,
        )
