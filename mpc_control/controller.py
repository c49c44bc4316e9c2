"""Per-cycle control pipeline.

One call to ``MPCController.process`` runs, to completion:

    telemetry → frame transform → polynomial fit → initial state
              → (latency projection) → trajectory optimizer → command

Errors never escape a cycle. Invalid telemetry produces no command (the
caller falls back to manual mode); an optimizer failure produces the
configured fallback command.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from .component_modes import ComponentMode, FallbackPolicy, LatencyMode
from .config import (
    FALLBACK_DECELERATION,
    LATENCY_SECONDS,
    POLY_ORDER,
    STEERING_SIGN,
    TERM_ORANGE,
    TERM_RESET,
    VehicleParameters,
)
from .data_collector import DataCollector
from .emitter import Command, actuation_from_command, to_command
from .exceptions import InvalidInput, OptimizationFailed
from .frame import to_vehicle_frame
from .model import Actuation
from .optimizer import IpoptTrajectorySolver, SolveResult, TrajectorySolver
from .path import polyfit
from .state import build_state, project_state
from .telemetry import Telemetry

STATUS_OK = "ok"
STATUS_FALLBACK = "fallback"
STATUS_INVALID = "invalid"


@dataclass(frozen=True)
class TickResult:
    """Outcome of one control cycle.

    Attributes:
        status: "ok", "fallback" (optimizer failed) or "invalid" (bad input).
        command: Command to send, None when the input was invalid.
        actuation: Internal actuation behind the command, if any.
        solve: Solver result when the optimizer succeeded.
        error: Error message for degraded cycles.
    """

    status: str
    command: Optional[Command] = None
    actuation: Optional[Actuation] = None
    solve: Optional[SolveResult] = None
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.status != STATUS_OK


class MPCController:
    """Receding-horizon controller for one vehicle.

    Holds the only state that survives between cycles: the last executed
    actuation/command (for latency projection and the hold fallback) and,
    inside the solver, the warm-start cache.

    Attributes:
        params: Immutable vehicle parameters used by every solve.
        solver: Trajectory solver.
        mode: Active warm-start/latency/fallback modes.
        latency: Actuation latency (seconds).
        steering_sign: Internal-to-actuator steering sign.
        data_collector: Optional CSV logger.
    """

    def __init__(
        self,
        params: Optional[VehicleParameters] = None,
        solver: Optional[TrajectorySolver] = None,
        mode: Optional[ComponentMode] = None,
        latency: float = LATENCY_SECONDS,
        steering_sign: float = STEERING_SIGN,
        data_collector: Optional[DataCollector] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            params: Vehicle parameters (default: from config).
            solver: Trajectory solver (default: IPOPT, warm start per mode).
            mode: Component modes (default: all config defaults).
            latency: Actuation latency in seconds.
            steering_sign: Internal-to-actuator steering sign, +1 or -1.
            data_collector: Optional CSV logger for every cycle.

        Raises:
            ValueError: If steering_sign is not +1 or -1, or latency is negative.
        """
        if steering_sign not in (1.0, -1.0):
            raise ValueError(f"steering_sign must be +1 or -1, got {steering_sign}")
        if latency < 0:
            raise ValueError(f"latency must be non-negative, got {latency}")

        self.params = params if params is not None else VehicleParameters.from_config()
        self.mode = mode if mode is not None else ComponentMode()
        self.solver = (
            solver
            if solver is not None
            else IpoptTrajectorySolver(use_warm_start=self.mode.use_warm_start)
        )
        self.latency = latency
        self.steering_sign = steering_sign
        self.data_collector = data_collector

        self.last_actuation: Optional[Actuation] = None
        self.last_command: Optional[Command] = None
        self.cycle_count: int = 0
        self.failure_count: int = 0

    @property
    def command_delay(self) -> float:
        """Seconds the caller must hold each command before sending it."""
        return self.latency if self.mode.latency_mode is LatencyMode.DELAY else 0.0

    def _applied_actuation(self, telemetry: Telemetry) -> Actuation:
        # Prefer what the vehicle reports as applied over what we last sent
        if telemetry.steering_angle is not None and telemetry.throttle is not None:
            return actuation_from_command(
                telemetry.steering_angle, telemetry.throttle, self.params, self.steering_sign
            )
        if self.last_actuation is not None:
            return self.last_actuation
        return Actuation()

    def _fallback_actuation(self) -> Actuation:
        last = self.last_actuation
        if self.mode.fallback_policy is FallbackPolicy.HOLD and last is not None:
            return last
        steering = last.steering if last is not None else 0.0
        deceleration = min(FALLBACK_DECELERATION, self.params.max_decel)
        return Actuation(steering=steering, acceleration=-deceleration).clipped(
            self.params.max_steer, self.params.max_accel, self.params.max_decel
        )

    def process(self, telemetry: Telemetry, timestamp: Optional[float] = None) -> TickResult:
        """Run one control cycle.

        Args:
            telemetry: Validated telemetry record.
            timestamp: Cycle time for logging (default: time.time()).

        Returns:
            TickResult describing the command to send, if any.
        """
        if timestamp is None:
            timestamp = time.time()
        self.cycle_count += 1

        try:
            local_x, local_y = to_vehicle_frame(telemetry.ptsx, telemetry.ptsy, telemetry.pose)
            curve = polyfit(local_x, local_y, POLY_ORDER)
            state = build_state(curve, telemetry.pose.speed)
            if self.mode.latency_mode is LatencyMode.PROJECT:
                state = project_state(
                    state, curve, self._applied_actuation(telemetry), self.latency, self.params
                )
        except InvalidInput as e:
            logging.warning(f"Skipping cycle {self.cycle_count}: {e}")
            return TickResult(status=STATUS_INVALID, error=str(e))

        logging.debug(
            f"cycle {self.cycle_count}: cte={state.cte:.3f} epsi={state.epsi:.3f} v={state.v:.2f}"
        )
        if self.data_collector is not None:
            self.data_collector.log_telemetry(timestamp, telemetry.pose, state)

        try:
            result = self.solver.solve(state, curve, self.params)
        except (OptimizationFailed, InvalidInput) as e:
            self.failure_count += 1
            status = getattr(e, "status", None) or type(e).__name__
            logging.warning(
                f"{TERM_ORANGE}Optimizer failed on cycle {self.cycle_count} ({status}), "
                f"applying '{self.mode.fallback_policy.value}' fallback{TERM_RESET}"
            )
            if self.data_collector is not None:
                self.data_collector.log_solver(timestamp, success=False, status=status)

            actuation = self._fallback_actuation()
            command = to_command(
                actuation,
                self.params,
                reference_xy=(local_x, local_y),
                steering_sign=self.steering_sign,
            )
            self._commit(timestamp, STATUS_FALLBACK, actuation, command)
            return TickResult(
                status=STATUS_FALLBACK, command=command, actuation=actuation, error=str(e)
            )

        if self.data_collector is not None:
            self.data_collector.log_solver(
                timestamp,
                success=True,
                status="Solve_Succeeded",
                iterations=result.iterations,
                solve_time=result.solve_time,
                cost=result.cost,
            )

        command = to_command(
            result.actuation,
            self.params,
            predicted_xy=result.plan.predicted_xy(),
            reference_xy=(local_x, local_y),
            steering_sign=self.steering_sign,
        )
        self._commit(timestamp, STATUS_OK, result.actuation, command)

        logging.debug(
            f"cycle {self.cycle_count}: delta={result.actuation.steering:.4f} "
            f"a={result.actuation.acceleration:.3f} iters={result.iterations} "
            f"t={result.solve_time * 1000.0:.1f}ms"
        )
        return TickResult(
            status=STATUS_OK, command=command, actuation=result.actuation, solve=result
        )

    def _commit(self, timestamp: float, status: str, actuation: Actuation, command: Command) -> None:
        self.last_actuation = actuation
        self.last_command = command
        if self.data_collector is not None:
            self.data_collector.log_command(
                timestamp,
                status,
                command.steering,
                command.throttle,
                actuation.steering,
                actuation.acceleration,
            )


def is_safe_command(command: Command) -> bool:
    """True if both actuator values are finite and inside [-1, 1]."""
    return all(
        math.isfinite(value) and -1.0 <= value <= 1.0
        for value in (command.steering, command.throttle)
    )
