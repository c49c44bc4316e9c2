"""
Tests for the per-cycle control pipeline.
"""

import math

import numpy as np
import pytest

from conftest import StubSolver, telemetry_data
from mpc_control.component_modes import ComponentMode, FallbackPolicy, LatencyMode
from mpc_control.controller import (
    STATUS_FALLBACK,
    STATUS_INVALID,
    STATUS_OK,
    MPCController,
    is_safe_command,
)
from mpc_control.emitter import Command
from mpc_control.exceptions import OptimizationFailed
from mpc_control.model import Actuation
from mpc_control.telemetry import parse_telemetry


def make_telemetry(**kwargs):
    return parse_telemetry(telemetry_data(**kwargs))


def test_successful_cycle_produces_command(params):
    stub = StubSolver(Actuation(0.1, 0.5))
    controller = MPCController(params=params, solver=stub)

    result = controller.process(make_telemetry())

    assert result.status == STATUS_OK
    assert not result.degraded
    assert result.command.steering == pytest.approx(-0.1 / params.max_steer)
    assert result.command.throttle == pytest.approx(0.5 / params.max_accel)
    assert result.command.mpc_x == list(np.arange(params.horizon, dtype=float))
    assert len(result.command.next_x) == 6
    assert controller.last_actuation == Actuation(0.1, 0.5)
    assert controller.cycle_count == 1


def test_too_few_waypoints_never_reach_solver(params):
    stub = StubSolver()
    controller = MPCController(params=params, solver=stub)
    data = telemetry_data()
    data["ptsx"] = data["ptsx"][:3]
    data["ptsy"] = data["ptsy"][:3]

    result = controller.process(parse_telemetry(data))

    assert result.status == STATUS_INVALID
    assert result.command is None
    assert stub.calls == []
    assert controller.last_actuation is None


def test_initial_state_uses_fitted_errors_without_projection(params):
    stub = StubSolver()
    mode = ComponentMode(latency_mode=LatencyMode.DELAY)
    controller = MPCController(params=params, solver=stub, mode=mode)

    controller.process(make_telemetry(coeffs=(1.5, 0.2, 0.0, 0.0), speed=12.0))

    state = stub.calls[0]
    assert state.x == 0.0
    assert state.v == 12.0
    assert state.cte == pytest.approx(1.5, abs=1e-6)
    assert state.epsi == pytest.approx(-math.atan(0.2), abs=1e-6)


def test_project_mode_advances_state_by_latency(params):
    stub = StubSolver()
    controller = MPCController(params=params, solver=stub, latency=0.1)

    controller.process(make_telemetry(speed=30.0))

    assert stub.calls[0].x == pytest.approx(3.0)
    assert controller.command_delay == 0.0


def test_project_mode_uses_reported_steering(params):
    stub = StubSolver()
    controller = MPCController(params=params, solver=stub, latency=0.1)

    # Actuator steering -0.5 is a left turn with the default sign
    controller.process(make_telemetry(speed=20.0, steering_angle=-0.5, throttle=0.0))

    expected_psi = 20.0 / params.lf * (0.5 * params.max_steer) * 0.1
    assert stub.calls[0].psi == pytest.approx(expected_psi)


def test_delay_mode_reports_command_delay(params):
    mode = ComponentMode(latency_mode=LatencyMode.DELAY)
    controller = MPCController(params=params, solver=StubSolver(), mode=mode, latency=0.1)

    assert controller.command_delay == pytest.approx(0.1)


def test_decelerate_fallback_keeps_steering_and_brakes(params):
    stub = StubSolver(Actuation(0.2, 0.8))
    controller = MPCController(params=params, solver=stub)
    controller.process(make_telemetry())

    stub.fail_with = OptimizationFailed("no luck", status="Infeasible_Problem_Detected")
    result = controller.process(make_telemetry())

    assert result.status == STATUS_FALLBACK
    assert result.degraded
    assert result.actuation.steering == pytest.approx(0.2)
    assert result.actuation.acceleration < 0.0
    assert result.command.throttle < 0.0
    assert result.command.mpc_x == []
    assert controller.failure_count == 1


def test_hold_fallback_repeats_last_actuation(params):
    stub = StubSolver(Actuation(-0.15, 0.3))
    mode = ComponentMode(fallback_policy=FallbackPolicy.HOLD)
    controller = MPCController(params=params, solver=stub, mode=mode)
    first = controller.process(make_telemetry())

    stub.fail_with = OptimizationFailed("no luck")
    result = controller.process(make_telemetry())

    assert result.status == STATUS_FALLBACK
    assert result.actuation == Actuation(-0.15, 0.3)
    assert result.command.steering == first.command.steering
    assert result.command.throttle == first.command.throttle


def test_hold_fallback_without_history_decelerates(params):
    stub = StubSolver(fail_with=OptimizationFailed("no luck"))
    mode = ComponentMode(fallback_policy=FallbackPolicy.HOLD)
    controller = MPCController(params=params, solver=stub, mode=mode)

    result = controller.process(make_telemetry())

    assert result.status == STATUS_FALLBACK
    assert result.actuation.steering == 0.0
    assert result.actuation.acceleration < 0.0


@pytest.mark.parametrize("sign", [0.0, 2.0, -0.5])
def test_invalid_steering_sign_rejected(params, sign):
    with pytest.raises(ValueError):
        MPCController(params=params, solver=StubSolver(), steering_sign=sign)


def test_negative_latency_rejected(params):
    with pytest.raises(ValueError):
        MPCController(params=params, solver=StubSolver(), latency=-0.1)


def test_is_safe_command():
    assert is_safe_command(Command(0.5, -1.0))
    assert not is_safe_command(Command(1.5, 0.0))
    assert not is_safe_command(Command(0.0, float("nan")))


def test_straight_path_end_to_end(params):
    """On a straight path at reference speed the real solver steers straight."""
    controller = MPCController(params=params, latency=0.0)

    result = controller.process(make_telemetry(speed=params.ref_speed))

    assert result.status == STATUS_OK
    assert abs(result.command.steering) < 1e-2
    assert abs(result.command.throttle) < 1e-2


def test_overspeed_end_to_end(params):
    controller = MPCController(params=params)

    result = controller.process(make_telemetry(speed=params.ref_speed + 30.0))

    assert result.status == STATUS_OK
    assert result.command.throttle < 0.0


def test_commands_stay_in_range_for_random_inputs(params):
    """Every cycle emits either nothing or a finite command inside [-1, 1]."""
    rng = np.random.default_rng(2024)
    controller = MPCController(params=params)

    for _ in range(1000):
        coeffs = (
            rng.uniform(-8.0, 8.0),
            rng.uniform(-0.6, 0.6),
            rng.uniform(-0.01, 0.01),
            rng.uniform(-1e-4, 1e-4),
        )
        extra = {}
        if rng.random() < 0.5:
            extra = {
                "steering_angle": float(rng.uniform(-1.0, 1.0)),
                "throttle": float(rng.uniform(-1.0, 1.0)),
            }
        data = telemetry_data(
            coeffs=coeffs,
            x=float(rng.uniform(-200.0, 200.0)),
            y=float(rng.uniform(-200.0, 200.0)),
            psi=float(rng.uniform(-2 * math.pi, 2 * math.pi)),
            speed=float(rng.uniform(0.0, 100.0)),
            **extra,
        )

        result = controller.process(parse_telemetry(data))

        assert result.status in (STATUS_OK, STATUS_FALLBACK)
        assert is_safe_command(result.command)
        assert abs(result.actuation.steering) <= params.max_steer + 1e-9
        assert -params.max_decel - 1e-9 <= result.actuation.acceleration <= params.max_accel + 1e-9

    assert controller.cycle_count == 1000
