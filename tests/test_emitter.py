"""
Tests for command normalization and outbound message framing.
"""

import json

import numpy as np
import pytest

from mpc_control.emitter import (
    actuation_from_command,
    encode_manual,
    encode_steer,
    normalize_steering,
    normalize_throttle,
    to_command,
)
from mpc_control.exceptions import InvalidInput
from mpc_control.model import Actuation


def test_left_turn_is_negative_actuator_steering(params):
    """Positive internal angle (left) maps to a negative actuator value."""
    assert normalize_steering(params.max_steer / 2, params, steering_sign=-1.0) == pytest.approx(
        -0.5
    )
    assert normalize_steering(params.max_steer / 2, params, steering_sign=1.0) == pytest.approx(0.5)


@pytest.mark.parametrize("sign", [1.0, -1.0])
@pytest.mark.parametrize("steering", [-0.3, -0.1, 0.0, 0.2, 0.43])
def test_steering_sign_round_trip(params, sign, steering):
    steering = float(np.clip(steering, -params.max_steer, params.max_steer))
    command = to_command(Actuation(steering, 0.0), params, steering_sign=sign)

    recovered = actuation_from_command(command.steering, command.throttle, params, steering_sign=sign)

    assert recovered.steering == pytest.approx(steering)


def test_throttle_uses_separate_accel_and_decel_scales(params):
    assert normalize_throttle(params.max_accel, params) == pytest.approx(1.0)
    assert normalize_throttle(-params.max_decel, params) == pytest.approx(-1.0)
    assert normalize_throttle(0.0, params) == 0.0


def test_command_values_are_clipped(params):
    command = to_command(Actuation(10.0, -10.0), params)

    assert command.steering == pytest.approx(-1.0)
    assert command.throttle == pytest.approx(-1.0)


def test_non_finite_actuation_rejected(params):
    with pytest.raises(InvalidInput):
        to_command(Actuation(float("nan"), 0.0), params)


def test_non_finite_display_data_is_dropped(params):
    command = to_command(
        Actuation(0.0, 0.0),
        params,
        predicted_xy=([0.0, float("inf")], [0.0, 1.0]),
        reference_xy=([1.0, 2.0], [0.0, 0.5]),
    )

    assert command.mpc_x == []
    assert command.mpc_y == [0.0, 1.0]
    assert command.next_x == [1.0, 2.0]


def test_encode_steer_frame(params):
    command = to_command(
        Actuation(0.0, params.max_accel),
        params,
        predicted_xy=([0.0, 1.0], [0.0, 0.0]),
        reference_xy=([5.0], [0.1]),
    )

    message = encode_steer(command)

    assert message.startswith('42["steer",')
    name, payload = json.loads(message[2:])
    assert name == "steer"
    assert payload["steering_angle"] == 0.0
    assert payload["throttle"] == pytest.approx(1.0)
    assert payload["mpc_x"] == [0.0, 1.0]
    assert payload["next_y"] == [0.1]


def test_encode_manual_frame():
    assert encode_manual() == '42["manual",{}]'
