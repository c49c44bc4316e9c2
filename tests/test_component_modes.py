"""
Tests for runtime mode flags.
"""

from mpc_control.component_modes import (
    ComponentMode,
    FallbackPolicy,
    LatencyMode,
    parse_component_flags,
)


def test_defaults():
    mode, remaining = parse_component_flags([])

    assert mode == ComponentMode()
    assert mode.use_warm_start
    assert mode.latency_mode is LatencyMode.PROJECT
    assert mode.fallback_policy is FallbackPolicy.DECELERATE
    assert remaining == []


def test_flags_are_consumed_and_rest_passed_through():
    mode, remaining = parse_component_flags(
        ["--no-warm-start", "--latency-mode", "delay", "--fallback", "hold", "-v", "--port", "9000"]
    )

    assert not mode.use_warm_start
    assert mode.latency_mode is LatencyMode.DELAY
    assert mode.fallback_policy is FallbackPolicy.HOLD
    assert remaining == ["-v", "--port", "9000"]


def test_description_and_dict():
    mode = ComponentMode(use_warm_start=False, latency_mode=LatencyMode.DELAY)

    assert str(mode) == "MPC(cold) → Latency(delay command) → Fallback(decelerate)"
    assert mode.to_dict() == {
        "use_warm_start": False,
        "latency_mode": "delay",
        "fallback_policy": "decelerate",
    }
