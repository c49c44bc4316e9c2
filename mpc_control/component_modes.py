"""
Runtime modes of the control pipeline.

This module defines the switches that change how a control cycle behaves
(warm starting, latency handling, solver failure fallback) so that each
choice can be selected from the command line and compared between runs.
"""

import argparse
import sys
from dataclasses import dataclass
from enum import Enum

from .config import FALLBACK_POLICY, LATENCY_MODE


class LatencyMode(str, Enum):
    """How actuation latency is compensated. Exactly one applies per run."""

    PROJECT = "project"  # Advance the initial state by the latency
    DELAY = "delay"  # Hold the outgoing command for the latency


class FallbackPolicy(str, Enum):
    """What to send when the optimizer fails."""

    HOLD = "hold"  # Repeat the last command
    DECELERATE = "decelerate"  # Keep steering, brake gently


@dataclass(frozen=True)
class ComponentMode:
    """Configuration for which optional behaviours are active."""

    use_warm_start: bool = True
    latency_mode: LatencyMode = LatencyMode(LATENCY_MODE)
    fallback_policy: FallbackPolicy = FallbackPolicy(FALLBACK_POLICY)

    def __str__(self):
        """Human-readable description of active components."""
        components = ["MPC(warm)" if self.use_warm_start else "MPC(cold)"]

        if self.latency_mode is LatencyMode.PROJECT:
            components.append("Latency(project state)")
        else:
            components.append("Latency(delay command)")

        components.append(f"Fallback({self.fallback_policy.value})")

        return " → ".join(components)

    def to_dict(self):
        """Convert to dictionary for logging."""
        return {
            "use_warm_start": self.use_warm_start,
            "latency_mode": self.latency_mode.value,
            "fallback_policy": self.fallback_policy.value,
        }


def parse_component_flags(args=None):
    """
    Parse command-line flags to determine which behaviours are active.

    Args:
        args: List of command-line arguments (default: sys.argv[1:])

    Returns:
        tuple: (ComponentMode, remaining_args)
            - ComponentMode with appropriate settings
            - List of remaining arguments not consumed
    """
    parser = argparse.ArgumentParser(add_help=False)

    parser.add_argument(
        "--no-warm-start",
        action="store_true",
        help="Solve every cycle from a cold initial guess",
    )
    parser.add_argument(
        "--latency-mode",
        choices=[mode.value for mode in LatencyMode],
        default=LATENCY_MODE,
        help="Compensate latency by projecting the state or by delaying the command",
    )
    parser.add_argument(
        "--fallback",
        choices=[policy.value for policy in FallbackPolicy],
        default=FALLBACK_POLICY,
        help="Command sent when the optimizer fails",
    )

    if args is None:
        args = sys.argv[1:]

    known_args, remaining_args = parser.parse_known_args(args)

    mode = ComponentMode(
        use_warm_start=not known_args.no_warm_start,
        latency_mode=LatencyMode(known_args.latency_mode),
        fallback_policy=FallbackPolicy(known_args.fallback),
    )

    return mode, remaining_args
