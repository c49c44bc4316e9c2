"""Errors raised by the control pipeline.

Preprocessing errors (``InvalidInput`` and its subclass ``InsufficientData``)
end the current cycle without an optimizer call. ``OptimizationFailed`` is
raised by the solver only; the controller decides what to send instead.
"""

from typing import Optional


class MPCControlError(Exception):
    """Base class for all control pipeline errors."""


class InvalidInput(MPCControlError, ValueError):
    """Telemetry or waypoint data is empty, malformed or non-finite."""


class InsufficientData(InvalidInput):
    """Too few waypoints for the polynomial fit."""

    def __init__(self, required: int, received: int) -> None:
        super().__init__(f"Polynomial fit needs at least {required} points, got {received}")
        self.required = required
        self.received = received


class OptimizationFailed(MPCControlError, RuntimeError):
    """The solver did not converge within its iteration/time budget."""

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
