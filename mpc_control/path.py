"""Reference path fit for MPC path tracking.

The upcoming waypoints, already in the vehicle frame, are approximated by a
cubic y = f(x). The optimizer tracks this curve: f(x) gives the desired
lateral position and atan(f'(x)) the desired heading.
"""

from dataclasses import dataclass, field
from typing import Sequence, Union

import numpy as np
import numpy.typing as npt

from .config import POLY_ORDER
from .exceptions import InsufficientData, InvalidInput

ArrayOrFloat = Union[float, npt.NDArray[np.float64]]


def polyeval(coeffs: Sequence[float], x: ArrayOrFloat) -> ArrayOrFloat:
    """Evaluate a polynomial with ascending-degree coefficients.

    Args:
        coeffs: Coefficients [c0, c1, ..., cn] of c0 + c1*x + ... + cn*x^n.
        x: Point(s) to evaluate at.

    Returns:
        Polynomial value(s) at x.
    """
    result = 0.0
    # Horner's scheme from the highest degree down
    for c in reversed(list(coeffs)):
        result = result * x + c
    return result


def polyderiv(coeffs: Sequence[float], x: ArrayOrFloat) -> ArrayOrFloat:
    """Evaluate the first derivative of a polynomial with ascending-degree coefficients."""
    derived = [i * c for i, c in enumerate(coeffs)][1:]
    if not derived:
        return 0.0 * x
    return polyeval(derived, x)


@dataclass(frozen=True)
class ReferenceCurve:
    """Polynomial reference path y = f(x) in the vehicle frame.

    Attributes:
        coeffs: Ascending-degree coefficients [c0, c1, c2, c3].
    """

    coeffs: npt.NDArray[np.float64] = field(repr=False)

    def __post_init__(self) -> None:
        coeffs = np.asarray(self.coeffs, dtype=float)
        if coeffs.ndim != 1 or coeffs.size == 0:
            raise InvalidInput("Reference curve needs a flat, non-empty coefficient sequence")
        if not np.all(np.isfinite(coeffs)):
            raise InvalidInput(f"Reference curve has non-finite coefficients: {coeffs}")
        coeffs.setflags(write=False)
        object.__setattr__(self, "coeffs", coeffs)

    def __repr__(self) -> str:
        return f"ReferenceCurve({np.array2string(self.coeffs, precision=4)})"

    @property
    def order(self) -> int:
        return self.coeffs.size - 1

    def evaluate(self, x: ArrayOrFloat) -> ArrayOrFloat:
        """Desired lateral position f(x)."""
        return polyeval(self.coeffs, x)

    def derivative(self, x: ArrayOrFloat) -> ArrayOrFloat:
        """Slope f'(x)."""
        return polyderiv(self.coeffs, x)

    def heading(self, x: ArrayOrFloat) -> ArrayOrFloat:
        """Desired heading atan(f'(x)) in radians."""
        return np.arctan(self.derivative(x))


def polyfit(
    xvals: Sequence[float], yvals: Sequence[float], order: int = POLY_ORDER
) -> ReferenceCurve:
    """Least-squares polynomial fit using a QR decomposition.

    Builds the Vandermonde matrix A (one row [1, x, x^2, ..., x^order] per
    point), factors A = QR and solves the triangular system R c = Q^T y.
    This avoids forming the normal equations A^T A, whose condition number is
    the square of A's.

    Args:
        xvals: Sample x coordinates.
        yvals: Sample y coordinates, same length as xvals.
        order: Polynomial degree (default: 3).

    Returns:
        ReferenceCurve with order + 1 ascending-degree coefficients.

    Raises:
        InsufficientData: If fewer than order + 1 points are supplied.
        InvalidInput: If the inputs are mismatched, non-finite, or the x
            values are degenerate (fewer than order + 1 distinct values).
    """
    if order < 1:
        raise ValueError(f"Polynomial order must be at least 1, got {order}")

    x = np.asarray(xvals, dtype=float)
    y = np.asarray(yvals, dtype=float)

    if x.shape != y.shape or x.ndim != 1:
        raise InvalidInput(f"Fit inputs must be matching flat arrays, got {x.shape} and {y.shape}")
    if x.size < order + 1:
        raise InsufficientData(required=order + 1, received=int(x.size))
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise InvalidInput("Fit inputs contain non-finite values")

    vander = np.vander(x, order + 1, increasing=True)
    q, r = np.linalg.qr(vander)

    # A rank-deficient design shows up as a (near) zero on R's diagonal
    diag = np.abs(np.diag(r))
    if diag.min() <= np.finfo(float).eps * max(diag.max(), 1.0) * x.size:
        raise InvalidInput(
            f"Waypoints do not determine a degree-{order} fit (too few distinct x values)"
        )

    coeffs = np.linalg.solve(r, q.T @ y)
    return ReferenceCurve(coeffs)
