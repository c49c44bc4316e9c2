"""
Tests for the reference polynomial fit.
"""

import numpy as np
import pytest

from mpc_control.exceptions import InsufficientData, InvalidInput
from mpc_control.path import ReferenceCurve, polyderiv, polyeval, polyfit


def test_polyeval_and_derivative():
    coeffs = [1.0, 2.0, 3.0, 4.0]

    assert polyeval(coeffs, 0.0) == 1.0
    assert polyeval(coeffs, 2.0) == 1.0 + 4.0 + 12.0 + 32.0
    assert polyderiv(coeffs, 2.0) == 2.0 + 12.0 + 48.0


def test_fit_reproduces_known_cubic():
    """Fitting samples of a cubic and evaluating at the samples gives them back."""
    true_coeffs = [2.5, -0.3, 0.02, -0.0004]
    xs = np.linspace(-10.0, 80.0, 6)
    ys = polyeval(true_coeffs, xs)

    curve = polyfit(xs, ys, 3)

    np.testing.assert_allclose(curve.evaluate(xs), ys, atol=1e-8)
    np.testing.assert_allclose(curve.coeffs, true_coeffs, rtol=1e-6, atol=1e-9)


def test_fit_is_least_squares_for_noisy_points():
    """With more points than unknowns the fit matches numpy's least squares."""
    rng = np.random.default_rng(3)
    xs = np.linspace(0.0, 50.0, 12)
    ys = 0.5 + 0.1 * xs - 0.002 * xs**2 + rng.normal(0.0, 0.2, xs.size)

    curve = polyfit(xs, ys, 3)
    expected = np.polynomial.polynomial.polyfit(xs, ys, 3)

    np.testing.assert_allclose(curve.coeffs, expected, rtol=1e-6, atol=1e-9)


def test_fit_needs_order_plus_one_points():
    with pytest.raises(InsufficientData) as exc_info:
        polyfit([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], 3)

    assert exc_info.value.required == 4
    assert exc_info.value.received == 3


def test_insufficient_data_is_invalid_input():
    """InsufficientData is handled wherever InvalidInput is."""
    with pytest.raises(InvalidInput):
        polyfit([1.0], [1.0], 3)


def test_fit_rejects_repeated_x_values():
    with pytest.raises(InvalidInput):
        polyfit([1.0, 1.0, 1.0, 1.0], [0.0, 1.0, 2.0, 3.0], 3)


def test_reference_curve_heading():
    curve = ReferenceCurve(np.array([0.0, 1.0, 0.0, 0.0]))

    assert curve.order == 3
    assert curve.heading(0.0) == pytest.approx(np.pi / 4)


def test_reference_curve_is_read_only():
    curve = ReferenceCurve(np.array([0.0, 1.0, 0.0, 0.0]))

    with pytest.raises(ValueError):
        curve.coeffs[0] = 5.0
