"""
Reference path model: cubic polynomial y = c0 + c1*x + c2*x^2 + c3*x^3 in the vehicle frame.

Works on plain floats and on CasADi expressions, so the same functions feed
both the symbolic NLP and numeric checks.
"""

from typing import Sequence

import casadi as ca
import numpy as np

from control.exceptions import ConfigurationError


POLY_ORDER = 3
N_COEFFS = POLY_ORDER + 1


def validate_coefficients(coeffs: Sequence[float]) -> np.ndarray:
    """Return coefficients as a float array, or raise ConfigurationError if not 4 entries."""
    coeffs = np.asarray(coeffs, dtype=float).reshape(-1)
    if coeffs.shape[0] != N_COEFFS:
        raise ConfigurationError(
            f"Reference path needs {N_COEFFS} polynomial coefficients, got {coeffs.shape[0]}"
        )
    return coeffs


def evaluate_polynomial(coeffs, x):
    """Evaluate the cubic at x using Horner's scheme."""
    return ((coeffs[3] * x + coeffs[2]) * x + coeffs[1]) * x + coeffs[0]


def polynomial_slope(coeffs, x):
    """First derivative dy/dx of the cubic at x."""
    return (3.0 * coeffs[3] * x + 2.0 * coeffs[2]) * x + coeffs[1]


def desired_heading(coeffs, x):
    """Path tangent direction (radians) at x."""
    return ca.atan(polynomial_slope(coeffs, x))
