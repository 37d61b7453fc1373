"""
Error kinds raised by the MPC stack.

Every error derives from MPCError so callers can catch the whole family,
while ConvergenceFailure stays distinguishable from bad input.
"""


class MPCError(Exception):
    """Base class for MPC controller errors."""


class ConfigurationError(MPCError, ValueError):
    """Invalid horizon, configuration value, or malformed state/coefficient vector."""


class ConvergenceFailure(MPCError):
    """The NLP solver did not report success, or the state is implausible to solve."""

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome


class NumericAnomaly(MPCError, ArithmeticError):
    """Non-finite values in the inputs, the objective, or the constraint residuals."""
