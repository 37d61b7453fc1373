"""
Per-cycle problem data shared by the cost and constraint evaluators.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from control.exceptions import ConfigurationError
from control.horizon_layout import STATE_BLOCKS, HorizonLayout
from control.mpc_config import MPCConfig


@dataclass(frozen=True)
class VehicleState:
    """Vehicle state in its own local frame at query time."""

    x: float = 0.0
    y: float = 0.0
    psi: float = 0.0  # Heading (radians)
    v: float = 0.0  # Speed
    cte: float = 0.0  # Cross-track error
    epsi: float = 0.0  # Heading error (radians)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "VehicleState":
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.shape[0] != len(STATE_BLOCKS):
            raise ConfigurationError(
                f"Vehicle state needs {len(STATE_BLOCKS)} entries "
                f"{STATE_BLOCKS}, got {values.shape[0]}"
            )
        return cls(*(float(v) for v in values))

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in STATE_BLOCKS], dtype=float)


@dataclass(frozen=True)
class ProblemContext:
    """
    Everything the pure evaluators need besides the decision vector.

    ``coeffs`` is either a numeric array or a CasADi symbol standing in for
    the coefficients, so one symbolic problem serves every control cycle.
    """

    coeffs: Any
    config: MPCConfig
    layout: HorizonLayout

    @classmethod
    def for_config(cls, coeffs: Any, config: MPCConfig) -> "ProblemContext":
        return cls(coeffs=coeffs, config=config, layout=HorizonLayout(config.n_steps))
