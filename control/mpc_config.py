"""
MPC configuration: horizon, vehicle geometry, cost weights and actuator bounds.

Defaults reproduce the tuned values of the simulator controller. Everything
here is read-only for the lifetime of an MPCController.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from control.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "mpc_config.yaml"


@dataclass(frozen=True)
class MPCWeights:
    """Per-term cost multipliers.

    Tracking terms dominate effort terms, which dominate smoothness terms:
    path adherence matters more than comfort.
    """

    # Tracking, summed over t in [0, N)
    cte: float = 800.0
    epsi: float = 800.0
    speed: float = 1.0

    # Effort, summed over t in [0, N-1)
    steer_speed: float = 450.0  # (delta * v)^2, discourages sharp turns at speed
    steer: float = 20.0
    accel: float = 1.0

    # Smoothness, summed over t in [0, N-2)
    steer_rate: float = 1.0
    accel_rate: float = 1.0


@dataclass(frozen=True)
class MPCConfig:
    """Configuration for the kinematic MPC controller."""

    n_steps: int = 10  # Prediction horizon N
    dt: float = 0.1  # Step duration (seconds)
    lf: float = 2.67  # Front axle to CoG distance with a matching turn radius (meters)
    reference_speed: float = 100.0  # Target cruising speed (simulator units, mph)
    weights: MPCWeights = field(default_factory=MPCWeights)

    steering_bound: float = 0.436332  # 25 degrees (radians)
    accel_bound: float = 1.0  # Normalized throttle/brake
    state_bound: float = 1.0e19  # Ipopt treats |bound| >= 1e19 as infinite

    # Number of dt steps between deciding an actuation and it taking effect
    latency_steps: int = 1

    # Speeds beyond this are treated as unsolvable input rather than handed to the solver
    max_plausible_speed: float = 1000.0

    solver_time_budget: float = 0.5  # Ipopt max_wall_time (seconds)
    solver_max_iter: int = 3000
    solver_print_level: int = 0

    def validate(self) -> None:
        """Raise ConfigurationError for values that cannot form a valid problem."""
        if isinstance(self.n_steps, bool) or not isinstance(self.n_steps, int):
            raise ConfigurationError(f"n_steps must be an integer, got {self.n_steps!r}")
        if self.n_steps < 2:
            raise ConfigurationError(
                f"n_steps must be >= 2 (a horizon of {self.n_steps} has no actuator variables)"
            )
        if not math.isfinite(self.dt) or self.dt <= 0.0:
            raise ConfigurationError(f"dt must be a positive finite number, got {self.dt}")
        if not math.isfinite(self.lf) or self.lf == 0.0:
            raise ConfigurationError(f"lf must be a nonzero finite number, got {self.lf}")
        if not math.isfinite(self.reference_speed):
            raise ConfigurationError(f"reference_speed must be finite, got {self.reference_speed}")
        for name in ("steering_bound", "accel_bound", "state_bound", "solver_time_budget",
                     "max_plausible_speed"):
            value = getattr(self, name)
            if not value > 0.0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if isinstance(self.latency_steps, bool) or not isinstance(self.latency_steps, int):
            raise ConfigurationError(f"latency_steps must be an integer, got {self.latency_steps!r}")
        if self.latency_steps < 0:
            raise ConfigurationError(f"latency_steps must be >= 0, got {self.latency_steps}")
        if self.solver_max_iter < 1:
            raise ConfigurationError(f"solver_max_iter must be >= 1, got {self.solver_max_iter}")
        for weight in fields(MPCWeights):
            value = getattr(self.weights, weight.name)
            if not math.isfinite(value) or value < 0.0:
                raise ConfigurationError(
                    f"weight '{weight.name}' must be a non-negative finite number, got {value}"
                )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MPCConfig":
        """Build a config from a plain mapping (e.g. the 'mpc' section of a YAML file)."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown MPC config keys: {unknown}")

        weights_data = data.pop("weights", None) or {}
        if isinstance(weights_data, MPCWeights):
            weights = weights_data
        else:
            weight_names = {f.name for f in fields(MPCWeights)}
            unknown = sorted(set(weights_data) - weight_names)
            if unknown:
                raise ConfigurationError(f"Unknown MPC weight keys: {unknown}")
            weights = MPCWeights(**{k: float(v) for k, v in weights_data.items()})

        return cls(weights=weights, **data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_mpc_config(config_path: Optional[Union[str, Path]] = None) -> MPCConfig:
    """Load MPC configuration from YAML file or use defaults."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        logger.warning(f"Config file not found at {config_path}, using defaults")
        return MPCConfig()

    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}
    logger.info(f"Loaded configuration from {config_path}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return MPCConfig.from_dict(raw.get('mpc', {}))
