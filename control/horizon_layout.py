"""
Flat-vector addressing for the MPC decision variables.

The solver works on one long vector:

    [x_0..x_{N-1}, y_*, psi_*, v_*, cte_*, epsi_*, delta_0..delta_{N-2}, a_0..a_{N-2}]

All offsets come from here; nothing else computes ``start + N * k``.
"""

from typing import Dict, Tuple

from control.exceptions import ConfigurationError


STATE_BLOCKS: Tuple[str, ...] = ("x", "y", "psi", "v", "cte", "epsi")
ACTUATOR_BLOCKS: Tuple[str, ...] = ("delta", "a")


class HorizonLayout:
    """
    Offsets of the eight variable blocks for a horizon of N steps.
    """

    def __init__(self, n_steps: int):
        """
        Args:
            n_steps: Prediction horizon N (>= 2)

        Raises:
            ConfigurationError: If N is not an integer >= 2
        """
        if isinstance(n_steps, bool) or not isinstance(n_steps, int):
            raise ConfigurationError(f"Horizon length must be an integer, got {n_steps!r}")
        if n_steps < 2:
            raise ConfigurationError(
                f"Horizon length must be >= 2, got {n_steps} (no actuator variables)"
            )

        self.n_steps = n_steps

        starts: Dict[str, int] = {}
        offset = 0
        for name in STATE_BLOCKS:
            starts[name] = offset
            offset += n_steps
        for name in ACTUATOR_BLOCKS:
            starts[name] = offset
            offset += n_steps - 1
        self._starts = starts

        self.n_vars = offset
        self.n_constraints = len(STATE_BLOCKS) * n_steps

    @property
    def x_start(self) -> int:
        return self._starts["x"]

    @property
    def y_start(self) -> int:
        return self._starts["y"]

    @property
    def psi_start(self) -> int:
        return self._starts["psi"]

    @property
    def v_start(self) -> int:
        return self._starts["v"]

    @property
    def cte_start(self) -> int:
        return self._starts["cte"]

    @property
    def epsi_start(self) -> int:
        return self._starts["epsi"]

    @property
    def delta_start(self) -> int:
        return self._starts["delta"]

    @property
    def a_start(self) -> int:
        return self._starts["a"]

    def block_length(self, block: str) -> int:
        if block in STATE_BLOCKS:
            return self.n_steps
        if block in ACTUATOR_BLOCKS:
            return self.n_steps - 1
        raise KeyError(f"Unknown block '{block}'")

    def start(self, block: str) -> int:
        """Offset of the first entry of ``block``."""
        if block not in self._starts:
            raise KeyError(f"Unknown block '{block}'")
        return self._starts[block]

    def index(self, block: str, t: int) -> int:
        """Flat index of ``block`` at timestep ``t``."""
        length = self.block_length(block)
        if not 0 <= t < length:
            raise IndexError(f"Timestep {t} out of range for block '{block}' (length {length})")
        return self._starts[block] + t

    def block_slice(self, block: str) -> slice:
        start = self.start(block)
        return slice(start, start + self.block_length(block))

    def block(self, vector, block: str):
        """Return the entries of ``block`` from a full-length vector."""
        return vector[self.block_slice(block)]

    def actuator_index(self, t: int, latency_steps: int = 1) -> int:
        """
        Actuator timestep that drives the transition into state timestep ``t``.

        Without latency the transition t-1 -> t uses actuators at t-1. With a
        delay of ``latency_steps`` the command applied is the one decided that
        many steps earlier, clamped to 0 because nothing earlier exists inside
        the horizon.
        """
        if not 1 <= t < self.n_steps:
            raise IndexError(f"Transition timestep {t} out of range [1, {self.n_steps})")
        return max(t - 1 - latency_steps, 0)

    def __repr__(self) -> str:
        return f"HorizonLayout(n_steps={self.n_steps}, n_vars={self.n_vars})"
