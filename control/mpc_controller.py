"""
MPC (Model Predictive Control) controller for local path tracking.

Each call to ``solve`` builds a finite-horizon NLP from the current vehicle
state and the fitted reference polynomial, hands it to the solver, and
returns the first actuator pair plus the predicted (x, y) path.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import casadi as ca
import numpy as np

from control.exceptions import ConfigurationError, ConvergenceFailure, NumericAnomaly
from control.horizon_layout import STATE_BLOCKS, HorizonLayout
from control.mpc_config import MPCConfig
from control.mpc_cost import cost_breakdown, evaluate_cost
from control.mpc_dynamics import evaluate_constraints
from control.mpc_problem import ProblemContext, VehicleState
from control.nlp_solver import IpoptSolver, SolverOutcome
from control.reference_model import N_COEFFS, validate_coefficients


logger = logging.getLogger(__name__)

StateLike = Union[VehicleState, Sequence[float], np.ndarray]


@dataclass
class MPCResult:
    """Command and prediction from one successful solve."""

    steering: float
    acceleration: float
    predicted_x: np.ndarray = field(default_factory=lambda: np.zeros(0))
    predicted_y: np.ndarray = field(default_factory=lambda: np.zeros(0))
    objective: float = 0.0
    status: str = ""
    solve_time: float = 0.0

    @property
    def predicted_path(self) -> List[Tuple[float, float]]:
        """Predicted positions for t = 1..N-1."""
        return [(float(x), float(y)) for x, y in zip(self.predicted_x, self.predicted_y)]

    def as_vector(self) -> List[float]:
        """Flat output: [steering, acceleration, x1, y1, x2, y2, ...]."""
        values = [float(self.steering), float(self.acceleration)]
        for x, y in self.predicted_path:
            values.extend((x, y))
        return values


class MPCController:
    """
    Kinematic-bicycle MPC with fixed actuation-latency compensation.

    Holds only read-only configuration; every solve is independent.
    Calls must not overlap.
    """

    def __init__(self, config: Optional[MPCConfig] = None, solver=None):
        """
        Initialize MPC controller.

        Args:
            config: MPC configuration (defaults to MPCConfig())
            solver: Object with IpoptSolver's ``solve`` signature (defaults to Ipopt)

        Raises:
            ConfigurationError: If the configuration is invalid (e.g. n_steps < 2)
        """
        self.config = config if config is not None else MPCConfig()
        self.config.validate()
        self.layout = HorizonLayout(self.config.n_steps)
        if solver is None:
            solver = IpoptSolver(
                time_budget=self.config.solver_time_budget,
                max_iter=self.config.solver_max_iter,
                print_level=self.config.solver_print_level,
            )
        self.solver = solver
        self._fg_function: Optional[ca.Function] = None

    # Problem construction

    def _context(self, coeffs) -> ProblemContext:
        return ProblemContext(coeffs=coeffs, config=self.config, layout=self.layout)

    def _objective(self, opt_vars, coeffs):
        return evaluate_cost(opt_vars, self._context(coeffs))

    def _constraints(self, opt_vars, coeffs):
        return evaluate_constraints(opt_vars, self._context(coeffs))

    def _state_array(self, state: StateLike) -> np.ndarray:
        if isinstance(state, VehicleState):
            return state.as_array()
        return VehicleState.from_sequence(state).as_array()

    def initial_guess(self, state: StateLike) -> np.ndarray:
        """All zeros except the t=0 state entries."""
        state = self._state_array(state)
        x0 = np.zeros(self.layout.n_vars)
        for block, value in zip(STATE_BLOCKS, state):
            x0[self.layout.index(block, 0)] = value
        return x0

    def variable_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Unbounded states, symmetric steering and acceleration limits."""
        cfg = self.config
        lbx = np.full(self.layout.n_vars, -cfg.state_bound)
        ubx = np.full(self.layout.n_vars, cfg.state_bound)

        steer = self.layout.block_slice("delta")
        lbx[steer] = -cfg.steering_bound
        ubx[steer] = cfg.steering_bound

        accel = self.layout.block_slice("a")
        lbx[accel] = -cfg.accel_bound
        ubx[accel] = cfg.accel_bound
        return lbx, ubx

    def constraint_bounds(self, state: StateLike) -> Tuple[np.ndarray, np.ndarray]:
        """Zero for the dynamics residuals, the measured state for the t=0 pins."""
        state = self._state_array(state)
        lbg = np.zeros(self.layout.n_constraints)
        for block, value in zip(STATE_BLOCKS, state):
            lbg[self.layout.index(block, 0)] = value
        return lbg, lbg.copy()

    # Numeric evaluation

    def _fg(self) -> ca.Function:
        if self._fg_function is None:
            x = ca.SX.sym("opt_vars", self.layout.n_vars)
            p = ca.SX.sym("coeffs", N_COEFFS)
            self._fg_function = ca.Function(
                "mpc_fg", [x, p],
                [self._objective(x, p), ca.vertcat(*self._constraints(x, p))],
            )
        return self._fg_function

    def evaluate(self, opt_vars: Sequence[float], state: StateLike,
                 coeffs: Sequence[float]) -> Tuple[float, np.ndarray]:
        """
        Evaluate objective and constraint residuals at ``opt_vars``.

        Residuals are taken relative to the constraint bounds, so every entry
        is zero at a feasible point (the t=0 entries are variable - state).

        Returns:
            (objective, residuals of length 6N)
        """
        coeffs = validate_coefficients(coeffs)
        opt_vars = np.asarray(opt_vars, dtype=float).reshape(-1)
        if opt_vars.shape[0] != self.layout.n_vars:
            raise ConfigurationError(
                f"Decision vector needs {self.layout.n_vars} entries, got {opt_vars.shape[0]}"
            )
        f, g = self._fg()(opt_vars, coeffs)
        lbg, _ = self.constraint_bounds(state)
        residuals = np.array(g.full()).reshape(-1) - lbg
        return float(f), residuals

    def cost_terms(self, opt_vars: Sequence[float]) -> dict:
        """Weighted objective contribution of each cost term."""
        opt_vars = np.asarray(opt_vars, dtype=float).reshape(-1)
        # Cost terms do not depend on the reference path
        terms = cost_breakdown(opt_vars, self._context(np.zeros(N_COEFFS)))
        return {name: float(value) for name, value in terms.items()}

    # Solve

    def solve(self, state: StateLike, coeffs: Sequence[float]) -> MPCResult:
        """
        Compute actuator commands for the current cycle.

        Args:
            state: (x, y, psi, v, cte, epsi) in the vehicle frame
            coeffs: Cubic reference path coefficients, ascending powers

        Returns:
            MPCResult with the first steering/acceleration pair and the
            predicted positions for t = 1..N-1

        Raises:
            ConfigurationError: Malformed state or coefficient vector
            NumericAnomaly: Non-finite inputs, objective, or residuals
            ConvergenceFailure: Solver did not report success, or the speed
                is beyond max_plausible_speed (outcome is None)
        """
        state_array = self._state_array(state)
        coeffs = validate_coefficients(coeffs)
        if not (np.all(np.isfinite(state_array)) and np.all(np.isfinite(coeffs))):
            raise NumericAnomaly(f"Non-finite MPC input: state={state_array}, coeffs={coeffs}")
        speed = state_array[3]
        if abs(speed) > self.config.max_plausible_speed:
            logger.warning(f"[MPC] Speed {speed} exceeds plausible limit "
                           f"{self.config.max_plausible_speed}, not solving")
            raise ConvergenceFailure(
                f"Speed {speed} outside plausible range "
                f"[-{self.config.max_plausible_speed}, {self.config.max_plausible_speed}]"
            )

        x0 = self.initial_guess(state_array)
        lbx, ubx = self.variable_bounds()
        lbg, ubg = self.constraint_bounds(state_array)

        initial_cost, initial_residuals = self.evaluate(x0, state_array, coeffs)
        if not (np.isfinite(initial_cost) and np.all(np.isfinite(initial_residuals))):
            raise NumericAnomaly(
                f"Non-finite objective or constraints at the initial guess "
                f"(cost={initial_cost}, state={state_array})"
            )

        outcome: SolverOutcome = self.solver.solve(
            self._objective, self._constraints, x0, lbx, ubx, lbg, ubg, params=coeffs,
        )

        if not outcome.success:
            logger.warning(f"[MPC] Solver did not converge: status={outcome.status}, "
                           f"cost={outcome.objective}")
            raise ConvergenceFailure(f"MPC solver failed with status '{outcome.status}'", outcome)

        solution = np.asarray(outcome.x, dtype=float).reshape(-1)
        if not np.isfinite(outcome.objective) or not np.all(np.isfinite(solution)):
            raise NumericAnomaly(f"Solver returned non-finite values (status={outcome.status})")
        _, residuals = self.evaluate(solution, state_array, coeffs)
        if not np.all(np.isfinite(residuals)):
            raise NumericAnomaly("Non-finite constraint residuals at the solution")

        logger.debug(f"[MPC] Cost {outcome.objective:.3f} ({outcome.status}, "
                     f"{outcome.solve_time * 1000.0:.1f} ms)")

        layout = self.layout
        config = self.config
        # Ipopt can land a hair outside the variable bounds
        return MPCResult(
            steering=float(np.clip(solution[layout.index("delta", 0)],
                                   -config.steering_bound, config.steering_bound)),
            acceleration=float(np.clip(solution[layout.index("a", 0)],
                                       -config.accel_bound, config.accel_bound)),
            predicted_x=layout.block(solution, "x")[1:].copy(),
            predicted_y=layout.block(solution, "y")[1:].copy(),
            objective=float(outcome.objective),
            status=outcome.status,
            solve_time=outcome.solve_time,
        )
