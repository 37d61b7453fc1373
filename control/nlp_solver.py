"""
Nonlinear-program solver service used by the MPC controller.

The controller only relies on ``solve(...) -> SolverOutcome``; IpoptSolver
implements it with CasADi's Ipopt interface (automatic differentiation and
sparse Jacobian/Hessian handled by CasADi).
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional, Sequence, Tuple

import casadi as ca
import numpy as np


logger = logging.getLogger(__name__)

# f(opt_vars, params) -> scalar, g(opt_vars, params) -> list of residuals
ObjectiveFn = Callable[[object, object], object]
ConstraintFn = Callable[[object, object], Sequence[object]]


@dataclass
class SolverOutcome:
    """Result of one NLP solve."""

    success: bool
    status: str
    objective: float
    x: np.ndarray
    solve_time: float = 0.0
    iterations: Optional[int] = None


class IpoptSolver:
    """
    Ipopt through ``casadi.nlpsol``.

    The symbolic problem is built once per (objective, constraints, sizes)
    and reused; per-call data (initial guess, bounds, parameters) is passed
    at solve time.
    """

    def __init__(self, time_budget: float = 0.5, max_iter: int = 3000, print_level: int = 0):
        """
        Initialize solver.

        Args:
            time_budget: Ipopt max_wall_time (seconds)
            max_iter: Ipopt iteration limit
            print_level: Ipopt verbosity (0 = silent)
        """
        self.time_budget = time_budget
        self.max_iter = max_iter
        self.print_level = print_level
        self._solvers: Dict[Tuple[Hashable, ...], ca.Function] = {}

    def _options(self) -> dict:
        return {
            "ipopt.print_level": self.print_level,
            "ipopt.sb": "yes",
            "ipopt.max_iter": self.max_iter,
            "ipopt.max_wall_time": self.time_budget,
            # Returned actuators must stay inside their bounds exactly
            "ipopt.bound_relax_factor": 0.0,
            "print_time": 0,
            "error_on_fail": False,
        }

    def _get_solver(self, objective: ObjectiveFn, constraints: ConstraintFn,
                    n_vars: int, n_params: int) -> ca.Function:
        key = (objective, constraints, n_vars, n_params)
        solver = self._solvers.get(key)
        if solver is None:
            x = ca.SX.sym("opt_vars", n_vars)
            p = ca.SX.sym("params", n_params)
            nlp = {
                "x": x,
                "p": p,
                "f": objective(x, p),
                "g": ca.vertcat(*constraints(x, p)),
            }
            solver = ca.nlpsol("mpc_solver", "ipopt", nlp, self._options())
            self._solvers[key] = solver
            logger.debug(f"[SOLVER] Built Ipopt problem: {n_vars} variables, {n_params} parameters")
        return solver

    def solve(self, objective: ObjectiveFn, constraints: ConstraintFn,
              x0: np.ndarray, lbx: np.ndarray, ubx: np.ndarray,
              lbg: np.ndarray, ubg: np.ndarray,
              params: Optional[np.ndarray] = None) -> SolverOutcome:
        """
        Solve min f(x, p) s.t. lbg <= g(x, p) <= ubg, lbx <= x <= ubx.

        Args:
            objective: Builds the scalar objective from symbolic (x, p)
            constraints: Builds the constraint list from symbolic (x, p)
            x0: Initial guess
            lbx, ubx: Variable bounds
            lbg, ubg: Constraint bounds
            params: Problem parameters (e.g. path coefficients)

        Returns:
            SolverOutcome (success is False on any non-success Ipopt status)
        """
        params = np.zeros(0) if params is None else np.asarray(params, dtype=float)
        solver = self._get_solver(objective, constraints, len(x0), len(params))

        start = time.perf_counter()
        result = solver(x0=x0, lbx=lbx, ubx=ubx, lbg=lbg, ubg=ubg, p=params)
        solve_time = time.perf_counter() - start

        stats = solver.stats()
        return SolverOutcome(
            success=bool(stats.get("success", False)),
            status=str(stats.get("return_status", "unknown")),
            objective=float(result["f"]),
            x=np.array(result["x"].full()).reshape(-1),
            solve_time=solve_time,
            iterations=stats.get("iter_count"),
        )
