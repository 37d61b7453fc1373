#!/usr/bin/env python3
"""
Run the MPC controller on a scenario and report commands and solve times.

With --cycles 1 this is a single solve from the given state. With more
cycles the command is applied to the kinematic bicycle model one cycle
late (matching the modeled actuation delay) and the MPC is re-solved from
the new state, with the path kept in the starting frame.

Usage:
    python tools/run_mpc_scenario.py --scenario straight
    python tools/run_mpc_scenario.py --scenario offset --cycles 50 --json
    python tools/run_mpc_scenario.py --state 0 1 0 50 1 0 --coeffs 0 0 0 0
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from control.exceptions import ConvergenceFailure, MPCError
from control.mpc_config import load_mpc_config
from control.mpc_controller import MPCController
from control.reference_model import desired_heading, evaluate_polynomial
from control.vehicle_model import KinematicBicycleModel


logger = logging.getLogger(__name__)

SCENARIOS: Dict[str, Dict[str, List[float]]] = {
    "straight": {"state": [0.0, 0.0, 0.0, 50.0, 0.0, 0.0], "coeffs": [0.0, 0.0, 0.0, 0.0]},
    "offset": {"state": [0.0, 1.0, 0.0, 50.0, 1.0, 0.0], "coeffs": [0.0, 0.0, 0.0, 0.0]},
    "curve": {"state": [0.0, 0.0, 0.0, 40.0, 0.0, 0.0], "coeffs": [0.0, 0.0, 0.005, 0.0]},
}


def _tracking_errors(x: float, y: float, psi: float, coeffs: np.ndarray) -> tuple:
    cte = float(evaluate_polynomial(coeffs, x)) - y
    epsi = psi - float(desired_heading(coeffs, x))
    return cte, epsi


def run_scenario(controller: MPCController, state: List[float], coeffs: List[float],
                 cycles: int) -> Dict[str, Any]:
    """Solve ``cycles`` times, stepping the bicycle model between solves."""
    cfg = controller.config
    model = KinematicBicycleModel(lf=cfg.lf, max_steering_angle=cfg.steering_bound,
                                  max_accel=cfg.accel_bound)
    coeffs = np.asarray(coeffs, dtype=float)
    x, y, psi, v = (float(s) for s in state[:4])
    current = [float(s) for s in state]

    # Command in effect during the next dt (decided one cycle earlier)
    applied = (0.0, 0.0)
    records: List[Dict[str, Any]] = []
    failures = 0

    for cycle in range(cycles):
        try:
            result = controller.solve(current, coeffs)
        except ConvergenceFailure as e:
            failures += 1
            logger.warning(f"Cycle {cycle}: {e}")
            # Hold the previous command
            command = applied
            record = {"cycle": cycle, "converged": False, "status": e.outcome.status if e.outcome else ""}
        else:
            command = (result.steering, result.acceleration)
            record = {
                "cycle": cycle,
                "converged": True,
                "status": result.status,
                "steering": result.steering,
                "acceleration": result.acceleration,
                "objective": result.objective,
                "solve_time_ms": result.solve_time * 1000.0,
                "predicted_path": result.predicted_path,
            }
        record["state"] = list(current)
        records.append(record)

        x, y, psi, v = model.update(x, y, psi, v, applied[0], applied[1], cfg.dt)
        applied = command
        cte, epsi = _tracking_errors(x, y, psi, coeffs)
        current = [x, y, psi, v, cte, epsi]

    solve_times = [r["solve_time_ms"] for r in records if r["converged"]]
    summary: Dict[str, Any] = {
        "cycles": cycles,
        "failures": failures,
        "final_state": current,
        "max_abs_cte": float(max(abs(r["state"][4]) for r in records)),
    }
    if solve_times:
        summary["solve_time_ms_mean"] = float(np.mean(solve_times))
        summary["solve_time_ms_max"] = float(np.max(solve_times))
    return {"summary": summary, "records": records}


def _print_report(report: Dict[str, Any]) -> None:
    first = report["records"][0]
    print("=" * 60)
    print("MPC SCENARIO")
    print("=" * 60)
    if first["converged"]:
        print(f"First command: steering={first['steering']:+.4f} rad, "
              f"acceleration={first['acceleration']:+.4f}")
        print(f"Objective: {first['objective']:.3f} ({first['status']})")
        print("Predicted path:")
        for i, (px, py) in enumerate(first["predicted_path"], start=1):
            print(f"  t={i:2d}: x={px:8.3f}  y={py:+8.4f}")
    else:
        print(f"First solve failed: {first['status']}")

    summary = report["summary"]
    print("-" * 60)
    print(f"Cycles: {summary['cycles']}  failures: {summary['failures']}")
    print(f"Max |cte|: {summary['max_abs_cte']:.4f}")
    if "solve_time_ms_mean" in summary:
        print(f"Solve time: mean {summary['solve_time_ms_mean']:.1f} ms, "
              f"max {summary['solve_time_ms_max']:.1f} ms")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the MPC path tracker on a scenario.")
    parser.add_argument("--config", default=None, help="MPC YAML config (default: config/mpc_config.yaml)")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="straight")
    parser.add_argument("--state", type=float, nargs=6, default=None,
                        metavar=("X", "Y", "PSI", "V", "CTE", "EPSI"),
                        help="Override the scenario state")
    parser.add_argument("--coeffs", type=float, nargs=4, default=None,
                        metavar=("C0", "C1", "C2", "C3"),
                        help="Override the scenario path coefficients")
    parser.add_argument("--cycles", type=int, default=1)
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    scenario = SCENARIOS[args.scenario]
    state = args.state if args.state is not None else scenario["state"]
    coeffs = args.coeffs if args.coeffs is not None else scenario["coeffs"]

    try:
        controller = MPCController(load_mpc_config(args.config))
        report = run_scenario(controller, state, coeffs, max(1, args.cycles))
    except MPCError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        _print_report(report)
    return 0 if report["summary"]["failures"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
