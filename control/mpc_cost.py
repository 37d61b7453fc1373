"""
MPC objective: weighted tracking, effort and smoothness terms.
"""

from typing import Dict

from control.mpc_problem import ProblemContext


def _tracking_terms(opt_vars, context: ProblemContext) -> Dict[str, object]:
    layout = context.layout
    weights = context.config.weights
    ref_v = context.config.reference_speed

    cte = epsi = speed = 0
    for t in range(layout.n_steps):
        cte += weights.cte * opt_vars[layout.index("cte", t)] ** 2
        epsi += weights.epsi * opt_vars[layout.index("epsi", t)] ** 2
        speed += weights.speed * (opt_vars[layout.index("v", t)] - ref_v) ** 2
    return {"cte": cte, "epsi": epsi, "speed": speed}


def _effort_terms(opt_vars, context: ProblemContext) -> Dict[str, object]:
    layout = context.layout
    weights = context.config.weights

    steer_speed = steer = accel = 0
    for t in range(layout.n_steps - 1):
        delta = opt_vars[layout.index("delta", t)]
        steer_speed += weights.steer_speed * (delta * opt_vars[layout.index("v", t)]) ** 2
        steer += weights.steer * delta ** 2
        accel += weights.accel * opt_vars[layout.index("a", t)] ** 2
    return {"steer_speed": steer_speed, "steer": steer, "accel": accel}


def _smoothness_terms(opt_vars, context: ProblemContext) -> Dict[str, object]:
    layout = context.layout
    weights = context.config.weights

    steer_rate = accel_rate = 0
    for t in range(layout.n_steps - 2):
        steer_rate += weights.steer_rate * (
            opt_vars[layout.index("delta", t + 1)] - opt_vars[layout.index("delta", t)]
        ) ** 2
        accel_rate += weights.accel_rate * (
            opt_vars[layout.index("a", t + 1)] - opt_vars[layout.index("a", t)]
        ) ** 2
    return {"steer_rate": steer_rate, "accel_rate": accel_rate}


def cost_breakdown(opt_vars, context: ProblemContext) -> Dict[str, object]:
    """
    Objective split by term, keyed like MPCWeights.

    Args:
        opt_vars: Full decision vector (numeric or CasADi)
        context: Problem context

    Returns:
        Dict of term name -> weighted contribution
    """
    terms = {}
    terms.update(_tracking_terms(opt_vars, context))
    terms.update(_effort_terms(opt_vars, context))
    terms.update(_smoothness_terms(opt_vars, context))
    return terms


def evaluate_cost(opt_vars, context: ProblemContext):
    """Scalar objective for the decision vector ``opt_vars``."""
    return sum(cost_breakdown(opt_vars, context).values())
