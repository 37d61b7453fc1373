"""
Equality constraints for the MPC: initial-state pin plus kinematic bicycle dynamics.

Model (per step, actuators subject to the latency shift):
    x[t+1]    = x[t] + v[t] * cos(psi[t]) * dt
    y[t+1]    = y[t] + v[t] * sin(psi[t]) * dt
    psi[t+1]  = psi[t] - v[t] / Lf * delta * dt
    v[t+1]    = v[t] + a * dt
    cte[t+1]  = (f(x[t]) - y[t]) + v[t] * sin(epsi[t]) * dt
    epsi[t+1] = (psi[t] - psides(x[t])) - v[t] / Lf * delta * dt

Positive steering turns right in the simulator while heading grows
counter-clockwise, hence the minus sign on the heading updates.
"""

from typing import List

import casadi as ca

from control.horizon_layout import STATE_BLOCKS
from control.mpc_problem import ProblemContext
from control.reference_model import desired_heading, evaluate_polynomial


def predict_step(state, delta, a, coeffs, dt: float, lf: float) -> tuple:
    """
    One step of the discrete kinematic bicycle model with error states.

    Args:
        state: (x, y, psi, v, cte, epsi) at t-1
        delta: Steering applied over the step (radians)
        a: Normalized acceleration applied over the step
        coeffs: Reference polynomial coefficients
        dt: Step duration (seconds)
        lf: Front axle to CoG distance

    Returns:
        Predicted (x, y, psi, v, cte, epsi) at t
    """
    x0, y0, psi0, v0, _cte0, epsi0 = state

    f0 = evaluate_polynomial(coeffs, x0)
    psides0 = desired_heading(coeffs, x0)

    x1 = x0 + v0 * ca.cos(psi0) * dt
    y1 = y0 + v0 * ca.sin(psi0) * dt
    psi1 = psi0 - v0 / lf * delta * dt
    v1 = v0 + a * dt
    cte1 = (f0 - y0) + v0 * ca.sin(epsi0) * dt
    epsi1 = (psi0 - psides0) - v0 / lf * delta * dt
    return x1, y1, psi1, v1, cte1, epsi1


def evaluate_constraints(opt_vars, context: ProblemContext) -> List:
    """
    Constraint vector of length 6N, ordered like the state blocks.

    At t = 0 each entry is the raw variable; its lower and upper bound are
    both set to the measured state, which pins the first predicted state.
    For t >= 1 each entry is ``predicted - actual`` and is bounded to zero.

    Args:
        opt_vars: Full decision vector (numeric or CasADi)
        context: Problem context

    Returns:
        List of 6N residual expressions
    """
    layout = context.layout
    config = context.config
    g = [None] * layout.n_constraints

    for block in STATE_BLOCKS:
        i = layout.index(block, 0)
        g[i] = opt_vars[i]

    for t in range(1, layout.n_steps):
        previous = tuple(opt_vars[layout.index(block, t - 1)] for block in STATE_BLOCKS)

        # Actuation takes latency_steps * dt to act, so use an older command
        k = layout.actuator_index(t, config.latency_steps)
        delta0 = opt_vars[layout.index("delta", k)]
        a0 = opt_vars[layout.index("a", k)]

        predicted = predict_step(previous, delta0, a0, context.coeffs, config.dt, config.lf)
        for block, value in zip(STATE_BLOCKS, predicted):
            i = layout.index(block, t)
            g[i] = value - opt_vars[i]

    return g
