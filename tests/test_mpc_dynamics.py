"""
Tests for control/mpc_dynamics.py: initial-state pin, bicycle dynamics, latency shift.
"""

import math

import numpy as np
import pytest

from control.horizon_layout import STATE_BLOCKS
from control.mpc_config import MPCConfig
from control.mpc_dynamics import evaluate_constraints, predict_step
from control.mpc_problem import ProblemContext


DT = 0.1
LF = 2.67


def _context(n_steps=3, latency_steps=1, coeffs=(0.0, 0.0, 0.0, 0.0)) -> ProblemContext:
    config = MPCConfig(n_steps=n_steps, dt=DT, lf=LF, latency_steps=latency_steps)
    return ProblemContext.for_config(np.asarray(coeffs, dtype=float), config)


def _residuals(opt_vars, context) -> np.ndarray:
    return np.array([float(g) for g in evaluate_constraints(opt_vars, context)])


def _feasible_vector(context, state, deltas, accels) -> np.ndarray:
    """Roll the model forward with the latency rule and pack it into a decision vector."""
    layout = context.layout
    config = context.config
    states = [tuple(state)]
    for t in range(1, layout.n_steps):
        k = layout.actuator_index(t, config.latency_steps)
        states.append(predict_step(states[-1], deltas[k], accels[k], context.coeffs, config.dt, config.lf))

    opt_vars = np.zeros(layout.n_vars)
    for t, s in enumerate(states):
        for block, value in zip(STATE_BLOCKS, s):
            opt_vars[layout.index(block, t)] = float(value)
    opt_vars[layout.block_slice("delta")] = deltas
    opt_vars[layout.block_slice("a")] = accels
    return opt_vars


def test_constraint_vector_length():
    for n_steps in (2, 5, 10):
        context = _context(n_steps=n_steps)
        g = evaluate_constraints(np.zeros(context.layout.n_vars), context)
        assert len(g) == 6 * n_steps


def test_initial_entries_are_raw_variables():
    context = _context(n_steps=4)
    layout = context.layout
    opt_vars = np.arange(layout.n_vars, dtype=float)
    g = _residuals(opt_vars, context)
    for block in STATE_BLOCKS:
        i = layout.index(block, 0)
        assert g[i] == opt_vars[i]


def test_single_step_residuals():
    context = _context(n_steps=2, coeffs=(0.5, 0.1, 0.0, 0.0))
    layout = context.layout
    opt_vars = np.zeros(layout.n_vars)
    x0, y0, psi0, v0, cte0, epsi0 = 1.0, 0.2, 0.05, 20.0, 0.3, -0.02
    for block, value in zip(STATE_BLOCKS, (x0, y0, psi0, v0, cte0, epsi0)):
        opt_vars[layout.index(block, 0)] = value
    opt_vars[layout.index("delta", 0)] = 0.1
    opt_vars[layout.index("a", 0)] = 0.5
    opt_vars[layout.index("x", 1)] = 3.0

    g = _residuals(opt_vars, context)

    assert g[layout.index("x", 1)] == pytest.approx(x0 + v0 * math.cos(psi0) * DT - 3.0)
    assert g[layout.index("y", 1)] == pytest.approx(y0 + v0 * math.sin(psi0) * DT)
    assert g[layout.index("psi", 1)] == pytest.approx(psi0 - v0 / LF * 0.1 * DT)
    assert g[layout.index("v", 1)] == pytest.approx(v0 + 0.5 * DT)
    f0 = 0.5 + 0.1 * x0
    assert g[layout.index("cte", 1)] == pytest.approx((f0 - y0) + v0 * math.sin(epsi0) * DT)
    assert g[layout.index("epsi", 1)] == pytest.approx(
        (psi0 - math.atan(0.1)) - v0 / LF * 0.1 * DT
    )


def test_model_rollout_is_feasible():
    context = _context(n_steps=8, coeffs=(0.2, 0.05, -0.01, 0.0005))
    state = (0.0, 0.5, 0.02, 30.0, -0.3, 0.01)
    deltas = np.linspace(-0.2, 0.2, 7)
    accels = np.linspace(1.0, -1.0, 7)
    opt_vars = _feasible_vector(context, state, deltas, accels)

    g = _residuals(opt_vars, context)
    layout = context.layout
    dynamics = [g[layout.index(b, t)] for b in STATE_BLOCKS for t in range(1, layout.n_steps)]
    np.testing.assert_allclose(dynamics, 0.0, atol=1e-9)


class TestLatencyCompensation:
    """With one step of latency, delta/a at index t-2 drive step t (index 0 at t=1)."""

    def test_second_step_uses_first_actuator(self):
        context = _context(n_steps=3, latency_steps=1)
        layout = context.layout
        state = (0.0, 0.0, 0.0, 20.0, 0.0, 0.0)
        opt_vars = _feasible_vector(context, state, [0.1, 0.0], [0.5, 0.0])

        # The last actuator sample is never used inside a 3-step horizon
        changed = opt_vars.copy()
        changed[layout.index("delta", 1)] = 0.4
        changed[layout.index("a", 1)] = -1.0

        np.testing.assert_allclose(_residuals(changed, context), _residuals(opt_vars, context))

    def test_second_step_depends_on_first_actuator(self):
        context = _context(n_steps=3, latency_steps=1)
        layout = context.layout
        opt_vars = _feasible_vector(context, (0.0, 0.0, 0.0, 20.0, 0.0, 0.0), [0.1, 0.0], [0.5, 0.0])
        changed = opt_vars.copy()
        changed[layout.index("delta", 0)] = 0.0

        g = _residuals(changed, context)
        assert g[layout.index("psi", 1)] != pytest.approx(0.0)
        assert g[layout.index("psi", 2)] != pytest.approx(0.0)

    def test_third_step_uses_second_actuator(self):
        context = _context(n_steps=4, latency_steps=1)
        layout = context.layout
        opt_vars = _feasible_vector(
            context, (0.0, 0.0, 0.0, 20.0, 0.0, 0.0), [0.0, 0.2, 0.0], [0.0, 0.0, 0.0]
        )
        changed = opt_vars.copy()
        changed[layout.index("delta", 1)] = 0.0
        g = _residuals(changed, context)
        assert g[layout.index("psi", 2)] == pytest.approx(0.0)
        assert g[layout.index("psi", 3)] != pytest.approx(0.0)

    def test_without_latency_each_step_uses_previous_actuator(self):
        context = _context(n_steps=3, latency_steps=0)
        layout = context.layout
        opt_vars = _feasible_vector(context, (0.0, 0.0, 0.0, 20.0, 0.0, 0.0), [0.1, 0.3], [0.5, 0.0])
        changed = opt_vars.copy()
        changed[layout.index("delta", 1)] = 0.0

        g = _residuals(changed, context)
        assert g[layout.index("psi", 1)] == pytest.approx(0.0)
        assert g[layout.index("psi", 2)] != pytest.approx(0.0)
