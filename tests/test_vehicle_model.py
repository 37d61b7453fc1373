"""
Tests for control/vehicle_model.py.
"""

import math

import numpy as np
import pytest

from control.vehicle_model import KinematicBicycleModel


def test_straight_motion():
    model = KinematicBicycleModel()
    x, y, heading, v = model.update(0.0, 0.0, 0.0, 10.0, 0.0, 0.0, dt=0.1)
    assert (x, y, heading, v) == pytest.approx((1.0, 0.0, 0.0, 10.0))


def test_positive_steering_turns_right():
    model = KinematicBicycleModel(lf=2.67)
    _, _, heading, _ = model.update(0.0, 0.0, 0.0, 10.0, 0.2, 0.0, dt=0.1)
    assert heading == pytest.approx(-10.0 / 2.67 * 0.2 * 0.1)


def test_commands_are_clamped():
    model = KinematicBicycleModel(lf=2.0, max_steering_angle=0.1, max_accel=1.0)
    _, _, heading, v = model.update(0.0, 0.0, 0.0, 10.0, 1.0, 5.0, dt=0.1)
    assert heading == pytest.approx(-10.0 / 2.0 * 0.1 * 0.1)
    assert v == pytest.approx(10.1)


def test_turn_radius():
    model = KinematicBicycleModel(lf=2.67)
    assert model.compute_turn_radius(0.0) == float('inf')
    assert model.compute_turn_radius(0.1) == pytest.approx(26.7)
    assert model.compute_turn_radius(-0.1) == pytest.approx(26.7)


def test_rollout_shape_and_initial_state():
    model = KinematicBicycleModel()
    state = [0.0, 0.5, 0.0, 20.0, -0.5, 0.0]
    states = model.rollout(state, [0.0] * 5, [0.0] * 5, [0.0] * 4, dt=0.1)
    assert states.shape == (6, 6)
    np.testing.assert_allclose(states[0], state)
    np.testing.assert_allclose(states[1:, 0], [2.0, 4.0, 6.0, 8.0, 10.0])
    # Error states are recomputed from the path
    np.testing.assert_allclose(states[1:, 4], -0.5)


def test_rollout_applies_latency():
    model = KinematicBicycleModel(lf=2.0)
    state = [0.0, 0.0, 0.0, 10.0, 0.0, 0.0]
    states = model.rollout(state, [0.1, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0] * 4, dt=0.1, latency_steps=1)
    step = 10.0 / 2.0 * 0.1 * 0.1
    # First command acts over the first two transitions
    np.testing.assert_allclose(states[:, 2], [0.0, -step, -2 * step, -2 * step])

    states = model.rollout(state, [0.1, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0] * 4, dt=0.1, latency_steps=0)
    np.testing.assert_allclose(states[:, 2], [0.0, -step, -step, -step])


def test_rollout_heading_error_follows_curved_path():
    model = KinematicBicycleModel()
    coeffs = [0.0, 0.5, 0.0, 0.0]
    states = model.rollout([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], [0.0], [0.0], coeffs, dt=0.1)
    assert states[1, 5] == pytest.approx(-math.atan(0.5))


def test_rollout_requires_matching_lengths():
    model = KinematicBicycleModel()
    with pytest.raises(ValueError):
        model.rollout([0.0] * 6, [0.0, 0.0], [0.0], [0.0] * 4, dt=0.1)
