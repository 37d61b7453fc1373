"""
Vehicle dynamics model (kinematic bicycle model).
Same discretization as the MPC constraints; used for simulation and checking predictions.
"""

import numpy as np
from typing import Sequence, Tuple

from control.mpc_dynamics import predict_step


class KinematicBicycleModel:
    """
    Kinematic bicycle model for vehicle dynamics.
    Single-track, no tire slip; heading rate is v / Lf * steering.
    """

    def __init__(self, lf: float = 2.67, max_steering_angle: float = 0.436332,
                 max_accel: float = 1.0):
        """
        Initialize bicycle model.

        Args:
            lf: Front axle to CoG distance (meters)
            max_steering_angle: Maximum steering angle (radians)
            max_accel: Maximum normalized acceleration magnitude
        """
        self.lf = lf
        self.max_steering_angle = max_steering_angle
        self.max_accel = max_accel

    def update(self, x: float, y: float, heading: float, velocity: float,
               steering_angle: float, accel: float, dt: float) -> Tuple[float, float, float, float]:
        """
        Update vehicle pose and speed.

        Args:
            x: Current x position
            y: Current y position
            heading: Current heading (radians)
            velocity: Current velocity
            steering_angle: Steering angle (radians, clamped, positive turns right)
            accel: Normalized acceleration (clamped)
            dt: Time step (seconds)

        Returns:
            New (x, y, heading, velocity)
        """
        steering_angle = float(np.clip(steering_angle, -self.max_steering_angle, self.max_steering_angle))
        accel = float(np.clip(accel, -self.max_accel, self.max_accel))

        new_x = x + velocity * np.cos(heading) * dt
        new_y = y + velocity * np.sin(heading) * dt
        new_heading = heading - velocity / self.lf * steering_angle * dt
        new_velocity = velocity + accel * dt

        return float(new_x), float(new_y), float(new_heading), float(new_velocity)

    def compute_turn_radius(self, steering_angle: float) -> float:
        """
        Compute turning radius from steering angle.

        Args:
            steering_angle: Steering angle (radians)

        Returns:
            Turning radius (meters), inf when driving straight
        """
        if abs(steering_angle) < 1e-6:
            return float('inf')

        return self.lf / abs(steering_angle)

    def rollout(self, state: Sequence[float], steering: Sequence[float], accel: Sequence[float],
                coeffs: Sequence[float], dt: float, latency_steps: int = 1) -> np.ndarray:
        """
        Predict states (including cte/epsi) for an actuator sequence.

        Uses the same latency rule as the MPC: the transition into step t is
        driven by the command at max(t - 1 - latency_steps, 0).

        Args:
            state: Initial (x, y, psi, v, cte, epsi)
            steering: Steering commands, one per transition
            accel: Acceleration commands, one per transition
            coeffs: Reference polynomial coefficients
            dt: Time step (seconds)
            latency_steps: Actuation delay in steps

        Returns:
            Array of shape (len(steering) + 1, 6)
        """
        if len(steering) != len(accel):
            raise ValueError("steering and accel must have the same length")

        states = [tuple(float(v) for v in state)]
        for t in range(1, len(steering) + 1):
            k = max(t - 1 - latency_steps, 0)
            delta = float(np.clip(steering[k], -self.max_steering_angle, self.max_steering_angle))
            a = float(np.clip(accel[k], -self.max_accel, self.max_accel))
            predicted = predict_step(states[-1], delta, a, coeffs, dt, self.lf)
            states.append(tuple(float(v) for v in predicted))

        return np.array(states)
