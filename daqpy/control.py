"""Energy-based swing-up and LQR stabilization of a rotary pendulum."""

from __future__ import annotations

import math

# Arm
ARM_MASS = 0.095  # kg
ARM_LENGTH = 0.085  # m
MOTOR_RESISTANCE = 8.4  # ohm
TORQUE_CONSTANT = 0.042  # N m / A

# Pendulum
PENDULUM_MASS = 0.024  # kg
PENDULUM_LENGTH = 0.129  # m
PENDULUM_INERTIA = 3.3282e-5  # kg m^2 about the pivot
GRAVITY = 9.82

U_TO_VOLT = ARM_MASS * ARM_LENGTH * MOTOR_RESISTANCE / TORQUE_CONSTANT

# Gains of the state feedback; the joystick shifts the arm reference.
_LQR_GAINS = (-1.39509209, -1.2058144, 31.23476634, 2.73290132)
_JOYSTICK_GAIN = 3.0


def energy(theta: float, theta_dot: float) -> float:
    """Normalized pendulum energy; zero when upright and at rest."""
    return PENDULUM_LENGTH * theta_dot * theta_dot / (6 * GRAVITY) + math.cos(theta) - 1


def swing_up_voltage(theta: float, theta_dot: float) -> float:
    """Motor voltage that pumps energy into (or out of) the pendulum."""
    product = math.cos(theta) * theta_dot
    sign = (product > 0) - (product < 0)
    return energy(theta, theta_dot) * sign * U_TO_VOLT


def lqr_voltage(
    theta_1: float,
    theta_1_dot: float,
    theta_2: float,
    theta_2_dot: float,
    joystick_input: float = 0.0,
) -> float:
    """Stabilizing voltage from linear state feedback around the upright pose."""
    k1, k2, k3, k4 = _LQR_GAINS
    return (
        k1 * (theta_1 - joystick_input * _JOYSTICK_GAIN)
        + k2 * theta_1_dot
        + k3 * theta_2
        + k4 * theta_2_dot
    )