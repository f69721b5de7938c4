import math

import pytest

from daqpy.control import energy, lqr_voltage, swing_up_voltage


def test_energy_zero_when_upright_at_rest():
    assert energy(0.0, 0.0) == pytest.approx(0.0)


def test_energy_hanging_down():
    assert energy(math.pi, 0.0) == pytest.approx(-2.0)


def test_energy_grows_with_speed():
    assert energy(0.3, 2.0) > energy(0.3, 1.0)


def test_swing_up_zero_without_motion():
    assert swing_up_voltage(2.0, 0.0) == 0.0


@pytest.mark.parametrize("theta,theta_dot", [(2.5, 1.0), (-2.0, 3.0), (0.7, 0.5)])
def test_swing_up_is_odd_in_velocity(theta, theta_dot):
    assert swing_up_voltage(theta, -theta_dot) == pytest.approx(
        -swing_up_voltage(theta, theta_dot)
    )


def test_swing_up_sign_follows_energy():
    theta, theta_dot = 0.2, 1.0
    assert energy(theta, theta_dot) < 0
    assert swing_up_voltage(theta, theta_dot) < 0


def test_lqr_zero_at_equilibrium():
    assert lqr_voltage(0.0, 0.0, 0.0, 0.0, 0.0) == 0.0


def test_lqr_joystick_shifts_reference():
    shifted = lqr_voltage(0.3 + 3 * 0.2, 0.1, 0.05, -0.2, 0.2)
    plain = lqr_voltage(0.3, 0.1, 0.05, -0.2, 0.0)
    assert shifted == pytest.approx(plain)


def test_lqr_is_linear():
    a = lqr_voltage(0.1, 0.2, 0.3, 0.4)
    b = lqr_voltage(0.2, 0.4, 0.6, 0.8)
    assert b == pytest.approx(2 * a)