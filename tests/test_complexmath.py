"""Tests for the complex arithmetic helpers."""

import math

import numpy as np
import pytest

from qbits import complexmath as cm


def test_basic_arithmetic():
    a, b = 1 + 2j, 3 - 1j
    assert cm.add(a, b) == 4 + 1j
    assert cm.sub(a, b) == -2 + 3j
    assert cm.mul(a, b) == (1 + 2j) * (3 - 1j)
    assert cm.conj(a) == 1 - 2j
    assert cm.scale(a, 2) == 2 + 4j


def test_accepts_numpy_scalars():
    a = np.complex128(0.5 + 0.5j)
    assert cm.magnitude(a) == pytest.approx(math.sqrt(0.5))
    assert isinstance(cm.mul(a, a), complex)


@pytest.mark.parametrize("value,expected", [
    (1 + 0j, 0.0),
    (1j, math.pi / 2),
    (-1 + 0j, math.pi),
    (-1j, -math.pi / 2),
    (0j, 0.0),
])
def test_phase(value, expected):
    assert cm.phase(value) == pytest.approx(expected)


def test_from_polar():
    z = cm.from_polar(2.0, math.pi / 2)
    assert z.real == pytest.approx(0.0, abs=1e-12)
    assert z.imag == pytest.approx(2.0)


def test_div():
    assert cm.div(2 + 2j, 1 + 1j) == pytest.approx(2 + 0j)


def test_div_by_zero_returns_zero():
    assert cm.div(1 + 1j, 0j) == 0
    assert cm.div(1 + 1j, 1e-13) == 0


@pytest.mark.parametrize("angle,expected", [
    (0.0, 0.0),
    (3 * math.pi + 0.5, -math.pi + 0.5),
    (-3 * math.pi - 0.5, math.pi - 0.5),
    (2.5 * math.pi, 0.5 * math.pi),
    (-2.5 * math.pi, -0.5 * math.pi),
    (7 * math.pi / 4, -math.pi / 4),
])
def test_normalize_angle(angle, expected):
    assert cm.normalize_angle(angle) == pytest.approx(expected)


def test_normalize_angle_range():
    for angle in np.linspace(-20, 20, 81):
        wrapped = cm.normalize_angle(angle)
        assert -math.pi <= wrapped <= math.pi
        assert math.cos(wrapped) == pytest.approx(math.cos(angle))
