"""
Complex arithmetic helpers.

Amplitudes are plain Python ``complex`` (or ``numpy.complex128``) values,
which are immutable, so none of these helpers can mutate an operand.
The named functions exist so the kernel and the kickback detector read
in terms of the operations they perform.
"""

from __future__ import annotations

import math

# Denominators below this are treated as zero by div().
_DIV_EPSILON = 1e-12


def add(a: complex, b: complex) -> complex:
    return complex(a) + complex(b)


def sub(a: complex, b: complex) -> complex:
    return complex(a) - complex(b)


def mul(a: complex, b: complex) -> complex:
    return complex(a) * complex(b)


def conj(a: complex) -> complex:
    return complex(a).conjugate()


def scale(a: complex, s: float) -> complex:
    return complex(a) * float(s)


def magnitude(a: complex) -> float:
    """|a| = sqrt(re² + im²)."""
    a = complex(a)
    return math.hypot(a.real, a.imag)


def phase(a: complex) -> float:
    """Argument of a in (-π, π], via atan2(im, re)."""
    a = complex(a)
    return math.atan2(a.imag, a.real)


def from_polar(r: float, theta: float) -> complex:
    """r·e^(iθ) built from cos/sin."""
    return complex(r * math.cos(theta), r * math.sin(theta))


def div(a: complex, b: complex) -> complex:
    """
    Complex quotient a / b.

    Returns 0 when |b|² is below 1e-12 instead of raising
    ZeroDivisionError.
    """
    a, b = complex(a), complex(b)
    den = b.real * b.real + b.imag * b.imag
    if den < _DIV_EPSILON:
        return 0j
    return complex(
        (a.real * b.real + a.imag * b.imag) / den,
        (a.imag * b.real - a.real * b.imag) / den,
    )


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [-π, π] by whole turns."""
    a = float(angle)
    while a > math.pi:
        a -= 2 * math.pi
    while a < -math.pi:
        a += 2 * math.pi
    return a
