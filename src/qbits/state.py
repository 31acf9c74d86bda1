"""
Single-wire state evolution kernel.

A wire's state is a length-2 complex128 array [α, β]. Every matrix
application re-normalizes, so |α|² + |β|² = 1 holds after each step
regardless of accumulated rounding.

Functions here never modify their inputs; each returns a new array.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np
from numpy import ndarray

from qbits import complexmath as cm
from qbits.gates import GateInstance, Matrix

_SQRT2_INV = 1.0 / np.sqrt(2.0)


class InitialState(enum.Enum):
    """Starting state applied uniformly to every wire."""
    ZERO = "zero"
    ONE = "one"
    PLUS = "plus"

    @classmethod
    def parse(cls, value: str | InitialState | None) -> InitialState:
        """Resolve a mode name; unknown names fall back to ZERO."""
        if isinstance(value, InitialState):
            return value
        if value is None:
            return cls.ZERO
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.ZERO

    @property
    def label(self) -> str:
        return {"zero": "|0⟩", "one": "|1⟩", "plus": "|+⟩"}[self.value]


def zero_state() -> ndarray:
    return np.array([1, 0], dtype=np.complex128)


def initial_state(mode: str | InitialState | None = InitialState.ZERO) -> ndarray:
    """Fresh starting state for the given mode."""
    mode = InitialState.parse(mode)
    if mode is InitialState.ONE:
        return np.array([0, 1], dtype=np.complex128)
    if mode is InitialState.PLUS:
        return np.array([_SQRT2_INV, _SQRT2_INV], dtype=np.complex128)
    return zero_state()


def normalize(state: ndarray) -> ndarray:
    """Scale to unit norm. A zero vector becomes |0⟩."""
    state = np.asarray(state, dtype=np.complex128)
    norm = np.linalg.norm(state)
    if norm == 0:
        return zero_state()
    return state / norm


def apply_matrix(state: ndarray, matrix: Matrix) -> ndarray:
    """Return normalize(M · state)."""
    if matrix is None:
        return np.array(state, dtype=np.complex128)
    m = np.asarray(matrix, dtype=np.complex128)
    return normalize(m @ np.asarray(state, dtype=np.complex128))


def apply_gate(state: ndarray, gate: GateInstance | None) -> ndarray:
    """Apply one gate instance; None (an empty or marker cell) is a no-op."""
    if gate is None:
        return np.array(state, dtype=np.complex128)
    return apply_matrix(state, gate.matrix)


def apply_gates(state: ndarray, gates: Iterable[GateInstance]) -> ndarray:
    """Fold a gate sequence over a starting state."""
    for gate in gates:
        state = apply_gate(state, gate)
    return np.array(state, dtype=np.complex128)


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BlochCoordinates:
    """Point on the Bloch sphere plus its polar/azimuthal angles."""
    x: float
    y: float
    z: float
    theta: float
    phi: float

    def close_to(self, other: BlochCoordinates, tol: float) -> bool:
        """Per-axis comparison, strict < tol on each of x, y, z."""
        return (
            abs(self.x - other.x) < tol
            and abs(self.y - other.y) < tol
            and abs(self.z - other.z) < tol
        )

    def distance(self, other: BlochCoordinates) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "theta": self.theta, "phi": self.phi}


def bloch_coordinates(state: ndarray) -> BlochCoordinates:
    """
    Project a state onto the Bloch sphere.

    θ = 2·acos(sqrt(|α|²)), φ = phase(β) - phase(α).
    φ is not wrapped, matching what renderers interpolate from.
    """
    alpha, beta = state[0], state[1]
    prob0 = float(np.abs(alpha) ** 2)
    theta = 2 * math.acos(math.sqrt(max(0.0, min(1.0, prob0))))
    phi = cm.phase(beta) - cm.phase(alpha)
    return BlochCoordinates(
        x=math.sin(theta) * math.cos(phi),
        y=math.sin(theta) * math.sin(phi),
        z=math.cos(theta),
        theta=theta,
        phi=phi,
    )


@dataclass(frozen=True)
class BasisProbabilities:
    p0: float
    p1: float


def basis_probabilities(state: ndarray) -> BasisProbabilities:
    """Computational-basis measurement probabilities (|α|², |β|²)."""
    probs = np.abs(np.asarray(state)) ** 2
    return BasisProbabilities(p0=float(probs[0]), p1=float(probs[1]))


def state_to_list(state: ndarray) -> list[list[float]]:
    """[[re, im], [re, im]] for JSON output."""
    return [[float(c.real), float(c.imag)] for c in np.asarray(state)]


def state_from_list(data) -> ndarray:
    """Inverse of state_to_list(); plain numbers are taken as real parts."""
    out = []
    for item in data:
        if isinstance(item, dict):
            out.append(complex(item.get("re", 0.0), item.get("im", 0.0)))
        elif isinstance(item, (list, tuple)):
            re = item[0] if len(item) > 0 else 0.0
            im = item[1] if len(item) > 1 else 0.0
            out.append(complex(re, im))
        else:
            out.append(complex(item))
    if len(out) != 2:
        raise ValueError(f"A wire state needs exactly 2 amplitudes, got {len(out)}")
    return np.array(out, dtype=np.complex128)
