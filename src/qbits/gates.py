"""
Single-qubit gate catalog.

Every gate is a 2x2 unitary numpy array and also carries a canonical
(theta, phi, lambda) decomposition in the U family:

    U(θ, φ, λ) = [[cos(θ/2),          -e^(iλ) sin(θ/2)],
                  [e^(iφ) sin(θ/2),   e^(i(φ+λ)) cos(θ/2)]]

Gate kinds form a closed enumeration:
    - Fixed: I, X, Y, Z, H, S, T
    - Universal: U (decomposition is user-editable)
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field

import numpy as np
from numpy import ndarray

from qbits import complexmath as cm

# Type alias
Matrix = ndarray

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_SQRT2_INV = 1.0 / np.sqrt(2.0)

# Angle magnitudes at or below this count as "no rotation".
ANGLE_TOLERANCE = 0.01

# |a| or |c| below this selects a degenerate branch in extract_decomposition.
_DEGENERATE_EPS = 1e-4

# ---------------------------------------------------------------------------
# Literal matrices
# ---------------------------------------------------------------------------

I = np.eye(2, dtype=np.complex128)
"""Identity gate."""

X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
"""Pauli-X (NOT) gate."""

Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
"""Pauli-Y gate."""

Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
"""Pauli-Z gate."""

H = np.array([[1, 1], [1, -1]], dtype=np.complex128) * _SQRT2_INV
"""Hadamard gate."""

S = np.array([[1, 0], [0, 1j]], dtype=np.complex128)
"""S (phase) gate: sqrt(Z)."""

T = np.array([[1, 0], [0, np.exp(1j * np.pi / 4)]], dtype=np.complex128)
"""T gate: sqrt(S)."""


def build_u(theta: float, phi: float, lam: float) -> Matrix:
    """
    Universal single-qubit gate U(θ, φ, λ).

    The result is unitary for every real angle triple.
    """
    c = np.cos(theta / 2)
    s = np.sin(theta / 2)
    return np.array(
        [
            [c, -np.exp(1j * lam) * s],
            [np.exp(1j * phi) * s, np.exp(1j * (phi + lam)) * c],
        ],
        dtype=np.complex128,
    )


def is_unitary(m: Matrix, tol: float = 1e-9) -> bool:
    product = m @ m.conj().T
    return bool(np.allclose(product, np.eye(len(m)), atol=tol))


# ---------------------------------------------------------------------------
# Decomposition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Decomposition:
    """Angles (radians) of a gate in the U family."""
    theta: float = 0.0
    phi: float = 0.0
    lam: float = 0.0

    def matrix(self) -> Matrix:
        return build_u(self.theta, self.phi, self.lam)

    def is_trivial(self, tol: float = ANGLE_TOLERANCE) -> bool:
        """True when every angle is within tol of zero."""
        return (
            abs(self.theta) <= tol and abs(self.phi) <= tol and abs(self.lam) <= tol
        )

    def to_dict(self) -> dict[str, float]:
        return {"theta": self.theta, "phi": self.phi, "lambda": self.lam}

    @classmethod
    def from_dict(cls, data: dict) -> Decomposition:
        return cls(
            theta=float(data.get("theta", 0.0) or 0.0),
            phi=float(data.get("phi", 0.0) or 0.0),
            lam=float(data.get("lambda", data.get("lam", 0.0)) or 0.0),
        )


def extract_decomposition(matrix: Matrix) -> Decomposition:
    """
    Recover (θ, φ, λ) from a matrix produced by build_u().

    Inverse ZYZ extraction with two degenerate branches:
        |a| ≈ 0  ->  θ = π, angles from the phases of c and b
        |c| ≈ 0  ->  θ = 0, φ = λ = (phase(d) - phase(a)) / 2

    Only matrices from build_u() are inverted exactly (up to the
    φ/λ ambiguity at θ = 0 or π). Arbitrary unitaries carrying a
    global phase are not.
    """
    (a, b), (c, d) = matrix[0], matrix[1]
    a_mag = cm.magnitude(a)
    c_mag = cm.magnitude(c)

    if a_mag < _DEGENERATE_EPS:
        return Decomposition(theta=math.pi, phi=cm.phase(c), lam=cm.phase(-b))

    if c_mag < _DEGENERATE_EPS:
        half = (cm.phase(d) - cm.phase(a)) / 2
        return Decomposition(theta=0.0, phi=half, lam=half)

    theta = 2 * math.acos(min(1.0, max(0.0, a_mag)))
    return Decomposition(theta=theta, phi=cm.phase(c), lam=cm.phase(-b))


# ---------------------------------------------------------------------------
# Gate kinds and catalog
# ---------------------------------------------------------------------------

class GateKind(enum.Enum):
    """Closed set of gates that can be placed on a wire."""
    I = "I"
    X = "X"
    Y = "Y"
    Z = "Z"
    H = "H"
    S = "S"
    T = "T"
    U = "U"

    @classmethod
    def parse(cls, name: str | GateKind) -> GateKind:
        """Look up a kind by name (case-insensitive)."""
        if isinstance(name, GateKind):
            return name
        key = str(name).strip().upper()
        try:
            return cls(key)
        except ValueError:
            raise KeyError(
                f"Unknown gate: '{name}'. Available: {[k.value for k in cls]}"
            ) from None


@dataclass(frozen=True, eq=False)
class GateInfo:
    """Static description of a gate kind."""
    kind: GateKind
    label: str
    description: str
    color: str
    matrix: Matrix
    decomposition: Decomposition
    editable: bool = False
    animation_duration: float | None = 1.0

    def to_dict(self) -> dict:
        return {
            "name": self.kind.value,
            "label": self.label,
            "description": self.description,
            "color": self.color,
            "editable": self.editable,
            "animation_duration": self.animation_duration,
            "decomposition": self.decomposition.to_dict(),
        }


GATE_CATALOG: dict[GateKind, GateInfo] = {
    GateKind.I: GateInfo(
        GateKind.I, "I", "Identity - does nothing", "#8EFFE2",
        I, Decomposition(0.0, 0.0, 0.0), animation_duration=0.0,
    ),
    GateKind.X: GateInfo(
        GateKind.X, "X", "Pauli-X (NOT) - π rotation around X axis", "#8EFFE2",
        X, Decomposition(math.pi, 0.0, math.pi),
    ),
    GateKind.Y: GateInfo(
        GateKind.Y, "Y", "Pauli-Y - π rotation around Y axis", "#B08CFF",
        Y, Decomposition(math.pi, math.pi / 2, math.pi / 2),
    ),
    GateKind.Z: GateInfo(
        GateKind.Z, "Z", "Pauli-Z - π rotation around Z axis (phase flip)", "#4DBAF5",
        Z, Decomposition(0.0, 0.0, math.pi),
    ),
    GateKind.H: GateInfo(
        GateKind.H, "H", "Hadamard - creates superposition", "#FE2048",
        H, Decomposition(math.pi / 2, 0.0, math.pi),
    ),
    GateKind.S: GateInfo(
        GateKind.S, "S", "S gate - π/2 rotation around Z axis", "#4DBAF5",
        S, Decomposition(0.0, 0.0, math.pi / 2), animation_duration=0.5,
    ),
    GateKind.T: GateInfo(
        GateKind.T, "T", "T gate - π/4 rotation around Z axis", "#4DBAF5",
        T, Decomposition(0.0, 0.0, math.pi / 4), animation_duration=0.25,
    ),
    GateKind.U: GateInfo(
        GateKind.U, "U", "Universal gate - U(θ, φ, λ)", "#FFD80D",
        I, Decomposition(0.0, 0.0, 0.0), editable=True, animation_duration=None,
    ),
}

_missing = set(GateKind) - set(GATE_CATALOG)
if _missing:
    raise RuntimeError(f"Gate catalog is missing entries for {sorted(k.value for k in _missing)}")


# ---------------------------------------------------------------------------
# Gate instances
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class GateInstance:
    """
    A concrete gate: kind, matrix and decomposition.

    ``virtual`` marks phase gates synthesized for kickback bookkeeping;
    they never come from the editor.
    """
    kind: GateKind
    matrix: Matrix
    decomposition: Decomposition = field(default_factory=Decomposition)
    virtual: bool = False

    @property
    def info(self) -> GateInfo:
        return GATE_CATALOG[self.kind]

    @property
    def label(self) -> str:
        return self.info.label

    def with_decomposition(self, decomposition: Decomposition) -> GateInstance:
        """Return a copy whose matrix is regenerated from new angles."""
        return GateInstance(
            kind=self.kind,
            matrix=decomposition.matrix(),
            decomposition=decomposition,
            virtual=self.virtual,
        )

    def same_as(self, other: GateInstance, tol: float = 1e-9) -> bool:
        return (
            self.kind is other.kind
            and self.virtual == other.virtual
            and np.allclose(self.matrix, other.matrix, atol=tol)
        )

    def to_dict(self) -> dict:
        return {"gate": self.kind.value, "decomposition": self.decomposition.to_dict()}

    def __repr__(self) -> str:
        d = self.decomposition
        tag = ", virtual" if self.virtual else ""
        return f"GateInstance({self.kind.value}, θ={d.theta:.3f}, φ={d.phi:.3f}, λ={d.lam:.3f}{tag})"


def instantiate(
    kind: GateKind | str, decomposition: Decomposition | None = None
) -> GateInstance:
    """
    Create a gate instance.

    Parameters
    ----------
    kind : GateKind or str
        Gate kind (names are case-insensitive).
    decomposition : Decomposition, optional
        Explicit angles. When given, or when kind is U, the matrix is
        rebuilt with build_u(); otherwise the catalog's literal matrix is
        copied so fixed gates carry no rounding from the trigonometry.

    Raises
    ------
    KeyError
        If the gate name is not in the catalog.
    """
    kind = GateKind.parse(kind)
    info = GATE_CATALOG[kind]
    decomp = decomposition if decomposition is not None else info.decomposition
    if decomposition is not None or kind is GateKind.U:
        matrix = decomp.matrix()
    else:
        matrix = info.matrix.copy()
    return GateInstance(kind=kind, matrix=matrix, decomposition=decomp)


def phase_gate(phase: float) -> GateInstance:
    """Virtual global-phase gate U(0, 0, phase) used for kickback."""
    decomp = Decomposition(0.0, 0.0, float(phase))
    return GateInstance(
        kind=GateKind.U, matrix=decomp.matrix(), decomposition=decomp, virtual=True
    )


def has_kickback_potential(gate: GateInstance | None, tol: float = ANGLE_TOLERANCE) -> bool:
    """
    True when a controlled copy of ``gate`` can produce visible kickback.

    Only phase-only gates qualify: Z, S and T always, U when θ ≈ 0 and
    the relative phase φ + λ is not ≈ 0.
    """
    if gate is None:
        return False
    kind = gate.kind
    if kind in (GateKind.Z, GateKind.S, GateKind.T):
        return True
    if kind in (GateKind.I, GateKind.X, GateKind.Y, GateKind.H):
        return False
    if kind is GateKind.U:
        d = gate.decomposition
        if abs(d.theta) > tol:
            return False
        return abs(cm.normalize_angle(d.phi + d.lam)) > tol
    raise ValueError(f"Unhandled gate kind {kind!r}")
