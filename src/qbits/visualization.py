"""
Text rendering for circuits, states and branches.

Features:
- ASCII circuit diagrams with control markers and barriers
- Ket notation for single-wire states
- Angle formatting and parsing in pi notation
- Bar charts for joint probabilities and per-wire branches
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING, Sequence

from numpy import ndarray

from qbits.circuit import CellKind, Circuit

if TYPE_CHECKING:
    from qbits.engine import Branch
    from qbits.probabilities import JointOutcome

_ANGLE_EPS = 0.001
_AMPLITUDE_EPS = 0.001

_NAMED_ANGLES = (
    (0.0, "0"),
    (math.pi, "π"),
    (-math.pi, "-π"),
    (math.pi / 2, "π/2"),
    (-math.pi / 2, "-π/2"),
    (math.pi / 4, "π/4"),
    (-math.pi / 4, "-π/4"),
)

_PI_DIV = re.compile(r"^(-?)pi\s*/\s*(\d+)$")
_PI_MUL = re.compile(r"^(-?\d*\.?\d*)\s*\*?\s*pi$")


# ---------------------------------------------------------------------------
# Angles
# ---------------------------------------------------------------------------

def format_angle(rad: float, digits: int = 2) -> str:
    """Short label for an angle: named multiples of π, else fixed-point."""
    for value, label in _NAMED_ANGLES:
        if abs(rad - value) < _ANGLE_EPS:
            return label
    return f"{rad:.{digits}f}"


def parse_angle(text: str | float | int) -> float:
    """
    Read an angle typed in pi notation.

    Accepts "pi", "-π", "pi/4", "-pi / 2", "2pi", "0.5*pi", "-pi" and
    plain numbers. Anything unparseable reads as 0.

    Examples
    --------
    >>> parse_angle("pi/2") == math.pi / 2
    True
    >>> parse_angle("abc")
    0.0
    """
    if isinstance(text, (int, float)):
        return float(text)
    s = str(text).strip().lower().replace("π", "pi")
    if s == "pi":
        return math.pi
    if s == "-pi":
        return -math.pi

    m = _PI_DIV.match(s)
    if m:
        sign = -1 if m.group(1) == "-" else 1
        denominator = int(m.group(2))
        return sign * math.pi / denominator if denominator else 0.0

    m = _PI_MUL.match(s)
    if m:
        factor = m.group(1)
        if factor in ("", "-"):
            return -math.pi if factor == "-" else math.pi
        try:
            return float(factor) * math.pi
        except ValueError:
            return 0.0

    try:
        value = float(s)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

def _format_amplitude(c: complex) -> str:
    re_, im = float(c.real), float(c.imag)
    if abs(re_) < _AMPLITUDE_EPS and abs(im) < _AMPLITUDE_EPS:
        return "0"
    if abs(im) < _AMPLITUDE_EPS:
        return f"{re_:.3f}"
    if abs(re_) < _AMPLITUDE_EPS:
        return f"{'-' if im < 0 else ''}{abs(im):.3f}i"
    sign = "+" if im >= 0 else "-"
    return f"({re_:.3f}{sign}{abs(im):.3f}i)"


def format_state(state: ndarray) -> str:
    """
    Ket notation for a wire state, e.g. "0.707|0⟩ + 0.707|1⟩".

    Amplitudes below 0.001 are left out; complex ones print as (re±imi).
    """
    alpha = _format_amplitude(state[0])
    beta = _format_amplitude(state[1])

    text = ""
    if alpha != "0":
        text = f"{alpha}|0⟩"
    if beta != "0":
        if text:
            text += " " if beta.startswith("-") else " + "
        text += f"{beta}|1⟩"
    return text or "0"


# ---------------------------------------------------------------------------
# Circuits
# ---------------------------------------------------------------------------

def draw_circuit(circuit: Circuit) -> str:
    """
    Draw a circuit as ASCII art.

    Example output::

        q0: ──[H]──●────░─────
                   │    ░
        q1: ──[X]──[Z]──░─────
    """
    if circuit.num_gates == 0 and not circuit.num_barriers:
        return "Empty circuit"

    barriers = set(circuit.sorted_barriers)
    last = max(circuit.max_slot, max(barriers, default=0))
    width = 5

    lines = []
    for wire in range(circuit.n_wires):
        wire_line = f"q{wire}: "
        gap_line = " " * len(wire_line)
        for slot in range(last + 1):
            if slot in barriers:
                wire_line += " ░ "
                gap_line += " ░ "
            cell = circuit.cell(wire, slot)
            placement = cell.placement
            if cell.kind is CellKind.GATE:
                wire_line += f"[{placement.gate.label}]".center(width, "─")
            elif cell.kind is CellKind.CONTROL:
                wire_line += "●".center(width, "─")
            else:
                wire_line += "─" * width
            gap_line += ("│" if _spans_below(circuit, wire, slot) else " ").center(width)
        wire_line += "───"
        lines.append(wire_line)
        if wire < circuit.n_wires - 1:
            lines.append(gap_line.rstrip())
    return "\n".join(lines)


def _spans_below(circuit: Circuit, wire: int, slot: int) -> bool:
    """True when a control edge in ``slot`` crosses the gap under ``wire``."""
    for p in circuit.placements:
        if p.slot != slot or p.control is None:
            continue
        low, high = sorted((p.wire, p.control))
        if low <= wire < high:
            return True
    return False


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

def probabilities_ascii(outcomes: Sequence[JointOutcome], threshold: float = 0.001) -> str:
    """Joint probabilities as a bar chart."""
    lines = ["Probabilities:", "─" * 50]
    for outcome in outcomes:
        if outcome.probability <= threshold:
            continue
        bar = "█" * int(outcome.probability * 40)
        lines.append(f"|{outcome.basis}⟩: {bar:40s} {outcome.probability * 100:5.1f}%")
    return "\n".join(lines)


def branches_ascii(branches: Sequence[Branch], wire: int | None = None) -> str:
    """One line per branch: probability, ket and Bloch angles."""
    title = "Branches:" if wire is None else f"q{wire} branches:"
    lines = [title]
    for branch in branches:
        b = branch.bloch
        lines.append(
            f"  {branch.probability * 100:5.1f}%  {format_state(branch.state):<28s}"
            f" θ={format_angle(b.theta)} φ={format_angle(b.phi)}"
        )
    return "\n".join(lines)
