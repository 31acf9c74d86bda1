"""
Ready-made demonstration circuits.

Each preset builds a fresh Circuit so callers may edit the result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from qbits.circuit import Circuit
from qbits.state import InitialState


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    initial: InitialState
    builder: Callable[[], Circuit]

    def build(self) -> Circuit:
        return self.builder()

    def to_dict(self) -> dict:
        data = self.build().to_dict()
        data.update(
            name=self.name,
            description=self.description,
            initial_state=self.initial.value,
        )
        return data


def _superposition() -> Circuit:
    return Circuit(1, name="superposition").h(0)


def _cz_kickback() -> Circuit:
    # Control in |+⟩, target in |1⟩: CZ flips the control to |−⟩.
    return Circuit(2, name="cz_kickback").h(0).x(1).barrier().cz(0, 1)


def _cs_kickback() -> Circuit:
    return Circuit(2, name="cs_kickback").h(0).x(1).barrier().cs(0, 1)


def _cnot_minus() -> Circuit:
    # Target |−⟩ is an eigenstate of X with eigenvalue -1.
    return (
        Circuit(2, name="cnot_minus")
        .h(0).x(1).h(1)
        .barrier()
        .cx(0, 1)
        .barrier()
        .h(0)
    )


def _multi_control() -> Circuit:
    qc = Circuit(4, name="multi_control")
    for wire in range(3):
        qc.h(wire)
    qc.barrier()
    qc.cx(0, 3).cx(1, 3).cx(2, 3)
    return qc


def _walkthrough() -> Circuit:
    return (
        Circuit(2, name="walkthrough")
        .h(0)
        .barrier()
        .u(math.pi / 2, 0.0, math.pi / 4, 1)
        .barrier()
        .ct(0, 1)
        .barrier()
        .s(0)
    )


PRESETS: dict[str, Preset] = {
    "superposition": Preset(
        "Superposition", "Hadamard on |0⟩ gives |+⟩",
        InitialState.ZERO, _superposition,
    ),
    "cz_kickback": Preset(
        "CZ Phase Kickback", "CZ with target |1⟩ turns control |+⟩ into |−⟩",
        InitialState.ZERO, _cz_kickback,
    ),
    "cs_kickback": Preset(
        "CS Phase Kickback", "Controlled-S kicks a π/2 phase onto the control",
        InitialState.ZERO, _cs_kickback,
    ),
    "cnot_minus": Preset(
        "CNOT on |−⟩", "Target |−⟩ is an X eigenstate; the control picks up π",
        InitialState.ZERO, _cnot_minus,
    ),
    "multi_control": Preset(
        "Multi-Control Fan-in", "Three controls in |+⟩ acting on one target",
        InitialState.ZERO, _multi_control,
    ),
    "walkthrough": Preset(
        "Barrier Walkthrough", "Four frames mixing fixed, universal and controlled gates",
        InitialState.ZERO, _walkthrough,
    ),
}


def get_preset(key: str) -> Circuit:
    """
    Build the preset circuit registered under ``key``.

    Raises
    ------
    KeyError
        If no preset has that key.
    """
    try:
        preset = PRESETS[key]
    except KeyError:
        raise KeyError(f"Unknown preset '{key}'. Available: {sorted(PRESETS)}") from None
    return preset.build()
