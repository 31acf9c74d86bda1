"""
Eigenphase detection for phase kickback.

When a controlled gate U acts on a target wire that is in an eigenstate
of U, U|ψ⟩ = e^(iφ)|ψ⟩ and the phase φ lands on the control wire's |1⟩
component instead. kickback_phase() decides, from the target's state
just before the gate, whether that is the case and returns φ.
"""

from __future__ import annotations

import numpy as np
from numpy import ndarray

from qbits import complexmath as cm
from qbits.gates import GateInstance, phase_gate
from qbits.state import apply_matrix, zero_state

DEFAULT_TOLERANCE = 0.01


def kickback_phase(
    gate: GateInstance | None,
    state_before: ndarray | None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> float | None:
    """
    Eigenphase of ``gate`` on ``state_before``, or None.

    Parameters
    ----------
    gate : GateInstance
        The controlled gate sitting on the target wire.
    state_before : ndarray, optional
        Target wire state immediately before the gate. Defaults to |0⟩.
    tolerance : float
        Amplitude tolerance τ. The eigenstate check allows 2τ of absolute
        complex distance per amplitude.

    Returns
    -------
    float or None
        Phase in (-π, π], snapped to 0 when |phase| ≤ τ. None when the
        state is not (to tolerance) an eigenstate of the gate matrix.
    """
    if gate is None or gate.matrix is None:
        return None

    state = zero_state() if state_before is None else np.asarray(state_before)
    evolved = apply_matrix(state, gate.matrix)

    reference = next(
        (i for i, amp in enumerate(state) if cm.magnitude(amp) > tolerance), None
    )
    if reference is None:
        return None

    ratio = cm.div(evolved[reference], state[reference])
    ratio_mag = cm.magnitude(ratio)
    if ratio_mag <= tolerance:
        return None

    unit = cm.scale(ratio, 1 / ratio_mag)
    for amp_after, amp_before in zip(evolved, state):
        expected = cm.mul(unit, amp_before)
        if cm.magnitude(cm.sub(amp_after, expected)) > tolerance * 2:
            return None

    phase = cm.normalize_angle(cm.phase(unit))
    return phase if abs(phase) > tolerance else 0.0


def has_kickback(
    gate: GateInstance | None,
    state_before: ndarray | None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    """True when the gate kicks a non-zero phase back onto its control."""
    phase = kickback_phase(gate, state_before, tolerance)
    return phase is not None and abs(phase) > tolerance


def kickback_gate(
    gate: GateInstance | None,
    state_before: ndarray | None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> GateInstance | None:
    """Virtual U(0, 0, φ) for the control wire, or None if φ is 0 or undefined."""
    phase = kickback_phase(gate, state_before, tolerance)
    if phase is None or abs(phase) <= tolerance:
        return None
    return phase_gate(phase)
