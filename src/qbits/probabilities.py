"""
Joint measurement distribution over all wires.

Wires are treated as independent: the probability of a basis string is
the product of each wire's own |0⟩/|1⟩ probability. This is a product
state approximation, not a measurement of an entangled joint state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from numpy import ndarray

from qbits.state import basis_probabilities

# Entries at or below this are dropped when include_zero is False.
DEFAULT_THRESHOLD = 0.001


@dataclass(frozen=True)
class JointOutcome:
    """One basis string (wire 0 leftmost) and its probability."""
    basis: str
    probability: float

    def to_dict(self) -> dict:
        return {"state": self.basis, "probability": self.probability}


def joint_probabilities(
    states: Sequence[ndarray],
    include_zero: bool = True,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[JointOutcome]:
    """
    Product distribution over all 2^n basis strings.

    Parameters
    ----------
    states : sequence of ndarray
        One representative state per wire.
    include_zero : bool
        Keep every outcome. When False, outcomes with probability at or
        below ``threshold`` are left out.
    threshold : float
        Cut-off used when include_zero is False.

    Returns
    -------
    list[JointOutcome]
        Sorted by descending probability; ties keep basis order.
    """
    n = len(states)
    per_wire = [basis_probabilities(s) for s in states]
    results: list[JointOutcome] = []

    for index in range(2**n):
        prob = 1.0
        bits = []
        for wire in range(n):
            bit = (index >> (n - 1 - wire)) & 1
            bits.append(str(bit))
            probs = per_wire[wire]
            prob *= probs.p1 if bit else probs.p0
        if include_zero or prob > threshold:
            results.append(JointOutcome("".join(bits), prob))

    results.sort(key=lambda o: o.probability, reverse=True)
    return results


def as_dict(outcomes: Sequence[JointOutcome]) -> dict[str, float]:
    """Mapping basis string -> probability."""
    return {o.basis: o.probability for o in outcomes}


def most_likely(outcomes: Sequence[JointOutcome]) -> JointOutcome | None:
    return max(outcomes, key=lambda o: o.probability, default=None)
