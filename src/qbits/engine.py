"""
Branch enumeration engine.

For every wire and a chosen frame the engine produces a short list of
weighted branches: the states the wire may be in after the frame's
prefix of the circuit, given that its controlled gates fire only when
their control wires read |1⟩.

There is no joint 2^n state vector. Each wire is simulated on its own:
    1. A per-wire state cache applies every gate unconditionally and
       answers "what does wire w look like just before slot s".
    2. Controlled gates whose target sits in an eigenstate kick a
       virtual phase gate back onto the control wire.
    3. Each combination of control outcomes is simulated separately and
       weighted by the product of the control wires' probabilities.
    4. Coinciding branches are merged, sorted and capped.

All functions are pure; callers that want memoization can key it on
(circuit.to_dict(), frame, initial).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Sequence

from numpy import ndarray

from qbits import complexmath as cm
from qbits.circuit import Circuit, Placement
from qbits.gates import GateInstance
from qbits.kickback import has_kickback, kickback_gate
from qbits.probabilities import DEFAULT_THRESHOLD, JointOutcome, joint_probabilities
from qbits.state import (
    BlochCoordinates,
    InitialState,
    apply_gates,
    basis_probabilities,
    bloch_coordinates,
    initial_state,
    state_to_list,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationConfig:
    """
    Tunables of the branch engine.

    Attributes
    ----------
    max_branches : int
        Hard cap on branches per wire, both while enumerating and after
        merging.
    prune_threshold : float
        Control combinations less likely than this are skipped.
    merge_tolerance : float
        Per-axis Bloch and accumulated-angle tolerance for merging.
    kickback_tolerance : float
        Amplitude tolerance of the eigenphase detector.
    rotation_threshold : float
        Angles at or below this are left out of rotation histories.
    """
    max_branches: int = 10
    prune_threshold: float = 0.01
    merge_tolerance: float = 0.01
    kickback_tolerance: float = 0.01
    rotation_threshold: float = 0.01


DEFAULT_CONFIG = SimulationConfig()


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RotationStep:
    """One gate's (θ, φ, λ) contribution, for animated interpolation."""
    theta: float
    phi: float
    lam: float

    def to_dict(self) -> dict[str, float]:
        return {"theta": self.theta, "phi": self.phi, "lambda": self.lam}


@dataclass(frozen=True, eq=False)
class Branch:
    """One weighted outcome for a wire at a frame."""
    state: ndarray
    bloch: BlochCoordinates
    probability: float
    rotations: tuple[RotationStep, ...] = ()

    def to_dict(self) -> dict:
        return {
            "state": state_to_list(self.state),
            "coords": self.bloch.to_dict(),
            "probability": self.probability,
            "rotations": [r.to_dict() for r in self.rotations],
        }


@dataclass(frozen=True)
class KickbackSignal:
    """A controlled gate firing during playback, for photon-travel effects."""
    from_wire: int
    to_wire: int
    slot: int
    has_kickback: bool

    def to_dict(self) -> dict:
        return {
            "from": self.from_wire,
            "to": self.to_wire,
            "slot": self.slot,
            "hasKickback": self.has_kickback,
        }


@dataclass
class SimulationResult:
    """
    Everything a renderer needs for one frame.

    Attributes
    ----------
    frame : int
        Resolved frame number.
    initial : InitialState
        Starting state of every wire.
    branches : list[list[Branch]]
        Per wire, branches sorted by descending probability.
    states : list[ndarray]
        Per wire, the state of its most likely branch.
    probabilities : list[JointOutcome]
        Full joint table over all basis strings.
    """
    frame: int
    initial: InitialState
    branches: list[list[Branch]]
    states: list[ndarray]
    probabilities: list[JointOutcome] = field(default_factory=list)

    @property
    def n_wires(self) -> int:
        return len(self.branches)

    def likely_outcomes(self, threshold: float = DEFAULT_THRESHOLD) -> list[JointOutcome]:
        """Joint outcomes above ``threshold``."""
        return [o for o in self.probabilities if o.probability > threshold]

    def to_dict(self) -> dict:
        return {
            "frame": self.frame,
            "initial_state": self.initial.value,
            "branches": [[b.to_dict() for b in wire] for wire in self.branches],
            "states": [state_to_list(s) for s in self.states],
            "all_probabilities": [o.to_dict() for o in self.probabilities],
            "probabilities": [o.to_dict() for o in self.likely_outcomes()],
        }


# ---------------------------------------------------------------------------
# Per-wire slot state cache
# ---------------------------------------------------------------------------

class StateCache:
    """
    State of each wire immediately before each slot.

    Built by applying every gate in the frame's prefix unconditionally,
    ignoring control conditioning. Used only to answer kickback and
    control-probability questions.
    """

    def __init__(self, initial: ndarray, per_wire: list[dict[int, ndarray]]) -> None:
        self._initial = initial
        self._per_wire = per_wire

    def before(self, wire: int, slot: int) -> ndarray:
        """State of ``wire`` just before ``slot``; the initial state if uncached."""
        if not 0 <= wire < len(self._per_wire):
            return self._initial.copy()
        state = self._per_wire[wire].get(slot)
        if state is None:
            return self._initial.copy()
        return state.copy()


def build_state_cache(
    circuit: Circuit,
    frame: int | None = None,
    initial: InitialState | str = InitialState.ZERO,
) -> StateCache:
    """Per-wire states before every slot 0..max_slot+1 (and -1) for a frame."""
    start = initial_state(initial)
    last_slot = circuit.max_slot + 1
    per_wire: list[dict[int, ndarray]] = []

    for wire in range(circuit.n_wires):
        by_slot = {p.slot: p.gate for p in circuit.gates_on(wire, frame)}
        state = start.copy()
        states: dict[int, ndarray] = {-1: state}
        for slot in range(last_slot + 1):
            states[slot] = state
            gate = by_slot.get(slot)
            if gate is not None:
                state = apply_gates(state, (gate,))
        per_wire.append(states)

    return StateCache(start, per_wire)


# ---------------------------------------------------------------------------
# Effective gate lists
# ---------------------------------------------------------------------------

def effective_gates(
    circuit: Circuit,
    wire: int,
    frame: int | None,
    cache: StateCache,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> list[Placement]:
    """
    Real gates on ``wire`` plus virtual kickback phase gates, by slot.

    A virtual gate U(0, 0, φ) is added at the slot of every gate this
    wire controls whose target is in an eigenstate with non-zero
    eigenphase φ. It only affects this wire; the target's own evolution
    is unchanged.
    """
    steps = list(circuit.gates_on(wire, frame))
    for target in circuit.controlled_by(wire, frame):
        before = cache.before(target.wire, target.slot)
        virtual = kickback_gate(target.gate, before, config.kickback_tolerance)
        if virtual is not None:
            steps.append(Placement(wire, target.slot, virtual))
    steps.sort(key=lambda p: p.slot)
    return steps


def rotation_history(
    gates: Sequence[GateInstance], threshold: float = DEFAULT_CONFIG.rotation_threshold
) -> tuple[RotationStep, ...]:
    """Decompositions of the gates that rotate by more than ``threshold``."""
    steps = []
    for gate in gates:
        d = gate.decomposition
        if not d.is_trivial(threshold):
            steps.append(RotationStep(d.theta, d.phi, d.lam))
    return tuple(steps)


def _make_branch(
    start: ndarray, gates: Sequence[GateInstance], probability: float,
    config: SimulationConfig,
) -> Branch:
    state = apply_gates(start, gates)
    return Branch(
        state=state,
        bloch=bloch_coordinates(state),
        probability=probability,
        rotations=rotation_history(gates, config.rotation_threshold),
    )


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _total_angles(rotations: Sequence[RotationStep]) -> tuple[float, float, float]:
    theta = sum(r.theta for r in rotations)
    lam = sum(r.lam for r in rotations)
    phi = sum(r.phi for r in rotations)
    return cm.normalize_angle(theta), cm.normalize_angle(lam), cm.normalize_angle(phi)


def _same_outcome(a: Branch, b: Branch, tol: float) -> bool:
    if not a.bloch.close_to(b.bloch, tol):
        return False
    ta, tb = _total_angles(a.rotations), _total_angles(b.rotations)
    return all(abs(x - y) < tol for x, y in zip(ta, tb))


def merge_branches(branches: Sequence[Branch], tol: float = DEFAULT_CONFIG.merge_tolerance) -> list[Branch]:
    """
    Fold branches that coincide in Bloch position and accumulated angles.

    The first branch of each group is kept and carries the summed
    probability.
    """
    merged: list[Branch] = []
    for branch in branches:
        for i, existing in enumerate(merged):
            if _same_outcome(existing, branch, tol):
                merged[i] = replace(existing, probability=existing.probability + branch.probability)
                break
        else:
            merged.append(branch)
    return merged


# ---------------------------------------------------------------------------
# Branch enumeration
# ---------------------------------------------------------------------------

def wire_branches(
    circuit: Circuit,
    wire: int,
    frame: int | None = None,
    initial: InitialState | str = InitialState.ZERO,
    config: SimulationConfig | None = None,
    cache: StateCache | None = None,
) -> list[Branch]:
    """
    Weighted branches for one wire at one frame.

    Parameters
    ----------
    circuit : Circuit
        Circuit to evaluate.
    wire : int
        Wire index.
    frame : int, optional
        Frame selector; None means the full circuit.
    initial : InitialState or str
        Starting state of every wire.
    config : SimulationConfig, optional
        Engine tunables.
    cache : StateCache, optional
        Pre-built cache for the same circuit, frame and initial state.

    Returns
    -------
    list[Branch]
        At most ``config.max_branches`` branches, most likely first.
        Never empty.
    """
    config = config or DEFAULT_CONFIG
    initial = InitialState.parse(initial)
    if cache is None:
        cache = build_state_cache(circuit, frame, initial)
    start = initial_state(initial)

    steps = effective_gates(circuit, wire, frame, cache, config)
    controlled = [p for p in steps if p.control is not None]

    if not controlled:
        return [_make_branch(start, [p.gate for p in steps], 1.0, config)]

    # Distinct controls in order of first appearance; each control is
    # read at the slot of the first gate it controls on this wire.
    first_slot: dict[int, int] = {}
    for p in controlled:
        first_slot.setdefault(p.control, p.slot)
    controls = list(first_slot)
    p_one = [basis_probabilities(cache.before(c, first_slot[c])).p1 for c in controls]

    branches: list[Branch] = []
    for combo in range(2 ** len(controls)):
        if len(branches) >= config.max_branches:
            break
        asserted: dict[int, bool] = {}
        probability = 1.0
        for bit, control in enumerate(controls):
            on = bool((combo >> bit) & 1)
            asserted[control] = on
            probability *= p_one[bit] if on else (1 - p_one[bit])

        if probability < config.prune_threshold:
            continue

        gates = [p.gate for p in steps if p.control is None or asserted[p.control]]
        branches.append(_make_branch(start, gates, probability, config))

    merged = merge_branches(branches, config.merge_tolerance)
    merged.sort(key=lambda b: b.probability, reverse=True)
    del merged[config.max_branches:]

    if not merged:
        logger.debug("Every control combination pruned on wire %d; using initial state", wire)
        return [_make_branch(start, [], 1.0, config)]

    logger.debug(
        "Wire %d: %d controls, %d raw branches, %d after merge",
        wire, len(controls), len(branches), len(merged),
    )
    return merged


def simulate(
    circuit: Circuit,
    frame: int | None = None,
    initial: InitialState | str = InitialState.ZERO,
    config: SimulationConfig | None = None,
) -> SimulationResult:
    """
    Branches for every wire plus the joint probability table.

    Parameters
    ----------
    circuit : Circuit
        Circuit to evaluate.
    frame : int, optional
        0..num_barriers+1; None (or negative) means the full circuit.
    initial : InitialState or str
        "zero", "one" or "plus".
    config : SimulationConfig, optional
        Engine tunables.

    Returns
    -------
    SimulationResult
    """
    config = config or DEFAULT_CONFIG
    initial = InitialState.parse(initial)
    resolved = circuit.resolve_frame(frame)
    cache = build_state_cache(circuit, resolved, initial)

    branches = [
        wire_branches(circuit, wire, resolved, initial, config, cache)
        for wire in range(circuit.n_wires)
    ]
    states = [max(wire, key=lambda b: b.probability).state for wire in branches]
    probabilities = joint_probabilities(states, include_zero=True)

    logger.debug(
        "Simulated %d wires at frame %d/%d (%s)",
        circuit.n_wires, resolved, circuit.num_frames - 1, initial.value,
    )
    return SimulationResult(
        frame=resolved,
        initial=initial,
        branches=branches,
        states=states,
        probabilities=probabilities,
    )


# ---------------------------------------------------------------------------
# Kickback signal events
# ---------------------------------------------------------------------------

def kickback_signals(
    circuit: Circuit,
    frame: int | None,
    initial: InitialState | str = InitialState.ZERO,
    config: SimulationConfig | None = None,
) -> list[KickbackSignal]:
    """
    One signal per controlled gate inside the animation window of ``frame``.

    Frames without a window (0 and the full-circuit sentinel) yield none.
    """
    config = config or DEFAULT_CONFIG
    window = circuit.frame_window(frame)
    if window is None:
        return []
    start, stop = window
    cache = build_state_cache(circuit, circuit.resolve_frame(frame), initial)

    signals = []
    for p in sorted(circuit.placements, key=lambda p: (p.wire, p.slot)):
        if p.control is None:
            continue
        if p.slot < start or (stop is not None and p.slot >= stop):
            continue
        before = cache.before(p.wire, p.slot)
        signals.append(
            KickbackSignal(
                from_wire=p.control,
                to_wire=p.wire,
                slot=p.slot,
                has_kickback=has_kickback(p.gate, before, config.kickback_tolerance),
            )
        )
    return signals


def control_signal(
    circuit: Circuit,
    wire: int,
    slot: int,
    frame: int | None = None,
    initial: InitialState | str = InitialState.ZERO,
    config: SimulationConfig | None = None,
) -> KickbackSignal:
    """
    Signal for the controlled gate at (wire, slot), e.g. while configuring it.

    Raises
    ------
    ValueError
        If there is no controlled gate at that cell.
    """
    config = config or DEFAULT_CONFIG
    placement = circuit.placement_at(wire, slot)
    if placement is None or placement.control is None:
        raise ValueError(f"No controlled gate at (wire {wire}, slot {slot})")
    cache = build_state_cache(circuit, circuit.resolve_frame(frame), initial)
    before = cache.before(wire, slot)
    return KickbackSignal(
        from_wire=placement.control,
        to_wire=wire,
        slot=slot,
        has_kickback=has_kickback(placement.gate, before, config.kickback_tolerance),
    )


def assign_depth_offsets(branches: Sequence[Branch], threshold: float = 0.1) -> list[int]:
    """
    Depth offsets that keep overlapping branch arrows apart.

    A branch closer than ``threshold`` (Euclidean, on the Bloch sphere)
    to an earlier one gets an offset one past the largest such
    neighbour's offset.
    """
    offsets: list[int] = []
    for i, branch in enumerate(branches):
        offset = 0
        for j in range(i):
            if branch.bloch.distance(branches[j].bloch) < threshold:
                offset = max(offset, offsets[j] + 1)
        offsets.append(offset)
    return offsets
