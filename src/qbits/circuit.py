"""
Circuit representation.

A circuit is a grid of wires (rows) and slots (columns). Each cell holds
at most one gate. A controlled gate is a single Placement that owns two
cells: the target cell (wire, slot) and the control cell
(control, slot). The control marker is derived from the placement, so a
marker without a target (or a target without its marker) cannot exist
inside a Circuit. Only data arriving from outside through from_dict()
can carry such a breach; it is reported as CircuitIntegrityError.

Barriers are slot indices. They split the circuit into animation
segments and never change any state.

Example
-------
>>> from qbits import Circuit
>>> qc = Circuit(2).h(0).x(1).barrier().cz(0, 1)
>>> qc.num_frames
3
"""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator

from qbits.gates import (
    GATE_CATALOG,
    Decomposition,
    GateInstance,
    GateKind,
    instantiate,
)

logger = logging.getLogger(__name__)

CONTROL_MARKER = "CONTROL"
_BARRIER_CELL = "BARRIER"


class CircuitIntegrityError(ValueError):
    """A control marker and its target gate are not paired."""
    def __init__(self, message: str, wire: int | None = None, slot: int | None = None) -> None:
        where = f" (wire {wire}, slot {slot})" if wire is not None else ""
        super().__init__(f"{message}{where}")
        self.wire = wire
        self.slot = slot


# ---------------------------------------------------------------------------
# Placement: a gate on the grid, optionally with its control edge
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Placement:
    """A gate at (wire, slot), controlled by ``control`` when set."""
    wire: int
    slot: int
    gate: GateInstance
    control: int | None = None

    @property
    def is_controlled(self) -> bool:
        return self.control is not None

    @property
    def cells(self) -> tuple[tuple[int, int], ...]:
        """Every grid cell this placement occupies."""
        if self.control is None:
            return ((self.wire, self.slot),)
        return ((self.wire, self.slot), (self.control, self.slot))


class CellKind(enum.Enum):
    EMPTY = "empty"
    GATE = "gate"
    CONTROL = "control"


@dataclass(frozen=True)
class Cell:
    """What sits at one grid position."""
    wire: int
    slot: int
    kind: CellKind
    placement: Placement | None = None

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def target_wire(self) -> int | None:
        """For a control marker, the wire of the gate it controls."""
        if self.kind is CellKind.CONTROL and self.placement is not None:
            return self.placement.wire
        return None


# ---------------------------------------------------------------------------
# Circuit
# ---------------------------------------------------------------------------

class Circuit:
    """
    Editable single-qubit-per-wire circuit.

    Builder methods return self for chaining. Editor operations (insert,
    remove, move, set_control, add_wire, remove_wire) keep control
    edges consistent.

    Parameters
    ----------
    n_wires : int
        Number of wires (qubits).
    name : str, optional
        Circuit name for display.
    """

    def __init__(self, n_wires: int = 1, name: str = "circuit") -> None:
        if n_wires < 1:
            raise ValueError(f"Need at least 1 wire, got {n_wires}")
        self.n_wires = n_wires
        self.name = name
        self._placements: dict[tuple[int, int], Placement] = {}
        self._barriers: set[int] = set()

    # -- Properties ---------------------------------------------------------

    @property
    def placements(self) -> list[Placement]:
        """All placements ordered by (slot, wire)."""
        return sorted(self._placements.values(), key=lambda p: (p.slot, p.wire))

    @property
    def sorted_barriers(self) -> list[int]:
        return sorted(self._barriers)

    @property
    def num_barriers(self) -> int:
        return len(self._barriers)

    @property
    def num_frames(self) -> int:
        """Frame 0 (nothing applied), one per barrier, and the full circuit."""
        return len(self._barriers) + 2

    @property
    def max_slot(self) -> int:
        """Highest occupied slot, 0 for an empty circuit."""
        return max((p.slot for p in self._placements.values()), default=0)

    @property
    def num_gates(self) -> int:
        return len(self._placements)

    # -- Internal helpers ---------------------------------------------------

    def _validate_wire(self, wire: int) -> None:
        if not isinstance(wire, int) or not 0 <= wire < self.n_wires:
            raise ValueError(f"Wire {wire} out of range for {self.n_wires}-wire circuit")

    def _validate_slot(self, slot: int) -> None:
        if not isinstance(slot, int) or slot < 0:
            raise ValueError(f"Slot must be a non-negative integer, got {slot!r}")

    def _occupant(self, wire: int, slot: int) -> Placement | None:
        """Placement holding the cell as target or as control, if any."""
        found = self._placements.get((wire, slot))
        if found is not None:
            return found
        for p in self._placements.values():
            if p.slot == slot and p.control == wire:
                return p
        return None

    def _last_slot_on(self, wires: tuple[int, ...]) -> int:
        last = -1
        for p in self._placements.values():
            if p.wire in wires or p.control in wires:
                last = max(last, p.slot)
        return last

    def _next_slot(self, *wires: int) -> int:
        """First column after everything on ``wires`` and after the last barrier."""
        after_gates = self._last_slot_on(wires) + 1
        after_barrier = max(self._barriers, default=0)
        return max(after_gates, after_barrier)

    def _shift_right(self, from_slot: int) -> None:
        """Move every column at or after from_slot one step right, barriers included."""
        shifted: dict[tuple[int, int], Placement] = {}
        for p in self._placements.values():
            if p.slot >= from_slot:
                p = replace(p, slot=p.slot + 1)
            shifted[(p.wire, p.slot)] = p
        self._placements = shifted
        self._barriers = {b + 1 if b >= from_slot else b for b in self._barriers}

    @staticmethod
    def _coerce_gate(gate: GateInstance | GateKind | str) -> GateInstance:
        if isinstance(gate, GateInstance):
            return gate
        return instantiate(gate)

    def _put(self, placement: Placement) -> None:
        self._placements[(placement.wire, placement.slot)] = placement

    # -- Cell queries -------------------------------------------------------

    def cell(self, wire: int, slot: int) -> Cell:
        """Describe the content of one grid cell."""
        self._validate_wire(wire)
        self._validate_slot(slot)
        placement = self._occupant(wire, slot)
        if placement is None:
            return Cell(wire, slot, CellKind.EMPTY)
        if placement.wire == wire:
            return Cell(wire, slot, CellKind.GATE, placement)
        return Cell(wire, slot, CellKind.CONTROL, placement)

    def is_free(self, wire: int, slot: int) -> bool:
        return self._occupant(wire, slot) is None

    def placement_at(self, wire: int, slot: int) -> Placement | None:
        """The gate whose target cell is (wire, slot)."""
        return self._placements.get((wire, slot))

    def __iter__(self) -> Iterator[Placement]:
        return iter(self.placements)

    # -- Frames -------------------------------------------------------------

    def resolve_frame(self, frame: int | None) -> int:
        """
        Map a frame selector to 0..num_barriers+1.

        None or a negative value is the "full circuit" sentinel; values
        past the last frame clamp to it.
        """
        last = self.num_barriers + 1
        if frame is None:
            return last
        if isinstance(frame, bool) or not isinstance(frame, int):
            raise ValueError(f"Frame must be an integer or None, got {frame!r}")
        if frame < 0 or frame > last:
            return last
        return frame

    def slot_limit(self, frame: int | None) -> int | None:
        """Exclusive slot bound of the prefix selected by frame (None = unbounded)."""
        frame = self.resolve_frame(frame)
        if frame == 0:
            return 0
        barriers = self.sorted_barriers
        if frame > len(barriers):
            return None
        return barriers[frame - 1]

    def in_frame(self, slot: int, frame: int | None) -> bool:
        """True when ``slot`` lies inside the prefix selected by ``frame``."""
        limit = self.slot_limit(frame)
        return limit is None or slot < limit

    def frame_window(self, frame: int | None) -> tuple[int, int | None] | None:
        """
        Slot range [start, stop) animated while moving into ``frame``.

        Frame k in 1..B covers the segment that ends at barrier k; the
        final frame covers everything after the last barrier. Frame 0
        and the "full circuit" sentinel are not playback frames and
        have no window.
        """
        if frame is None or frame <= 0:
            return None
        barriers = self.sorted_barriers
        if frame <= len(barriers):
            start = barriers[frame - 2] if frame > 1 else 0
            return start, barriers[frame - 1]
        return (barriers[-1] if barriers else 0), None

    def placements_in(self, frame: int | None = None) -> list[Placement]:
        frame = self.resolve_frame(frame)
        return [p for p in self.placements if self.in_frame(p.slot, frame)]

    def gates_on(self, wire: int, frame: int | None = None) -> list[Placement]:
        """Gates whose target is ``wire`` inside the frame's prefix, in slot order."""
        self._validate_wire(wire)
        return [p for p in self.placements_in(frame) if p.wire == wire]

    def controlled_by(self, control: int, frame: int | None = None) -> list[Placement]:
        """Gates on other wires that ``control`` controls, in slot order."""
        return [p for p in self.placements_in(frame) if p.control == control]

    # -- Building -----------------------------------------------------------

    def place(
        self,
        wire: int,
        slot: int,
        gate: GateInstance | GateKind | str,
        control: int | None = None,
    ) -> Circuit:
        """
        Put a gate on an empty cell.

        Raises
        ------
        ValueError
            If a cell is out of range or occupied, or the control is the
            target's own wire.
        """
        self._validate_wire(wire)
        self._validate_slot(slot)
        if control is not None:
            self._validate_wire(control)
            if control == wire:
                raise ValueError(f"Gate on wire {wire} cannot be controlled by its own wire")
        if not self.is_free(wire, slot):
            raise ValueError(f"Cell (wire {wire}, slot {slot}) is occupied")
        if control is not None and not self.is_free(control, slot):
            raise ValueError(f"Control cell (wire {control}, slot {slot}) is occupied")
        self._put(Placement(wire, slot, self._coerce_gate(gate), control))
        return self

    def append(
        self, gate: GateInstance | GateKind | str, wire: int, control: int | None = None,
        slot: int | None = None,
    ) -> Circuit:
        """Place a gate at ``slot`` or at the next free column."""
        if slot is None:
            wires = (wire,) if control is None else (wire, control)
            slot = self._next_slot(*wires)
        return self.place(wire, slot, gate, control)

    # -- Single-wire gates --------------------------------------------------

    def i(self, wire: int, slot: int | None = None) -> Circuit:
        """Identity gate."""
        return self.append(GateKind.I, wire, slot=slot)

    def x(self, wire: int, slot: int | None = None) -> Circuit:
        """Pauli-X gate."""
        return self.append(GateKind.X, wire, slot=slot)

    def y(self, wire: int, slot: int | None = None) -> Circuit:
        """Pauli-Y gate."""
        return self.append(GateKind.Y, wire, slot=slot)

    def z(self, wire: int, slot: int | None = None) -> Circuit:
        """Pauli-Z gate."""
        return self.append(GateKind.Z, wire, slot=slot)

    def h(self, wire: int, slot: int | None = None) -> Circuit:
        """Hadamard gate."""
        return self.append(GateKind.H, wire, slot=slot)

    def s(self, wire: int, slot: int | None = None) -> Circuit:
        """S gate."""
        return self.append(GateKind.S, wire, slot=slot)

    def t(self, wire: int, slot: int | None = None) -> Circuit:
        """T gate."""
        return self.append(GateKind.T, wire, slot=slot)

    def u(
        self, theta: float, phi: float, lam: float, wire: int, slot: int | None = None
    ) -> Circuit:
        """Universal gate U(θ, φ, λ)."""
        gate = instantiate(GateKind.U, Decomposition(theta, phi, lam))
        return self.append(gate, wire, slot=slot)

    # -- Controlled gates ---------------------------------------------------

    def controlled(
        self,
        gate: GateInstance | GateKind | str,
        control: int,
        target: int,
        slot: int | None = None,
    ) -> Circuit:
        """Place ``gate`` on ``target`` controlled by ``control``."""
        return self.append(gate, target, control=control, slot=slot)

    def cx(self, control: int, target: int, slot: int | None = None) -> Circuit:
        """Controlled-X (CNOT)."""
        return self.controlled(GateKind.X, control, target, slot)

    def cy(self, control: int, target: int, slot: int | None = None) -> Circuit:
        """Controlled-Y."""
        return self.controlled(GateKind.Y, control, target, slot)

    def cz(self, control: int, target: int, slot: int | None = None) -> Circuit:
        """Controlled-Z."""
        return self.controlled(GateKind.Z, control, target, slot)

    def cs(self, control: int, target: int, slot: int | None = None) -> Circuit:
        """Controlled-S."""
        return self.controlled(GateKind.S, control, target, slot)

    def ct(self, control: int, target: int, slot: int | None = None) -> Circuit:
        """Controlled-T."""
        return self.controlled(GateKind.T, control, target, slot)

    def cu(
        self, theta: float, phi: float, lam: float, control: int, target: int,
        slot: int | None = None,
    ) -> Circuit:
        """Controlled U(θ, φ, λ)."""
        gate = instantiate(GateKind.U, Decomposition(theta, phi, lam))
        return self.controlled(gate, control, target, slot)

    # -- Barriers -----------------------------------------------------------

    def barrier(self, slot: int | None = None) -> Circuit:
        """
        Add a barrier at ``slot`` or after the last occupied column.

        Without a slot, a barrier that would land on an existing one goes
        one column further, so consecutive calls open separate frames.
        An explicit slot that already holds a barrier is a no-op.
        """
        if slot is None:
            slot = self._next_slot(*range(self.n_wires))
            while slot in self._barriers:
                slot += 1
        self._validate_slot(slot)
        self._barriers.add(slot)
        return self

    def remove_barrier(self, slot: int) -> Circuit:
        self._barriers.discard(slot)
        return self

    # -- Editor operations --------------------------------------------------

    def insert(
        self,
        wire: int,
        slot: int,
        gate: GateInstance | GateKind | str,
        control: int | None = None,
    ) -> Circuit:
        """
        Place a gate, making room if needed.

        When the target cell or the control cell is occupied, every
        wire's column at or after ``slot`` (and every barrier there)
        shifts one step right first.
        """
        self._validate_wire(wire)
        self._validate_slot(slot)
        if control is not None:
            self._validate_wire(control)
        occupied = not self.is_free(wire, slot) or (
            control is not None and not self.is_free(control, slot)
        )
        if occupied:
            logger.debug("Shifting columns from slot %d to insert on wire %d", slot, wire)
            self._shift_right(slot)
        return self.place(wire, slot, gate, control)

    def remove(self, wire: int, slot: int) -> Circuit:
        """
        Clear a cell.

        Removing a control marker leaves its target gate uncontrolled;
        removing a controlled gate removes its marker too.
        """
        cell = self.cell(wire, slot)
        if cell.kind is CellKind.CONTROL:
            target = cell.placement
            self._put(replace(target, control=None))
        elif cell.kind is CellKind.GATE:
            del self._placements[(wire, slot)]
        return self

    def update_gate(self, wire: int, slot: int, gate: GateInstance | GateKind | str) -> Circuit:
        """Swap the gate at a target cell, keeping its control edge."""
        current = self._placements.get((wire, slot))
        if current is None:
            raise ValueError(f"No gate at (wire {wire}, slot {slot})")
        self._put(replace(current, gate=self._coerce_gate(gate)))
        return self

    def set_control(self, wire: int, slot: int, control: int | None) -> Circuit:
        """
        Attach, change or drop the control of the gate at (wire, slot).

        If the new control cell is taken by something else, columns
        from ``slot`` shift right and the pair is placed at ``slot``.
        """
        current = self._placements.get((wire, slot))
        if current is None:
            raise ValueError(f"No gate at (wire {wire}, slot {slot})")
        if control is None:
            self._put(replace(current, control=None))
            return self
        self._validate_wire(control)
        if control == wire:
            raise ValueError(f"Gate on wire {wire} cannot be controlled by its own wire")

        occupant = self._occupant(control, slot)
        if occupant is not None and occupant is not current:
            del self._placements[(wire, slot)]
            self._shift_right(slot)
            self._put(replace(current, control=control))
        else:
            self._put(replace(current, control=control))
        return self

    def move(self, from_wire: int, from_slot: int, to_wire: int, to_slot: int) -> Circuit:
        """
        Drag the content of one cell to another.

        Moving a controlled gate carries its marker along. Moving a
        marker within its column re-assigns the control wire; moving it
        to another column carries the whole pair, with the control on
        ``to_wire``. A control dropped onto its own target wire leaves
        the gate uncontrolled. Occupied destinations shift columns right.
        """
        cell = self.cell(from_wire, from_slot)
        self._validate_wire(to_wire)
        self._validate_slot(to_slot)
        if cell.is_empty:
            raise ValueError(f"Nothing to move at (wire {from_wire}, slot {from_slot})")
        placement = cell.placement

        if cell.kind is CellKind.CONTROL:
            target_wire = placement.wire
            if to_slot == from_slot:
                if to_wire == from_wire:
                    return self
                if to_wire == target_wire:
                    return self.set_control(target_wire, from_slot, None)
                return self.set_control(target_wire, from_slot, to_wire)
            del self._placements[(target_wire, from_slot)]
            control = None if to_wire == target_wire else to_wire
            return self.insert(target_wire, to_slot, placement.gate, control)

        del self._placements[(from_wire, from_slot)]
        control = placement.control
        if control is not None and to_wire == control:
            control = None
        return self.insert(to_wire, to_slot, placement.gate, control)

    def add_wire(self) -> Circuit:
        self.n_wires += 1
        return self

    def remove_wire(self, wire: int) -> Circuit:
        """
        Delete a wire and renumber the ones below it.

        Gates on the wire disappear; gates it controlled become
        uncontrolled.
        """
        self._validate_wire(wire)
        if self.n_wires <= 1:
            raise ValueError("Cannot remove the last wire")

        def renumber(w: int) -> int:
            return w - 1 if w > wire else w

        kept: dict[tuple[int, int], Placement] = {}
        for p in self._placements.values():
            if p.wire == wire:
                continue
            control = p.control
            if control == wire:
                control = None
            elif control is not None:
                control = renumber(control)
            p = replace(p, wire=renumber(p.wire), control=control)
            kept[(p.wire, p.slot)] = p
        self._placements = kept
        self.n_wires -= 1
        return self

    # -- Copy ---------------------------------------------------------------

    def copy(self) -> Circuit:
        """Return a deep copy of this circuit."""
        return copy.deepcopy(self)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """
        Export in the editor's cell-row format.

        Each row lists the wire's cells by slot; empty cells are None,
        control markers are {"gate": "CONTROL", "targetIndex": t}.
        """
        width = self.max_slot + 1 if self._placements else 0
        rows: list[list[dict | None]] = [[None] * width for _ in range(self.n_wires)]
        for p in self._placements.values():
            rows[p.wire][p.slot] = {
                "gate": p.gate.kind.value,
                "decomposition": p.gate.decomposition.to_dict(),
                "controlIndex": p.control,
            }
            if p.control is not None:
                rows[p.control][p.slot] = {
                    "gate": CONTROL_MARKER,
                    "targetIndex": p.wire,
                    "controlIndex": None,
                }
        return {
            "name": self.name,
            "n_wires": self.n_wires,
            "barriers": self.sorted_barriers,
            "rows": rows,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = True) -> Circuit:
        """
        Build a circuit from the editor's cell-row format.

        Parameters
        ----------
        data : dict
            {"n_wires": n, "barriers": [...], "rows": [[cell|None, ...], ...]}
        strict : bool
            When True, an unpaired control marker or target raises
            CircuitIntegrityError. When False the breach is logged and
            clamped: the marker is dropped or the target loses its control.

        Raises
        ------
        CircuitIntegrityError
            Unpaired control marker / target (strict mode only).
        KeyError
            Unknown gate name.
        """
        rows = data.get("rows") or []
        n_wires = int(data.get("n_wires") or max(len(rows), 1))
        if len(rows) > n_wires:
            raise ValueError(f"{len(rows)} rows given for a {n_wires}-wire circuit")
        circuit = cls(n_wires, name=data.get("name", "circuit"))
        for b in data.get("barriers") or []:
            circuit.barrier(int(b))

        gates: dict[tuple[int, int], tuple[GateInstance, int | None]] = {}
        markers: dict[tuple[int, int], int | None] = {}
        for wire, row in enumerate(rows):
            for slot, cell in enumerate(row or []):
                if not cell:
                    continue
                name = str(cell.get("gate", "")).upper()
                if name == CONTROL_MARKER:
                    markers[(wire, slot)] = cell.get("targetIndex")
                elif name == _BARRIER_CELL:
                    circuit.barrier(slot)
                else:
                    gates[(wire, slot)] = (_gate_from_cell(cell), cell.get("controlIndex"))

        def breach(message: str, wire: int, slot: int) -> None:
            if strict:
                raise CircuitIntegrityError(message, wire, slot)
            logger.warning("%s at wire %d, slot %d; clamping", message, wire, slot)

        for (wire, slot), (gate, control) in gates.items():
            if control is not None:
                paired = (
                    isinstance(control, int)
                    and 0 <= control < n_wires
                    and control != wire
                    and markers.get((control, slot)) == wire
                )
                if not paired:
                    breach(f"Gate controlled by wire {control} has no control marker", wire, slot)
                    control = None
            circuit._put(Placement(wire, slot, gate, control))

        for (wire, slot), target in markers.items():
            paired = (
                target is not None
                and (target, slot) in gates
                and gates[(target, slot)][1] == wire
            )
            if not paired:
                breach(f"Control marker for wire {target} has no target gate", wire, slot)

        return circuit

    # -- Display ------------------------------------------------------------

    def __repr__(self) -> str:
        controlled = sum(1 for p in self._placements.values() if p.is_controlled)
        return (
            f"Circuit(n_wires={self.n_wires}, gates={self.num_gates}, "
            f"controlled={controlled}, barriers={self.sorted_barriers})"
        )

    def draw(self) -> str:
        """ASCII diagram of the circuit."""
        from qbits.visualization import draw_circuit
        return draw_circuit(self)


def _gate_from_cell(cell: dict) -> GateInstance:
    """
    Gate instance for one editor cell.

    Fixed gates keep their literal matrix unless the cell carries angles
    that differ from the catalog defaults.
    """
    kind = GateKind.parse(cell.get("gate", ""))
    raw = cell.get("decomposition")
    if raw is None:
        return instantiate(kind)
    decomp = Decomposition.from_dict(raw)
    if kind is GateKind.U or decomp != GATE_CATALOG[kind].decomposition:
        return instantiate(kind, decomp)
    return instantiate(kind)
