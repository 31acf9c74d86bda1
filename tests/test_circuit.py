"""Tests for the circuit model: building, frames, editing, serialization."""

import logging

import pytest

from qbits.circuit import CellKind, Circuit, CircuitIntegrityError
from qbits.gates import GateKind, instantiate


def kind_at(qc, wire, slot):
    p = qc.placement_at(wire, slot)
    return None if p is None else p.gate.kind


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------

class TestBuilding:

    def test_fluent_chain(self):
        qc = Circuit(2).h(0).cx(0, 1)
        assert qc.num_gates == 2
        assert kind_at(qc, 0, 0) is GateKind.H
        assert kind_at(qc, 1, 1) is GateKind.X
        assert qc.placement_at(1, 1).control == 0

    def test_control_cell_is_derived(self):
        qc = Circuit(2).cz(0, 1)
        cell = qc.cell(0, 0)
        assert cell.kind is CellKind.CONTROL
        assert cell.target_wire == 1
        assert qc.cell(1, 0).kind is CellKind.GATE
        assert qc.cell(1, 1).is_empty

    def test_next_slot_is_per_wire(self):
        qc = Circuit(2).h(0).h(0).x(1)
        assert kind_at(qc, 0, 1) is GateKind.H
        assert kind_at(qc, 1, 0) is GateKind.X

    def test_explicit_slot(self):
        qc = Circuit(1).x(0, slot=4)
        assert qc.max_slot == 4

    def test_universal_gate(self):
        qc = Circuit(1).u(0.1, 0.2, 0.3, 0)
        d = qc.placement_at(0, 0).gate.decomposition
        assert (d.theta, d.phi, d.lam) == (0.1, 0.2, 0.3)

    @pytest.mark.parametrize("method,kind", [
        ("cx", GateKind.X), ("cy", GateKind.Y), ("cz", GateKind.Z),
        ("cs", GateKind.S), ("ct", GateKind.T),
    ])
    def test_controlled_shorthands(self, method, kind):
        qc = getattr(Circuit(2), method)(1, 0)
        p = qc.placement_at(0, 0)
        assert p.gate.kind is kind
        assert p.control == 1

    def test_gates_after_barrier(self):
        qc = Circuit(2).h(0).barrier().x(1)
        assert qc.sorted_barriers == [1]
        assert kind_at(qc, 1, 1) is GateKind.X

    def test_place_occupied_raises(self):
        qc = Circuit(2).cz(0, 1)
        with pytest.raises(ValueError, match="occupied"):
            qc.place(0, 0, "H")
        with pytest.raises(ValueError, match="occupied"):
            qc.place(1, 0, "H")

    def test_self_control_raises(self):
        with pytest.raises(ValueError, match="own wire"):
            Circuit(2).place(0, 0, "X", control=0)

    @pytest.mark.parametrize("wire", [-1, 2, 5])
    def test_wire_out_of_range(self, wire):
        with pytest.raises(ValueError, match="out of range"):
            Circuit(2).x(wire)

    def test_negative_slot(self):
        with pytest.raises(ValueError):
            Circuit(1).place(0, -1, "X")

    def test_unknown_gate(self):
        with pytest.raises(KeyError):
            Circuit(1).append("CCX", 0)

    def test_zero_wires(self):
        with pytest.raises(ValueError):
            Circuit(0)

    def test_copy_is_independent(self):
        qc = Circuit(1).h(0)
        clone = qc.copy()
        clone.x(0)
        assert qc.num_gates == 1
        assert clone.num_gates == 2


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

class TestFrames:

    @pytest.fixture
    def qc(self):
        # h | x | z  with barriers at slots 1 and 2
        return Circuit(2).h(0).barrier().x(0).barrier().z(0)

    def test_layout(self, qc):
        assert qc.sorted_barriers == [1, 2]
        assert qc.num_frames == 4
        assert [p.slot for p in qc.gates_on(0)] == [0, 1, 2]

    @pytest.mark.parametrize("frame,limit", [
        (0, 0), (1, 1), (2, 2), (3, None), (None, None), (-1, None), (99, None),
    ])
    def test_slot_limit(self, qc, frame, limit):
        assert qc.slot_limit(frame) == limit

    @pytest.mark.parametrize("frame,resolved", [(None, 3), (-1, 3), (99, 3), (0, 0), (2, 2)])
    def test_resolve_frame(self, qc, frame, resolved):
        assert qc.resolve_frame(frame) == resolved

    @pytest.mark.parametrize("slot,frame,inside", [
        (0, 0, False), (0, 1, True), (1, 1, False), (1, 2, True),
        (2, 2, False), (2, 3, True), (50, None, True),
    ])
    def test_in_frame(self, qc, slot, frame, inside):
        assert qc.in_frame(slot, frame) is inside

    def test_placements_in_rejects_non_integer_frame(self):
        with pytest.raises(ValueError):
            Circuit(1).placements_in("1")

    def test_resolve_frame_rejects_non_integers(self, qc):
        with pytest.raises(ValueError):
            qc.resolve_frame(1.5)
        with pytest.raises(ValueError):
            qc.resolve_frame("2")

    @pytest.mark.parametrize("frame,kinds", [
        (0, []),
        (1, [GateKind.H]),
        (2, [GateKind.H, GateKind.X]),
        (3, [GateKind.H, GateKind.X, GateKind.Z]),
    ])
    def test_gates_on_prefix(self, qc, frame, kinds):
        assert [p.gate.kind for p in qc.gates_on(0, frame)] == kinds

    @pytest.mark.parametrize("frame,window", [
        (None, None), (0, None), (-1, None),
        (1, (0, 1)), (2, (1, 2)), (3, (2, None)),
    ])
    def test_frame_window(self, qc, frame, window):
        assert qc.frame_window(frame) == window

    def test_consecutive_barriers_open_separate_frames(self):
        qc = Circuit(1).h(0).barrier().barrier()
        assert qc.sorted_barriers == [1, 2]
        assert qc.num_frames == 4
        qc.x(0)
        assert qc.placement_at(0, 2).gate.kind is GateKind.X
        assert [p.gate.kind for p in qc.gates_on(0, 2)] == [GateKind.H]

    def test_explicit_barrier_slot_is_idempotent(self):
        qc = Circuit(1).h(0).barrier(1).barrier(1)
        assert qc.sorted_barriers == [1]

    def test_window_without_barriers(self):
        qc = Circuit(1).h(0)
        assert qc.num_frames == 2
        assert qc.frame_window(1) == (0, None)

    def test_controlled_by(self):
        qc = Circuit(3).cx(0, 1).barrier().cz(0, 2)
        assert [p.wire for p in qc.controlled_by(0)] == [1, 2]
        assert [p.wire for p in qc.controlled_by(0, frame=1)] == [1]


# ---------------------------------------------------------------------------
# Editor operations
# ---------------------------------------------------------------------------

class TestEditing:

    def test_insert_into_free_cell_does_not_shift(self):
        qc = Circuit(2).h(0)
        qc.insert(1, 0, "X")
        assert kind_at(qc, 0, 0) is GateKind.H
        assert kind_at(qc, 1, 0) is GateKind.X

    def test_insert_shifts_gates_and_barriers(self):
        qc = Circuit(2).h(0).x(0).x(1, slot=1)
        qc.barrier(1)
        qc.insert(0, 1, "Z")
        assert kind_at(qc, 0, 1) is GateKind.Z
        assert kind_at(qc, 0, 2) is GateKind.X
        assert kind_at(qc, 1, 2) is GateKind.X
        assert kind_at(qc, 0, 0) is GateKind.H
        assert qc.sorted_barriers == [2]

    def test_insert_shifts_when_control_cell_taken(self):
        qc = Circuit(2).x(1)
        qc.insert(0, 0, "Z", control=1)
        assert qc.placement_at(0, 0).control == 1
        assert kind_at(qc, 1, 1) is GateKind.X

    def test_remove_marker_uncontrols_target(self):
        qc = Circuit(2).cz(0, 1)
        qc.remove(0, 0)
        assert qc.placement_at(1, 0).control is None
        assert qc.cell(0, 0).is_empty

    def test_remove_target_removes_marker(self):
        qc = Circuit(2).cz(0, 1)
        qc.remove(1, 0)
        assert qc.num_gates == 0
        assert qc.cell(0, 0).is_empty

    def test_remove_empty_cell_is_noop(self):
        qc = Circuit(1).h(0)
        qc.remove(0, 3)
        assert qc.num_gates == 1

    def test_update_gate_keeps_control(self):
        qc = Circuit(2).cz(0, 1)
        qc.update_gate(1, 0, instantiate("S"))
        p = qc.placement_at(1, 0)
        assert p.gate.kind is GateKind.S
        assert p.control == 0

    def test_set_control_free_cell(self):
        qc = Circuit(2).x(1)
        qc.set_control(1, 0, 0)
        assert qc.cell(0, 0).kind is CellKind.CONTROL

    def test_set_control_collision_shifts(self):
        qc = Circuit(2).h(0).x(1)
        qc.set_control(1, 0, 0)
        assert qc.placement_at(1, 0).control == 0
        assert kind_at(qc, 0, 1) is GateKind.H

    def test_set_control_none(self):
        qc = Circuit(2).cx(0, 1)
        qc.set_control(1, 0, None)
        assert qc.placement_at(1, 0).control is None

    def test_set_control_on_own_wire(self):
        qc = Circuit(2).x(1)
        with pytest.raises(ValueError):
            qc.set_control(1, 0, 1)

    def test_set_control_without_gate(self):
        with pytest.raises(ValueError, match="No gate"):
            Circuit(2).set_control(0, 0, 1)

    def test_move_target_carries_marker(self):
        qc = Circuit(3).cx(0, 1)
        qc.move(1, 0, 2, 3)
        p = qc.placement_at(2, 3)
        assert p.control == 0
        assert qc.cell(0, 3).kind is CellKind.CONTROL
        assert qc.cell(0, 0).is_empty

    def test_move_target_onto_control_wire_drops_control(self):
        qc = Circuit(2).cx(0, 1)
        qc.move(1, 0, 0, 2)
        assert qc.placement_at(0, 2).control is None
        assert qc.num_gates == 1

    def test_move_marker_same_column_reassigns(self):
        qc = Circuit(3).cx(0, 1)
        qc.move(0, 0, 2, 0)
        assert qc.placement_at(1, 0).control == 2

    def test_move_marker_onto_target_wire_uncontrols(self):
        qc = Circuit(2).cx(0, 1)
        qc.move(0, 0, 1, 0)
        assert qc.placement_at(1, 0).control is None

    def test_move_marker_other_column_moves_pair(self):
        qc = Circuit(3).cx(0, 1)
        qc.move(0, 0, 2, 4)
        assert qc.placement_at(1, 0) is None
        assert qc.placement_at(1, 4).control == 2

    def test_move_empty_raises(self):
        with pytest.raises(ValueError, match="Nothing to move"):
            Circuit(1).move(0, 0, 0, 1)

    def test_move_onto_occupied_shifts(self):
        qc = Circuit(1).h(0).x(0)
        qc.move(0, 1, 0, 0)
        assert kind_at(qc, 0, 0) is GateKind.X
        assert kind_at(qc, 0, 1) is GateKind.H

    def test_add_wire(self):
        qc = Circuit(1).add_wire()
        assert qc.n_wires == 2
        qc.x(1)

    def test_remove_wire_renumbers_and_drops_controls(self):
        qc = Circuit(3).h(0).cx(0, 1).x(2)
        qc.remove_wire(0)
        assert qc.n_wires == 2
        assert kind_at(qc, 0, 1) is GateKind.X
        assert qc.placement_at(0, 1).control is None
        assert kind_at(qc, 1, 0) is GateKind.X

    def test_remove_wire_renumbers_controls(self):
        qc = Circuit(3).cx(2, 1)
        qc.remove_wire(0)
        assert qc.placement_at(0, 0).control == 1

    def test_remove_last_wire(self):
        with pytest.raises(ValueError, match="last wire"):
            Circuit(1).remove_wire(0)

    def test_barrier_removal(self):
        qc = Circuit(1).h(0).barrier()
        qc.remove_barrier(1)
        assert qc.num_barriers == 0


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

class TestSerialization:

    def test_row_format(self):
        d = Circuit(2).h(0).cz(0, 1).to_dict()
        assert d["n_wires"] == 2
        assert d["rows"][0][0]["gate"] == "H"
        assert d["rows"][0][1] == {"gate": "CONTROL", "targetIndex": 1, "controlIndex": None}
        assert d["rows"][1][1]["controlIndex"] == 0
        assert d["rows"][1][0] is None

    def test_round_trip(self):
        qc = Circuit(3).h(0).cz(0, 1).u(0.1, 0.2, 0.3, 2).barrier().ct(2, 0)
        data = qc.to_dict()
        assert Circuit.from_dict(data).to_dict() == data

    def test_fixed_gate_keeps_literal_matrix(self):
        data = Circuit(1).h(0).to_dict()
        gate = Circuit.from_dict(data).placement_at(0, 0).gate
        assert gate.same_as(instantiate("H"))

    def test_barrier_cells(self):
        data = {"n_wires": 1, "rows": [[{"gate": "H"}, {"gate": "BARRIER"}, {"gate": "X"}]]}
        qc = Circuit.from_dict(data)
        assert qc.sorted_barriers == [1]
        assert kind_at(qc, 0, 2) is GateKind.X

    def test_orphan_marker_strict(self):
        data = {"n_wires": 2, "barriers": [],
                "rows": [[{"gate": "CONTROL", "targetIndex": 1}], [None]]}
        with pytest.raises(CircuitIntegrityError) as exc:
            Circuit.from_dict(data)
        assert exc.value.wire == 0
        assert exc.value.slot == 0
        assert isinstance(exc.value, ValueError)

    def test_orphan_target_strict(self):
        data = {"n_wires": 2, "rows": [[None], [{"gate": "X", "controlIndex": 0}]]}
        with pytest.raises(CircuitIntegrityError):
            Circuit.from_dict(data)

    def test_orphans_clamped_when_lenient(self, caplog):
        data = {"n_wires": 3, "rows": [
            [{"gate": "CONTROL", "targetIndex": 2}],
            [{"gate": "X", "controlIndex": 0}],
            [None],
        ]}
        with caplog.at_level(logging.WARNING, logger="qbits.circuit"):
            qc = Circuit.from_dict(data, strict=False)
        assert qc.placement_at(1, 0).control is None
        assert qc.cell(0, 0).is_empty
        assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2

    def test_unknown_gate_in_data(self):
        with pytest.raises(KeyError):
            Circuit.from_dict({"n_wires": 1, "rows": [[{"gate": "SWAP"}]]})

    def test_too_many_rows(self):
        with pytest.raises(ValueError):
            Circuit.from_dict({"n_wires": 1, "rows": [[None], [None]]})


def test_draw():
    art = Circuit(2).h(0).cx(0, 1).barrier().draw()
    lines = art.splitlines()
    assert lines[0].startswith("q0: ")
    assert "[H]" in lines[0]
    assert "●" in lines[0]
    assert "│" in lines[1]
    assert "[X]" in lines[2]
    assert "░" in art


def test_draw_empty():
    assert Circuit(1).draw() == "Empty circuit"


def test_repr():
    assert "controlled=1" in repr(Circuit(2).cx(0, 1))
