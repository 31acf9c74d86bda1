"""
qbits: single-qubit-per-wire circuit simulator for animated Bloch spheres.

Features:
- Fluent circuit builder with explicit controlled edges and barriers
- Per-wire branch enumeration over control-wire outcomes
- Phase kickback detection onto control wires
- Joint measurement probabilities
- ASCII rendering, CLI and a Flask JSON API

Quick Start:
    >>> from qbits import Circuit, simulate
    >>> qc = Circuit(2).h(0).x(1).barrier().cz(0, 1)
    >>> result = simulate(qc)
    >>> round(result.branches[0][0].bloch.x, 3)  # control kicked to |−⟩
    -1.0

Frames:
    >>> round(simulate(qc, frame=1).branches[0][0].bloch.x, 3)  # before the CZ: |+⟩
    1.0
"""
__version__ = "0.3.0"

from .circuit import Cell, CellKind, Circuit, CircuitIntegrityError, Placement
from .engine import (
    Branch,
    KickbackSignal,
    RotationStep,
    SimulationConfig,
    SimulationResult,
    assign_depth_offsets,
    build_state_cache,
    control_signal,
    effective_gates,
    kickback_signals,
    simulate,
    wire_branches,
)
from .gates import (
    GATE_CATALOG,
    Decomposition,
    GateInstance,
    GateKind,
    build_u,
    extract_decomposition,
    has_kickback_potential,
    instantiate,
)
from .kickback import has_kickback, kickback_phase
from .probabilities import JointOutcome, joint_probabilities
from .state import InitialState, bloch_coordinates, initial_state
from .visualization import draw_circuit, format_angle, format_state, parse_angle

__all__ = [
    # Circuit
    'Circuit',
    'Cell',
    'CellKind',
    'Placement',
    'CircuitIntegrityError',
    # Engine
    'simulate',
    'wire_branches',
    'build_state_cache',
    'effective_gates',
    'kickback_signals',
    'control_signal',
    'assign_depth_offsets',
    'SimulationConfig',
    'SimulationResult',
    'Branch',
    'RotationStep',
    'KickbackSignal',
    # Gates
    'GATE_CATALOG',
    'GateKind',
    'GateInstance',
    'Decomposition',
    'build_u',
    'extract_decomposition',
    'instantiate',
    'has_kickback_potential',
    # Kernel
    'InitialState',
    'initial_state',
    'bloch_coordinates',
    'kickback_phase',
    'has_kickback',
    'JointOutcome',
    'joint_probabilities',
    # Visualization
    'draw_circuit',
    'format_state',
    'format_angle',
    'parse_angle',
]
