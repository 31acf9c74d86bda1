"""
qbits Dashboard Server.

A Flask application providing the JSON API a Bloch-sphere renderer
drives:
- Gate catalog and preset circuits
- Frame-by-frame simulation (branches, joint probabilities, signals)
- Kickback and decomposition helpers for the gate settings panel

Usage:
    from qbits.dashboard import launch
    launch(port=8888)

    # Or via CLI:
    # qbits serve --port 8888
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Any

import numpy as np
from flask import Flask, current_app, jsonify, request

from qbits.circuit import Circuit
from qbits.engine import SimulationConfig, kickback_signals, simulate
from qbits.gates import (
    GATE_CATALOG,
    Decomposition,
    extract_decomposition,
    has_kickback_potential,
    instantiate,
    is_unitary,
)
from qbits.kickback import kickback_phase
from qbits.presets import PRESETS
from qbits.state import InitialState, state_from_list

logger = logging.getLogger(__name__)

CONFIG_KEY = "QBITS_SIMULATION"

# Branch enumeration visits up to 2^k control combinations per wire.
MAX_CONTROLS_PER_WIRE = 12


# ---------------------------------------------------------------------------
# Request handlers
# ---------------------------------------------------------------------------

def _require(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    if key not in data:
        raise ValueError(f"Missing '{key}'")
    return data[key]


def _check_controls(circuit: Circuit) -> None:
    controls: dict[int, set[int]] = {}
    for p in circuit.placements:
        if p.control is not None:
            controls.setdefault(p.wire, set()).add(p.control)
    for wire, sources in controls.items():
        if len(sources) > MAX_CONTROLS_PER_WIRE:
            raise ValueError(
                f"Wire {wire} has {len(sources)} distinct controls; "
                f"at most {MAX_CONTROLS_PER_WIRE} are supported"
            )


def _parse_frame(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"Frame must be an integer or null, got {raw!r}")
    return raw


def _simulate(data: dict, config: SimulationConfig) -> dict:
    """Run the branch engine for one frame of a circuit."""
    raw = _require(data, "circuit")
    if not isinstance(raw, dict):
        raise ValueError("'circuit' must be an object with n_wires, barriers and rows")
    circuit = Circuit.from_dict(raw)
    _check_controls(circuit)
    frame = _parse_frame(data.get("frame"))
    initial = InitialState.parse(data.get("initial_state"))

    result = simulate(circuit, frame=frame, initial=initial, config=config)
    payload = result.to_dict()
    payload["signals"] = [
        s.to_dict() for s in kickback_signals(circuit, frame, initial, config)
    ]
    payload["num_frames"] = circuit.num_frames
    return payload


def _kickback(data: dict, config: SimulationConfig) -> dict:
    """Eigenphase of a gate on a given target state."""
    name = _require(data, "gate")
    decomp = data.get("decomposition")
    if decomp is not None and not isinstance(decomp, dict):
        raise ValueError("'decomposition' must be an object")
    gate = instantiate(name, Decomposition.from_dict(decomp) if decomp else None)
    state = state_from_list(_require(data, "state"))

    phase = kickback_phase(gate, state, config.kickback_tolerance)
    return {
        "phase": phase,
        "has_kickback": phase is not None and abs(phase) > config.kickback_tolerance,
        "potential": has_kickback_potential(gate),
    }


def _decompose(data: dict) -> dict:
    """ZYZ angles of a 2x2 matrix given as [[[re, im], ...], ...]."""
    rows = _require(data, "matrix")
    try:
        matrix = np.array(
            [[complex(re, im) for re, im in row] for row in rows], dtype=np.complex128
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Matrix entries must be [re, im] pairs: {e}") from None
    if matrix.shape != (2, 2):
        raise ValueError(f"Matrix must be 2x2, got shape {matrix.shape}")

    decomp = extract_decomposition(matrix)
    return {"decomposition": decomp.to_dict(), "unitary": is_unitary(matrix, tol=1e-6)}


# ---------------------------------------------------------------------------
# Flask Application
# ---------------------------------------------------------------------------

def create_app(config: SimulationConfig | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.json.sort_keys = False
    app.config[CONFIG_KEY] = config or SimulationConfig()

    def sim_config() -> SimulationConfig:
        return current_app.config[CONFIG_KEY]

    # ---- Routes ----

    @app.route("/api/gates")
    def api_gates():
        return jsonify([info.to_dict() for info in GATE_CATALOG.values()])

    @app.route("/api/simulate", methods=["POST"])
    def api_simulate():
        try:
            data = request.get_json(silent=True)
            return jsonify(_simulate(data, sim_config()))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.debug("Rejected simulate request: %s", e)
            return jsonify({"error": str(e)}), 400

    @app.route("/api/kickback", methods=["POST"])
    def api_kickback():
        try:
            data = request.get_json(silent=True)
            return jsonify(_kickback(data, sim_config()))
        except (KeyError, ValueError, TypeError) as e:
            return jsonify({"error": str(e)}), 400

    @app.route("/api/decompose", methods=["POST"])
    def api_decompose():
        try:
            data = request.get_json(silent=True)
            return jsonify(_decompose(data))
        except (KeyError, ValueError, TypeError) as e:
            return jsonify({"error": str(e)}), 400

    @app.route("/api/presets")
    def api_presets():
        return jsonify({key: preset.to_dict() for key, preset in PRESETS.items()})

    return app


def launch(port: int = 8888, host: str = "127.0.0.1", debug: bool = False,
           open_browser: bool = True, config: SimulationConfig | None = None):
    """
    Launch the qbits dashboard API.

    Parameters
    ----------
    port : int
        Port to serve on (default 8888).
    host : str
        Host address (default localhost).
    debug : bool
        Enable Flask debug mode.
    open_browser : bool
        Automatically open the gate catalog in a browser.
    config : SimulationConfig, optional
        Engine tunables for every request.
    """
    app = create_app(config)

    url = f"http://{host}:{port}"
    print(f"""
╔══════════════════════════════════════════════════════╗
║                qbits ⚛ Dashboard API                 ║
╠══════════════════════════════════════════════════════╣
║                                                      ║
║   API: {url:<45s} ║
║                                                      ║
║   Press Ctrl+C to stop the server.                   ║
╚══════════════════════════════════════════════════════╝
""")

    if not debug:
        logging.getLogger('werkzeug').setLevel(logging.ERROR)

    if open_browser:
        threading.Timer(1.0, lambda: webbrowser.open(f"{url}/api/gates")).start()

    app.run(host=host, port=port, debug=debug)
