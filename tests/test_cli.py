"""Tests for the qbits command line and presets."""

import json

import pytest

from qbits.cli import build_parser, main
from qbits.presets import PRESETS, get_preset


class TestPresets:

    @pytest.mark.parametrize("key", sorted(PRESETS))
    def test_presets_build_fresh_circuits(self, key):
        a, b = get_preset(key), get_preset(key)
        assert a is not b
        assert a.to_dict()["rows"] == b.to_dict()["rows"]
        assert a.num_gates > 0

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Unknown preset"):
            get_preset("teleportation")

    def test_preset_dict_is_loadable(self):
        from qbits.circuit import Circuit

        data = PRESETS["cz_kickback"].to_dict()
        assert data["initial_state"] == "zero"
        assert Circuit.from_dict(data).num_gates == 3


class TestCommands:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_simulate_preset(self, capsys):
        assert main(["simulate", "cz_kickback"]) == 0
        out = capsys.readouterr().out
        assert "q0 branches:" in out
        assert "Probabilities:" in out
        assert "|01⟩" in out

    def test_simulate_signals_for_frame(self, capsys):
        assert main(["simulate", "cz_kickback", "--frame", "2"]) == 0
        out = capsys.readouterr().out
        assert "q0 -> q1 at slot 1  (phase kickback)" in out

    def test_simulate_json(self, capsys):
        assert main(["simulate", "superposition", "--json", "--init", "one"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["initial_state"] == "one"
        assert data["num_frames"] == 2
        assert data["signals"] == []

    def test_simulate_file(self, tmp_path, capsys):
        from qbits.circuit import Circuit

        path = tmp_path / "circuit.json"
        path.write_text(json.dumps(Circuit(1).x(0).to_dict()), encoding="utf-8")
        assert main(["simulate", str(path), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["probabilities"] == [{"state": "1", "probability": 1.0}]

    def test_simulate_missing_source(self, capsys):
        assert main(["simulate", "no-such-file.json"]) == 1

    def test_simulate_broken_circuit(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({
            "n_wires": 2, "rows": [[{"gate": "CONTROL", "targetIndex": 1}], [None]],
        }), encoding="utf-8")
        assert main(["simulate", str(path)]) == 1

    def test_gates(self, capsys):
        assert main(["gates"]) == 0
        out = capsys.readouterr().out
        for label in ("I", "X", "Y", "Z", "H", "S", "T", "U"):
            assert f"\n{label} " in out
        assert "π/2" in out

    def test_presets(self, capsys):
        assert main(["presets"]) == 0
        out = capsys.readouterr().out
        for key in PRESETS:
            assert key in out

    def test_info(self, capsys):
        from qbits import __version__

        assert main(["info"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_serve_arguments(self):
        args = build_parser().parse_args(["serve", "--port", "9000", "--no-browser"])
        assert args.port == 9000
        assert args.no_browser
        assert args.host == "127.0.0.1"

    def test_invalid_init_rejected(self):
        with pytest.raises(SystemExit):
            main(["simulate", "superposition", "--init", "minus"])
