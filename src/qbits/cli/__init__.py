"""
Command-line interface for qbits.

Usage:
    qbits simulate cz_kickback --frame 2
    qbits simulate circuit.json --init plus
    qbits gates
    qbits presets
    qbits serve --port 8888
"""
import argparse
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _load_circuit(source):
    """Circuit from a JSON file in the cell-row format, or a preset key."""
    from ..circuit import Circuit
    from ..presets import PRESETS, get_preset

    if source in PRESETS:
        return get_preset(source), PRESETS[source].initial.value

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(
            f"'{source}' is neither a file nor a preset. Presets: {', '.join(sorted(PRESETS))}"
        )
    data = json.loads(path.read_text(encoding="utf-8"))
    if "circuit" in data:
        return Circuit.from_dict(data["circuit"]), data.get("initial_state")
    return Circuit.from_dict(data), data.get("initial_state")


def cmd_simulate(args):
    """Simulate a circuit up to a frame and print branches and probabilities."""
    from ..engine import kickback_signals, simulate
    from ..state import InitialState
    from ..visualization import branches_ascii, draw_circuit, probabilities_ascii

    circuit, preset_init = _load_circuit(args.source)
    initial = InitialState.parse(args.init or preset_init)
    result = simulate(circuit, frame=args.frame, initial=initial)

    if args.json:
        data = result.to_dict()
        data["signals"] = [s.to_dict() for s in kickback_signals(circuit, args.frame, initial)]
        data["num_frames"] = circuit.num_frames
        print(json.dumps(data, indent=2))
        return

    print(draw_circuit(circuit))
    print(f"\nFrame {result.frame} of {circuit.num_frames - 1}, initial state {initial.label}\n")
    for wire, branches in enumerate(result.branches):
        print(branches_ascii(branches, wire))
    print()
    print(probabilities_ascii(result.probabilities))

    signals = kickback_signals(circuit, args.frame, initial)
    if signals:
        print("\nControl signals:")
        for s in signals:
            mark = "  (phase kickback)" if s.has_kickback else ""
            print(f"  q{s.from_wire} -> q{s.to_wire} at slot {s.slot}{mark}")


def cmd_gates(args):
    """List the gate catalog."""
    from ..gates import GATE_CATALOG
    from ..visualization import format_angle

    print(f"{'Gate':<6}{'θ':>8}{'φ':>8}{'λ':>8}  Description")
    print("─" * 60)
    for info in GATE_CATALOG.values():
        d = info.decomposition
        print(
            f"{info.label:<6}{format_angle(d.theta):>8}{format_angle(d.phi):>8}"
            f"{format_angle(d.lam):>8}  {info.description}"
        )


def cmd_presets(args):
    """List the built-in preset circuits."""
    from ..presets import PRESETS

    for key, preset in PRESETS.items():
        circuit = preset.build()
        print(f"  {key:<16} {preset.name} ({circuit.n_wires} wires, {circuit.num_frames} frames)")
        print(f"  {'':<16} {preset.description}")


def cmd_serve(args):
    """Launch the dashboard API server."""
    from ..dashboard import launch

    launch(port=args.port, host=args.host, open_browser=not args.no_browser)


def cmd_info(args):
    """Show qbits information."""
    from .. import __version__

    print(f"""
qbits v{__version__}
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Single-qubit-per-wire circuit simulator for animated Bloch spheres.

Features:
  • Per-wire branch enumeration over control outcomes
  • Phase kickback detection onto control wires
  • Joint measurement probabilities
  • Frame-by-frame playback split by barriers

Usage:
  qbits presets
  qbits simulate cz_kickback --frame 1
  qbits serve
""")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='qbits',
        description='Single-qubit-per-wire quantum circuit simulator'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Simulate command
    sim_parser = subparsers.add_parser('simulate', help='Simulate a circuit')
    sim_parser.add_argument('source', help='Circuit JSON file or preset name')
    sim_parser.add_argument('--frame', type=int, default=None,
                            help='Frame number (default: full circuit)')
    sim_parser.add_argument('--init', choices=['zero', 'one', 'plus'], default=None,
                            help='Initial state of every wire')
    sim_parser.add_argument('--json', action='store_true', help='Print JSON')
    sim_parser.set_defaults(func=cmd_simulate)

    # Gates command
    gates_parser = subparsers.add_parser('gates', help='List gates')
    gates_parser.set_defaults(func=cmd_gates)

    # Presets command
    presets_parser = subparsers.add_parser('presets', help='List preset circuits')
    presets_parser.set_defaults(func=cmd_presets)

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the dashboard API')
    serve_parser.add_argument('--port', type=int, default=8888)
    serve_parser.add_argument('--host', type=str, default='127.0.0.1')
    serve_parser.add_argument('--no-browser', action='store_true',
                              help='Do not open a browser')
    serve_parser.set_defaults(func=cmd_serve)

    # Info command
    info_parser = subparsers.add_parser('info', help='Show qbits info')
    info_parser.set_defaults(func=cmd_info)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        args.func(args)
    except (FileNotFoundError, KeyError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
