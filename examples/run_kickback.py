"""Example: Watch phase kickback flip a control qubit with qbits."""
import sys
sys.path.insert(0, 'src')

from qbits import Circuit, simulate
from qbits.engine import kickback_signals
from qbits.visualization import format_state

print("=" * 50)
print("qbits: CZ Phase Kickback Example")
print("=" * 50)

qc = Circuit(2).h(0).x(1).barrier().cz(0, 1)
print()
print(qc.draw())

for frame in range(qc.num_frames):
    result = simulate(qc, frame=frame)
    control = result.branches[0][0]
    print(f"\nFrame {frame}: q0 = {format_state(control.state)}  "
          f"(x = {control.bloch.x:+.3f})")
    for signal in kickback_signals(qc, frame):
        print(f"  q{signal.from_wire} -> q{signal.to_wire} kickback={signal.has_kickback}")

print("\nExpected: q0 moves from |+⟩ (x = +1) to |−⟩ (x = -1)")
