"""Demo: step through a manual function and print what a UI would show at each breakpoint."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stepper.controller import ExecutionSession
from stepper.host import InMemoryHost
from stepper.run_types import Environment, SessionConfig, Variable

MANUAL = """\
function manual(variables) {
  var xs = variables.X;
  var total = 0;
  for (var i = 0; i < xs.length; i++) {
    total = total + xs[i];
    // @view "xs"->"Element"->"i"
  }
  var mean = total / xs.length;
  // @view "mean"->"Mean"
  return mean;
}
"""


def main():
    environment = Environment(
        manual=MANUAL,
        formula="mu = sum(X) / |X|",
        variables={
            "X": Variable(role="input", default=[4, 8, 15, 16]),
            "mu": Variable(role="computed"),
        },
    )
    host = InMemoryHost(environment.current_values())
    session = ExecutionSession(host, SessionConfig(defer_visual_cues=False))
    session.load(environment)

    print("=" * 60)
    print("PROGRAM:")
    print(session.program_text)
    print("=" * 60)
    print(f"{session.history_length} steps, breakpoints at {list(session.breakpoint_points)}")
    print("=" * 60)

    for _ in session.breakpoint_points:
        session.step_to_next_breakpoint()
        step = session.current_step
        print(f"step {step.index}: active={sorted(session.active_variables)} "
              f"indices={session.active_indices}")
        print(f"    {step.payload.model_dump_json()}")

    if session.error:
        print(f"error: {session.error}")


if __name__ == "__main__":
    main()
