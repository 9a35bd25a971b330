"""Command-line entry point: trace a manual function from an environment JSON file."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from . import api
from .llm_client import get_llm_client
from .llm_generator import ManualFunctionGenerationError, generate_manual_function
from .manual import compute_with_manual_engine
from .run_types import Environment
from .trace_types import ExecutionHistory

_DEMO_ENVIRONMENT = """\
{
  "formula": "E = m * c^2",
  "manual": "function manual(variables) {\\n  var m = variables.m;\\n  var c = variables.c;\\n  var E = m * c * c;\\n  // @view \\"E\\"->\\"Energy\\"\\n  return E;\\n}",
  "variables": {
    "m": {"role": "input", "default": 2},
    "c": {"role": "constant", "default": 3},
    "E": {"role": "computed"}
  }
}"""


def _load_environment(path: str | None) -> Environment:
    if not path:
        print("No file provided. Using built-in demo:\n")
        return Environment.model_validate_json(_DEMO_ENVIRONMENT)
    with open(path) as f:
        return Environment.model_validate_json(f.read())


def format_trace(history: ExecutionHistory, program_text: str) -> str:
    """Render *history* as one line per step, marking breakpoints and blocks."""
    breakpoints = set(history.breakpoint_points)
    blocks = set(history.block_points)
    lines = []
    for step in history.steps:
        marker = "B" if step.index in breakpoints else ("{" if step.index in blocks else " ")
        code = program_text[step.highlight.start : step.highlight.end].split("\n")[0]
        lines.append(f"{step.index:>5} {marker} {step.node_type:<22} {code[:48]}")
        if step.payload is not None:
            lines.append(f"        payload: {step.payload.model_dump_json()}")
    if history.error:
        lines.append(f"error: {history.error}")
    return "\n".join(lines)


def _generate(args: argparse.Namespace, environment: Environment | None) -> int:
    variables = environment.variables if environment else {}
    computed = args.computed or [
        name for name, var in variables.items() if var.role == "computed"
    ]
    inputs = args.inputs or [
        name for name, var in variables.items() if var.role != "computed"
    ]
    client = get_llm_client(provider=args.backend, model=args.model)
    try:
        code = generate_manual_function(args.generate, computed, inputs, client)
    except ManualFunctionGenerationError as exc:
        print(f"Generation failed: {exc}", file=sys.stderr)
        return 1
    print(code)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Step-debug a manual formula function")
    parser.add_argument("file", nargs="?",
                        help="Environment JSON file (manual, variables, variableLinkage)")
    parser.add_argument("--code-only", action="store_true",
                        help="Only print the transformed program")
    parser.add_argument("--linkage-only", action="store_true",
                        help="Only print the detected variable linkage")
    parser.add_argument("--ast", action="store_true",
                        help="Only print the AST of the transformed program")
    parser.add_argument("--compute", action="store_true",
                        help="Evaluate the manual function and print computed values")
    parser.add_argument("--generate", metavar="FORMULA", default=None,
                        help="Generate a manual function for FORMULA with an LLM")
    parser.add_argument("--computed", nargs="*", default=None,
                        help="Computed variable names for --generate")
    parser.add_argument("--inputs", nargs="*", default=None,
                        help="Input variable names for --generate")
    parser.add_argument("--backend", "-b", default="claude",
                        choices=["claude", "openai"],
                        help="LLM backend (default: claude)")
    parser.add_argument("--model", default="",
                        help="LLM model override")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.generate is not None:
        return _generate(args, _load_environment(args.file) if args.file else None)

    environment = _load_environment(args.file)

    if args.code_only or args.ast:
        extracted = api.transform_source(environment.manual or "")
        if extracted.code is None:
            print(extracted.error, file=sys.stderr)
            return 1
        if args.ast:
            print("═══ AST ═══")
            print(api.dump_ast(extracted.code))
        else:
            print("═══ Program ═══")
            print(extracted.code)
        return 0

    if args.linkage_only:
        print("═══ Linkage ═══")
        print(json.dumps(api.detect_linkage(environment).variable_linkage, indent=2))
        return 0

    if args.compute:
        print("═══ Computed ═══")
        print(json.dumps(compute_with_manual_engine(environment), indent=2))
        return 0

    extracted = api.transform_source(environment.manual or "")
    history = api.build_history(environment)
    print("═══ Trace ═══")
    print(format_trace(history, extracted.code or ""))
    return 1 if history.error else 0


if __name__ == "__main__":
    sys.exit(main())
