"""Composable API functions for the step-debugger pipelines.

Each function corresponds to a CLI workflow (--code-only, --linkage-only,
--ast, the default trace) but is callable programmatically without argparse.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Mapping

from . import ast_types as ast
from .controller import ExecutionSession
from .extract import ExtractResult, extract_manual, transform_function
from .frontend import parse_program
from .host import InMemoryHost
from .linkage import LinkageResult, extract_linkages
from .run_types import Environment, SessionConfig
from .trace_types import ExecutionHistory

logger = logging.getLogger(__name__)


def transform_source(source: str) -> ExtractResult:
    """Turn a manual function's source text into the executable program.

    Args:
        source: The author's function text.

    Returns:
        An ``ExtractResult``; ``code`` is ``None`` and ``error`` set on failure.
    """
    return transform_function(source)


def _describe(node: ast.Node) -> str:
    details = []
    for f in fields(node):
        if f.name in ("start", "end"):
            continue
        value = getattr(node, f.name)
        if isinstance(value, (str, int, float, bool)) or value is None:
            details.append(f"{f.name}={value!r}")
    suffix = f" {' '.join(details)}" if details else ""
    return f"{node.type} [{node.start}:{node.end}]{suffix}"


def dump_ast(source: str) -> str:
    """Parse JavaScript source and return an indented text dump of its AST.

    Args:
        source: Program text.

    Returns:
        One node per line, children indented two spaces below their parent.
    """
    program = parse_program(source)
    lines: list[str] = []

    def visit(node: ast.Node, depth: int) -> None:
        lines.append(f"{'  ' * depth}{_describe(node)}")
        for child in ast.children(node):
            visit(child, depth + 1)

    visit(program, 0)
    return "\n".join(lines)


def detect_linkage(environment: Environment) -> LinkageResult:
    """Run the linkage analyzer over an environment's transformed manual function.

    Args:
        environment: Author configuration.

    Returns:
        The detected linkages (empty when the function cannot be transformed).
    """
    extracted = extract_manual(environment)
    if extracted.code is None:
        logger.warning("No linkage detected: %s", extracted.error)
        return LinkageResult()
    return extract_linkages(
        extracted.code,
        environment.current_values(),
        environment.variables,
        extracted.values_object_name,
    )


def build_history(
    environment: Environment,
    values: Mapping[str, Any] | None = None,
    config: SessionConfig = SessionConfig(),
) -> ExecutionHistory:
    """Execute an environment's manual function headlessly and return its history.

    Composes: extract_manual → initialize_interpreter → full execution,
    using an ``InMemoryHost`` seeded with the environment's current values.

    Args:
        environment: Author configuration.
        values: Overrides for the environment's variable values; they
            replace declared defaults, which a refresh would otherwise restore.
        config: Session configuration.

    Returns:
        The recorded ``ExecutionHistory`` (``error`` set on failure).
    """
    if values:
        environment = environment.model_copy(deep=True)
        for name, value in values.items():
            if name in environment.variables:
                environment.variables[name].default = value
    host = InMemoryHost({**environment.current_values(), **(values or {})})
    session = ExecutionSession(host, config)
    extracted = session.load(environment)
    history = session.history
    if extracted.code is None and history.error is None:
        history.error = extracted.error
    logger.info("Built history of %d steps", len(history))
    return history
