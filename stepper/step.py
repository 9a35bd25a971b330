"""Step/state builder — snapshots the interpreter into immutable history entries."""

from __future__ import annotations

import logging
import time
from typing import Any

from . import constants
from .interpreter import StepInterpreter, visible_bindings
from .trace_types import Highlight, Step
from .view import PayloadError, extract_view_payload
from .vm import to_native
from .vm_types import State

logger = logging.getLogger(__name__)


def build_stack_trace(stack: list[State]) -> tuple[str, ...]:
    """One ``"Frame <i>: <NodeType> (<function>)"`` line per active state."""
    lines = []
    for index, state in enumerate(stack):
        func_name = f" ({state.func.name})" if state.func is not None and state.func.name else ""
        lines.append(f"Frame {index}: {state.node.type}{func_name}")
    return tuple(lines)


def collect_variables(
    interpreter: StepInterpreter, names: list[str] | None = None
) -> dict[str, Any]:
    return {
        name: to_native(value)
        for name, value in visible_bindings(interpreter, names).items()
    }


def _current_function(stack: list[State]) -> str:
    for state in reversed(stack):
        if state.func is not None:
            return state.func.name or "(anonymous)"
    return ""


def _debug_entries(
    interpreter: StepInterpreter, stack: list[State], program_text: str
) -> dict[str, Any]:
    if not stack:
        return {constants.DEBUG_STACK_DEPTH: 0}
    node = stack[-1].node
    snippet = program_text[node.start : node.end]
    if len(snippet) > 60:
        snippet = snippet[:57] + "..."
    return {
        constants.DEBUG_CURRENT_NODE_TYPE: node.type,
        constants.DEBUG_STACK_DEPTH: len(stack),
        constants.DEBUG_NODE_INFO: snippet,
        constants.DEBUG_CURRENT_FUNCTION: _current_function(stack),
        constants.DEBUG_INTERPRETER_VALUE: to_native(interpreter.value),
    }


def build_state(
    interpreter: StepInterpreter, index: int, program_text: str
) -> Step:
    """Snapshot *interpreter* as history entry *index*.

    While a breakpoint call is being evaluated the entry also carries the
    payload its literal arguments describe.
    """
    stack = interpreter.get_state_stack()
    node = stack[-1].node if stack else None
    variables = collect_variables(interpreter)
    debug = _debug_entries(interpreter, stack, program_text)

    payload = None
    frame = interpreter.breakpoint_frame()
    if frame is not None and frame.node.callee.name == constants.VIEW_FUNCTION:
        try:
            payload = extract_view_payload(frame.node, variables)
        except PayloadError as exc:
            logger.debug("View payload unavailable at step %d: %s", index, exc)
            debug[constants.DEBUG_VIEW_ERROR] = f"{constants.VIEW_EXTRACTION_ERROR}: {exc}"

    return Step(
        index=index,
        highlight=Highlight(node.start, node.end) if node is not None else Highlight(),
        variables=variables,
        stack_trace=build_stack_trace(stack),
        timestamp=time.time(),
        node_type=node.type if node is not None else "",
        payload=payload,
        debug=debug,
    )
