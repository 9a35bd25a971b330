"""Breakpoint payload extraction for ``view(...)`` and ``step(...)`` calls."""

from __future__ import annotations

import logging
from typing import Any

from . import ast_types as ast
from . import constants
from .trace_types import (
    BreakpointPayload,
    StepGroup,
    StepPayload,
    ViewEntry,
    ViewOptionsPayload,
    ViewPairsPayload,
)
from .vm import to_native
from .vm_types import BreakpointCall

logger = logging.getLogger(__name__)


class PayloadError(Exception):
    """Raised when breakpoint call arguments match no known payload shape."""


def _string_literal(node: ast.Node | None) -> str | None:
    if isinstance(node, ast.Literal) and node.value is not None:
        return str(node.value)
    return None


def _view_pairs(array: ast.ArrayExpression, variables: dict[str, Any]) -> ViewPairsPayload:
    entries = []
    for element in array.elements:
        if not isinstance(element, ast.ArrayExpression) or len(element.elements) < 2:
            continue
        expression = _string_literal(element.elements[0])
        description = _string_literal(element.elements[1])
        if expression is None or description is None:
            continue
        index_variable = (
            _string_literal(element.elements[2]) if len(element.elements) > 2 else None
        )
        entries.append(
            ViewEntry(
                expression=expression,
                description=description,
                value=variables.get(expression),
                index_variable=index_variable,
                index_value=variables.get(index_variable) if index_variable else None,
            )
        )
    return ViewPairsPayload(entries=entries)


def _view_options(
    description: str, args: tuple[ast.Node, ...], variables: dict[str, Any]
) -> ViewOptionsPayload:
    variable: str | None = None
    expression: str | None = None
    options = args[1] if len(args) > 1 else None
    if isinstance(options, ast.ObjectExpression):
        for prop in options.properties:
            if prop.key == "value":
                if isinstance(prop.value, ast.Identifier):
                    variable = prop.value.name
                else:
                    variable = _string_literal(prop.value)
            elif prop.key == "expression":
                expression = _string_literal(prop.value)
    elif isinstance(options, ast.Identifier):
        variable = options.name
        expression = _string_literal(args[2]) if len(args) > 2 else None
    elif options is not None:
        raise PayloadError(f"unsupported view options argument {options.type}")
    return ViewOptionsPayload(
        description=description,
        variable=variable,
        value=variables.get(variable) if variable else None,
        expression=expression,
    )


def extract_view_payload(
    call: ast.CallExpression, variables: dict[str, Any]
) -> ViewPairsPayload | ViewOptionsPayload:
    """Pattern-match the literal arguments of a ``view`` call."""
    args = call.arguments
    if not args:
        return ViewPairsPayload()
    first = args[0]
    if isinstance(first, ast.ArrayExpression):
        return _view_pairs(first, variables)
    description = _string_literal(first)
    if description is not None:
        return _view_options(description, args, variables)
    raise PayloadError(f"unsupported view argument {first.type}")


def _step_group(raw: Any) -> StepGroup:
    if not isinstance(raw, dict):
        raise PayloadError("step formula entry must be an object")
    pairs = []
    for pair in raw.get("values") or []:
        if not isinstance(pair, list) or len(pair) < 2:
            raise PayloadError("step values must be [name, value] pairs")
        pairs.append((str(pair[0]), pair[1]))
    expression = raw.get("expression")
    return StepGroup(
        description=str(raw.get("description") or ""),
        values=pairs,
        expression=str(expression) if expression is not None else None,
    )


def extract_step_payload(args: list[Any]) -> StepPayload:
    """Build a ``StepPayload`` from the evaluated arguments of a ``step`` call."""
    native = [to_native(arg) for arg in args]
    if not native or not isinstance(native[0], dict):
        raise PayloadError("step() expects an object argument")
    first = native[0]
    step_id = str(native[1]) if len(native) > 1 and native[1] is not None else None
    if {"description", "values", "expression"} & first.keys():
        formulas = {step_id or "": _step_group(first)}
    else:
        formulas = {formula_id: _step_group(raw) for formula_id, raw in first.items()}
    return StepPayload(step_id=step_id, formulas=formulas)


def build_payload(
    call: BreakpointCall, variables: dict[str, Any]
) -> tuple[BreakpointPayload | None, dict[str, Any]]:
    """Payload for a fired breakpoint call plus any debug entries.

    Extraction failures are logged and reported as a ``[View Error]`` debug
    entry instead of being raised.
    """
    try:
        if call.name == constants.STEP_FUNCTION:
            return extract_step_payload(call.args), {}
        return extract_view_payload(call.node, variables), {}
    except PayloadError as exc:
        logger.warning("Could not extract breakpoint payload: %s", exc)
        return None, {
            constants.DEBUG_VIEW_ERROR: f"{constants.VIEW_EXTRACTION_ERROR}: {exc}"
        }
