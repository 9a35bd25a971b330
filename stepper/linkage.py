"""Static linkage analysis — which locals stand for which external variables.

The analyzer walks variable declarations and assignments in source order
and classifies each right-hand side as a direct read of the values object,
an indexed read of an array alias, or a general expression. Direct reads
resolve first, then indexed reads, then expressions (which may build on
the earlier linkages).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from . import ast_types as ast
from . import constants
from .frontend import JSSyntaxError, ParserFactory, parse_program
from .run_types import LinkageTarget, Variable

logger = logging.getLogger(__name__)


@dataclass
class LinkageResult:
    variable_linkage: dict[str, LinkageTarget] = field(default_factory=dict)
    array_aliases: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _Assignment:
    local: str
    rhs: ast.Node


def _external_read(node: ast.Node, values_name: str) -> str | None:
    """External id for ``values.X`` / ``values["X"]``, else ``None``."""
    if not isinstance(node, ast.MemberExpression):
        return None
    if not (isinstance(node.object, ast.Identifier) and node.object.name == values_name):
        return None
    if not node.computed:
        return node.property.name
    if isinstance(node.property, ast.Literal) and isinstance(node.property.value, str):
        return node.property.value
    return None


def _indexed_read(node: ast.Node) -> str | None:
    """Array name for ``arr[i]``, else ``None``."""
    if (
        isinstance(node, ast.MemberExpression)
        and node.computed
        and isinstance(node.object, ast.Identifier)
    ):
        return node.object.name
    return None


def _collect_assignments(program: ast.Program) -> list[_Assignment]:
    assignments = []
    for node in ast.walk(program):
        if isinstance(node, ast.VariableDeclarator) and node.init is not None:
            assignments.append(_Assignment(node.id.name, node.init))
        elif isinstance(node, ast.AssignmentExpression) and isinstance(
            node.left, ast.Identifier
        ):
            assignments.append(_Assignment(node.left.name, node.right))
    return assignments


def _referenced(node: ast.Node, values_name: str) -> tuple[list[str], list[str]]:
    """Identifiers and external reads appearing in an expression."""
    names: list[str] = []
    externals: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        external = _external_read(current, values_name)
        if external is not None:
            externals.append(external)
            continue
        if isinstance(current, ast.Identifier):
            names.append(current.name)
            continue
        if isinstance(current, ast.MemberExpression) and not current.computed:
            stack.append(current.object)
            continue
        if isinstance(current, ast.FUNCTION_TYPES):
            continue
        stack.extend(reversed(list(ast.children(current))))
    return names, externals


def _targets(target: LinkageTarget) -> list[str]:
    return list(target) if isinstance(target, list) else [target]


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def extract_linkages(
    code: str,
    values: Mapping[str, Any] | None = None,
    variables: Mapping[str, Variable] | None = None,
    values_name: str = constants.DEFAULT_VALUES_OBJECT,
    parser_factory: ParserFactory | None = None,
) -> LinkageResult:
    """Infer the linkage map of *code*.

    Args:
        code: Program text (or a bare function body).
        values: Current external values, used to tell arrays from scalars.
        variables: Declared external variables, used for ``memberOf`` links.
        values_name: Name of the local bound to the external values object.
        parser_factory: Optional parser override.

    Returns:
        A ``LinkageResult``; empty on parse failure.
    """
    values = values or {}
    variables = variables or {}
    result = LinkageResult()
    try:
        program = parse_program(code, parser_factory)
    except JSSyntaxError as exc:
        logger.warning("Linkage analysis skipped, parse failed: %s", exc)
        return result

    direct: list[tuple[str, str]] = []
    indexed: list[tuple[str, str, ast.Node]] = []
    expressions: list[_Assignment] = []
    for assignment in _collect_assignments(program):
        external = _external_read(assignment.rhs, values_name)
        array_name = _indexed_read(assignment.rhs)
        if external is not None:
            direct.append((assignment.local, external))
        elif array_name is not None:
            indexed.append((assignment.local, array_name, assignment.rhs))
        else:
            expressions.append(assignment)

    linkage = result.variable_linkage
    for local, external in direct:
        if _is_array(values.get(external)):
            result.array_aliases[local] = external
        linkage[local] = external
    direct_locals = set(linkage)

    for local, array_name, rhs in indexed:
        parent = result.array_aliases.get(array_name)
        if parent is None and _is_array(values.get(array_name)):
            parent = array_name
        if parent is None:
            expressions.append(_Assignment(local, rhs))
            continue
        member = next(
            (name for name, var in variables.items() if var.member_of == parent), None
        )
        if member is not None:
            linkage[local] = member
        elif _is_array(values.get(parent)):
            linkage[local] = parent
        direct_locals.add(local)

    for assignment in expressions:
        if assignment.local in direct_locals:
            continue
        names, externals = _referenced(assignment.rhs, values_name)
        resolved: list[str] = []
        for name in names:
            if name == assignment.local:
                continue
            if name in linkage:
                resolved.extend(_targets(linkage[name]))
            elif name in values or name in variables:
                resolved.append(name)
        resolved.extend(externals)
        if assignment.local in linkage:
            resolved = _targets(linkage[assignment.local]) + resolved
        unique = list(dict.fromkeys(resolved))
        if unique:
            linkage[assignment.local] = unique[0] if len(unique) == 1 else unique

    logger.debug("Detected linkages: %s", linkage)
    return result


def merge_linkages(
    detected: Mapping[str, LinkageTarget],
    declared: Mapping[str, LinkageTarget] | None,
) -> dict[str, LinkageTarget]:
    """Shallow merge; author-declared entries win."""
    return {**detected, **(declared or {})}
