"""ESTree-shaped AST for the supported JavaScript subset (pure data, no business logic).

Every node is a frozen dataclass carrying ``start``/``end`` character offsets
into the source it was parsed from. Nodes compare by identity so they can be
used as dictionary keys by analysis passes.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Iterator, Union


@dataclass(frozen=True, eq=False)
class Node:
    start: int
    end: int

    @property
    def type(self) -> str:
        return type(self).__name__


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class Program(Node):
    body: tuple[Node, ...]


@dataclass(frozen=True, eq=False)
class BlockStatement(Node):
    body: tuple[Node, ...]


@dataclass(frozen=True, eq=False)
class ExpressionStatement(Node):
    expression: Node


@dataclass(frozen=True, eq=False)
class EmptyStatement(Node):
    pass


@dataclass(frozen=True, eq=False)
class Identifier(Node):
    name: str


@dataclass(frozen=True, eq=False)
class VariableDeclarator(Node):
    id: Identifier
    init: Node | None = None


@dataclass(frozen=True, eq=False)
class VariableDeclaration(Node):
    kind: str
    declarations: tuple[VariableDeclarator, ...]


@dataclass(frozen=True, eq=False)
class FunctionDeclaration(Node):
    id: Identifier
    params: tuple[Identifier, ...]
    body: BlockStatement


@dataclass(frozen=True, eq=False)
class FunctionExpression(Node):
    id: Identifier | None
    params: tuple[Identifier, ...]
    body: BlockStatement


@dataclass(frozen=True, eq=False)
class ReturnStatement(Node):
    argument: Node | None = None


@dataclass(frozen=True, eq=False)
class IfStatement(Node):
    test: Node
    consequent: Node
    alternate: Node | None = None


@dataclass(frozen=True, eq=False)
class ForStatement(Node):
    init: Node | None
    test: Node | None
    update: Node | None
    body: Node


@dataclass(frozen=True, eq=False)
class WhileStatement(Node):
    test: Node
    body: Node


@dataclass(frozen=True, eq=False)
class DoWhileStatement(Node):
    body: Node
    test: Node


@dataclass(frozen=True, eq=False)
class BreakStatement(Node):
    pass


@dataclass(frozen=True, eq=False)
class ContinueStatement(Node):
    pass


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class Literal(Node):
    value: Any
    raw: str


@dataclass(frozen=True, eq=False)
class ArrayExpression(Node):
    elements: tuple[Node, ...]


@dataclass(frozen=True, eq=False)
class Property(Node):
    key: str
    value: Node


@dataclass(frozen=True, eq=False)
class ObjectExpression(Node):
    properties: tuple[Property, ...]


@dataclass(frozen=True, eq=False)
class MemberExpression(Node):
    object: Node
    property: Node
    computed: bool


@dataclass(frozen=True, eq=False)
class CallExpression(Node):
    callee: Node
    arguments: tuple[Node, ...]


@dataclass(frozen=True, eq=False)
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True, eq=False)
class LogicalExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True, eq=False)
class UnaryExpression(Node):
    operator: str
    argument: Node


@dataclass(frozen=True, eq=False)
class UpdateExpression(Node):
    operator: str
    argument: Node
    prefix: bool


@dataclass(frozen=True, eq=False)
class AssignmentExpression(Node):
    operator: str
    left: Node
    right: Node


@dataclass(frozen=True, eq=False)
class ConditionalExpression(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True, eq=False)
class SequenceExpression(Node):
    expressions: tuple[Node, ...]


AnyNode = Union[
    Program,
    BlockStatement,
    ExpressionStatement,
    EmptyStatement,
    VariableDeclaration,
    VariableDeclarator,
    FunctionDeclaration,
    FunctionExpression,
    ReturnStatement,
    IfStatement,
    ForStatement,
    WhileStatement,
    DoWhileStatement,
    BreakStatement,
    ContinueStatement,
    Identifier,
    Literal,
    ArrayExpression,
    ObjectExpression,
    Property,
    MemberExpression,
    CallExpression,
    BinaryExpression,
    LogicalExpression,
    UnaryExpression,
    UpdateExpression,
    AssignmentExpression,
    ConditionalExpression,
    SequenceExpression,
]

LOOP_TYPES = (ForStatement, WhileStatement, DoWhileStatement)
FUNCTION_TYPES = (FunctionDeclaration, FunctionExpression)


def children(node: Node) -> Iterator[Node]:
    """Yield the direct child nodes of *node* in source order."""
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, tuple):
            yield from (item for item in value if isinstance(item, Node))


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of *node* and all of its descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(children(current))))
