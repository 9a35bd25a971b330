"""Stepping interpreter — data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from . import ast_types as ast

# ── Values ───────────────────────────────────────────────────────


class _Undefined:
    """The JavaScript ``undefined`` value."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


@dataclass(eq=False)
class JSFunction:
    """A closure over a function declaration or expression."""

    node: ast.FunctionDeclaration | ast.FunctionExpression
    scope: "Scope"

    @property
    def name(self) -> str:
        return self.node.id.name if self.node.id is not None else ""


@dataclass(eq=False)
class NativeFunction:
    """A host-implemented function; ``impl(args, this)`` returns an interpreter value."""

    name: str
    impl: Callable[[list[Any], Any], Any]


# ── Scopes ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Lookup:
    """Tagged result of a scope lookup — distinguishes absent from ``undefined``."""

    found: bool
    value: Any = None

    @classmethod
    def hit(cls, value: Any) -> Lookup:
        return cls(found=True, value=value)

    @classmethod
    def miss(cls) -> Lookup:
        return cls(found=False)


class Scope:
    """One frame of the lexical scope chain."""

    def __init__(self, parent: Scope | None = None):
        self.parent = parent
        self.bindings: dict[str, Any] = {}

    @property
    def root(self) -> Scope:
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def chain(self) -> list[Scope]:
        """Scopes from this one outward to the global scope."""
        scopes = []
        scope: Scope | None = self
        while scope is not None:
            scopes.append(scope)
            scope = scope.parent
        return scopes

    def declare(self, name: str, value: Any = UNDEFINED) -> None:
        """Create a binding unless one already exists in this frame."""
        self.bindings.setdefault(name, value)

    def try_get(self, name: str) -> Lookup:
        if name in self.bindings:
            return Lookup.hit(self.bindings[name])
        return Lookup.miss()

    def lookup(self, name: str) -> Lookup:
        for scope in self.chain():
            result = scope.try_get(name)
            if result.found:
                return result
        return Lookup.miss()

    def assign(self, name: str, value: Any) -> None:
        """Write to the nearest binding, or create a global one."""
        for scope in self.chain():
            if name in scope.bindings:
                scope.bindings[name] = value
                return
        self.root.bindings[name] = value


# ── References ───────────────────────────────────────────────────


@dataclass(frozen=True)
class NameRef:
    name: str


@dataclass(frozen=True, eq=False)
class MemberRef:
    obj: Any
    key: Any


# ── Execution state ──────────────────────────────────────────────


@dataclass(eq=False)
class State:
    """One entry on the interpreter's state stack.

    ``phase``/``index``/``items`` record how far the handler for ``node``
    has progressed; ``value`` receives the result of the most recently
    completed child state.
    """

    node: ast.Node
    scope: Scope
    func: JSFunction | None = None
    components: bool = False
    phase: int = 0
    index: int = 0
    value: Any = UNDEFINED
    items: list[Any] = field(default_factory=list)
    ref: Any = None
    callee: Any = None
    this: Any = UNDEFINED
    return_value: Any = UNDEFINED


@dataclass(frozen=True)
class BreakpointCall:
    """Delivered to the breakpoint callback whenever a breakpoint intrinsic runs."""

    name: str
    node: ast.CallExpression
    args: list[Any] = field(default_factory=list)
