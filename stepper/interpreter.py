"""Stepping interpreter — executes one AST node per ``step()`` call.

The interpreter keeps an explicit stack of ``State`` entries. Each call to
``step()`` runs the handler for the innermost state exactly once; the
handler either pushes a child state or completes its own state, popping it
and delivering a value to its parent. The innermost state's node is what a
debugger highlights.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Sequence

from . import ast_types as ast
from . import constants
from .builtins import make_globals
from .frontend import JSSyntaxError, ParserFactory, parse_program
from .vm import (
    JSRuntimeError,
    Operators,
    get_member,
    is_nullish,
    json_stringify,
    normalize_number,
    set_member,
    to_number,
    to_pseudo,
    truthy,
)
from .vm_types import (
    UNDEFINED,
    BreakpointCall,
    JSFunction,
    MemberRef,
    NameRef,
    NativeFunction,
    Scope,
    State,
)

logger = logging.getLogger(__name__)

BreakpointCallback = Callable[[BreakpointCall], None]

_CONTINUE_PHASE: dict[type, int] = {
    ast.ForStatement: 3,
    ast.WhileStatement: 0,
    ast.DoWhileStatement: 1,
}


def _describe(node: ast.Node) -> str:
    if isinstance(node, ast.Identifier):
        return node.name
    if isinstance(node, ast.MemberExpression) and not node.computed:
        return f"{_describe(node.object)}.{node.property.name}"
    return "expression"


class StepInterpreter:
    """Tree-walking interpreter over the supported JavaScript subset."""

    def __init__(
        self,
        program: ast.Program,
        global_values: dict[str, Any] | None = None,
        on_breakpoint: BreakpointCallback | None = None,
        breakpoint_names: Sequence[str] = constants.BREAKPOINT_FUNCTIONS,
    ):
        self.program = program
        self.global_scope = Scope()
        self.value: Any = UNDEFINED
        self._on_breakpoint = on_breakpoint
        self._breakpoint_names = tuple(breakpoint_names)

        self.global_scope.bindings.update(make_globals())
        for name in self._breakpoint_names:
            self.register_native(name, self._breakpoint_intrinsic(name))
        for name in constants.NOOP_INTRINSICS:
            self.register_native(name, lambda args, this: UNDEFINED)
        self.builtin_names = frozenset(self.global_scope.bindings)

        self.global_scope.bindings.update(global_values or {})
        self._hoist(program, self.global_scope)
        self._stack: list[State] = [State(node=program, scope=self.global_scope)]

        self._STEP_DISPATCH: dict[type, Callable[[State, Any], None]] = {
            ast.Program: self._step_block,
            ast.BlockStatement: self._step_block,
            ast.ExpressionStatement: self._step_expression_statement,
            ast.EmptyStatement: self._step_noop,
            ast.FunctionDeclaration: self._step_noop,
            ast.VariableDeclaration: self._step_var_declaration,
            ast.ReturnStatement: self._step_return,
            ast.IfStatement: self._step_conditional,
            ast.ConditionalExpression: self._step_conditional,
            ast.ForStatement: self._step_for,
            ast.WhileStatement: self._step_while,
            ast.DoWhileStatement: self._step_do_while,
            ast.BreakStatement: self._step_break,
            ast.ContinueStatement: self._step_continue,
            ast.Identifier: self._step_identifier,
            ast.Literal: self._step_literal,
            ast.ArrayExpression: self._step_array,
            ast.ObjectExpression: self._step_object,
            ast.FunctionExpression: self._step_function_expression,
            ast.MemberExpression: self._step_member,
            ast.CallExpression: self._step_call,
            ast.BinaryExpression: self._step_binary,
            ast.LogicalExpression: self._step_logical,
            ast.UnaryExpression: self._step_unary,
            ast.UpdateExpression: self._step_update,
            ast.AssignmentExpression: self._step_assignment,
            ast.SequenceExpression: self._step_sequence,
        }

    # ── Public surface ───────────────────────────────────────────

    def register_native(
        self, name: str, impl: Callable[[list[Any], Any], Any]
    ) -> NativeFunction:
        func = NativeFunction(name, impl)
        self.global_scope.bindings[name] = func
        return func

    def step(self) -> bool:
        """Advance by one node; returns whether more steps remain.

        Raises:
            JSRuntimeError: on a fault in the executed code.
        """
        if not self._stack:
            return False
        state = self._stack[-1]
        handler = self._STEP_DISPATCH.get(type(state.node))
        if handler is None:
            raise JSRuntimeError(
                "SyntaxError", f"Cannot execute {state.node.type} node"
            )
        handler(state, state.node)
        return bool(self._stack)

    def run(self) -> bool:
        """Step until completion. Returns ``False`` once the program has finished."""
        while self.step():
            pass
        return False

    def get_state_stack(self) -> list[State]:
        """Active states, innermost last."""
        return list(self._stack)

    def breakpoint_frame(self) -> State | None:
        """Innermost state evaluating a call to a breakpoint intrinsic, if any."""
        for state in reversed(self._stack):
            node = state.node
            if (
                isinstance(node, ast.CallExpression)
                and isinstance(node.callee, ast.Identifier)
                and node.callee.name in self._breakpoint_names
            ):
                return state
        return None

    def is_at_breakpoint(self) -> bool:
        return self.breakpoint_frame() is not None

    def global_value(self, name: str) -> Any:
        return self.global_scope.lookup(name).value

    # ── Intrinsics ───────────────────────────────────────────────

    def _breakpoint_intrinsic(self, name: str) -> Callable[[list[Any], Any], Any]:
        def impl(args: list[Any], this: Any) -> Any:
            if self._on_breakpoint is not None:
                call = self._stack[-1].node
                self._on_breakpoint(BreakpointCall(name=name, node=call, args=list(args)))
            return UNDEFINED

        return impl

    # ── Stack helpers ────────────────────────────────────────────

    def _push(
        self,
        node: ast.Node,
        scope: Scope | None = None,
        func: JSFunction | None = None,
        components: bool = False,
    ) -> State:
        state = State(
            node=node,
            scope=scope if scope is not None else self._stack[-1].scope,
            func=func,
            components=components,
        )
        self._stack.append(state)
        return state

    def _complete(self, value: Any = UNDEFINED) -> None:
        self._stack.pop()
        if self._stack:
            self._stack[-1].value = value

    def _hoist(self, node: ast.Node, scope: Scope) -> None:
        """Declare ``var``/``let``/``const`` names and functions at function scope."""
        if isinstance(node, ast.VariableDeclaration):
            for declarator in node.declarations:
                scope.declare(declarator.id.name)
        elif isinstance(node, ast.FunctionDeclaration):
            scope.bindings[node.id.name] = JSFunction(node=node, scope=scope)
            return
        elif isinstance(node, ast.FunctionExpression):
            return
        for child in ast.children(node):
            self._hoist(child, scope)

    # ── References ───────────────────────────────────────────────

    def _get_name(self, scope: Scope, name: str) -> Any:
        result = scope.lookup(name)
        if not result.found:
            raise JSRuntimeError("ReferenceError", f"{name} is not defined")
        return result.value

    def _get_ref(self, scope: Scope, ref: Any) -> Any:
        if isinstance(ref, NameRef):
            return self._get_name(scope, ref.name)
        if isinstance(ref, MemberRef):
            return get_member(ref.obj, ref.key)
        raise JSRuntimeError("SyntaxError", "Invalid left-hand side in assignment")

    def _set_ref(self, scope: Scope, ref: Any, value: Any) -> None:
        if isinstance(ref, NameRef):
            scope.assign(ref.name, value)
        elif isinstance(ref, MemberRef):
            set_member(ref.obj, ref.key, value)
        else:
            raise JSRuntimeError("SyntaxError", "Invalid left-hand side in assignment")

    # ── Statements ───────────────────────────────────────────────

    def _step_block(self, state: State, node: ast.Program | ast.BlockStatement) -> None:
        if state.index < len(node.body):
            child = node.body[state.index]
            state.index += 1
            self._push(child)
        else:
            self._complete()

    def _step_noop(self, state: State, node: ast.Node) -> None:
        self._complete()

    def _step_expression_statement(
        self, state: State, node: ast.ExpressionStatement
    ) -> None:
        if not state.phase:
            state.phase = 1
            self._push(node.expression)
        else:
            self.value = state.value
            self._complete()

    def _step_var_declaration(
        self, state: State, node: ast.VariableDeclaration
    ) -> None:
        declarations = node.declarations
        while state.index < len(declarations):
            declarator = declarations[state.index]
            if state.phase:
                state.scope.assign(declarator.id.name, state.value)
                state.phase = 0
                state.index += 1
            elif declarator.init is None:
                state.index += 1
            else:
                state.phase = 1
                self._push(declarator.init)
                return
        self._complete()

    def _step_return(self, state: State, node: ast.ReturnStatement) -> None:
        if not state.phase and node.argument is not None:
            state.phase = 1
            self._push(node.argument)
            return
        value = state.value
        while self._stack:
            top = self._stack.pop()
            if top.func is not None:
                if self._stack:
                    self._stack[-1].return_value = value
                return
        raise JSRuntimeError("SyntaxError", "Illegal return statement")

    def _step_conditional(
        self, state: State, node: ast.IfStatement | ast.ConditionalExpression
    ) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.test)
        elif state.phase == 1:
            state.phase = 2
            branch = node.consequent if truthy(state.value) else node.alternate
            state.value = UNDEFINED
            if branch is not None:
                self._push(branch)
            else:
                self._complete()
        elif isinstance(node, ast.ConditionalExpression):
            self._complete(state.value)
        else:
            self._complete()

    def _step_for(self, state: State, node: ast.ForStatement) -> None:
        if state.phase == 0:
            state.phase = 1
            if node.init is not None:
                self._push(node.init)
                return
        if state.phase == 1:
            state.phase = 2
            if node.test is not None:
                self._push(node.test)
                return
            state.value = True
        if state.phase == 2:
            if not truthy(state.value):
                self._complete()
                return
            state.phase = 3
            self._push(node.body)
            return
        state.phase = 1
        if node.update is not None:
            self._push(node.update)

    def _step_while(self, state: State, node: ast.WhileStatement) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.test)
        elif not truthy(state.value):
            self._complete()
        else:
            state.phase = 0
            self._push(node.body)

    def _step_do_while(self, state: State, node: ast.DoWhileStatement) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.body)
        elif state.phase == 1:
            state.phase = 2
            self._push(node.test)
        elif truthy(state.value):
            state.phase = 1
            self._push(node.body)
        else:
            self._complete()

    def _unwind_to_loop(self, keyword: str) -> State:
        while self._stack and self._stack[-1].func is None:
            top = self._stack[-1]
            if isinstance(top.node, ast.LOOP_TYPES):
                return top
            self._stack.pop()
        raise JSRuntimeError("SyntaxError", f"Illegal {keyword} statement")

    def _step_break(self, state: State, node: ast.BreakStatement) -> None:
        self._unwind_to_loop("break")
        self._complete()

    def _step_continue(self, state: State, node: ast.ContinueStatement) -> None:
        loop = self._unwind_to_loop("continue")
        loop.phase = _CONTINUE_PHASE[type(loop.node)]
        loop.value = UNDEFINED

    # ── Expressions ──────────────────────────────────────────────

    def _step_identifier(self, state: State, node: ast.Identifier) -> None:
        if state.components:
            self._complete(NameRef(node.name))
        else:
            self._complete(self._get_name(state.scope, node.name))

    def _step_literal(self, state: State, node: ast.Literal) -> None:
        self._complete(node.value)

    def _step_array(self, state: State, node: ast.ArrayExpression) -> None:
        if state.phase:
            state.items.append(state.value)
        state.phase = 1
        if len(state.items) < len(node.elements):
            self._push(node.elements[len(state.items)])
        else:
            self._complete(list(state.items))

    def _step_object(self, state: State, node: ast.ObjectExpression) -> None:
        if state.phase:
            state.items.append(state.value)
        state.phase = 1
        if len(state.items) < len(node.properties):
            self._push(node.properties[len(state.items)].value)
        else:
            keys = [prop.key for prop in node.properties]
            self._complete(dict(zip(keys, state.items)))

    def _step_function_expression(
        self, state: State, node: ast.FunctionExpression
    ) -> None:
        self._complete(JSFunction(node=node, scope=state.scope))

    def _step_member(self, state: State, node: ast.MemberExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.object)
            return
        if state.phase == 1:
            state.this = state.value
            if node.computed:
                state.phase = 2
                self._push(node.property)
                return
            key = node.property.name
        else:
            key = state.value
        if state.components:
            self._complete(MemberRef(obj=state.this, key=key))
        else:
            self._complete(get_member(state.this, key))

    def _step_call(self, state: State, node: ast.CallExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.callee, components=True)
            return
        if state.phase == 1:
            ref = state.value
            if isinstance(ref, MemberRef):
                state.callee = get_member(ref.obj, ref.key)
                state.this = ref.obj
            elif isinstance(ref, NameRef):
                state.callee = self._get_name(state.scope, ref.name)
            else:
                state.callee = ref
            state.phase = 2
            if node.arguments:
                self._push(node.arguments[0])
                return
        elif state.phase == 2:
            state.items.append(state.value)
            if len(state.items) < len(node.arguments):
                self._push(node.arguments[len(state.items)])
                return
        else:
            self._complete(state.return_value)
            return
        self._invoke(state, node)

    def _invoke(self, state: State, node: ast.CallExpression) -> None:
        func, args = state.callee, state.items
        if isinstance(func, NativeFunction):
            try:
                result = func.impl(args, state.this)
            except (AttributeError, TypeError, ValueError) as exc:
                raise JSRuntimeError("TypeError", f"{_describe(node.callee)}: {exc}") from exc
            self._complete(result)
            return
        if not isinstance(func, JSFunction):
            raise JSRuntimeError("TypeError", f"{_describe(node.callee)} is not a function")
        scope = Scope(parent=func.scope)
        for index, param in enumerate(func.node.params):
            scope.bindings[param.name] = args[index] if index < len(args) else UNDEFINED
        scope.declare("arguments", list(args))
        self._hoist(func.node.body, scope)
        state.phase = 3
        state.return_value = UNDEFINED
        self._push(func.node.body, scope=scope, func=func)

    def _step_binary(self, state: State, node: ast.BinaryExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.left)
        elif state.phase == 1:
            state.phase = 2
            state.items = [state.value]
            self._push(node.right)
        else:
            self._complete(Operators.eval_binop(node.operator, state.items[0], state.value))

    def _step_logical(self, state: State, node: ast.LogicalExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.left)
        elif state.phase == 1:
            left = state.value
            if node.operator == "&&":
                short_circuit = not truthy(left)
            elif node.operator == "||":
                short_circuit = truthy(left)
            else:
                short_circuit = not is_nullish(left)
            if short_circuit:
                self._complete(left)
            else:
                state.phase = 2
                self._push(node.right)
        else:
            self._complete(state.value)

    def _step_unary(self, state: State, node: ast.UnaryExpression) -> None:
        if state.phase == 0:
            if node.operator == "typeof" and isinstance(node.argument, ast.Identifier):
                if not state.scope.lookup(node.argument.name).found:
                    self._complete("undefined")
                    return
            state.phase = 1
            self._push(node.argument)
        else:
            self._complete(Operators.eval_unop(node.operator, state.value))

    def _step_update(self, state: State, node: ast.UpdateExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.argument, components=True)
            return
        ref = state.value
        old = to_number(self._get_ref(state.scope, ref))
        new = normalize_number(old + 1 if node.operator == "++" else old - 1)
        self._set_ref(state.scope, ref, new)
        self._complete(new if node.prefix else old)

    def _step_assignment(self, state: State, node: ast.AssignmentExpression) -> None:
        if state.phase == 0:
            state.phase = 1
            self._push(node.left, components=True)
        elif state.phase == 1:
            state.ref = state.value
            if node.operator != "=":
                state.items = [self._get_ref(state.scope, state.ref)]
            state.phase = 2
            self._push(node.right)
        else:
            value = state.value
            if node.operator != "=":
                value = Operators.eval_binop(node.operator[:-1], state.items[0], value)
            self._set_ref(state.scope, state.ref, value)
            self._complete(value)

    def _step_sequence(self, state: State, node: ast.SequenceExpression) -> None:
        if state.index < len(node.expressions):
            state.index += 1
            self._push(node.expressions[state.index - 1])
        else:
            self._complete(state.value)


# ── Construction ─────────────────────────────────────────────────


def initialize_interpreter(
    program_text: str,
    values: dict[str, Any],
    on_error: Callable[[str], None],
    on_breakpoint: BreakpointCallback | None = None,
    parser_factory: ParserFactory | None = None,
) -> StepInterpreter | None:
    """Build an interpreter with *values* seeded as globals.

    Failures are reported through *on_error*; ``None`` is returned instead
    of raising.
    """
    if not program_text or not program_text.strip():
        on_error(constants.NO_CODE_AVAILABLE)
        return None
    try:
        program = parse_program(program_text, parser_factory)
    except JSSyntaxError as exc:
        logger.warning("Failed to parse program: %s", exc)
        on_error(f"{constants.CODE_ERROR}: {exc}")
        return None

    global_values: dict[str, Any] = {}
    for name, value in values.items():
        try:
            global_values[name] = to_pseudo(value)
        except TypeError:
            logger.debug("Seeding %s with its raw value", name)
            global_values[name] = value

    interpreter = StepInterpreter(program, global_values, on_breakpoint)
    serialized = json_stringify(
        {name: value for name, value in global_values.items() if _is_serializable(value)}
    )
    interpreter.register_native(
        constants.VALUES_JSON_FUNCTION, lambda args, this: serialized
    )
    return interpreter


def _is_serializable(value: Any) -> bool:
    return value is None or isinstance(value, (bool, int, float, str, list, dict))


# ── History inspection ───────────────────────────────────────────


def is_at_block(history: Sequence[Any], index: int) -> bool:
    """True iff *index* is where execution enters a block from a non-block node.

    *history* is any sequence of entries exposing ``node_type`` (the innermost
    frame's node type).
    """
    if index <= 0 or index >= len(history):
        return False
    current = history[index].node_type
    previous = history[index - 1].node_type
    return current == constants.BLOCK_STATEMENT and previous != constants.BLOCK_STATEMENT


def visible_bindings(
    interpreter: StepInterpreter, names: Iterable[str] | None = None
) -> dict[str, Any]:
    """Interpreter values of variables visible from the active states.

    Frames are searched innermost-to-outermost and the first hit wins.
    Built-ins, functions and ``undefined`` values are omitted. When *names*
    is given only those names are resolved.
    """
    wanted = set(names) if names is not None else None
    found: dict[str, Any] = {}
    for state in reversed(interpreter.get_state_stack()):
        for scope in state.scope.chain():
            for name, value in scope.bindings.items():
                if name in found:
                    continue
                if wanted is not None and name not in wanted:
                    continue
                if scope is interpreter.global_scope and name in interpreter.builtin_names:
                    continue
                if value is UNDEFINED or isinstance(value, (JSFunction, NativeFunction)):
                    continue
                found[name] = value
    return found
