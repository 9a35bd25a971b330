"""Tests for JavaScriptFrontend — tree-sitter JavaScript CST to AST lowering."""

from __future__ import annotations

import pytest

from stepper import ast_types as ast
from stepper.frontend import JSSyntaxError, parse_program


def _first(source: str) -> ast.Node:
    return parse_program(source).body[0]


def _expr(source: str) -> ast.Node:
    stmt = _first(source)
    assert isinstance(stmt, ast.ExpressionStatement)
    return stmt.expression


class TestFrontendSmoke:
    def test_empty_program(self):
        program = parse_program("")
        assert isinstance(program, ast.Program)
        assert program.body == ()

    def test_comments_are_skipped(self):
        program = parse_program("// leading\nvar x = 1; /* trailing */\n")
        assert len(program.body) == 1
        assert isinstance(program.body[0], ast.VariableDeclaration)

    def test_program_spans_whole_source(self):
        source = "var x = 1;\n"
        program = parse_program(source)
        assert program.start == 0
        assert program.end == len(source)


class TestFrontendDeclarations:
    def test_var_declaration(self):
        decl = _first("var x = 10;")
        assert isinstance(decl, ast.VariableDeclaration)
        assert decl.kind == "var"
        assert decl.declarations[0].id.name == "x"
        assert decl.declarations[0].init.value == 10

    def test_let_and_const(self):
        assert _first("let a = 1;").kind == "let"
        assert _first("const b = 2;").kind == "const"

    def test_multiple_declarators_without_init(self):
        decl = _first("var a, b = 2;")
        assert [d.id.name for d in decl.declarations] == ["a", "b"]
        assert decl.declarations[0].init is None

    def test_function_declaration(self):
        func = _first("function add(a, b) { return a + b; }")
        assert isinstance(func, ast.FunctionDeclaration)
        assert func.id.name == "add"
        assert [p.name for p in func.params] == ["a", "b"]
        assert isinstance(func.body, ast.BlockStatement)
        assert isinstance(func.body.body[0], ast.ReturnStatement)

    def test_function_expression(self):
        decl = _first("var f = function (x) { return x; };")
        init = decl.declarations[0].init
        assert isinstance(init, ast.FunctionExpression)
        assert init.id is None


class TestFrontendExpressions:
    def test_binary_precedence(self):
        expr = _expr("1 + 2 * 3;")
        assert isinstance(expr, ast.BinaryExpression)
        assert expr.operator == "+"
        assert isinstance(expr.right, ast.BinaryExpression)
        assert expr.right.operator == "*"

    def test_logical_operators(self):
        expr = _expr("a && b || c;")
        assert isinstance(expr, ast.LogicalExpression)
        assert expr.operator == "||"
        assert isinstance(expr.left, ast.LogicalExpression)

    def test_parentheses_are_transparent(self):
        expr = _expr("(a + b) * c;")
        assert isinstance(expr.left, ast.BinaryExpression)

    def test_plain_and_augmented_assignment(self):
        assert _expr("x = 1;").operator == "="
        assert _expr("x += 2;").operator == "+="

    def test_update_prefix_and_postfix(self):
        post = _expr("i++;")
        pre = _expr("--i;")
        assert (post.operator, post.prefix) == ("++", False)
        assert (pre.operator, pre.prefix) == ("--", True)

    def test_member_and_subscript(self):
        dotted = _expr("variables.x;")
        indexed = _expr('variables["P(x)"];')
        assert not dotted.computed
        assert dotted.property.name == "x"
        assert indexed.computed
        assert indexed.property.value == "P(x)"

    def test_call_expression(self):
        call = _expr("Math.max(1, 2);")
        assert isinstance(call, ast.CallExpression)
        assert isinstance(call.callee, ast.MemberExpression)
        assert len(call.arguments) == 2

    def test_array_and_object_literals(self):
        arr = _expr("[1, [2, 3]];")
        obj = _expr('({a: 1, "b": 2, c});')
        assert isinstance(arr, ast.ArrayExpression)
        assert isinstance(arr.elements[1], ast.ArrayExpression)
        assert [p.key for p in obj.properties] == ["a", "b", "c"]

    def test_literals(self):
        assert _expr("true;").value is True
        assert _expr("null;").value is None
        assert _expr("1.5;").value == 1.5
        assert _expr("0x10;").value == 16
        assert _expr('"a\\nb";').value == "a\nb"

    def test_ternary_and_sequence(self):
        assert isinstance(_expr("a ? b : c;"), ast.ConditionalExpression)
        seq = _expr("a, b, c;")
        assert isinstance(seq, ast.SequenceExpression)
        assert len(seq.expressions) == 3


class TestFrontendControlFlow:
    def test_if_else(self):
        stmt = _first("if (x > 5) { y = 1; } else { y = 0; }")
        assert isinstance(stmt, ast.IfStatement)
        assert isinstance(stmt.consequent, ast.BlockStatement)
        assert isinstance(stmt.alternate, ast.BlockStatement)

    def test_for_loop_clauses(self):
        stmt = _first("for (var i = 0; i < 3; i++) { s = s + i; }")
        assert isinstance(stmt, ast.ForStatement)
        assert isinstance(stmt.init, ast.VariableDeclaration)
        assert isinstance(stmt.test, ast.BinaryExpression)
        assert isinstance(stmt.update, ast.UpdateExpression)

    def test_for_loop_with_empty_clauses(self):
        stmt = _first("for (;;) { break; }")
        assert stmt.init is None
        assert stmt.test is None
        assert stmt.update is None

    def test_while_and_do_while(self):
        assert isinstance(_first("while (x) { x--; }"), ast.WhileStatement)
        assert isinstance(_first("do { x--; } while (x);"), ast.DoWhileStatement)


class TestFrontendOffsets:
    def test_character_offsets(self):
        decl = _first("var x = 1;")
        assert (decl.start, decl.end) == (0, 10)
        assert (decl.declarations[0].start, decl.declarations[0].end) == (4, 9)

    def test_non_ascii_offsets_are_characters(self):
        program = parse_program('var s = "é"; var y = 2;')
        assert program.body[1].start == 13


class TestFrontendErrors:
    def test_syntax_error_reports_line(self):
        with pytest.raises(JSSyntaxError, match="line 2"):
            parse_program("var a = 1;\nvar x = 1 +;\n")

    @pytest.mark.parametrize(
        "source",
        [
            "class A {}",
            "var a = new Foo();",
            "var f = (x) => x;",
            "try { a(); } catch (e) {}",
            "switch (a) { case 1: break; }",
        ],
    )
    def test_unsupported_syntax(self, source):
        with pytest.raises(JSSyntaxError, match="Unsupported syntax"):
            parse_program(source)

    def test_invalid_assignment_target(self):
        with pytest.raises(JSSyntaxError):
            parse_program("var x = 1; (x + 1) = 2;")
