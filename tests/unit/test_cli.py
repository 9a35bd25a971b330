"""Tests for the stepper command-line entry point."""

from __future__ import annotations

import json

import pytest

from stepper import ast_types as ast
from stepper.cli import main
from stepper.frontend import parse_program

ENVIRONMENT = {
    "formula": "E = m * c^2",
    "manual": (
        "function manual(variables) {\n"
        "  var m = variables.m;\n"
        "  var c = variables.c;\n"
        "  var E = m * c * c;\n"
        '  // @view "E"->"Energy"\n'
        "  return E;\n"
        "}"
    ),
    "variables": {
        "m": {"role": "input", "default": 2},
        "c": {"role": "constant", "default": 3},
        "E": {"role": "computed"},
    },
}


def _literal(node: ast.Node):
    if isinstance(node, ast.ArrayExpression):
        return [_literal(element) for element in node.elements]
    return node.value


def _view_arguments(program: ast.Program) -> list:
    return [
        [_literal(argument) for argument in node.arguments]
        for node in ast.walk(program)
        if isinstance(node, ast.CallExpression)
        and isinstance(node.callee, ast.Identifier)
        and node.callee.name == "view"
    ]


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / "environment.json"
    path.write_text(json.dumps(ENVIRONMENT))
    return str(path)


class TestMain:
    def test_code_only(self, env_file, capsys):
        assert main([env_file, "--code-only"]) == 0
        out = capsys.readouterr().out
        assert "═══ Program ═══" in out
        assert "function executeManualFunction()" in out
        program = parse_program(out.split("═══ Program ═══\n", 1)[1])
        assert _view_arguments(program) == [[["E", "Energy"]]]

    def test_ast(self, env_file, capsys):
        assert main([env_file, "--ast"]) == 0
        out = capsys.readouterr().out
        assert "═══ AST ═══" in out
        assert "FunctionDeclaration" in out

    def test_linkage_only(self, env_file, capsys):
        assert main([env_file, "--linkage-only"]) == 0
        out = capsys.readouterr().out
        linkage = json.loads(out.split("═══ Linkage ═══", 1)[1])
        assert linkage["m"] == "m"
        assert linkage["E"] == ["m", "c"]

    def test_compute(self, env_file, capsys):
        assert main([env_file, "--compute"]) == 0
        out = capsys.readouterr().out
        assert json.loads(out.split("═══ Computed ═══", 1)[1]) == {"E": 18.0}

    def test_default_trace(self, env_file, capsys):
        assert main([env_file]) == 0
        out = capsys.readouterr().out
        assert "═══ Trace ═══" in out
        assert "payload:" in out
        assert " B " in out

    def test_builtin_demo(self, capsys):
        assert main(["--code-only"]) == 0
        out = capsys.readouterr().out
        assert "No file provided" in out

    def test_runtime_error_exit_code(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"manual": "function (v) { return missing; }"}))
        assert main([str(path)]) == 1
        assert "error: Execution error:" in capsys.readouterr().out

    def test_missing_manual_code_only(self, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("{}")
        assert main([str(path), "--code-only"]) == 1
        assert "Failed to extract function body" in capsys.readouterr().err
