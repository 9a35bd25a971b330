"""Tests for StepInterpreter — single-node stepping over the supported subset."""

from __future__ import annotations

import math

import pytest

from stepper import constants
from stepper.frontend import parse_program
from stepper.interpreter import (
    StepInterpreter,
    initialize_interpreter,
    is_at_block,
    visible_bindings,
)
from stepper.trace_types import Highlight, Step
from stepper.vm import JSRuntimeError, to_native
from stepper.vm_types import UNDEFINED, BreakpointCall


def _run(source: str, values: dict | None = None) -> StepInterpreter:
    interpreter = StepInterpreter(parse_program(source), values)
    interpreter.run()
    return interpreter


def _value(source: str, name: str, values: dict | None = None):
    return to_native(_run(source, values).global_value(name))


class TestStepping:
    def test_initial_stack_holds_program(self):
        interpreter = StepInterpreter(parse_program("var x = 1;"))
        stack = interpreter.get_state_stack()
        assert len(stack) == 1
        assert stack[0].node.type == "Program"

    def test_step_returns_false_when_done(self):
        interpreter = StepInterpreter(parse_program("var x = 1;"))
        results = []
        while True:
            more = interpreter.step()
            results.append(more)
            if not more:
                break
        assert results[-1] is False
        assert all(results[:-1])
        assert interpreter.get_state_stack() == []
        assert interpreter.step() is False

    def test_each_step_pushes_or_pops_one_state(self):
        interpreter = StepInterpreter(parse_program("var x = 1 + 2;"))
        depth = len(interpreter.get_state_stack())
        while interpreter.step():
            new_depth = len(interpreter.get_state_stack())
            assert abs(new_depth - depth) <= 1
            depth = new_depth

    def test_run_returns_false(self):
        interpreter = StepInterpreter(parse_program("var x = 1;"))
        assert interpreter.run() is False


class TestExpressions:
    def test_arithmetic(self):
        assert _value("var x = 1 + 2 * 3;", "x") == 7

    def test_division_produces_float(self):
        assert _value("var x = 7 / 2;", "x") == 3.5

    def test_string_concatenation(self):
        assert _value('var s = "a" + 1;', "s") == "a1"

    def test_logical_short_circuit(self):
        assert _value("var hit = 0; var r = false && (hit = 1);", "hit") == 0
        assert _value("var r = null || 5;", "r") == 5
        assert _value("var r = null ?? 3;", "r") == 3

    def test_ternary(self):
        assert _value('var r = 2 > 1 ? "yes" : "no";', "r") == "yes"

    def test_update_expressions(self):
        interpreter = _run("var i = 5; var a = i++; var b = ++i;")
        assert interpreter.global_value("a") == 5
        assert interpreter.global_value("b") == 7

    def test_augmented_assignment(self):
        assert _value("var x = 2; x *= 5; x -= 1;", "x") == 9

    def test_typeof_undeclared(self):
        assert _value("var t = typeof missing;", "t") == "undefined"

    def test_sequence(self):
        assert _value("var a = 0; var b = (a = 1, a + 1);", "b") == 2


class TestControlFlow:
    def test_if_else(self):
        assert _value("var y; if (3 > 5) { y = 1; } else { y = 0; }", "y") == 0

    def test_for_with_break_and_continue(self):
        source = """
        var s = 0;
        for (var i = 0; i < 10; i++) {
          if (i % 2 == 0) { continue; }
          if (i > 7) { break; }
          s += i;
        }
        """
        assert _value(source, "s") == 16

    def test_while(self):
        assert _value("var n = 10; while (n > 3) { n = n - 2; }", "n") == 2

    def test_do_while_runs_body_once(self):
        assert _value("var n = 0; do { n++; } while (false);", "n") == 1

    def test_continue_in_while(self):
        source = "var i = 0; var s = 0; while (i < 5) { i++; if (i == 3) { continue; } s += i; }"
        assert _value(source, "s") == 12


class TestFunctions:
    def test_recursion(self):
        source = """
        function f(n) { if (n <= 1) { return 1; } return n * f(n - 1); }
        var r = f(5);
        """
        assert _value(source, "r") == 120

    def test_hoisted_function_call(self):
        assert _value("var r = twice(4); function twice(x) { return 2 * x; }", "r") == 8

    def test_closure_keeps_state(self):
        source = """
        function counter() {
          var c = 0;
          return function () { c = c + 1; return c; };
        }
        var inc = counter();
        inc();
        var r = inc();
        """
        assert _value(source, "r") == 2

    def test_missing_argument_is_undefined(self):
        assert _value("function f(a, b) { return typeof b; } var r = f(1);", "r") == "undefined"

    def test_function_without_return_yields_undefined(self):
        interpreter = _run("function f() { var x = 1; } var r = f();")
        assert interpreter.global_value("r") is UNDEFINED

    def test_assignment_to_undeclared_creates_global(self):
        assert _value("function f() { g = 4; } f();", "g") == 4


class TestBuiltinsInPrograms:
    def test_math(self):
        assert _value("var r = Math.sqrt(16) + Math.max(1, 7);", "r") == 11

    def test_array_methods(self):
        interpreter = _run("var a = [1, 2]; a.push(3); var n = a.length; var j = a.join('-');")
        assert interpreter.global_value("n") == 3
        assert interpreter.global_value("j") == "1-2-3"

    def test_json_round_trip(self):
        assert _value('var o = JSON.parse(\'{"a": [1, 2]}\'); var r = o.a[1];', "r") == 2

    def test_to_fixed(self):
        assert _value("var r = (3.14159).toFixed(2);", "r") == "3.14"

    def test_division_by_zero(self):
        assert _value("var r = 1 / 0;", "r") == math.inf


class TestRuntimeErrors:
    def test_reference_error(self):
        with pytest.raises(JSRuntimeError, match="ReferenceError"):
            _run("var x = missing + 1;")

    def test_calling_non_function(self):
        with pytest.raises(JSRuntimeError, match="is not a function"):
            _run("var a = 1; a();")

    def test_property_of_undefined(self):
        with pytest.raises(JSRuntimeError, match="Cannot read properties of undefined"):
            _run("var o; var x = o.y;")


class TestIntrinsics:
    def test_view_is_a_noop_that_reports_breakpoint(self):
        calls: list[BreakpointCall] = []
        interpreter = StepInterpreter(
            parse_program('var x = 1; view([["x", "the x"]]); var y = 2;'),
            on_breakpoint=calls.append,
        )
        interpreter.run()
        assert interpreter.global_value("y") == 2
        assert len(calls) == 1
        assert calls[0].name == constants.VIEW_FUNCTION
        assert calls[0].node.callee.name == "view"

    def test_step_delivers_evaluated_arguments(self):
        calls: list[BreakpointCall] = []
        interpreter = StepInterpreter(
            parse_program('var v = 3; step({description: "d", values: [["v", v]]}, "f1");'),
            on_breakpoint=calls.append,
        )
        interpreter.run()
        assert to_native(calls[0].args) == [
            {"description": "d", "values": [["v", 3]]},
            "f1",
        ]

    def test_breakpoint_frame_during_view_call(self):
        interpreter = StepInterpreter(parse_program("view();"))
        seen = False
        while interpreter.step():
            seen = seen or interpreter.is_at_breakpoint()
        assert seen
        assert interpreter.breakpoint_frame() is None

    def test_data_collectors_are_noops(self):
        assert _value("data2d(1, 2); data3d(1, 2, 3); var ok = 1;", "ok") == 1


class TestInitializeInterpreter:
    def test_seeds_values_and_values_json(self):
        errors: list[str] = []
        interpreter = initialize_interpreter(
            "var variables = JSON.parse(getVariablesJSON()); var r = variables.m * 2;",
            {"m": 4, "X": (1, 2)},
            errors.append,
        )
        interpreter.run()
        assert errors == []
        assert interpreter.global_value("r") == 8
        assert interpreter.global_value("X") == [1, 2]

    def test_blank_text_reports_error(self):
        errors: list[str] = []
        assert initialize_interpreter("   ", {}, errors.append) is None
        assert errors == [constants.NO_CODE_AVAILABLE]

    def test_parse_failure_reports_code_error(self):
        errors: list[str] = []
        assert initialize_interpreter("var x = ;", {}, errors.append) is None
        assert errors[0].startswith("Code error: ")

    def test_unconvertible_value_is_seeded_raw(self):
        marker = object()
        interpreter = initialize_interpreter("var a = 1;", {"obj": marker}, lambda m: None)
        assert interpreter.global_value("obj") is marker


def _entry(node_type: str) -> Step:
    return Step(
        index=0, highlight=Highlight(), variables={}, stack_trace=(), timestamp=0.0,
        node_type=node_type,
    )


class TestIsAtBlock:
    def test_entering_block(self):
        history = [_entry("ForStatement"), _entry("BlockStatement")]
        assert is_at_block(history, 1)

    def test_block_after_block_is_not_entry(self):
        history = [_entry("BlockStatement"), _entry("BlockStatement")]
        assert not is_at_block(history, 1)

    def test_out_of_range(self):
        history = [_entry("BlockStatement")]
        assert not is_at_block(history, 0)
        assert not is_at_block(history, 5)


class TestVisibleBindings:
    def test_innermost_binding_wins(self):
        interpreter = StepInterpreter(
            parse_program("var x = 1; function f() { var x = 2; view(); } f();")
        )
        snapshot = None
        while interpreter.step():
            if interpreter.is_at_breakpoint():
                snapshot = visible_bindings(interpreter)
                break
        assert snapshot["x"] == 2

    def test_builtins_and_functions_are_hidden(self):
        interpreter = StepInterpreter(parse_program("var a = 1; function f() {} view();"))
        while not interpreter.is_at_breakpoint():
            interpreter.step()
        bindings = visible_bindings(interpreter)
        assert bindings == {"a": 1}

    def test_nothing_visible_after_completion(self):
        assert visible_bindings(_run("var a = 1;")) == {}

    def test_globals_visible_while_running(self):
        interpreter = StepInterpreter(parse_program("var a = 1; var b = 2;"))
        for _ in range(6):
            interpreter.step()
        bindings = visible_bindings(interpreter)
        assert bindings["a"] == 1
        assert "Math" not in bindings
