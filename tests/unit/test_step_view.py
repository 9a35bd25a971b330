"""Tests for the step builder and breakpoint payload extraction."""

from __future__ import annotations

import pytest

from stepper import constants
from stepper.frontend import parse_program
from stepper.interpreter import StepInterpreter
from stepper.step import build_stack_trace, build_state
from stepper.trace_types import (
    ExecutionHistory,
    StepPayload,
    ViewOptionsPayload,
    ViewPairsPayload,
)
from stepper.view import (
    PayloadError,
    build_payload,
    extract_step_payload,
    extract_view_payload,
)
from stepper.vm_types import BreakpointCall


def _call(source: str):
    return parse_program(source).body[0].expression


class TestExtractViewPayload:
    def test_no_arguments(self):
        payload = extract_view_payload(_call("view();"), {})
        assert payload == ViewPairsPayload()

    def test_pairs_resolve_values(self):
        payload = extract_view_payload(_call('view([["s", "total"]]);'), {"s": 3})
        assert payload.entries[0].expression == "s"
        assert payload.entries[0].description == "total"
        assert payload.entries[0].value == 3

    def test_index_variable(self):
        payload = extract_view_payload(
            _call('view([["xs", "element", "i"]]);'), {"xs": [1, 2], "i": 1}
        )
        entry = payload.entries[0]
        assert entry.index_variable == "i"
        assert entry.index_value == 1

    def test_malformed_pairs_are_skipped(self):
        payload = extract_view_payload(_call('view([["only"], 5, ["a", "b"]]);'), {})
        assert [e.expression for e in payload.entries] == ["a"]

    def test_options_object(self):
        payload = extract_view_payload(
            _call('view("Energy", {value: E, expression: "m * c * c"});'), {"E": 18}
        )
        assert isinstance(payload, ViewOptionsPayload)
        assert payload.description == "Energy"
        assert payload.variable == "E"
        assert payload.value == 18
        assert payload.expression == "m * c * c"

    def test_positional_options(self):
        payload = extract_view_payload(_call('view("Energy", E, "m * c");'), {"E": 2})
        assert payload.variable == "E"
        assert payload.expression == "m * c"

    def test_unsupported_argument_raises(self):
        with pytest.raises(PayloadError):
            extract_view_payload(_call("view(x);"), {})


class TestExtractStepPayload:
    def test_single_group(self):
        payload = extract_step_payload(
            [{"description": "d", "values": [["a", 1]], "expression": "a + 1"}, "f1"]
        )
        assert payload.step_id == "f1"
        group = payload.formulas["f1"]
        assert group.description == "d"
        assert group.values == [("a", 1)]
        assert group.expression == "a + 1"

    def test_multi_formula(self):
        payload = extract_step_payload(
            [{"f1": {"description": "one"}, "f2": {"values": [["b", 2]]}}]
        )
        assert set(payload.formulas) == {"f1", "f2"}
        assert payload.step_id is None

    def test_non_object_raises(self):
        with pytest.raises(PayloadError):
            extract_step_payload([1])

    def test_bad_values_raise(self):
        with pytest.raises(PayloadError):
            extract_step_payload([{"description": "d", "values": [1]}])


class TestBuildPayload:
    def test_view_call(self):
        call = BreakpointCall(name="view", node=_call('view([["a", "A"]]);'))
        payload, debug = build_payload(call, {"a": 1})
        assert isinstance(payload, ViewPairsPayload)
        assert debug == {}

    def test_step_call(self):
        call = BreakpointCall(
            name="step", node=_call("step(x);"), args=[{"description": "d"}]
        )
        payload, _ = build_payload(call, {})
        assert isinstance(payload, StepPayload)

    def test_failure_is_reported_in_debug(self):
        call = BreakpointCall(name="view", node=_call("view(x);"))
        payload, debug = build_payload(call, {})
        assert payload is None
        assert debug[constants.DEBUG_VIEW_ERROR].startswith(
            constants.VIEW_EXTRACTION_ERROR
        )


class TestBuildState:
    SOURCE = "var a = 1;\nfunction f(x) { var y = x + a; return y; }\nvar r = f(2);"

    def _states(self):
        interpreter = StepInterpreter(parse_program(self.SOURCE))
        states = [build_state(interpreter, 0, self.SOURCE)]
        while interpreter.step():
            states.append(build_state(interpreter, len(states), self.SOURCE))
        states.append(build_state(interpreter, len(states), self.SOURCE))
        return states

    def test_initial_state(self):
        state = self._states()[0]
        assert state.index == 0
        assert state.node_type == "Program"
        assert (state.highlight.start, state.highlight.end) == (0, len(self.SOURCE))
        assert state.stack_trace == ("Frame 0: Program",)

    def test_indices_match_positions(self):
        states = self._states()
        assert [s.index for s in states] == list(range(len(states)))

    def test_highlight_is_innermost_node(self):
        for state in self._states():
            if state.node_type == "ReturnStatement":
                text = self.SOURCE[state.highlight.start : state.highlight.end]
                assert text == "return y;"
                break
        else:
            pytest.fail("no ReturnStatement state")

    def test_function_frames_in_stack_trace(self):
        traces = [s.stack_trace for s in self._states()]
        assert any("(f)" in line for trace in traces for line in trace)

    def test_variables_include_locals_inside_function(self):
        inside = [s for s in self._states() if s.node_type == "ReturnStatement"]
        assert inside[0].variables["y"] == 3
        assert inside[0].variables["x"] == 2
        assert inside[0].variables["a"] == 1

    def test_final_state_is_empty(self):
        final = self._states()[-1]
        assert final.node_type == ""
        assert final.stack_trace == ()
        assert final.debug[constants.DEBUG_STACK_DEPTH] == 0

    def test_debug_entries(self):
        state = self._states()[1]
        assert state.debug[constants.DEBUG_STACK_DEPTH] == 2
        assert state.debug[constants.DEBUG_CURRENT_NODE_TYPE] == "VariableDeclaration"

    def test_view_payload_while_evaluating_view(self):
        source = 'var s = 5; view([["s", "total"]]);'
        interpreter = StepInterpreter(parse_program(source))
        payloads = []
        while interpreter.step():
            state = build_state(interpreter, 0, source)
            if state.payload is not None:
                payloads.append(state.payload)
        assert payloads
        assert payloads[0].entries[0].value == 5


class TestStackTrace:
    def test_empty(self):
        assert build_stack_trace([]) == ()


class TestExecutionHistory:
    def test_point_search(self):
        history = ExecutionHistory(breakpoint_points=[2, 5, 9])
        assert history.next_point(history.breakpoint_points, 5) == 9
        assert history.prev_point(history.breakpoint_points, 5) == 2
        assert history.next_point(history.breakpoint_points, 9) is None
        assert history.prev_point(history.breakpoint_points, 2) is None
