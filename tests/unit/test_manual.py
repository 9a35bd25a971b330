"""Tests for the non-interactive manual engine."""

from __future__ import annotations

import math

from stepper.manual import compute_with_manual_engine
from stepper.run_types import Environment, Variable

ENERGY = """function manual(variables) {
  var m = variables.m;
  var c = variables.c;
  // @view "m"->"Mass"
  return m * c * c;
}"""


def _energy(**overrides) -> Environment:
    data = {
        "manual": ENERGY,
        "formula": "E = m * c^2",
        "variables": {
            "m": Variable(role="input", default=2),
            "c": Variable(role="constant", default=3),
            "E": Variable(role="computed"),
        },
    }
    data.update(overrides)
    return Environment(**data)


class TestComputeWithManualEngine:
    def test_return_value_goes_to_formula_variable(self):
        environment = _energy()
        assert compute_with_manual_engine(environment) == {"E": 18.0}
        assert environment.variables["E"].value == 18

    def test_value_overrides(self):
        assert compute_with_manual_engine(_energy(), {"m": 10}) == {"E": 90.0}

    def test_current_value_preferred_over_default(self):
        environment = _energy()
        environment.variables["m"].value = 1
        assert compute_with_manual_engine(environment) == {"E": 9.0}

    def test_single_computed_variable_without_formula(self):
        assert compute_with_manual_engine(_energy(formula=None)) == {"E": 18.0}

    def test_non_finite_result_is_nan(self):
        environment = _energy(manual="function (variables) { return 1 / 0; }")
        result = compute_with_manual_engine(environment)
        assert math.isnan(result["E"])

    def test_ambiguous_target_is_nan(self):
        environment = _energy(
            formula=None,
            variables={
                "a": Variable(role="computed"),
                "b": Variable(role="computed"),
            },
        )
        result = compute_with_manual_engine(environment)
        assert math.isnan(result["a"])
        assert math.isnan(result["b"])

    def test_mutated_values_are_synced_back(self):
        manual = """function manual(variables) {
          var xs = variables.X;
          xs.push(4);
          variables.total = 10;
          return xs.length;
        }"""
        environment = Environment(
            manual=manual,
            formula="n = |X|",
            variables={
                "X": Variable(role="input", default=[1, 2, 3]),
                "n": Variable(role="computed"),
                "total": Variable(role="computed"),
            },
        )
        result = compute_with_manual_engine(environment)
        assert result == {"n": 4.0, "total": 10.0}
        assert environment.variables["X"].value == [1, 2, 3, 4]

    def test_runtime_error_yields_empty(self):
        environment = _energy(manual="function (variables) { return missing; }")
        assert compute_with_manual_engine(environment) == {}

    def test_missing_manual_yields_empty(self):
        assert compute_with_manual_engine(_energy(manual=None)) == {}

    def test_parse_error_yields_empty(self):
        environment = _energy(manual="function (variables) { return 1 +; }")
        assert compute_with_manual_engine(environment) == {}
