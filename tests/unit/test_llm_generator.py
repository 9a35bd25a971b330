"""Tests for the LLM manual-function generator."""

from __future__ import annotations

import pytest

from stepper.llm_client import LLMClient
from stepper.llm_generator import (
    SYSTEM_PROMPT,
    ManualFunctionGenerationError,
    build_prompt,
    generate_manual_function,
    strip_fences,
)

GOOD_FUNCTION = """function manual(variables) {
  var m = variables.m;
  var c = variables.c;
  var E = m * c * c;
  // @view "E"->"Energy"
  return E;
}"""


class FakeLLMClient(LLMClient):
    """Returns a canned response and records the prompts it received."""

    def __init__(self, response: str):
        self._response = response
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_prompt, user_message, max_tokens=2048, temperature=0.1):
        self.calls.append((system_prompt, user_message))
        return self._response


class TestPrompt:
    def test_prompt_names_variables(self):
        prompt = build_prompt("E = m * c^2", ["E"], ["m", "c"])
        assert "E = m * c^2" in prompt
        assert "Input variables: m, c" in prompt
        assert "Computed variables to calculate: E" in prompt

    def test_system_prompt(self):
        client = FakeLLMClient(GOOD_FUNCTION)
        generate_manual_function("E = m * c^2", ["E"], ["m", "c"], client)
        assert client.calls[0][0] == SYSTEM_PROMPT


class TestStripFences:
    def test_fenced(self):
        assert strip_fences("```javascript\nfunction f() {}\n```") == "function f() {}"

    def test_unfenced(self):
        assert strip_fences("  function f() {}  ") == "function f() {}"


class TestGenerateManualFunction:
    def test_returns_validated_code(self):
        client = FakeLLMClient(f"```js\n{GOOD_FUNCTION}\n```")
        code = generate_manual_function("E = m * c^2", ["E"], ["m", "c"], client)
        assert code == GOOD_FUNCTION

    def test_empty_formula(self):
        with pytest.raises(ManualFunctionGenerationError, match="empty formula"):
            generate_manual_function("  ", ["E"], [], FakeLLMClient(GOOD_FUNCTION))

    def test_no_computed_variables(self):
        with pytest.raises(ManualFunctionGenerationError, match="computed variables"):
            generate_manual_function("E = m", [], ["m"], FakeLLMClient(GOOD_FUNCTION))

    def test_response_without_function(self):
        client = FakeLLMClient("E = m * c * c")
        with pytest.raises(ManualFunctionGenerationError, match="does not contain a function"):
            generate_manual_function("E = m * c^2", ["E"], ["m", "c"], client)

    def test_response_with_unsupported_syntax(self):
        client = FakeLLMClient("function manual(variables) { return new Date(); }")
        with pytest.raises(ManualFunctionGenerationError, match="does not parse"):
            generate_manual_function("E = m", ["E"], ["m"], client)

    def test_response_without_body(self):
        client = FakeLLMClient("function manual(variables)")
        with pytest.raises(ManualFunctionGenerationError, match="Failed to extract"):
            generate_manual_function("E = m", ["E"], ["m"], client)
