"""LLM-backed generator for manual functions.

Given a formula and its variables, asks an LLM to write a manual function in
the JavaScript subset the stepping interpreter runs, then checks that the
result survives the same transform-and-parse pipeline a debugging session
would put it through.
"""

from __future__ import annotations

import logging
import re

from .extract import transform_function
from .frontend import JSSyntaxError, parse_program
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a precise code generator that creates JavaScript functions to "
    "evaluate mathematical formulas. Return ONLY the function code without any "
    "explanation or markdown."
)

_USER_PROMPT_TEMPLATE = """\
Create a JavaScript function that evaluates this formula: {formula}
Input variables: {inputs}
Computed variables to calculate: {computed}

Requirements:
1. Function must be named 'manual'
2. Takes a single parameter 'variables' containing input variable values as numbers
3. Must use ONLY the specified input variables, read as variables.<name>
4. Returns the numeric value of the first computed variable
5. Must handle division by zero and invalid operations by returning NaN
6. Use only function declarations, var, if/else, for and while loops, arrays and Math
   (no arrow functions, classes, new, try/catch, switch or template literals)
7. Before the return statement add a line of the form
   // @view "<local>"->"<description>"
8. Return ONLY the function code

Example structure (NOT the formula to implement):
function manual(variables) {{
  var a = variables.a;
  var output = a * 2;
  // @view "output"->"Doubled input"
  return output;
}}"""

_FENCE = re.compile(r"^```[A-Za-z]*\s*\n?|\n?```\s*$")
_FUNCTION = re.compile(r"\bfunction\b")


class ManualFunctionGenerationError(Exception):
    """Raised when an LLM response cannot be used as a manual function."""


def build_prompt(formula: str, computed_vars: list[str], input_vars: list[str]) -> str:
    return _USER_PROMPT_TEMPLATE.format(
        formula=formula,
        inputs=", ".join(input_vars),
        computed=", ".join(computed_vars),
    )


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _FENCE.sub("", text.strip()).strip()


def validate_manual_function(
    code: str, computed_vars: list[str], input_vars: list[str]
) -> None:
    """Check *code* is a runnable manual function.

    Raises:
        ManualFunctionGenerationError: if no function is present, the body
            cannot be extracted or the transformed program does not parse.
    """
    if not _FUNCTION.search(code):
        raise ManualFunctionGenerationError("Generated code does not contain a function")

    for name in input_vars:
        if name not in code:
            logger.warning("Generated code not using input variable: %s", name)
    if computed_vars and not any(name in code for name in computed_vars):
        logger.warning(
            "Generated code does not mention computed variables: %s",
            ", ".join(computed_vars),
        )

    transformed = transform_function(code)
    if transformed.code is None:
        raise ManualFunctionGenerationError(transformed.error or "Transform failed")
    try:
        parse_program(transformed.code)
    except JSSyntaxError as exc:
        raise ManualFunctionGenerationError(f"Generated code does not parse: {exc}") from exc


def generate_manual_function(
    formula: str,
    computed_vars: list[str],
    input_vars: list[str],
    llm_client: LLMClient,
) -> str:
    """Ask *llm_client* for a manual function that evaluates *formula*.

    Args:
        formula: The formula text, e.g. ``"K = 0.5 * m * v^2"``.
        computed_vars: Names of the variables the function computes.
        input_vars: Names of the variables the function may read.
        llm_client: The LLM backend to prompt.

    Returns:
        The validated function source text.
    """
    if not formula or not formula.strip():
        raise ManualFunctionGenerationError("Cannot generate function from empty formula")
    if not computed_vars:
        raise ManualFunctionGenerationError(
            "Cannot generate function without computed variables"
        )

    logger.info("Generating manual function for %s", formula)
    response = llm_client.complete(
        SYSTEM_PROMPT, build_prompt(formula, computed_vars, input_vars)
    )
    code = strip_fences(response)
    logger.debug("LLM response:\n%s", code)
    validate_manual_function(code, computed_vars, input_vars)
    return code
