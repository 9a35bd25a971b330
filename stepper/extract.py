"""Source transformer — turns an author's manual function into an executable program.

Pipeline: extract the function body, rewrite ``// @view`` annotations into
breakpoint calls, wrap the body in a fixed harness and beautify the result
so that character offsets are reproducible.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import jsbeautifier

from . import constants
from .run_types import Environment

logger = logging.getLogger(__name__)

_VIEW_ANNOTATION = re.compile(constants.VIEW_ANNOTATION_PATTERN, re.IGNORECASE | re.MULTILINE)
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Tried in order; the first match wins.
_ANNOTATION_GRAMMARS: tuple[re.Pattern, ...] = (
    re.compile(r'^"([^"]+)"->"([^"]+)"->"([^"]+)"$'),
    re.compile(r'^([^"]+?)->"([^"]+)"->"([^"]+)"$'),
    re.compile(r'^"([^"]+)"->"([^"]+)"$'),
    re.compile(r'^([^"]+?)->"([^"]+)"$'),
)


@dataclass(frozen=True)
class ExtractResult:
    """Outcome of transforming a manual function.

    ``code`` is the executable program; ``display_code`` is the beautified,
    annotation-rewritten author function whose lines line up with ``code``.
    """

    code: str | None = None
    error: str | None = None
    is_loading: bool = False
    display_code: str | None = None
    values_object_name: str = constants.DEFAULT_VALUES_OBJECT


def _escape(text: str) -> str:
    return text.strip().replace('"', '\\"')


def _rewrite_annotation(match: re.Match) -> str:
    indent, params = match.group(1), match.group(2).strip()
    for grammar in _ANNOTATION_GRAMMARS:
        parsed = grammar.match(params)
        if parsed:
            args = ", ".join(f'"{_escape(part)}"' for part in parsed.groups())
            return f"{indent}{constants.VIEW_FUNCTION}([[{args}]]);"
    return f"{indent}{constants.VIEW_FUNCTION}();"


def add_view_functions(code: str) -> str:
    """Replace every ``// @view`` annotation line with an explicit ``view(...)`` call."""
    return _VIEW_ANNOTATION.sub(_rewrite_annotation, code)


def _matching_paren(source: str, open_index: int) -> int:
    depth = 0
    quote: str | None = None
    index = open_index
    while index < len(source):
        char = source[index]
        if quote is not None:
            if char == "\\":
                index += 1
            elif char == quote:
                quote = None
        elif char in "\"'`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    raise ValueError("Unbalanced parameter list")


def split_function(source: str) -> tuple[str, str]:
    """Return ``(parameter_text, body)`` of a function's source text.

    The body search starts after the parameter list closes, so destructured
    parameters such as ``function({a, b})`` do not confuse it.

    Raises:
        ValueError: if no body braces can be located.
    """
    params = ""
    search_from = 0
    open_paren = source.find("(")
    first_brace = source.find("{")
    if open_paren != -1 and (first_brace == -1 or open_paren < first_brace):
        close_paren = _matching_paren(source, open_paren)
        params = source[open_paren + 1 : close_paren]
        search_from = close_paren + 1

    body_start = source.find("{", search_from)
    if body_start == -1:
        raise ValueError("No valid opening brace found")
    body_end = source.rfind("}")
    if body_end <= body_start:
        raise ValueError("No valid closing brace found")
    return params, source[body_start + 1 : body_end].strip()


def values_object_name(params: str) -> str:
    """Name the harness binds the external values to: the first simple parameter."""
    first = params.split(",")[0].strip()
    if _IDENTIFIER.match(first):
        return first
    return constants.DEFAULT_VALUES_OBJECT


def wrap_program(body: str, values_name: str = constants.DEFAULT_VALUES_OBJECT) -> str:
    lines = [
        f"function {constants.WRAPPER_FUNCTION_NAME}() {{",
        body,
        "}",
        "",
        constants.VALUES_COMMENT,
        f"var {values_name} = JSON.parse({constants.VALUES_JSON_FUNCTION}());",
        "",
        f"var {constants.RESULT_BINDING} = {constants.WRAPPER_FUNCTION_NAME}();",
    ]
    return "\n".join(lines)


def _beautify_options():
    options = jsbeautifier.default_options()
    options.indent_size = constants.BEAUTIFY_INDENT_SIZE
    options.space_in_empty_paren = False
    options.preserve_newlines = True
    options.max_preserve_newlines = constants.BEAUTIFY_MAX_PRESERVE_NEWLINES
    options.brace_style = constants.BEAUTIFY_BRACE_STYLE
    options.keep_array_indentation = False
    return options


def beautify(code: str) -> str:
    """Pretty-print with the fixed house style; returns *code* unchanged on failure."""
    try:
        return jsbeautifier.beautify(code, _beautify_options())
    except Exception as exc:  # jsbeautifier raises plain Exception
        logger.warning("Beautify failed, using raw text: %s", exc)
        return code


def transform_function(source: str) -> ExtractResult:
    """Run the full transformation on a function's source text."""
    try:
        params, body = split_function(source)
    except ValueError as exc:
        logger.warning("Body extraction failed: %s", exc)
        return ExtractResult(error=f"{constants.BODY_EXTRACTION_ERROR}: {exc}")

    values_name = values_object_name(params)
    code = beautify(wrap_program(add_view_functions(body), values_name))
    display = beautify(add_view_functions(source.strip()))
    logger.debug("Transformed manual function into %d lines", code.count("\n") + 1)
    return ExtractResult(code=code, display_code=display, values_object_name=values_name)


def extract_manual(environment: Environment | None) -> ExtractResult:
    """Transform the manual function of *environment*.

    Never raises: a missing environment yields ``is_loading`` and any
    failure yields ``code=None`` with an error message.
    """
    if environment is None:
        return ExtractResult(is_loading=True)
    if not environment.manual or not environment.manual.strip():
        return ExtractResult(error=constants.NO_MANUAL_FUNCTION)
    return transform_function(environment.manual)
