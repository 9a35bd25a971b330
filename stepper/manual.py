"""Non-interactive manual engine — evaluates a manual function to completion."""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Mapping

from . import constants
from .extract import extract_manual
from .interpreter import initialize_interpreter
from .run_types import Environment
from .vm import JSRuntimeError, is_number, to_native

logger = logging.getLogger(__name__)


def _finite(value: Any) -> bool:
    return is_number(value) and math.isfinite(value)


def _result_target(environment: Environment, computed: list[str]) -> str | None:
    """Computed variable the function's return value belongs to."""
    formula = environment.formula or ""
    for name in computed:
        if re.search(rf"(?<![\w$]){re.escape(name)}(?![\w$])", formula):
            return name
    if len(computed) == 1:
        return computed[0]
    return None


def _sync_back(
    environment: Environment, before: Mapping[str, Any], after: Any
) -> None:
    """Copy numbers and arrays the function changed in its values object."""
    if not isinstance(after, dict):
        return
    for name, value in after.items():
        variable = environment.variables.get(name)
        if variable is None or value == before.get(name):
            continue
        if _finite(value) or isinstance(value, list):
            logger.debug("Syncing %s = %r", name, value)
            variable.value = value


def compute_with_manual_engine(
    environment: Environment, values: Mapping[str, Any] | None = None
) -> dict[str, float]:
    """Run *environment*'s manual function and return its computed values.

    Args:
        environment: Author configuration holding the manual function.
        values: Overrides for the environment's current variable values.

    Returns:
        Computed variable name to value (``NaN`` where the function produced
        no valid number); ``{}`` when the function cannot be run.
    """
    extracted = extract_manual(environment)
    if extracted.code is None:
        logger.warning("Manual engine skipped: %s", extracted.error or "no environment")
        return {}

    inputs = {**environment.current_values(), **(values or {})}
    errors: list[str] = []
    interpreter = initialize_interpreter(extracted.code, inputs, errors.append)
    if interpreter is None:
        logger.error("Manual engine failed to start: %s", "; ".join(errors))
        return {}
    try:
        interpreter.run()
    except JSRuntimeError as exc:
        logger.error("Error evaluating manual function: %s", exc)
        return {}

    computed = [
        name for name, variable in environment.variables.items()
        if variable.role == "computed"
    ]
    result = to_native(interpreter.global_value(constants.RESULT_BINDING))
    target = _result_target(environment, computed)
    if target is not None and _finite(result):
        environment.variables[target].value = result
    _sync_back(
        environment,
        inputs,
        to_native(interpreter.global_value(extracted.values_object_name)),
    )

    outputs: dict[str, float] = {}
    for name in computed:
        value = environment.variables[name].value
        outputs[name] = float(value) if _finite(value) else math.nan
    return outputs
