"""Built-in globals and member functions available to manual functions."""

from __future__ import annotations

import math
import random
import re
from typing import Any, Callable

from .vm import (
    JSRuntimeError,
    Operators,
    is_number,
    json_parse,
    json_stringify,
    normalize_number,
    to_number,
    to_string,
    truthy,
)
from .vm_types import UNDEFINED, NativeFunction

BuiltinFn = Callable[[list[Any], Any], Any]

_FLOAT_PREFIX = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def _arg(args: list[Any], index: int) -> Any:
    return args[index] if index < len(args) else UNDEFINED


def _numeric(fn: Callable[..., float]) -> BuiltinFn:
    """Adapt a one-argument math function to JavaScript number semantics."""

    def impl(args: list[Any], this: Any) -> Any:
        x = to_number(_arg(args, 0))
        try:
            return normalize_number(fn(x))
        except (ValueError, OverflowError):
            return math.nan

    return impl


# ── Math ─────────────────────────────────────────────────────────


def _math_round(args: list[Any], this: Any) -> Any:
    x = to_number(_arg(args, 0))
    if math.isnan(x) or math.isinf(x):
        return x
    return normalize_number(math.floor(x + 0.5))


def _math_sign(args: list[Any], this: Any) -> Any:
    x = to_number(_arg(args, 0))
    if math.isnan(x) or x == 0:
        return x
    return 1 if x > 0 else -1


def _math_max(args: list[Any], this: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return max(numbers, default=-math.inf)


def _math_min(args: list[Any], this: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers, default=math.inf)


def _math_pow(args: list[Any], this: Any) -> Any:
    return Operators.eval_binop("**", _arg(args, 0), _arg(args, 1))


def _math_atan2(args: list[Any], this: Any) -> Any:
    return normalize_number(
        math.atan2(to_number(_arg(args, 0)), to_number(_arg(args, 1)))
    )


def _math_hypot(args: list[Any], this: Any) -> Any:
    return normalize_number(math.hypot(*(to_number(a) for a in args)))


def _math_random(args: list[Any], this: Any) -> Any:
    return random.random()


def _math_log(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log(x)


def _math_sqrt(x: float) -> float:
    if math.isinf(x) and x > 0:
        return math.inf
    return math.sqrt(x)


def _math_cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def _math_trunc(x: float) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    return math.trunc(x)


def _math_floor(x: float) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    return math.floor(x)


def _math_ceil(x: float) -> float:
    if math.isnan(x) or math.isinf(x):
        return x
    return math.ceil(x)


def _make_math() -> dict[str, Any]:
    functions: dict[str, BuiltinFn] = {
        "abs": _numeric(abs),
        "sqrt": _numeric(_math_sqrt),
        "cbrt": _numeric(_math_cbrt),
        "exp": _numeric(math.exp),
        "log": _numeric(_math_log),
        "log2": _numeric(lambda x: -math.inf if x == 0 else math.log2(x)),
        "log10": _numeric(lambda x: -math.inf if x == 0 else math.log10(x)),
        "sin": _numeric(math.sin),
        "cos": _numeric(math.cos),
        "tan": _numeric(math.tan),
        "asin": _numeric(math.asin),
        "acos": _numeric(math.acos),
        "atan": _numeric(math.atan),
        "sinh": _numeric(math.sinh),
        "cosh": _numeric(math.cosh),
        "tanh": _numeric(math.tanh),
        "floor": _numeric(_math_floor),
        "ceil": _numeric(_math_ceil),
        "trunc": _numeric(_math_trunc),
        "round": _math_round,
        "sign": _math_sign,
        "max": _math_max,
        "min": _math_min,
        "pow": _math_pow,
        "atan2": _math_atan2,
        "hypot": _math_hypot,
        "random": _math_random,
    }
    namespace: dict[str, Any] = {
        name: NativeFunction(name, impl) for name, impl in functions.items()
    }
    namespace.update(
        {
            "PI": math.pi,
            "E": math.e,
            "LN2": math.log(2),
            "LN10": math.log(10),
            "LOG2E": math.log2(math.e),
            "LOG10E": math.log10(math.e),
            "SQRT2": math.sqrt(2),
            "SQRT1_2": math.sqrt(0.5),
        }
    )
    return namespace


# ── Global functions ─────────────────────────────────────────────


def _builtin_is_nan(args: list[Any], this: Any) -> Any:
    return math.isnan(to_number(_arg(args, 0)))


def _builtin_is_finite(args: list[Any], this: Any) -> Any:
    x = to_number(_arg(args, 0))
    return not (math.isnan(x) or math.isinf(x))


def _builtin_parse_float(args: list[Any], this: Any) -> Any:
    text = to_string(_arg(args, 0)).strip()
    if text.startswith(("Infinity", "+Infinity")):
        return math.inf
    if text.startswith("-Infinity"):
        return -math.inf
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return math.nan
    return normalize_number(float(match.group(0)))


def _builtin_parse_int(args: list[Any], this: Any) -> Any:
    text = to_string(_arg(args, 0)).strip()
    radix_arg = _arg(args, 1)
    radix = int(to_number(radix_arg)) if radix_arg is not UNDEFINED else 10
    sign = -1 if text.startswith("-") else 1
    text = text.lstrip("+-")
    if radix in (0, 16) and text.lower().startswith("0x"):
        text, radix = text[2:], 16
    radix = radix or 10
    digits = ""
    for char in text:
        if char.isascii() and char.isalnum() and int(char, 36) < radix:
            digits += char
        else:
            break
    if not digits:
        return math.nan
    return sign * int(digits, radix)


def _builtin_number(args: list[Any], this: Any) -> Any:
    return to_number(args[0]) if args else 0


def _builtin_string(args: list[Any], this: Any) -> Any:
    return to_string(args[0]) if args else ""


def _builtin_boolean(args: list[Any], this: Any) -> Any:
    return truthy(_arg(args, 0))


def _json_stringify(args: list[Any], this: Any) -> Any:
    return json_stringify(_arg(args, 0))


def _json_parse(args: list[Any], this: Any) -> Any:
    return json_parse(_arg(args, 0))


def _array_is_array(args: list[Any], this: Any) -> Any:
    return isinstance(_arg(args, 0), list)


def make_globals() -> dict[str, Any]:
    """Fresh global bindings for one interpreter instance."""
    return {
        "undefined": UNDEFINED,
        "NaN": math.nan,
        "Infinity": math.inf,
        "Math": _make_math(),
        "JSON": {
            "stringify": NativeFunction("stringify", _json_stringify),
            "parse": NativeFunction("parse", _json_parse),
        },
        "Array": {"isArray": NativeFunction("isArray", _array_is_array)},
        "isNaN": NativeFunction("isNaN", _builtin_is_nan),
        "isFinite": NativeFunction("isFinite", _builtin_is_finite),
        "parseFloat": NativeFunction("parseFloat", _builtin_parse_float),
        "parseInt": NativeFunction("parseInt", _builtin_parse_int),
        "Number": NativeFunction("Number", _builtin_number),
        "String": NativeFunction("String", _builtin_string),
        "Boolean": NativeFunction("Boolean", _builtin_boolean),
    }


# ── Member functions ─────────────────────────────────────────────


def _array_push(args: list[Any], this: Any) -> Any:
    this.extend(args)
    return len(this)


def _array_pop(args: list[Any], this: Any) -> Any:
    return this.pop() if this else UNDEFINED


def _array_shift(args: list[Any], this: Any) -> Any:
    return this.pop(0) if this else UNDEFINED


def _array_unshift(args: list[Any], this: Any) -> Any:
    this[:0] = args
    return len(this)


def _index_of(args: list[Any], this: Any) -> Any:
    target = _arg(args, 0)
    for i, item in enumerate(this):
        if Operators.eval_binop("===", item, target):
            return i
    return -1


def _string_index_of(args: list[Any], this: Any) -> Any:
    return this.find(to_string(_arg(args, 0)))


def _includes(args: list[Any], this: Any) -> Any:
    if isinstance(this, str):
        return to_string(_arg(args, 0)) in this
    return _index_of(args, this) != -1


def _slice_bounds(args: list[Any], length: int) -> tuple[int, int]:
    def resolve(value: Any, default: int) -> int:
        if value is UNDEFINED:
            return default
        n = int(to_number(value))
        return max(length + n, 0) if n < 0 else min(n, length)

    return resolve(_arg(args, 0), 0), resolve(_arg(args, 1), length)


def _slice(args: list[Any], this: Any) -> Any:
    start, end = _slice_bounds(args, len(this))
    return this[start:end]


def _array_concat(args: list[Any], this: Any) -> Any:
    result = list(this)
    for arg in args:
        if isinstance(arg, list):
            result.extend(arg)
        else:
            result.append(arg)
    return result


def _array_join(args: list[Any], this: Any) -> Any:
    separator = _arg(args, 0)
    sep = "," if separator is UNDEFINED else to_string(separator)
    return sep.join(
        "" if item is None or item is UNDEFINED else to_string(item) for item in this
    )


def _array_reverse(args: list[Any], this: Any) -> Any:
    this.reverse()
    return this


def _string_upper(args: list[Any], this: Any) -> Any:
    return this.upper()


def _string_lower(args: list[Any], this: Any) -> Any:
    return this.lower()


def _string_char_at(args: list[Any], this: Any) -> Any:
    index = int(to_number(_arg(args, 0))) if args else 0
    return this[index] if 0 <= index < len(this) else ""


def _string_split(args: list[Any], this: Any) -> Any:
    separator = _arg(args, 0)
    if separator is UNDEFINED:
        return [this]
    sep = to_string(separator)
    return list(this) if sep == "" else this.split(sep)


def _string_trim(args: list[Any], this: Any) -> Any:
    return this.strip()


def _number_to_fixed(args: list[Any], this: Any) -> Any:
    digits = int(to_number(_arg(args, 0))) if args else 0
    if not 0 <= digits <= 100:
        raise JSRuntimeError("RangeError", "toFixed() digits argument must be between 0 and 100")
    return f"{this:.{digits}f}"


def _to_string_method(args: list[Any], this: Any) -> Any:
    return to_string(this)


ARRAY_METHODS: dict[str, BuiltinFn] = {
    "push": _array_push,
    "pop": _array_pop,
    "shift": _array_shift,
    "unshift": _array_unshift,
    "indexOf": _index_of,
    "includes": _includes,
    "slice": _slice,
    "concat": _array_concat,
    "join": _array_join,
    "reverse": _array_reverse,
    "toString": _to_string_method,
}

STRING_METHODS: dict[str, BuiltinFn] = {
    "indexOf": _string_index_of,
    "includes": _includes,
    "slice": _slice,
    "toUpperCase": _string_upper,
    "toLowerCase": _string_lower,
    "charAt": _string_char_at,
    "split": _string_split,
    "trim": _string_trim,
    "toString": _to_string_method,
}

NUMBER_METHODS: dict[str, BuiltinFn] = {
    "toFixed": _number_to_fixed,
    "toString": _to_string_method,
}


def member_function(obj: Any, name: str) -> NativeFunction | None:
    """Resolve a built-in method on an array, string or number receiver."""
    if isinstance(obj, list):
        table = ARRAY_METHODS
    elif isinstance(obj, str):
        table = STRING_METHODS
    elif is_number(obj):
        table = NUMBER_METHODS
    else:
        return None
    impl = table.get(name)
    return NativeFunction(name, impl) if impl is not None else None
