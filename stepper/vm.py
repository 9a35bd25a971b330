"""Stepping interpreter — value conversion, operators and property access."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from .vm_types import UNDEFINED, JSFunction, NativeFunction


class JSRuntimeError(Exception):
    """A fault raised by the executed code (TypeError, ReferenceError, ...)."""

    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


# ── Number helpers ───────────────────────────────────────────────

_MAX_SAFE = 2**53


def normalize_number(value: int | float) -> int | float:
    """Collapse integral floats to ``int`` so results print the way JavaScript does."""
    if isinstance(value, float) and value.is_integer() and abs(value) < _MAX_SAFE:
        return int(value)
    return value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    if value is None:
        return 0
    if value is UNDEFINED:
        return math.nan
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        lowered = text.lower()
        try:
            if lowered.startswith("0x"):
                return int(lowered, 16)
            if lowered in ("infinity", "+infinity", "-infinity"):
                return -math.inf if lowered.startswith("-") else math.inf
            if lowered in ("inf", "+inf", "-inf", "nan"):
                return math.nan
            return normalize_number(float(text))
        except ValueError:
            return math.nan
    if isinstance(value, list):
        return to_number(to_string(value))
    return math.nan


def to_int32(value: Any) -> int:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return 0
    n = int(number) & 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        sign = "-" if exponent.startswith("-") else "+"
        text = f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"
    return text


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join(
            "" if item is None or item is UNDEFINED else to_string(item)
            for item in value
        )
    if isinstance(value, (JSFunction, NativeFunction)):
        return f"function {value.name}() {{ [native code] }}"
    return "[object Object]"


def truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return bool(value)
    return True


def type_of(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (JSFunction, NativeFunction)):
        return "function"
    return "object"


# ── Native <-> interpreter conversion ────────────────────────────


def to_pseudo(native: Any) -> Any:
    """Deep-convert a host value into an interpreter value.

    Raises:
        TypeError: if *native* contains something with no JavaScript counterpart.
    """
    if native is None or isinstance(native, (bool, str)):
        return native
    if is_number(native):
        return normalize_number(native)
    if isinstance(native, (list, tuple, set, frozenset)):
        return [to_pseudo(item) for item in native]
    if isinstance(native, Mapping):
        return {str(key): to_pseudo(value) for key, value in native.items()}
    raise TypeError(f"Cannot convert {type(native).__name__} to an interpreter value")


def to_native(value: Any) -> Any:
    """Deep-copy an interpreter value back into plain Python data."""
    if value is UNDEFINED or isinstance(value, (JSFunction, NativeFunction)):
        return None
    if isinstance(value, list):
        return [to_native(item) for item in value]
    if isinstance(value, dict):
        return {key: to_native(item) for key, item in value.items()}
    return value


def _jsonable(value: Any) -> Any:
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {
            key: _jsonable(item)
            for key, item in value.items()
            if item is not UNDEFINED
            and not isinstance(item, (JSFunction, NativeFunction))
        }
    if value is UNDEFINED or isinstance(value, (JSFunction, NativeFunction)):
        return None
    return value


def json_stringify(value: Any) -> str | Any:
    if value is UNDEFINED or isinstance(value, (JSFunction, NativeFunction)):
        return UNDEFINED
    return json.dumps(_jsonable(value), separators=(",", ":"), ensure_ascii=False)


def json_parse(text: Any) -> Any:
    try:
        return to_pseudo(json.loads(to_string(text)))
    except json.JSONDecodeError as exc:
        raise JSRuntimeError("SyntaxError", f"JSON.parse: {exc.msg}") from exc


# ── Operators ────────────────────────────────────────────────────


def _strict_equals(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, bool) and isinstance(b, bool):
        return a == b
    return a is b


def is_nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def _loose_equals(a: Any, b: Any) -> bool:
    if is_nullish(a) or is_nullish(b):
        return is_nullish(a) and is_nullish(b)
    if type_of(a) == type_of(b):
        return _strict_equals(a, b)
    if isinstance(a, bool):
        return _loose_equals(int(a), b)
    if isinstance(b, bool):
        return _loose_equals(a, int(b))
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, (list, dict)) and not isinstance(b, (list, dict)):
        return _loose_equals(to_string(a), b)
    if isinstance(b, (list, dict)) and not isinstance(a, (list, dict)):
        return _loose_equals(a, to_string(b))
    return False


def _to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict, JSFunction, NativeFunction)):
        return to_string(value)
    return value


def _add(a: Any, b: Any) -> Any:
    a, b = _to_primitive(a), _to_primitive(b)
    if isinstance(a, str) or isinstance(b, str):
        return to_string(a) + to_string(b)
    return normalize_number(to_number(a) + to_number(b))


def _divide(a: Any, b: Any) -> Any:
    x, y = to_number(a), to_number(b)
    if y == 0:
        if x == 0 or math.isnan(x):
            return math.nan
        negative = (x < 0) != (math.copysign(1.0, y) < 0)
        return -math.inf if negative else math.inf
    return normalize_number(x / y)


def _remainder(a: Any, b: Any) -> Any:
    x, y = to_number(a), to_number(b)
    if y == 0 or math.isnan(x) or math.isnan(y) or math.isinf(x):
        return math.nan
    if math.isinf(y):
        return x
    return normalize_number(math.fmod(x, y))


def _power(a: Any, b: Any) -> Any:
    x, y = to_number(a), to_number(b)
    try:
        return normalize_number(math.pow(x, y))
    except (OverflowError, ValueError):
        if x == 0 and y < 0:
            return math.inf
        return math.nan if x < 0 else math.inf


def _compare(op: str, a: Any, b: Any) -> bool:
    a, b = _to_primitive(a), _to_primitive(b)
    if not (isinstance(a, str) and isinstance(b, str)):
        a, b = to_number(a), to_number(b)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def _arith(fn):
    def apply(a: Any, b: Any) -> Any:
        try:
            return normalize_number(fn(to_number(a), to_number(b)))
        except OverflowError:
            return math.inf
    return apply


class Operators:
    """Binary and unary operator evaluation with JavaScript semantics."""

    BINOP_TABLE: dict[str, Any] = {
        "+": _add,
        "-": _arith(lambda a, b: a - b),
        "*": _arith(lambda a, b: a * b),
        "/": _divide,
        "%": _remainder,
        "**": _power,
        "==": _loose_equals,
        "!=": lambda a, b: not _loose_equals(a, b),
        "===": _strict_equals,
        "!==": lambda a, b: not _strict_equals(a, b),
        "<": lambda a, b: _compare("<", a, b),
        ">": lambda a, b: _compare(">", a, b),
        "<=": lambda a, b: _compare("<=", a, b),
        ">=": lambda a, b: _compare(">=", a, b),
        "&": lambda a, b: to_int32(to_int32(a) & to_int32(b)),
        "|": lambda a, b: to_int32(to_int32(a) | to_int32(b)),
        "^": lambda a, b: to_int32(to_int32(a) ^ to_int32(b)),
        "<<": lambda a, b: to_int32(to_int32(a) << (to_int32(b) & 31)),
        ">>": lambda a, b: to_int32(a) >> (to_int32(b) & 31),
        ">>>": lambda a, b: (to_int32(a) & 0xFFFFFFFF) >> (to_int32(b) & 31),
    }

    @classmethod
    def eval_binop(cls, op: str, lhs: Any, rhs: Any) -> Any:
        fn = cls.BINOP_TABLE.get(op)
        if fn is None:
            raise JSRuntimeError("SyntaxError", f"Unsupported operator '{op}'")
        return fn(lhs, rhs)

    @classmethod
    def eval_unop(cls, op: str, operand: Any) -> Any:
        if op == "-":
            return normalize_number(-to_number(operand))
        if op == "+":
            return to_number(operand)
        if op == "!":
            return not truthy(operand)
        if op == "~":
            return to_int32(~to_int32(operand))
        if op == "typeof":
            return type_of(operand)
        if op == "void":
            return UNDEFINED
        raise JSRuntimeError("SyntaxError", f"Unsupported operator '{op}'")


# ── Property access ──────────────────────────────────────────────


def _array_index(key: Any) -> int | None:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key if key >= 0 else None
    if isinstance(key, float) and key.is_integer() and key >= 0:
        return int(key)
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None


def property_key(key: Any) -> str:
    return key if isinstance(key, str) else to_string(key)


def get_member(obj: Any, key: Any) -> Any:
    from .builtins import member_function

    if obj is UNDEFINED or obj is None:
        raise JSRuntimeError(
            "TypeError",
            f"Cannot read properties of {to_string(obj)} (reading '{property_key(key)}')",
        )
    if isinstance(obj, (list, str)):
        index = _array_index(key)
        if index is not None:
            return obj[index] if index < len(obj) else UNDEFINED
        if property_key(key) == "length":
            return len(obj)
    if isinstance(obj, dict):
        name = property_key(key)
        if name in obj:
            return obj[name]
    method = member_function(obj, property_key(key))
    return method if method is not None else UNDEFINED


def set_member(obj: Any, key: Any, value: Any) -> None:
    if obj is UNDEFINED or obj is None:
        raise JSRuntimeError(
            "TypeError",
            f"Cannot set properties of {to_string(obj)} (setting '{property_key(key)}')",
        )
    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None:
            if index >= len(obj):
                obj.extend([UNDEFINED] * (index + 1 - len(obj)))
            obj[index] = value
            return
        if property_key(key) == "length":
            length = _array_index(value)
            if length is None:
                raise JSRuntimeError("RangeError", "Invalid array length")
            del obj[length:]
            obj.extend([UNDEFINED] * (length - len(obj)))
            return
        raise JSRuntimeError("TypeError", f"Cannot set array property '{property_key(key)}'")
    if isinstance(obj, dict):
        obj[property_key(key)] = value
        return
    # Writes to primitives are silently ignored, as in sloppy-mode JavaScript.
