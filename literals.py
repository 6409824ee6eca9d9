from __future__ import annotations
import string
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


LIT_STR = "STR"
LIT_U128 = "U128"
LIT_I128 = "I128"
LIT_DOUBLE = "DOUBLE"
LIT_CHAR = "CHAR"
LIT_BOOL = "BOOL"
LIT_PATTERN = "PATTERN"

LITERAL_TYPES = (LIT_STR, LIT_U128, LIT_I128, LIT_DOUBLE, LIT_CHAR, LIT_BOOL, LIT_PATTERN)

U128_MODULUS = 1 << 128
I128_MIN = -(1 << 127)
I128_MAX = (1 << 127) - 1


class PatternLanguageError(Exception):
    """Base class for bridge errors."""


class EvaluationAbort(PatternLanguageError):
    """Raised to terminate the current script evaluation."""

    def __init__(self, message: str, *, function: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.function = function


def abort_evaluation(message: str) -> None:
    raise EvaluationAbort(message)


class PatternReference:
    """A pattern produced by the layout evaluator.

    The bridge never looks inside a pattern; it only asks for its textual form.
    """

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal:
    type: str
    value: Any

    def __post_init__(self) -> None:
        if self.type not in LITERAL_TYPES:
            raise PatternLanguageError(f"Unknown literal type '{self.type}'")


def make_string(text: str) -> Literal:
    return Literal(LIT_STR, str(text))


def make_unsigned(number: int) -> Literal:
    return Literal(LIT_U128, int(number) % U128_MODULUS)


def make_signed(number: int) -> Literal:
    return Literal(LIT_I128, _wrap_signed(int(number)))


def make_float(number: float) -> Literal:
    return Literal(LIT_DOUBLE, float(number))


def make_char(ch: str) -> Literal:
    if len(ch) != 1:
        raise PatternLanguageError("CHAR literals hold exactly one character")
    return Literal(LIT_CHAR, ch)


def make_bool(flag: bool) -> Literal:
    return Literal(LIT_BOOL, bool(flag))


def make_pattern(pattern: PatternReference) -> Literal:
    return Literal(LIT_PATTERN, pattern)


def _wrap_signed(number: int) -> int:
    number %= U128_MODULUS
    if number > I128_MAX:
        number -= U128_MODULUS
    return number


def _kind(literal: Literal) -> str:
    return {
        LIT_STR: "string",
        LIT_U128: "integer",
        LIT_I128: "integer",
        LIT_DOUBLE: "floating point",
        LIT_CHAR: "character",
        LIT_BOOL: "boolean",
        LIT_PATTERN: "pattern",
    }[literal.type]


def _format_double(number: float) -> str:
    if number != number:
        return "nan"
    if number in (float("inf"), float("-inf")):
        return "inf" if number > 0 else "-inf"
    return repr(number)


# ---- marshaling ----


def literal_to_string(literal: Literal, cast: bool) -> str:
    t = literal.type
    if t == LIT_STR:
        return literal.value
    if not cast:
        abort_evaluation(f"expected string type, got {_kind(literal)}")
    if t == LIT_U128 or t == LIT_I128:
        return str(literal.value)
    if t == LIT_DOUBLE:
        return _format_double(literal.value)
    if t == LIT_CHAR:
        return literal.value
    if t == LIT_BOOL:
        return "true" if literal.value else "false"
    if t == LIT_PATTERN:
        return literal.value.to_string()
    abort_evaluation(f"cannot convert {t} literal to string")


def _literal_to_integer(literal: Literal) -> int:
    t = literal.type
    if t == LIT_U128 or t == LIT_I128:
        return literal.value
    if t == LIT_DOUBLE:
        number = literal.value
        if number != number or number in (float("inf"), float("-inf")):
            abort_evaluation(f"cannot convert {_format_double(number)} to an integer")
        return int(number)
    if t == LIT_CHAR:
        return ord(literal.value)
    if t == LIT_BOOL:
        return 1 if literal.value else 0
    if t == LIT_STR or t == LIT_PATTERN:
        abort_evaluation(f"expected integral type, got {_kind(literal)}")
    abort_evaluation(f"cannot convert {t} literal to an integer")


def literal_to_unsigned(literal: Literal) -> int:
    return _literal_to_integer(literal) % U128_MODULUS


def literal_to_signed(literal: Literal) -> int:
    return _wrap_signed(_literal_to_integer(literal))


def literal_to_float(literal: Literal) -> float:
    t = literal.type
    if t == LIT_DOUBLE:
        return literal.value
    if t == LIT_U128 or t == LIT_I128:
        return float(literal.value)
    if t == LIT_CHAR:
        return float(ord(literal.value))
    if t == LIT_BOOL:
        return 1.0 if literal.value else 0.0
    if t == LIT_STR or t == LIT_PATTERN:
        abort_evaluation(f"expected floating point type, got {_kind(literal)}")
    abort_evaluation(f"cannot convert {t} literal to floating point")


def literal_to_boolean(literal: Literal) -> bool:
    t = literal.type
    if t == LIT_STR:
        return literal.value != ""
    if t == LIT_PATTERN:
        abort_evaluation("expected boolean type, got pattern")
    return _literal_to_integer(literal) != 0


def literal_to_native(literal: Literal) -> Any:
    t = literal.type
    if t == LIT_PATTERN:
        return literal.value.to_string()
    if t == LIT_BOOL:
        return "true" if literal.value else "false"
    if t in (LIT_STR, LIT_U128, LIT_I128, LIT_DOUBLE, LIT_CHAR):
        return literal.value
    abort_evaluation(f"cannot format {t} literal")


_FORMATTER = string.Formatter()


def _check_fields(fmt: str) -> None:
    # Field names may only select positional arguments, never attributes or items.
    for _text, field_name, spec, _conversion in _FORMATTER.parse(fmt):
        if field_name is None:
            continue
        if "." in field_name or "[" in field_name:
            raise ValueError(f"unsupported replacement field '{field_name}'")
        if spec and "{" in spec:
            _check_fields(spec)


def format_literals(params: Sequence[Literal]) -> str:
    fmt = literal_to_string(params[0], True)
    args: List[Any] = [literal_to_native(param) for param in params[1:]]
    try:
        _check_fields(fmt)
        return fmt.format(*args)
    except (ValueError, IndexError, KeyError, OverflowError, TypeError) as exc:
        # KeyError text is the bare key; keep it readable
        detail = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        abort_evaluation(f"format error: {detail}")


# ---- byte bridging ----


def bytes_to_string(data: bytes) -> str:
    return bytes(data).decode("latin-1")


def string_to_bytes(text: str) -> bytes:
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError:
        return text.encode("utf-8")


def render_literal(literal: Optional[Literal]) -> str:
    """Human readable form used by the CLI and diagnostics."""
    if literal is None:
        return "<none>"
    t = literal.type
    if t == LIT_STR:
        return repr(literal.value)
    if t == LIT_CHAR:
        return f"'{literal.value}'"
    if t == LIT_U128 and literal.value > 9:
        return f"{literal.value} (0x{literal.value:X})"
    return literal_to_string(literal, True)
