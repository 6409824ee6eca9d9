"""String library.

``parse_int`` and ``parse_float`` are permissive: they parse the longest
numeric prefix the way C's ``strtoll``/``strtod`` do and return zero when
nothing parses.
"""

from __future__ import annotations

import re
from typing import List, Optional

from functions import ParameterCount
from libraries import LibraryAPI
from literals import (
    Literal,
    abort_evaluation,
    literal_to_signed,
    literal_to_string,
    literal_to_unsigned,
    make_char,
    make_float,
    make_signed,
    make_string,
    make_unsigned,
)

HEXPAT_LIBRARY_NAME = "string"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std::string"

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
# C isspace
_C_WHITESPACE = " \t\n\v\f\r"

_DECIMAL_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_FLOAT = re.compile(r"([+-]?)0[xX]((?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+))(?:[pP]([+-]?\d+))?")
_SPECIAL_FLOAT = re.compile(r"([+-]?)(infinity|inf|nan(?:\([0-9A-Za-z_]*\))?)", re.IGNORECASE)


def parse_int(text: str, base: int) -> int:
    if base != 0 and not 2 <= base <= 36:
        return 0
    s = text.lstrip(_C_WHITESPACE)
    negative = False
    if s[:1] in ("+", "-"):
        negative = s[0] == "-"
        s = s[1:]

    def _has_hex_prefix() -> bool:
        return s[:2].lower() == "0x" and len(s) > 2 and s[2].lower() in _DIGITS[:16]

    if base == 0:
        if _has_hex_prefix():
            base, s = 16, s[2:]
        elif s[:1] == "0":
            base = 8
        else:
            base = 10
    elif base == 16 and _has_hex_prefix():
        s = s[2:]

    valid = _DIGITS[:base]
    count = 0
    for ch in s:
        if ch.lower() not in valid:
            break
        count += 1
    if count == 0:
        return 0

    value = int(s[:count], base)
    if negative:
        value = -value
    return max(INT64_MIN, min(INT64_MAX, value))


def parse_float(text: str) -> float:
    s = text.lstrip(_C_WHITESPACE)

    match = _SPECIAL_FLOAT.match(s)
    if match:
        sign = -1.0 if match.group(1) == "-" else 1.0
        word = match.group(2).lower()
        return sign * (float("nan") if word.startswith("nan") else float("inf"))

    match = _HEX_FLOAT.match(s)
    if match:
        sign, mantissa, exponent = match.groups()
        literal = f"{sign}0x{mantissa}p{exponent or '0'}"
        try:
            return float.fromhex(literal)
        except OverflowError:
            return float("-inf") if sign == "-" else float("inf")

    match = _DECIMAL_FLOAT.match(s)
    if match:
        return float(match.group(0))
    return 0.0


def _length(_ctx, params: List[Literal]) -> Optional[Literal]:
    return make_unsigned(len(literal_to_string(params[0], False)))


def _at(_ctx, params: List[Literal]) -> Optional[Literal]:
    text = literal_to_string(params[0], False)
    index = literal_to_signed(params[1])
    # Valid range is -len .. len - 1; one past the end is rejected.
    if index >= len(text) or -index > len(text):
        abort_evaluation("character index out of range")
    return make_char(text[index])


def _substr(_ctx, params: List[Literal]) -> Optional[Literal]:
    text = literal_to_string(params[0], False)
    pos = literal_to_unsigned(params[1])
    count = literal_to_unsigned(params[2])
    if pos > len(text):
        abort_evaluation("character index out of range")
    return make_string(text[pos : pos + count])


def _parse_int(_ctx, params: List[Literal]) -> Optional[Literal]:
    text = literal_to_string(params[0], False)
    base = literal_to_unsigned(params[1])
    return make_signed(parse_int(text, base))


def _parse_float(_ctx, params: List[Literal]) -> Optional[Literal]:
    return make_float(parse_float(literal_to_string(params[0], False)))


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="string", version="1.0.0")
    api.add_function(NAMESPACE, "length", ParameterCount.exactly(1), _length)
    api.add_function(NAMESPACE, "at", ParameterCount.exactly(2), _at)
    api.add_function(NAMESPACE, "substr", ParameterCount.exactly(3), _substr)
    api.add_function(NAMESPACE, "parse_int", ParameterCount.exactly(2), _parse_int)
    api.add_function(NAMESPACE, "parse_float", ParameterCount.exactly(1), _parse_float)
