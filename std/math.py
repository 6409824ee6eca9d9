"""Math library. Thin wrappers over numpy ufuncs so domain errors produce
NaN or infinities the way the C math library does, instead of raising.
"""

from __future__ import annotations

from typing import Callable, List, Optional

import numpy as np

from functions import ParameterCount
from libraries import LibraryAPI
from literals import Literal, literal_to_float, make_float

HEXPAT_LIBRARY_NAME = "math"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std::math"


def round_half_away(x: float) -> float:
    # C round(): halfway cases move away from zero (np.round rounds to even).
    # x - trunc(x) is exact, so no rounding creeps in near 0.5 or 2**52.
    truncated = np.trunc(x)
    if np.abs(x - truncated) >= 0.5:
        truncated += np.copysign(1.0, x)
    return float(truncated)


_UNARY = {
    "floor": np.floor,
    "ceil": np.ceil,
    "round": round_half_away,
    "trunc": np.trunc,
    "log10": np.log10,
    "log2": np.log2,
    "ln": np.log,
    "sqrt": np.sqrt,
    "cbrt": np.cbrt,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asinh": np.arcsinh,
    "acosh": np.arccosh,
    "atanh": np.arctanh,
}

_BINARY = {
    "fmod": np.fmod,
    "pow": np.power,
    "atan2": np.arctan2,
}


def _unary(func: Callable[[float], float]):
    def impl(_ctx, params: List[Literal]) -> Optional[Literal]:
        x = literal_to_float(params[0])
        with np.errstate(all="ignore"):
            return make_float(float(func(np.float64(x))))

    return impl


def _binary(func: Callable[[float, float], float]):
    def impl(_ctx, params: List[Literal]) -> Optional[Literal]:
        x = literal_to_float(params[0])
        y = literal_to_float(params[1])
        with np.errstate(all="ignore"):
            return make_float(float(func(np.float64(x), np.float64(y))))

    return impl


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="math", version="1.0.0")
    for name, func in _UNARY.items():
        api.add_function(NAMESPACE, name, ParameterCount.exactly(1), _unary(func))
    for name, func in _BINARY.items():
        api.add_function(NAMESPACE, name, ParameterCount.exactly(2), _binary(func))
