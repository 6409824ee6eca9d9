"""Core library: formatting, diagnostics and environment lookup.

Functions live directly in the ``std`` namespace.
"""

from __future__ import annotations

from typing import List, Optional

from functions import ParameterCount
from libraries import LibraryAPI
from literals import Literal, abort_evaluation, format_literals, literal_to_string, make_string, make_unsigned

HEXPAT_LIBRARY_NAME = "core"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std"


def _print(ctx, params: List[Literal]) -> Optional[Literal]:
    ctx.console.info(format_literals(params))
    return None


def _format(_ctx, params: List[Literal]) -> Optional[Literal]:
    return make_string(format_literals(params))


def _env(ctx, params: List[Literal]) -> Optional[Literal]:
    name = literal_to_string(params[0], False)
    value = ctx.get_env_variable(name)
    if value is not None:
        return make_string(value)
    # Missing variables are a soft failure: the script keeps running.
    ctx.console.warning(f"environment variable '{name}' does not exist")
    return make_string("")


def _sizeof_pack(_ctx, params: List[Literal]) -> Optional[Literal]:
    return make_unsigned(len(params))


def _error(_ctx, params: List[Literal]) -> Optional[Literal]:
    abort_evaluation(literal_to_string(params[0], True))


def _warning(ctx, params: List[Literal]) -> Optional[Literal]:
    ctx.console.warning(literal_to_string(params[0], True))
    return None


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="core", version="1.0.0")
    api.add_function(NAMESPACE, "print", ParameterCount.more_than(0), _print, doc="print(format, args...)")
    api.add_function(NAMESPACE, "format", ParameterCount.more_than(0), _format, doc="format(format, args...) -> str")
    api.add_function(NAMESPACE, "env", ParameterCount.exactly(1), _env, doc="env(name) -> str")
    api.add_function(NAMESPACE, "sizeof_pack", ParameterCount.at_least(0), _sizeof_pack, doc="sizeof_pack(...) -> u128")
    api.add_function(NAMESPACE, "error", ParameterCount.exactly(1), _error, doc="error(message)")
    api.add_function(NAMESPACE, "warning", ParameterCount.exactly(1), _warning, doc="warning(message)")
