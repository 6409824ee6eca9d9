"""File library. Every function here touches the filesystem and is
registered as dangerous.

Handles index ``ctx.file_handles``; the table is owned by whoever built the
evaluation context, so separate sessions do not share handles unless they
share a table on purpose.
"""

from __future__ import annotations

from typing import List, Optional

from functions import ParameterCount
from handles import parse_file_mode
from libraries import LibraryAPI
from literals import (
    Literal,
    abort_evaluation,
    bytes_to_string,
    literal_to_string,
    literal_to_unsigned,
    make_string,
    make_unsigned,
    string_to_bytes,
)

HEXPAT_LIBRARY_NAME = "file"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std::file"


def _io_failed(action: str, path: str, exc: OSError) -> None:
    abort_evaluation(f"failed to {action} file {path}: {exc.strerror or exc}")


def _open(ctx, params: List[Literal]) -> Optional[Literal]:
    path = literal_to_string(params[0], False)
    mode = parse_file_mode(literal_to_unsigned(params[1]))
    return make_unsigned(ctx.file_handles.open(path, mode))


def _close(ctx, params: List[Literal]) -> Optional[Literal]:
    ctx.file_handles.close(literal_to_unsigned(params[0]))
    return None


def _read(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    size = literal_to_unsigned(params[1])
    try:
        data = file.read(size)
    except (OSError, OverflowError) as exc:
        abort_evaluation(f"failed to read file {file.path}: {exc}")
    return make_string(bytes_to_string(data))


def _write(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    data = literal_to_string(params[1], True)
    try:
        file.write(string_to_bytes(data))
    except OSError as exc:
        _io_failed("write", file.path, exc)
    return None


def _seek(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    offset = literal_to_unsigned(params[1])
    try:
        file.seek(offset)
    except (OSError, OverflowError) as exc:
        abort_evaluation(f"failed to seek file {file.path}: {exc}")
    return None


def _size(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    try:
        return make_unsigned(file.size())
    except OSError as exc:
        _io_failed("query size of", file.path, exc)


def _resize(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    size = literal_to_unsigned(params[1])
    try:
        file.resize(size)
    except (OSError, OverflowError) as exc:
        abort_evaluation(f"failed to resize file {file.path}: {exc}")
    return None


def _flush(ctx, params: List[Literal]) -> Optional[Literal]:
    file = ctx.file_handles.get(literal_to_unsigned(params[0]))
    try:
        file.flush()
    except OSError as exc:
        _io_failed("flush", file.path, exc)
    return None


def _remove(ctx, params: List[Literal]) -> Optional[Literal]:
    ctx.file_handles.remove(literal_to_unsigned(params[0]))
    return None


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="file", version="1.0.0")
    api.add_dangerous_function(NAMESPACE, "open", ParameterCount.exactly(2), _open, doc="open(path, mode) -> handle; mode 1=read 2=write 3=create")
    api.add_dangerous_function(NAMESPACE, "close", ParameterCount.exactly(1), _close)
    api.add_dangerous_function(NAMESPACE, "read", ParameterCount.exactly(2), _read)
    api.add_dangerous_function(NAMESPACE, "write", ParameterCount.exactly(2), _write)
    api.add_dangerous_function(NAMESPACE, "seek", ParameterCount.exactly(2), _seek)
    api.add_dangerous_function(NAMESPACE, "size", ParameterCount.exactly(1), _size)
    api.add_dangerous_function(NAMESPACE, "resize", ParameterCount.exactly(2), _resize)
    api.add_dangerous_function(NAMESPACE, "flush", ParameterCount.exactly(1), _flush)
    api.add_dangerous_function(NAMESPACE, "remove", ParameterCount.exactly(1), _remove, doc="remove(handle); deletes the file and invalidates the handle")
