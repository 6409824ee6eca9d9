"""Memory library: reads and searches over the evaluation's data source."""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from functions import ParameterCount
from libraries import LibraryAPI
from literals import (
    Literal,
    abort_evaluation,
    bytes_to_string,
    literal_to_unsigned,
    make_signed,
    make_string,
    make_unsigned,
)

HEXPAT_LIBRARY_NAME = "mem"
HEXPAT_LIBRARY_API_VERSION = 1

NAMESPACE = "std::mem"

MAX_READ_SIZE = 16


def decode_unsigned(data: bytes) -> int:
    return int.from_bytes(data, "little", signed=False)


def sign_extend(bits: int, value: int) -> int:
    """Replicate bit ``bits - 1`` of ``value`` into every higher bit."""
    if bits <= 0:
        return 0
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value


def _read_size(params: List[Literal]) -> int:
    size = literal_to_unsigned(params[1])
    if size > MAX_READ_SIZE:
        abort_evaluation("read size out of range")
    return size


def _base_address(ctx, _params: List[Literal]) -> Optional[Literal]:
    return make_unsigned(ctx.data_base_address)


def _size(ctx, _params: List[Literal]) -> Optional[Literal]:
    return make_unsigned(ctx.data_size)


def _read_unsigned(ctx, params: List[Literal]) -> Optional[Literal]:
    address = literal_to_unsigned(params[0])
    size = _read_size(params)
    return make_unsigned(decode_unsigned(ctx.read_data(address, size)))


def _read_signed(ctx, params: List[Literal]) -> Optional[Literal]:
    address = literal_to_unsigned(params[0])
    size = _read_size(params)
    raw = decode_unsigned(ctx.read_data(address, size))
    return make_signed(sign_extend(size * 8, raw))


def _read_string(ctx, params: List[Literal]) -> Optional[Literal]:
    address = literal_to_unsigned(params[0])
    size = literal_to_unsigned(params[1])
    return make_string(bytes_to_string(ctx.read_data(address, size)))


def build_sequence(params: Sequence[Literal], first: int) -> bytes:
    sequence = bytearray()
    for i in range(first, len(params)):
        byte = literal_to_unsigned(params[i])
        if byte > 0xFF:
            abort_evaluation(f"byte #{i} value out of range: {byte} > 0xFF")
        sequence.append(byte)
    return bytes(sequence)


SEARCH_CHUNK_SIZE = 1 << 20


def _scan_chunk(chunk: np.ndarray, needle: np.ndarray, windows: int) -> np.ndarray:
    # one comparison per needle byte keeps the mask at ``windows`` booleans
    mask = chunk[:windows] == needle[0]
    for k in range(1, len(needle)):
        mask &= chunk[k : k + windows] == needle[k]
    return np.flatnonzero(mask)


def find_sequence(
    ctx, occurrence_index: int, offset_from: int, offset_to: int, sequence: bytes, *, chunk_size: int = SEARCH_CHUNK_SIZE
) -> int:
    """Offset of the ``occurrence_index``-th match of ``sequence``, or -1.

    Offsets are relative to the data base address. Candidate starts run from
    ``offset_from`` up to, but excluding, ``end - len(sequence)``. The range is
    scanned in chunks that overlap by ``len(sequence) - 1`` bytes, stopping at
    the requested match.
    """
    data_size = ctx.data_size
    end = data_size if offset_to <= offset_from else min(data_size, offset_to)
    stop = end - len(sequence)
    if not sequence or stop <= offset_from:
        return -1

    needle = np.frombuffer(sequence, dtype=np.uint8)
    base = ctx.data_base_address
    remaining = occurrence_index
    start = offset_from
    while start < stop:
        windows = min(chunk_size, stop - start)
        span = ctx.read_data(base + start, windows + len(sequence) - 1)
        matches = _scan_chunk(np.frombuffer(span, dtype=np.uint8), needle, windows)
        if remaining < len(matches):
            return start + int(matches[remaining])
        remaining -= len(matches)
        start += windows
    return -1


def _find_sequence_in_range(ctx, params: List[Literal]) -> Optional[Literal]:
    occurrence_index = literal_to_unsigned(params[0])
    offset_from = literal_to_unsigned(params[1])
    offset_to = literal_to_unsigned(params[2])
    sequence = build_sequence(params, 3)

    offset = find_sequence(ctx, occurrence_index, offset_from, offset_to, sequence)
    if offset < 0:
        return make_signed(-1)
    return make_unsigned(offset)


def hexpat_register(api: LibraryAPI) -> None:
    api.metadata(name="mem", version="1.0.0")
    api.add_function(NAMESPACE, "base_address", ParameterCount.none(), _base_address)
    api.add_function(NAMESPACE, "size", ParameterCount.none(), _size)
    api.add_function(
        NAMESPACE,
        "find_sequence_in_range",
        ParameterCount.more_than(3),
        _find_sequence_in_range,
        doc="find_sequence_in_range(occurrence_index, offset_from, offset_to, bytes...) -> offset or -1",
    )
    api.add_function(NAMESPACE, "read_unsigned", ParameterCount.exactly(2), _read_unsigned)
    api.add_function(NAMESPACE, "read_signed", ParameterCount.exactly(2), _read_signed)
    api.add_function(NAMESPACE, "read_string", ParameterCount.exactly(2), _read_string)
