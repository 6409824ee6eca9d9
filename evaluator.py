from __future__ import annotations
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from handles import FileHandleTable
from literals import EvaluationAbort, Literal, abort_evaluation

if TYPE_CHECKING:
    from functions import FunctionRegistry


LEVEL_DEBUG = "debug"
LEVEL_INFO = "info"
LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"

LOG_LEVELS = (LEVEL_DEBUG, LEVEL_INFO, LEVEL_WARNING, LEVEL_ERROR)


# ---- data providers ----


class DataProvider:
    """Addressable byte source a script evaluates against.

    ``read`` takes offsets relative to the first byte; callers add
    ``base_address`` to obtain the logical address shown to scripts.
    """

    base_address: int = 0

    @property
    def size(self) -> int:
        raise NotImplementedError

    def read(self, offset: int, size: int) -> bytes:
        raise NotImplementedError


class MemoryProvider(DataProvider):
    def __init__(self, data: bytes, *, base_address: int = 0) -> None:
        self.base_address = base_address
        self._data: NDArray[np.uint8] = np.frombuffer(bytes(data), dtype=np.uint8)

    @property
    def size(self) -> int:
        return int(self._data.size)

    def read(self, offset: int, size: int) -> bytes:
        return self._data[offset : offset + size].tobytes()


class FileProvider(DataProvider):
    def __init__(self, path: str, *, base_address: int = 0) -> None:
        self.path = path
        self.base_address = base_address
        # memmap refuses zero-length files
        if os.path.getsize(path) == 0:
            self._data: NDArray[np.uint8] = np.zeros(0, dtype=np.uint8)
        else:
            self._data = np.memmap(path, dtype=np.uint8, mode="r")

    @property
    def size(self) -> int:
        return int(self._data.size)

    def read(self, offset: int, size: int) -> bytes:
        return self._data[offset : offset + size].tobytes()


# ---- diagnostics ----


LogSink = Callable[[str, str], None]


class LogConsole:
    def __init__(self, sink: Optional[LogSink] = None) -> None:
        self.sink = sink
        self.entries: List[Tuple[str, str]] = []
        # When true, messages are recorded but not forwarded to the sink.
        self.shushed = False

    def log(self, level: str, message: str) -> None:
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{level}'")
        self.entries.append((level, message))
        if self.sink is not None and not self.shushed:
            self.sink(level, message)

    def info(self, message: str) -> None:
        self.log(LEVEL_INFO, message)

    def warning(self, message: str) -> None:
        self.log(LEVEL_WARNING, message)

    def error(self, message: str) -> None:
        self.log(LEVEL_ERROR, message)

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [msg for lvl, msg in self.entries if level is None or lvl == level]

    def clear(self) -> None:
        self.entries.clear()


# ---- evaluation context ----


class EvaluationContext:
    """One in-progress script run bound to a single data provider."""

    def __init__(
        self,
        provider: DataProvider,
        *,
        env_vars: Optional[Mapping[str, str]] = None,
        console: Optional[LogConsole] = None,
        file_handles: Optional[FileHandleTable] = None,
        allow_dangerous: bool = False,
    ) -> None:
        self.provider = provider
        self.env_vars: Dict[str, str] = dict(env_vars or {})
        self.console = console or LogConsole()
        self.file_handles = file_handles if file_handles is not None else FileHandleTable()
        self.allow_dangerous = allow_dangerous

    @property
    def data_base_address(self) -> int:
        return self.provider.base_address

    @property
    def data_size(self) -> int:
        return self.provider.size

    def read_data(self, address: int, size: int) -> bytes:
        base = self.provider.base_address
        if size < 0 or address < base or address + size > base + self.provider.size:
            abort_evaluation(f"cannot read {size} bytes at address 0x{address:X}: out of bounds")
        return self.provider.read(address - base, size)

    def get_env_variable(self, name: str) -> Optional[str]:
        return self.env_vars.get(name)


@dataclass(frozen=True)
class CallResult:
    value: Optional[Literal] = None
    error: Optional[EvaluationAbort] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[Literal]:
        if self.error is not None:
            raise self.error
        return self.value


class Evaluator:
    """Calls registered primitives and reports aborts as results."""

    def __init__(self, context: EvaluationContext, registry: "FunctionRegistry") -> None:
        self.context = context
        self.registry = registry

    def call(self, name: str, args: Sequence[Literal]) -> CallResult:
        try:
            value = self.registry.invoke(self.context, name, list(args))
        except EvaluationAbort as error:
            self.context.console.error(error.message)
            return CallResult(error=error)
        return CallResult(value=value)
