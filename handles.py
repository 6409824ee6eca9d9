from __future__ import annotations
import enum
import os
import threading
from typing import BinaryIO, Dict, List, Optional

from literals import abort_evaluation


class FileMode(enum.IntEnum):
    READ = 1
    WRITE = 2
    CREATE = 3


# Write opens an existing file for update; Create truncates or creates.
_OPEN_FLAGS = {
    FileMode.READ: "rb",
    FileMode.WRITE: "r+b",
    FileMode.CREATE: "w+b",
}


def parse_file_mode(raw: int) -> FileMode:
    try:
        return FileMode(raw)
    except ValueError:
        abort_evaluation("invalid file open mode")


class OpenFile:
    def __init__(self, path: str, mode: FileMode) -> None:
        self.path = path
        self.mode = mode
        self._handle: Optional[BinaryIO] = open(path, _OPEN_FLAGS[mode])

    @property
    def closed(self) -> bool:
        return self._handle is None

    def _file(self) -> BinaryIO:
        if self._handle is None:
            raise ValueError(f"I/O operation on closed file {self.path}")
        return self._handle

    def read(self, size: int) -> bytes:
        handle = self._file()
        handle.flush()
        # never ask for more than is left; buffered reads allocate the full request
        remaining = max(0, os.fstat(handle.fileno()).st_size - handle.tell())
        return handle.read(min(size, remaining))

    def write(self, data: bytes) -> None:
        self._file().write(data)

    def seek(self, offset: int) -> None:
        self._file().seek(offset)

    def size(self) -> int:
        handle = self._file()
        handle.flush()
        return os.fstat(handle.fileno()).st_size

    def resize(self, size: int) -> None:
        handle = self._file()
        handle.flush()
        handle.truncate(size)

    def flush(self) -> None:
        self._file().flush()

    def close(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            handle.close()

    def remove(self) -> None:
        self.close()
        os.remove(self.path)


class FileHandleTable:
    """Maps small integer handles to files opened by scripts.

    Handles come from a counter that only grows, so a handle is never reused
    for the lifetime of the table. A handle is present exactly while its file
    is open. All access to the counter and the map goes through one lock so a
    table may be shared by evaluations running on different threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = 0
        self._files: Dict[int, OpenFile] = {}

    def open(self, path: str, mode: FileMode) -> int:
        try:
            file = OpenFile(path, mode)
        except (OSError, ValueError):
            # ValueError: embedded NUL in the path
            abort_evaluation(f"failed to open file {path}")
        with self._lock:
            self._counter += 1
            handle = self._counter
            self._files[handle] = file
        return handle

    def get(self, handle: int) -> OpenFile:
        with self._lock:
            file = self._files.get(handle)
        if file is None:
            abort_evaluation("failed to access invalid file")
        return file

    def close(self, handle: int) -> None:
        with self._lock:
            file = self._files.pop(handle, None)
        if file is None:
            abort_evaluation("failed to access invalid file")
        file.close()

    def remove(self, handle: int) -> None:
        """Delete the backing file and invalidate its handle."""
        with self._lock:
            file = self._files.pop(handle, None)
        if file is None:
            abort_evaluation("failed to access invalid file")
        try:
            file.remove()
        except OSError as exc:
            abort_evaluation(f"failed to remove file {file.path}: {exc.strerror or exc}")

    def handles(self) -> List[int]:
        with self._lock:
            return sorted(self._files)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    def close_all(self) -> None:
        with self._lock:
            files = list(self._files.values())
            self._files.clear()
        for file in files:
            file.close()
