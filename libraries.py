from __future__ import annotations

import hashlib
import importlib
import importlib.util
import os
import sys
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

from functions import FunctionImpl, FunctionRegistry, Namespace, ParameterCount
from literals import PatternLanguageError


LIBRARY_API_VERSION = 1

STD_LIBRARIES = ("std.core", "std.mem", "std.string", "std.file", "std.math", "std.http")


class LibraryError(PatternLanguageError):
    pass


@dataclass(frozen=True)
class LibraryMetadata:
    name: str
    version: str = "0.0.0"
    requires_api: int = LIBRARY_API_VERSION


class LibraryAPI:
    """Handle given to a library's ``hexpat_register`` function."""

    def __init__(self, *, registry: FunctionRegistry, library_name: str) -> None:
        self._registry = registry
        self._library_name = library_name
        self.loaded: List[LibraryMetadata] = []

    @property
    def library_name(self) -> str:
        return self._library_name

    def metadata(self, *, name: str, version: str = "0.0.0", requires_api: int = LIBRARY_API_VERSION) -> None:
        if requires_api != LIBRARY_API_VERSION:
            raise LibraryError(f"Library {name} requires API {requires_api}, host supports {LIBRARY_API_VERSION}")
        self.loaded.append(LibraryMetadata(name=name, version=version, requires_api=requires_api))

    def add_function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        impl: FunctionImpl,
        *,
        doc: str = "",
    ) -> None:
        self._registry.add_function(namespace, name, parameter_count, impl, doc=doc)

    def add_dangerous_function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        impl: FunctionImpl,
        *,
        doc: str = "",
    ) -> None:
        self._registry.add_dangerous_function(namespace, name, parameter_count, impl, doc=doc)

    def function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        *,
        dangerous: bool = False,
        doc: str = "",
    ):
        return self._registry.function(namespace, name, parameter_count, dangerous=dangerous, doc=doc)


def _unique_module_name(path: str) -> str:
    base = os.path.basename(path)
    digest = hashlib.sha256(os.path.abspath(path).encode("utf-8")).hexdigest()[:12]
    safe = "".join(ch if ch.isalnum() else "_" for ch in base)
    return f"hexpat_lib_{safe}_{digest}"


def load_library_module(path: str) -> Any:
    if not os.path.exists(path):
        raise LibraryError(f"Library not found: {path}")
    mod_name = _unique_module_name(path)
    spec = importlib.util.spec_from_file_location(mod_name, path)
    if spec is None or spec.loader is None:
        raise LibraryError(f"Failed to load library module: {path}")
    module = importlib.util.module_from_spec(spec)

    # Let libraries import siblings by temporarily prepending their directory.
    lib_dir = os.path.dirname(os.path.abspath(path))
    sys.path.insert(0, lib_dir)
    try:
        spec.loader.exec_module(module)  # type: ignore[union-attr]
    except Exception as exc:
        raise LibraryError(f"Library {path} failed to import: {exc.__class__.__name__}: {exc}") from exc
    finally:
        if sys.path and sys.path[0] == lib_dir:
            sys.path.pop(0)
    return module


def register_library(registry: FunctionRegistry, module: Any, *, origin: Optional[str] = None) -> List[LibraryMetadata]:
    origin = origin or getattr(module, "__name__", "<library>")
    api_version = getattr(module, "HEXPAT_LIBRARY_API_VERSION", LIBRARY_API_VERSION)
    if api_version != LIBRARY_API_VERSION:
        raise LibraryError(f"Library {origin} requires API {api_version}, host supports {LIBRARY_API_VERSION}")
    register = getattr(module, "hexpat_register", None)
    if register is None or not callable(register):
        raise LibraryError(f"Library {origin} must define callable hexpat_register(api)")
    default_name = os.path.splitext(os.path.basename(origin))[0]
    lib_name = getattr(module, "HEXPAT_LIBRARY_NAME", default_name)
    api = LibraryAPI(registry=registry, library_name=str(lib_name))
    register(api)
    return api.loaded


def load_libraries(registry: FunctionRegistry, paths: Sequence[str]) -> List[LibraryMetadata]:
    loaded: List[LibraryMetadata] = []
    for path in [os.path.abspath(p) for p in paths]:
        module = load_library_module(path)
        loaded.extend(register_library(registry, module, origin=path))
    return loaded


def build_default_registry(paths: Sequence[str] = ()) -> FunctionRegistry:
    registry = FunctionRegistry()
    for name in STD_LIBRARIES:
        register_library(registry, importlib.import_module(name))
    if paths:
        load_libraries(registry, paths)
    return registry
