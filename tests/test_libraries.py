import textwrap

import pytest

from functions import FunctionRegistry, FunctionRegistryError
from libraries import LibraryError, build_default_registry, load_libraries
from literals import make_string


LIBRARY_SOURCE = '''
from functions import ParameterCount
from literals import literal_to_string, make_string

HEXPAT_LIBRARY_NAME = "shout"


def _shout(ctx, params):
    return make_string(literal_to_string(params[0], True).upper())


def hexpat_register(api):
    api.metadata(name="shout", version="0.2.0")
    api.add_function("user", "shout", ParameterCount.exactly(1), _shout)
'''


def write_library(tmp_path, source, name="lib.py"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return str(path)


def test_load_library_registers_functions(tmp_path, make_context):
    registry = FunctionRegistry()
    loaded = load_libraries(registry, [write_library(tmp_path, LIBRARY_SOURCE)])
    assert [meta.name for meta in loaded] == ["shout"]
    assert loaded[0].version == "0.2.0"
    result = registry.invoke(make_context(), "user::shout", [make_string("mz")])
    assert result.value == "MZ"


def test_default_registry_accepts_extra_libraries(tmp_path):
    registry = build_default_registry([write_library(tmp_path, LIBRARY_SOURCE)])
    assert "user::shout" in registry.names()
    assert "std::print" in registry.names()


def test_missing_library(tmp_path):
    with pytest.raises(LibraryError, match="Library not found"):
        load_libraries(FunctionRegistry(), [str(tmp_path / "absent.py")])


def test_library_without_register_hook(tmp_path):
    path = write_library(tmp_path, "X = 1\n")
    with pytest.raises(LibraryError, match="must define callable hexpat_register"):
        load_libraries(FunctionRegistry(), [path])


def test_library_api_version_mismatch(tmp_path):
    path = write_library(tmp_path, "HEXPAT_LIBRARY_API_VERSION = 99\ndef hexpat_register(api):\n    pass\n")
    with pytest.raises(LibraryError, match="requires API 99"):
        load_libraries(FunctionRegistry(), [path])


def test_library_cannot_override_std(tmp_path):
    source = '''
    from functions import ParameterCount

    def hexpat_register(api):
        api.add_function("std", "print", ParameterCount.none(), lambda ctx, params: None)
    '''
    with pytest.raises(FunctionRegistryError, match="Cannot override existing function 'std::print'"):
        build_default_registry([write_library(tmp_path, source)])


def test_library_import_error_is_reported(tmp_path):
    path = write_library(tmp_path, "raise RuntimeError('broken library')\n")
    with pytest.raises(LibraryError, match="failed to import: RuntimeError: broken library"):
        load_libraries(FunctionRegistry(), [path])
