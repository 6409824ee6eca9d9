import threading

import pytest

from handles import FileHandleTable, FileMode, OpenFile, parse_file_mode
from literals import LIT_U128, EvaluationAbort, make_string, make_unsigned


READ, WRITE, CREATE = make_unsigned(1), make_unsigned(2), make_unsigned(3)


@pytest.fixture
def ctx(make_context):
    return make_context(allow_dangerous=True)


def open_file(call, ctx, path, mode):
    return call(ctx, "std::file::open", make_string(str(path)), mode)


def test_open_returns_increasing_handles(call, ctx, tmp_path):
    first = open_file(call, ctx, tmp_path / "a.bin", CREATE)
    second = open_file(call, ctx, tmp_path / "b.bin", CREATE)
    assert first.type == LIT_U128
    assert second.value > first.value


def test_handles_are_never_reused(call, ctx, tmp_path):
    first = open_file(call, ctx, tmp_path / "a.bin", CREATE)
    call(ctx, "std::file::close", first)
    second = open_file(call, ctx, tmp_path / "a.bin", READ)
    assert second.value > first.value


def test_invalid_mode_aborts(call, ctx, tmp_path):
    with pytest.raises(EvaluationAbort, match="invalid file open mode"):
        open_file(call, ctx, tmp_path / "a.bin", make_unsigned(4))


def test_open_missing_file_names_path(call, ctx, tmp_path):
    missing = tmp_path / "missing.bin"
    with pytest.raises(EvaluationAbort, match="failed to open file .*missing.bin"):
        open_file(call, ctx, missing, READ)


def test_write_seek_read_round_trip(call, ctx, tmp_path):
    handle = open_file(call, ctx, tmp_path / "data.bin", CREATE)
    call(ctx, "std::file::write", handle, make_string("hello world"))
    call(ctx, "std::file::seek", handle, make_unsigned(6))
    assert call(ctx, "std::file::read", handle, make_unsigned(5)).value == "world"


def test_write_casts_non_string_data(call, ctx, tmp_path):
    path = tmp_path / "num.txt"
    handle = open_file(call, ctx, path, CREATE)
    call(ctx, "std::file::write", handle, make_unsigned(1234))
    call(ctx, "std::file::close", handle)
    assert path.read_bytes() == b"1234"


def test_size_resize_and_flush(call, ctx, tmp_path):
    path = tmp_path / "grow.bin"
    handle = open_file(call, ctx, path, CREATE)
    call(ctx, "std::file::write", handle, make_string("abc"))
    call(ctx, "std::file::flush", handle)
    assert call(ctx, "std::file::size", handle).value == 3
    call(ctx, "std::file::resize", handle, make_unsigned(10))
    assert call(ctx, "std::file::size", handle).value == 10
    call(ctx, "std::file::close", handle)
    assert path.read_bytes() == b"abc" + bytes(7)


def test_write_mode_updates_existing_file(call, ctx, tmp_path):
    path = tmp_path / "existing.bin"
    path.write_bytes(b"0123456789")
    handle = open_file(call, ctx, path, WRITE)
    call(ctx, "std::file::seek", handle, make_unsigned(2))
    call(ctx, "std::file::write", handle, make_string("xy"))
    call(ctx, "std::file::close", handle)
    assert path.read_bytes() == b"01xy456789"


def test_write_to_read_only_handle_aborts(call, ctx, tmp_path):
    path = tmp_path / "ro.bin"
    path.write_bytes(b"abc")
    handle = open_file(call, ctx, path, READ)
    with pytest.raises(EvaluationAbort, match="failed to write file"):
        call(ctx, "std::file::write", handle, make_string("x"))


def test_operations_after_close_abort(call, ctx, tmp_path):
    handle = open_file(call, ctx, tmp_path / "a.bin", CREATE)
    call(ctx, "std::file::close", handle)
    for name, extra in [
        ("close", []),
        ("read", [make_unsigned(1)]),
        ("write", [make_string("x")]),
        ("seek", [make_unsigned(0)]),
        ("size", []),
        ("resize", [make_unsigned(0)]),
        ("flush", []),
        ("remove", []),
    ]:
        with pytest.raises(EvaluationAbort, match="failed to access invalid file"):
            call(ctx, f"std::file::{name}", handle, *extra)


def test_remove_deletes_file_and_invalidates_handle(call, ctx, tmp_path):
    path = tmp_path / "gone.bin"
    handle = open_file(call, ctx, path, CREATE)
    call(ctx, "std::file::remove", handle)
    assert not path.exists()
    assert handle.value not in ctx.file_handles
    with pytest.raises(EvaluationAbort, match="failed to access invalid file"):
        call(ctx, "std::file::read", handle, make_unsigned(1))


def test_file_functions_are_dangerous(call, make_context, tmp_path):
    sandboxed = make_context()
    with pytest.raises(EvaluationAbort, match="dangerous function 'std::file::open' is not permitted"):
        open_file(call, sandboxed, tmp_path / "a.bin", CREATE)
    assert not (tmp_path / "a.bin").exists()


def test_sessions_own_separate_tables(call, make_context, tmp_path):
    one = make_context(allow_dangerous=True)
    two = make_context(allow_dangerous=True)
    handle = open_file(call, one, tmp_path / "a.bin", CREATE)
    with pytest.raises(EvaluationAbort, match="failed to access invalid file"):
        call(two, "std::file::size", handle)


def test_shared_table_across_contexts(call, make_context, tmp_path):
    table = FileHandleTable()
    one = make_context(allow_dangerous=True, file_handles=table)
    two = make_context(allow_dangerous=True, file_handles=table)
    handle = open_file(call, one, tmp_path / "a.bin", CREATE)
    assert call(two, "std::file::size", handle).value == 0


# ---- table ----


def test_parse_file_mode():
    assert parse_file_mode(1) is FileMode.READ
    assert parse_file_mode(3) is FileMode.CREATE
    with pytest.raises(EvaluationAbort, match="invalid file open mode"):
        parse_file_mode(0)


def test_close_all_empties_table(tmp_path):
    table = FileHandleTable()
    table.open(str(tmp_path / "a"), FileMode.CREATE)
    table.open(str(tmp_path / "b"), FileMode.CREATE)
    assert len(table) == 2
    table.close_all()
    assert len(table) == 0
    assert table.handles() == []


def test_concurrent_opens_get_distinct_handles(tmp_path):
    table = FileHandleTable()
    results = []
    lock = threading.Lock()

    def worker(n):
        for i in range(10):
            h = table.open(str(tmp_path / f"f{n}_{i}"), FileMode.CREATE)
            with lock:
                results.append(h)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sorted(results) == list(range(1, 41))
    table.close_all()


def test_open_path_with_nul_aborts(call, ctx):
    with pytest.raises(EvaluationAbort, match="failed to open file a"):
        open_file(call, ctx, "a\x00b", READ)


def test_oversized_read_returns_rest_of_file(call, ctx, tmp_path):
    handle = open_file(call, ctx, tmp_path / "data.bin", CREATE)
    call(ctx, "std::file::write", handle, make_string("abcdef"))
    call(ctx, "std::file::seek", handle, make_unsigned(2))
    assert call(ctx, "std::file::read", handle, make_unsigned(1 << 70)).value == "cdef"
    assert call(ctx, "std::file::read", handle, make_unsigned(4)).value == ""


def test_open_file_rejects_use_after_close(tmp_path):
    file = OpenFile(str(tmp_path / "x.bin"), FileMode.CREATE)
    file.close()
    assert file.closed
    with pytest.raises(ValueError, match="closed file"):
        file.read(1)
