import io

import pytest

from arenakit.chunks import (
    ChunkError,
    read_chunk,
    read_records,
    write_chunk,
    write_records,
)


def test_write_chunk_wire_bytes():
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"abc")
    assert buf.getvalue() == b"str0\x03\x00\x00\x00abc"


def test_chunk_round_trip():
    buf = io.BytesIO()
    write_chunk(buf, b"str0", b"hello world")
    buf.seek(0)
    assert read_chunk(buf, "str0", 1) == b"hello world"


def test_records_round_trip():
    records = [(1, 2, 3, 0.5), (4, 5, 6, -1.25)]
    buf = io.BytesIO()
    write_records(buf, "msh0", "IIIf", records)
    buf.seek(0)
    assert read_records(buf, "msh0", "IIIf") == records


def test_sequential_chunks_read_in_order():
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"names")
    write_records(buf, "xfh0", "I", [(7,), (8,)])
    buf.seek(0)
    assert read_chunk(buf, "str0", 1) == b"names"
    assert read_records(buf, "xfh0", "I") == [(7,), (8,)]
    assert buf.read() == b""


def test_empty_chunk():
    buf = io.BytesIO()
    write_records(buf, "cam0", "I4sfff", [])
    buf.seek(0)
    assert read_records(buf, "cam0", "I4sfff") == []


def test_wrong_magic():
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"x")
    buf.seek(0)
    with pytest.raises(ChunkError, match="magic"):
        read_chunk(buf, "xfh0", 1)


def test_size_not_divisible():
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"abcde")
    buf.seek(0)
    with pytest.raises(ChunkError, match="divisible"):
        read_chunk(buf, "str0", 4)


def test_truncated_header():
    with pytest.raises(ChunkError, match="header"):
        read_chunk(io.BytesIO(b"str0"), "str0", 1)


def test_truncated_data():
    buf = io.BytesIO()
    write_chunk(buf, "str0", b"abcdef")
    data = buf.getvalue()[:-2]
    with pytest.raises(ChunkError, match="data"):
        read_chunk(io.BytesIO(data), "str0", 1)


def test_bad_magic_length_on_write():
    with pytest.raises(ValueError):
        write_chunk(io.BytesIO(), "toolong", b"")