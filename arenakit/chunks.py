"""Reading and writing simple tagged binary chunks.

A chunk is a four byte magic tag, a four byte little-endian payload size,
and then the payload: a packed array of fixed-size records.
"""

import struct
from typing import BinaryIO, Iterable, List, Tuple, Union

_HEADER = struct.Struct("<4sI")

Magic = Union[str, bytes]


class ChunkError(ValueError):
    """Raised when a chunk is missing, truncated or malformed."""


def _magic_bytes(magic: Magic) -> bytes:
    return magic.encode("ascii") if isinstance(magic, str) else bytes(magic)


def _record_struct(fmt: str) -> struct.Struct:
    if not fmt or fmt[0] not in "@=<>!":
        fmt = "<" + fmt
    return struct.Struct(fmt)


def read_chunk(stream: BinaryIO, magic: Magic, item_size: int) -> bytes:
    """Read one chunk with the given magic tag and return its payload.

    The payload size must be a multiple of ``item_size``.
    """
    header = stream.read(_HEADER.size)
    if len(header) != _HEADER.size:
        raise ChunkError("Failed to read chunk header")
    tag, size = _HEADER.unpack(header)
    if tag != _magic_bytes(magic):
        raise ChunkError("Unexpected magic number in chunk")
    if size % item_size != 0:
        raise ChunkError("Size of chunk not divisible by element size")
    payload = stream.read(size)
    if len(payload) != size:
        raise ChunkError("Failed to read chunk data.")
    return payload


def read_records(stream: BinaryIO, magic: Magic, fmt: str) -> List[Tuple]:
    """Read a chunk and unpack it as a list of records in struct format ``fmt``.

    Without an explicit byte-order prefix, ``fmt`` is read as little-endian
    and unaligned.
    """
    record = _record_struct(fmt)
    payload = read_chunk(stream, magic, record.size)
    return list(record.iter_unpack(payload))


def write_chunk(stream: BinaryIO, magic: Magic, payload: bytes) -> None:
    """Write ``payload`` as a chunk tagged with a four byte ``magic``."""
    tag = _magic_bytes(magic)
    if len(tag) != 4:
        raise ValueError(f"chunk magic must be four bytes, got {tag!r}")
    payload = bytes(payload)
    stream.write(_HEADER.pack(tag, len(payload)))
    stream.write(payload)


def write_records(stream: BinaryIO, magic: Magic, fmt: str, records: Iterable[Tuple]) -> None:
    """Pack ``records`` with struct format ``fmt`` and write them as one chunk."""
    record = _record_struct(fmt)
    payload = b"".join(record.pack(*fields) for fields in records)
    write_chunk(stream, magic, payload)