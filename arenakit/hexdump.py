"""Hex dumps in the style of ``xxd``."""

_ROW_BYTES = 16


def _printable(byte: int) -> str:
    return chr(byte) if 32 <= byte <= 126 else "."


def hex_dump(data) -> str:
    """Return an ``xxd``-style dump of any bytes-like object.

    Each row reads ``ADDRADDR: xxxx xxxx ...  text``. A final row is always
    emitted at the end offset, so a dump of a whole number of rows (including
    empty data) ends with a blank row.
    """
    raw = memoryview(data).cast("B").tobytes()
    lines = []
    for ofs in range(0, len(raw) + 1, _ROW_BYTES):
        row = raw[ofs:ofs + _ROW_BYTES]
        cells = [f"{byte:02x}" for byte in row]
        cells.extend(["  "] * (_ROW_BYTES - len(row)))
        hex_part = "".join(" " + hi + lo for hi, lo in zip(cells[::2], cells[1::2]))
        text = "".join(_printable(byte) for byte in row).ljust(_ROW_BYTES)
        lines.append(f"{ofs & 0xFFFFFFFF:08x}:{hex_part}  {text}\n")
    return "".join(lines)