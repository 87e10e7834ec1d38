"""
Observer hooks for watching a decode as it happens.

The decoder never depends on these; it only calls them. TraceObserver
renders an indented, offset-annotated listing of every record and
primitive read, handy for locating a value in a hex editor.
"""

import sys
from typing import List, Optional, TextIO

from .cursor import PrimitiveValue
from .types import RecordType

INDENT = "  "


class DecodeObserver:
    """No-op observer; subclass and override what you need."""

    def on_record_start(self, record_type: RecordType, offset: int, depth: int):
        pass

    def on_record_end(self, record, depth: int):
        pass

    def on_primitive(self, label: str, value: PrimitiveValue):
        pass


def format_primitive(value: PrimitiveValue) -> str:
    """``value (0xhex) [0xoffset,0xlength]`` for one primitive read."""
    if isinstance(value.value, str):
        shown = repr(value.value)
    elif isinstance(value.value, bytes):
        shown = value.value.hex()
    else:
        shown = f"{value.value!r} (0x{value.raw.hex()})"
    return f"{shown} [0x{value.offset:x},0x{value.length:x}]"


class TraceObserver(DecodeObserver):
    """Print each record and primitive as it is decoded."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream or sys.stdout
        self._level = 0

    def _line(self, text: str):
        print(INDENT * self._level + text, file=self._stream)

    def on_record_start(self, record_type: RecordType, offset: int, depth: int):
        self._level = depth
        self._line(f"{record_type.name}: @0x{offset:x}")
        self._level = depth + 1

    def on_record_end(self, record, depth: int):
        self._level = depth

    def on_primitive(self, label: str, value: PrimitiveValue):
        if label == "RecordTypeEnum":
            return
        self._line(f"{label}: {format_primitive(value)}")


def hexdump(data: bytes, offset: int = 0, length: Optional[int] = None,
            mark: Optional[int] = None) -> str:
    """Hex/ASCII listing of ``data[offset:offset + length]``, 16 bytes a row.

    Row labels are absolute buffer offsets. When ``mark`` (an absolute
    offset) falls inside the listing, a caret line points at that byte.
    """
    end = len(data) if length is None else min(len(data), offset + length)
    lines: List[str] = []
    for row in range(offset, end, 16):
        chunk = data[row:min(row + 16, end)]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        ascii_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"  {row:08x}  {hex_part:<48s}  {ascii_part}")
        if mark is not None and row <= mark < row + len(chunk):
            lines.append(" " * (12 + 3 * (mark - row)) + "^^")
    return "\n".join(lines)
