"""
Sequential little-endian reader over an immutable NRBF byte buffer.

Every read returns a PrimitiveValue that remembers where in the buffer it
came from (offset + length + raw bytes), so decoded graphs can be mapped
back onto the file for hex editing or round-trip checks.
"""

import struct
from dataclasses import dataclass
from typing import Any, Optional

from .errors import LimitExceeded, OutOfBounds


@dataclass
class PrimitiveValue:
    """A decoded scalar together with its source span."""
    offset: int
    length: int
    raw: bytes
    value: Any

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "offset": self.offset,
            "length": self.length,
            "hex": self.raw.hex(),
        }


# Pre-compiled little-endian formats
_INT8 = struct.Struct('<b')
_INT16 = struct.Struct('<h')
_INT32 = struct.Struct('<i')
_INT64 = struct.Struct('<q')
_UINT8 = struct.Struct('<B')
_UINT16 = struct.Struct('<H')
_UINT32 = struct.Struct('<I')
_UINT64 = struct.Struct('<Q')
_FLOAT32 = struct.Struct('<f')
_FLOAT64 = struct.Struct('<d')


class ByteCursor:
    """Position-tracking reader. The position only ever moves forward."""

    def __init__(self, data: bytes, observer=None, max_bytes: Optional[int] = None):
        self._data = bytes(data)
        self._pos = 0
        self._observer = observer
        self._max_bytes = max_bytes

    # -- raw readers --------------------------------------------------------

    def _read(self, n: int) -> bytes:
        available = len(self._data) - self._pos
        if n < 0 or n > available:
            raise OutOfBounds(self._pos, n, available)
        if self._max_bytes is not None and self._pos + n > self._max_bytes:
            raise LimitExceeded(
                f"Read of {n} bytes exceeds the {self._max_bytes}-byte budget", self._pos)
        data = self._data[self._pos:self._pos + n]
        self._pos += n
        return data

    def _unpack(self, fmt: struct.Struct, label: str) -> PrimitiveValue:
        offset = self._pos
        raw = self._read(fmt.size)
        return self._emit(label, PrimitiveValue(offset, fmt.size, raw, fmt.unpack(raw)[0]))

    def _emit(self, label: str, value: PrimitiveValue) -> PrimitiveValue:
        if self._observer is not None:
            self._observer.on_primitive(label, value)
        return value

    # -- fixed-width readers ------------------------------------------------

    def read_int8(self, label: str = "int8") -> PrimitiveValue:
        return self._unpack(_INT8, label)

    def read_int16(self, label: str = "int16") -> PrimitiveValue:
        return self._unpack(_INT16, label)

    def read_int32(self, label: str = "int32") -> PrimitiveValue:
        return self._unpack(_INT32, label)

    def read_int64(self, label: str = "int64") -> PrimitiveValue:
        return self._unpack(_INT64, label)

    def read_uint8(self, label: str = "uint8") -> PrimitiveValue:
        return self._unpack(_UINT8, label)

    def read_uint16(self, label: str = "uint16") -> PrimitiveValue:
        return self._unpack(_UINT16, label)

    def read_uint32(self, label: str = "uint32") -> PrimitiveValue:
        return self._unpack(_UINT32, label)

    def read_uint64(self, label: str = "uint64") -> PrimitiveValue:
        return self._unpack(_UINT64, label)

    def read_float32(self, label: str = "single") -> PrimitiveValue:
        return self._unpack(_FLOAT32, label)

    def read_float64(self, label: str = "double") -> PrimitiveValue:
        return self._unpack(_FLOAT64, label)

    def read_bool(self, label: str = "bool") -> PrimitiveValue:
        offset = self._pos
        raw = self._read(1)
        return self._emit(label, PrimitiveValue(offset, 1, raw, raw[0] != 0))

    def read_char(self, label: str = "char") -> PrimitiveValue:
        offset = self._pos
        raw = self._read(1)
        return self._emit(label, PrimitiveValue(offset, 1, raw, chr(raw[0])))

    def read_bytes(self, n: int, label: str = "bytes") -> PrimitiveValue:
        offset = self._pos
        raw = self._read(n)
        return self._emit(label, PrimitiveValue(offset, n, raw, raw))

    # -- strings ------------------------------------------------------------

    def read_string(self, label: str = "string") -> PrimitiveValue:
        """Read a LengthPrefixedString: one unsigned length byte, then UTF-8."""
        offset = self._pos
        length = self._read(1)[0]
        body = self._read(length)
        raw = self._data[offset:self._pos]
        value = body.decode('utf-8', errors='replace')
        return self._emit(label, PrimitiveValue(offset, len(raw), raw, value))

    def peek_uint8(self) -> Optional[int]:
        """Next byte without consuming it, or None at the end of the buffer."""
        if self._pos >= len(self._data):
            return None
        return self._data[self._pos]

    # -- stream info --------------------------------------------------------

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def __len__(self) -> int:
        return len(self._data)
