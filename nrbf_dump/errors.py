"""
Decode errors for the .NET Remoting Binary Format reader.

Every error is fatal to the decode session: NRBF has no resynchronization
marker between records, so a bad byte anywhere invalidates the rest of
the stream's interpretation. Each exception carries the byte offset at
which it was detected.
"""

from typing import Any, Dict, Optional


class NRBFError(ValueError):
    """Base class for all decode failures."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        self.message = message
        if offset is not None:
            message = f"{message} at offset 0x{offset:x}"
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Structured diagnostic (error kind + byte offset)."""
        return {
            "error": self.kind,
            "offset": self.offset,
            "message": self.message,
        }


class OutOfBounds(NRBFError, EOFError):
    """A read asked for more bytes than the buffer has left."""

    def __init__(self, offset: int, wanted: int, available: int):
        self.wanted = wanted
        self.available = available
        super().__init__(f"Expected {wanted} bytes, got {available}", offset)


class UnknownRecordTag(NRBFError):
    def __init__(self, tag: int, offset: int):
        self.tag = tag
        super().__init__(f"Unknown record type {tag}", offset)


class UnknownEnumTag(NRBFError):
    def __init__(self, family: str, value: int, offset: int):
        self.family = family
        self.value = value
        super().__init__(f"Unknown {family} value {value}", offset)


class UnsupportedPrimitive(NRBFError):
    def __init__(self, primitive_type: str, offset: int):
        self.primitive_type = primitive_type
        super().__init__(f"Primitive type {primitive_type} cannot be decoded", offset)


class UnsupportedMemberType(NRBFError):
    def __init__(self, binary_type: str, offset: int):
        self.binary_type = binary_type
        super().__init__(f"Member binary type {binary_type} cannot be decoded", offset)


class DanglingReference(NRBFError):
    def __init__(self, id_ref: int, offset: Optional[int] = None):
        self.id_ref = id_ref
        super().__init__(f"Reference to undeclared object id {id_ref}", offset)


class StructuralAssertion(NRBFError):
    """The stream is well-tagged but violates a structural rule."""


class UnsupportedArrayShape(StructuralAssertion):
    """Multi-dimensional arrays have no defined element ordering here."""


class LimitExceeded(NRBFError):
    """A configured depth, size or element-count guard tripped."""
