"""
MS-NRBF type enumerations.

Four closed tables map single-byte tags to symbolic meanings. Any byte
missing from a table is an ``UnknownEnumTag`` (or ``UnknownRecordTag``
for the record discriminant), which aborts the whole decode.

Reference: [MS-NRBF] .NET Remoting: Binary Format Data Structure, 2.1.2.
"""

from enum import IntEnum
from typing import Type, TypeVar

from .errors import UnknownEnumTag


# ---------------------------------------------------------------------------
# Record discriminant (RecordTypeEnumeration)
# ---------------------------------------------------------------------------

class RecordType(IntEnum):
    SerializedStreamHeader         = 0
    ClassWithId                    = 1
    SystemClassWithMembers         = 2
    ClassWithMembers               = 3
    SystemClassWithMembersAndTypes = 4
    ClassWithMembersAndTypes       = 5
    BinaryObjectString             = 6
    BinaryArray                    = 7
    MemberPrimitiveTyped           = 8
    MemberReference                = 9
    ObjectNull                     = 10
    MessageEnd                     = 11
    BinaryLibrary                  = 12
    ObjectNullMultiple256          = 13
    ObjectNullMultiple             = 14
    ArraySinglePrimitive           = 15
    ArraySingleObject              = 16
    ArraySingleString              = 17
    MethodCall                     = 21
    MethodReturn                   = 22


# ---------------------------------------------------------------------------
# Member type tags
# ---------------------------------------------------------------------------

class BinaryType(IntEnum):
    Primitive      = 0
    String         = 1
    Object         = 2
    SystemClass    = 3
    Class          = 4
    ObjectArray    = 5
    StringArray    = 6
    PrimitiveArray = 7


class PrimitiveType(IntEnum):
    Boolean  = 1
    Byte     = 2
    Char     = 3
    # 4 is unused by the format
    Decimal  = 5
    Double   = 6
    Int16    = 7
    Int32    = 8
    Int64    = 9
    SByte    = 10
    Single   = 11
    TimeSpan = 12
    DateTime = 13
    UInt16   = 14
    UInt32   = 15
    UInt64   = 16
    Null     = 17
    String   = 18


class BinaryArrayType(IntEnum):
    Single            = 0
    Jagged            = 1
    Rectangular       = 2
    SingleOffset      = 3
    JaggedOffset      = 4
    RectangularOffset = 5


# Array kinds that carry a LowerBounds list after Lengths
OFFSET_ARRAY_TYPES = frozenset({
    BinaryArrayType.SingleOffset,
    BinaryArrayType.JaggedOffset,
    BinaryArrayType.RectangularOffset,
})


E = TypeVar("E", bound=IntEnum)


def parse_enum(enum_cls: Type[E], value: int, offset: int) -> E:
    """Map a raw tag byte to ``enum_cls``, failing on unknown values."""
    try:
        return enum_cls(value)
    except ValueError:
        raise UnknownEnumTag(enum_cls.__name__, value, offset) from None
