"""Build MS-NRBF byte streams for tests.

Only what the fixtures need: records are written in the order the caller
asks for, and member values are written by the caller right after the
class record that declares them.
"""

import struct
from io import BytesIO
from typing import Any, List, Optional, Sequence, Tuple

from nrbf_dump.types import BinaryArrayType, BinaryType, PrimitiveType, RecordType

# (name, binary_type, additional_info)
Member = Tuple[str, BinaryType, Any]

_PRIMITIVE_FORMATS = {
    PrimitiveType.Boolean: '<?',
    PrimitiveType.Byte: '<B',
    PrimitiveType.Double: '<d',
    PrimitiveType.Int16: '<h',
    PrimitiveType.Int32: '<i',
    PrimitiveType.Int64: '<q',
    PrimitiveType.Single: '<f',
    PrimitiveType.UInt16: '<H',
    PrimitiveType.UInt32: '<I',
    PrimitiveType.UInt64: '<Q',
}


class NRBFWriter:
    """Serialize records into NRBF wire format."""

    def __init__(self):
        self._buf = BytesIO()

    # -- raw writers --------------------------------------------------------

    def _write(self, data: bytes):
        self._buf.write(data)

    def _write_byte(self, value: int):
        self._buf.write(bytes([value & 0xFF]))

    def _write_int32(self, value: int):
        self._buf.write(struct.pack('<i', value))

    def write_string(self, value: str):
        """LengthPrefixedString: one length byte + UTF-8 bytes."""
        encoded = value.encode('utf-8')
        if len(encoded) > 0xFF:
            raise ValueError(f"String of {len(encoded)} bytes does not fit a one-byte length")
        self._write_byte(len(encoded))
        self._write(encoded)

    def write_primitive(self, primitive_type: PrimitiveType, value: Any):
        if primitive_type == PrimitiveType.Char:
            self._write_byte(ord(value))
            return
        self._write(struct.pack(_PRIMITIVE_FORMATS[primitive_type], value))

    # -- member type info ---------------------------------------------------

    def _write_additional_info(self, binary_type: BinaryType, info: Any):
        if binary_type in (BinaryType.Primitive, BinaryType.PrimitiveArray):
            self._write_byte(info)
        elif binary_type == BinaryType.SystemClass:
            self.write_string(info)
        elif binary_type == BinaryType.Class:
            type_name, library_id = info
            self.write_string(type_name)
            self._write_int32(library_id)

    def _write_class_info(self, object_id: int, name: str, members: Sequence[Member]):
        self._write_int32(object_id)
        self.write_string(name)
        self._write_int32(len(members))
        for member_name, _, _ in members:
            self.write_string(member_name)
        for _, binary_type, _ in members:
            self._write_byte(binary_type)
        for _, binary_type, info in members:
            self._write_additional_info(binary_type, info)

    # -- records ------------------------------------------------------------

    def write_header(self, root_id: int = 1, header_id: int = -1, major: int = 1, minor: int = 0):
        self._write_byte(RecordType.SerializedStreamHeader)
        for value in (root_id, header_id, major, minor):
            self._write_int32(value)

    def write_library(self, library_id: int, name: str):
        self._write_byte(RecordType.BinaryLibrary)
        self._write_int32(library_id)
        self.write_string(name)

    def write_class(self, object_id: int, name: str, members: Sequence[Member], library_id: int = 2):
        """ClassWithMembersAndTypes header; member values follow."""
        self._write_byte(RecordType.ClassWithMembersAndTypes)
        self._write_class_info(object_id, name, members)
        self._write_int32(library_id)

    def write_system_class(self, object_id: int, name: str, members: Sequence[Member]):
        self._write_byte(RecordType.SystemClassWithMembersAndTypes)
        self._write_class_info(object_id, name, members)

    def write_class_with_id(self, object_id: int, metadata_id: int):
        self._write_byte(RecordType.ClassWithId)
        self._write_int32(object_id)
        self._write_int32(metadata_id)

    def write_object_string(self, object_id: int, value: str):
        self._write_byte(RecordType.BinaryObjectString)
        self._write_int32(object_id)
        self.write_string(value)

    def write_member_reference(self, id_ref: int):
        self._write_byte(RecordType.MemberReference)
        self._write_int32(id_ref)

    def write_null(self):
        self._write_byte(RecordType.ObjectNull)

    def write_message_end(self):
        self._write_byte(RecordType.MessageEnd)

    def write_binary_array(
        self,
        object_id: int,
        lengths: List[int],
        binary_type: BinaryType,
        info: Any = None,
        array_type: BinaryArrayType = BinaryArrayType.Single,
        lower_bounds: Optional[List[int]] = None,
    ):
        """BinaryArray header; element values follow."""
        self._write_byte(RecordType.BinaryArray)
        self._write_int32(object_id)
        self._write_byte(array_type)
        self._write_int32(len(lengths))
        for length in lengths:
            self._write_int32(length)
        if lower_bounds is not None:
            for bound in lower_bounds:
                self._write_int32(bound)
        self._write_byte(binary_type)
        self._write_additional_info(binary_type, info)

    def write_array_single_primitive(self, object_id: int, primitive_type: PrimitiveType, values: Sequence[Any]):
        self._write_byte(RecordType.ArraySinglePrimitive)
        self._write_int32(object_id)
        self._write_int32(len(values))
        self._write_byte(primitive_type)
        for value in values:
            self.write_primitive(primitive_type, value)

    def write_raw(self, data: bytes):
        self._write(data)

    # -- output -------------------------------------------------------------

    def get_data(self) -> bytes:
        return self._buf.getvalue()

    def __len__(self) -> int:
        return self._buf.tell()
