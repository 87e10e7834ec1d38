"""
.NET Remoting Binary Format (MS-NRBF) record decoder.

Reconstructs the object graph written by BinaryFormatter.Serialize()
without any of the referenced classes: every class record carries its own
member names and member types, so the stream describes itself.

Wire Format Summary:
  Stream: a concatenation of records, no overall length or count.
    The first record is always the SerializedStreamHeader; decoding runs
    until the buffer is exhausted (MessageEnd is only a convention).
  Record: 1 byte RecordTypeEnumeration tag + tag-specific payload.
    Integers are little-endian; strings are LengthPrefixedString.
  Class records: ClassInfo (id, name, member names) + MemberTypeInfo
    (one BinaryType per member, then each member's AdditionalInfo),
    followed by the member values in declaration order. A Primitive
    member is stored inline; any other member is itself a nested record
    (typically a MemberReference, BinaryObjectString or ObjectNull).
  ClassWithId: a later instance of an already declared class. It reuses
    the layout registered under its MetadataId.

Decoding is two-phase. Phase 1 consumes the buffer and registers every
object under its id; references become MemberReference placeholders
queued on the registry. Phase 2 (ObjectGraphRegistry.resolve_all) checks
every placeholder against the completed registry.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .config import DecoderConfig
from .cursor import ByteCursor, PrimitiveValue
from .errors import (
    DanglingReference,
    LimitExceeded,
    StructuralAssertion,
    UnknownRecordTag,
    UnsupportedArrayShape,
    UnsupportedMemberType,
    UnsupportedPrimitive,
)
from .records import (
    CLASS_RECORDS,
    ArraySinglePrimitive,
    BinaryArray,
    BinaryLibrary,
    BinaryObjectString,
    ClassInfo,
    ClassLayout,
    ClassTypeInfo,
    ClassWithId,
    ClassWithMembersAndTypes,
    MemberReference,
    MemberType,
    MemberTypeInfo,
    MessageEnd,
    ObjectNull,
    Record,
    SerializationHeader,
    SystemClassWithMembersAndTypes,
)
from .registry import ObjectGraphRegistry
from .trace import DecodeObserver
from .types import (
    OFFSET_ARRAY_TYPES,
    BinaryArrayType,
    BinaryType,
    PrimitiveType,
    RecordType,
    parse_enum,
)


# Member kinds whose value is a nested record rather than an inline scalar
_RECORD_VALUED = frozenset({
    BinaryType.String,
    BinaryType.SystemClass,
    BinaryType.Class,
    BinaryType.PrimitiveArray,
})


# ---------------------------------------------------------------------------
# Decode session
# ---------------------------------------------------------------------------

@dataclass
class DecodeResult:
    """Fully resolved output of one decode session."""
    header: SerializationHeader
    records: List[Record]
    registry: ObjectGraphRegistry
    libraries: Dict[int, str] = field(default_factory=dict)

    @property
    def root_id(self) -> int:
        return self.header.root_id.value

    @property
    def root(self) -> Any:
        return self.registry.lookup(self.root_id)


class DecodeSession:
    """Owns all mutable state of one decode: cursor, registry, libraries.

    Nothing is shared between sessions, so independent decodes may run
    side by side in one process.
    """

    def __init__(
        self,
        data: bytes,
        config: Optional[DecoderConfig] = None,
        observer: Optional[DecodeObserver] = None,
    ):
        self.config = config or DecoderConfig()
        self.observer = observer or DecodeObserver()
        self.cursor = ByteCursor(data, observer=observer, max_bytes=self.config.max_bytes)
        self.registry = ObjectGraphRegistry()
        self.libraries: Dict[int, str] = {}
        self.header: Optional[SerializationHeader] = None
        self.depth = 0

    def run(self) -> DecodeResult:
        decoder = RecordDecoder(self)
        records: List[Record] = []

        tag = self.cursor.peek_uint8()
        if tag is None:
            raise StructuralAssertion("Stream contains no SerializedStreamHeader", 0)
        if tag != RecordType.SerializedStreamHeader:
            raise StructuralAssertion(
                f"Stream must start with SerializedStreamHeader, got tag {tag}", 0)

        # Phase 1: linear decode until the buffer is exhausted
        try:
            while not self.cursor.at_end:
                records.append(decoder.read_record())
        except RecursionError:
            raise LimitExceeded(
                "Record nesting exceeds the interpreter recursion limit",
                self.cursor.position) from None

        # Phase 2: resolve deferred links against the complete registry
        self.registry.resolve_all()
        if self.header.root_id.value not in self.registry:
            raise DanglingReference(self.header.root_id.value, self.header.root_id.offset)

        return DecodeResult(
            header=self.header,
            records=records,
            registry=self.registry,
            libraries=dict(self.libraries),
        )


def decode(
    data: bytes,
    config: Optional[DecoderConfig] = None,
    observer: Optional[DecodeObserver] = None,
) -> DecodeResult:
    """Decode a complete NRBF buffer and resolve all references."""
    return DecodeSession(data, config, observer).run()


# ---------------------------------------------------------------------------
# Record decoder
# ---------------------------------------------------------------------------

class RecordDecoder:
    """Tagged-union decoder over a DecodeSession."""

    def __init__(self, session: DecodeSession):
        self._session = session
        self._cursor = session.cursor
        self._registry = session.registry
        self._handlers: Dict[RecordType, Callable[[int], Record]] = {
            RecordType.SerializedStreamHeader: self._read_header,
            RecordType.ClassWithId: self._read_class_with_id,
            RecordType.SystemClassWithMembersAndTypes: self._read_system_class_with_members_and_types,
            RecordType.ClassWithMembersAndTypes: self._read_class_with_members_and_types,
            RecordType.BinaryObjectString: self._read_binary_object_string,
            RecordType.BinaryArray: self._read_binary_array,
            RecordType.MemberReference: self._read_member_reference,
            RecordType.ObjectNull: self._read_object_null,
            RecordType.MessageEnd: self._read_message_end,
            RecordType.BinaryLibrary: self._read_binary_library,
            RecordType.ArraySinglePrimitive: self._read_array_single_primitive,
        }
        self._primitive_readers: Dict[PrimitiveType, Callable[[str], PrimitiveValue]] = {
            PrimitiveType.Boolean: self._cursor.read_bool,
            PrimitiveType.Byte: self._cursor.read_uint8,
            PrimitiveType.Char: self._cursor.read_char,
            PrimitiveType.Double: self._cursor.read_float64,
            PrimitiveType.Int16: self._cursor.read_int16,
            PrimitiveType.Int32: self._cursor.read_int32,
            PrimitiveType.Int64: self._cursor.read_int64,
            PrimitiveType.Single: self._cursor.read_float32,
            PrimitiveType.UInt16: self._cursor.read_uint16,
            PrimitiveType.UInt32: self._cursor.read_uint32,
            PrimitiveType.UInt64: self._cursor.read_uint64,
        }

    # -- dispatch -----------------------------------------------------------

    def read_record(self) -> Record:
        """Read one tag byte and decode the record it names."""
        offset = self._cursor.position
        tag = self._cursor.read_uint8("RecordTypeEnum").value
        # Known tags without a handler (MethodCall, ObjectNullMultiple, ...)
        # are as undecodable as unknown ones
        handler = self._handlers.get(tag)
        if handler is None:
            raise UnknownRecordTag(tag, offset)

        session = self._session
        if session.depth >= session.config.max_depth:
            raise LimitExceeded(f"Record nesting deeper than {session.config.max_depth}", offset)

        record_type = RecordType(tag)
        session.observer.on_record_start(record_type, offset, session.depth)
        session.depth += 1
        try:
            record = handler(offset)
        finally:
            session.depth -= 1
        session.observer.on_record_end(record, session.depth)
        return record

    def _read_value_record(self) -> Record:
        """Read the nested record holding a member or element value.

        A BinaryLibrary may precede the record it describes; it is noted
        and the following record is the actual value.
        """
        record = self.read_record()
        while isinstance(record, BinaryLibrary):
            record = self.read_record()
        return record

    # -- shared pieces ------------------------------------------------------

    def _read_count(self, label: str) -> PrimitiveValue:
        count = self._cursor.read_int32(label)
        if count.value < 0:
            raise StructuralAssertion(f"{label} is negative ({count.value})", count.offset)
        if count.value > self._session.config.max_elements:
            raise LimitExceeded(
                f"{label} {count.value} exceeds limit {self._session.config.max_elements}",
                count.offset)
        return count

    def _read_enum(self, enum_cls, label: str):
        raw = self._cursor.read_uint8(label)
        return parse_enum(enum_cls, raw.value, raw.offset)

    def _read_class_info(self) -> ClassInfo:
        object_id = self._cursor.read_int32("ObjectId")
        name = self._cursor.read_string("Name")
        member_count = self._read_count("MemberCount")
        member_names = [self._cursor.read_string("MemberName") for _ in range(member_count.value)]
        return ClassInfo(object_id, name, member_count, member_names)

    def _read_additional_info(self, binary_type: BinaryType):
        if binary_type in (BinaryType.Primitive, BinaryType.PrimitiveArray):
            return self._read_enum(PrimitiveType, "PrimitiveTypeEnum")
        if binary_type == BinaryType.SystemClass:
            return self._cursor.read_string("ClassName").value
        if binary_type == BinaryType.Class:
            return ClassTypeInfo(
                type_name=self._cursor.read_string("TypeName"),
                library_id=self._cursor.read_int32("LibraryId"),
            )
        return None

    def _read_member_type_info(self, member_count: int) -> MemberTypeInfo:
        # All BinaryType tags come first, then each member's AdditionalInfo
        binary_types = [self._read_enum(BinaryType, "BinaryTypeEnum") for _ in range(member_count)]
        member_types = [MemberType(bt, self._read_additional_info(bt)) for bt in binary_types]
        return MemberTypeInfo(member_types)

    def read_primitive(self, primitive_type: PrimitiveType) -> PrimitiveValue:
        reader = self._primitive_readers.get(primitive_type)
        if reader is None:
            raise UnsupportedPrimitive(primitive_type.name, self._cursor.position)
        return reader(primitive_type.name)

    def read_member_value(self, member_type: MemberType) -> Any:
        """Decode one member or element value according to its type."""
        if member_type.binary_type == BinaryType.Primitive:
            return self.read_primitive(member_type.additional_info)
        if member_type.binary_type in _RECORD_VALUED:
            return self._read_value_record()
        raise UnsupportedMemberType(member_type.binary_type.name, self._cursor.position)

    def _read_values(self, record, layout: ClassLayout):
        for member_type in layout.member_types:
            record.values.append(self.read_member_value(member_type))

    # -- record handlers ----------------------------------------------------

    def _read_header(self, offset: int) -> SerializationHeader:
        header = SerializationHeader(
            offset,
            root_id=self._cursor.read_int32("RootId"),
            header_id=self._cursor.read_int32("HeaderId"),
            major_version=self._cursor.read_int32("MajorVersion"),
            minor_version=self._cursor.read_int32("MinorVersion"),
        )
        self._session.header = header
        return header

    def _read_binary_library(self, offset: int) -> BinaryLibrary:
        library = BinaryLibrary(
            offset,
            library_id=self._cursor.read_int32("LibraryId"),
            library_name=self._cursor.read_string("LibraryName"),
        )
        self._session.libraries[library.library_id.value] = library.library_name.value
        return library

    def _read_class_with_members_and_types(self, offset: int) -> ClassWithMembersAndTypes:
        class_info = self._read_class_info()
        member_type_info = self._read_member_type_info(class_info.member_count.value)
        library_id = self._cursor.read_int32("LibraryId")
        record = ClassWithMembersAndTypes(offset, class_info, member_type_info, library_id)
        # Registered before its values so nested records can refer back to it
        self._registry.register(record.object_id, record)
        self._read_values(record, record.layout)
        return record

    def _read_system_class_with_members_and_types(self, offset: int) -> SystemClassWithMembersAndTypes:
        class_info = self._read_class_info()
        member_type_info = self._read_member_type_info(class_info.member_count.value)
        record = SystemClassWithMembersAndTypes(offset, class_info, member_type_info)
        self._registry.register(record.object_id, record)
        self._read_values(record, record.layout)
        return record

    def _read_class_with_id(self, offset: int) -> ClassWithId:
        instance_id = self._cursor.read_int32("ObjectId")
        metadata_id = self._cursor.read_int32("MetadataId")
        template = self._registry.lookup(metadata_id.value)
        if template is None:
            raise StructuralAssertion(
                f"ClassWithId metadata id {metadata_id.value} is not declared", metadata_id.offset)
        if not isinstance(template, CLASS_RECORDS):
            raise StructuralAssertion(
                f"ClassWithId metadata id {metadata_id.value} names a "
                f"{template.record_type.name}, not a class", metadata_id.offset)
        record = ClassWithId(offset, instance_id, metadata_id, template.layout)
        self._registry.register(record.object_id, record)
        self._read_values(record, record.layout)
        return record

    def _read_binary_object_string(self, offset: int) -> BinaryObjectString:
        record = BinaryObjectString(
            offset,
            object_id=self._cursor.read_int32("ObjectId"),
            value=self._cursor.read_string("Value"),
        )
        self._registry.register(record.object_id.value, record)
        return record

    def _read_binary_array(self, offset: int) -> BinaryArray:
        array_id = self._cursor.read_int32("ObjectId")
        if array_id.value <= 0:
            raise StructuralAssertion(
                f"BinaryArray object id must be positive, got {array_id.value}", array_id.offset)
        array_type = self._read_enum(BinaryArrayType, "BinaryArrayTypeEnum")
        rank = self._cursor.read_int32("Rank")
        if rank.value < 1 or rank.value > 32:
            raise StructuralAssertion(f"BinaryArray rank {rank.value} is invalid", rank.offset)
        lengths = [self._read_count("Length") for _ in range(rank.value)]
        lower_bounds = None
        if array_type in OFFSET_ARRAY_TYPES:
            lower_bounds = [self._cursor.read_int32("LowerBound") for _ in range(rank.value)]
        binary_type = self._read_enum(BinaryType, "TypeEnum")
        element_type = MemberType(binary_type, self._read_additional_info(binary_type))

        # Element order for more than one dimension is not defined here
        if rank.value != 1:
            raise UnsupportedArrayShape(
                f"{array_type.name} BinaryArray of rank {rank.value} is not supported", rank.offset)

        record = BinaryArray(offset, array_id, array_type, rank, lengths, lower_bounds, element_type)
        self._registry.register(record.object_id, record)
        for _ in range(lengths[0].value):
            record.values.append(self.read_member_value(element_type))
        return record

    def _read_member_reference(self, offset: int) -> MemberReference:
        record = MemberReference(offset, id_ref=self._cursor.read_int32("IdRef"))
        self._registry.defer_link(record)
        return record

    def _read_object_null(self, offset: int) -> ObjectNull:
        return ObjectNull(offset)

    def _read_message_end(self, offset: int) -> MessageEnd:
        return MessageEnd(offset)

    def _read_array_single_primitive(self, offset: int) -> ArraySinglePrimitive:
        array_id = self._cursor.read_int32("ObjectId")
        length = self._read_count("Length")
        primitive_type = self._read_enum(PrimitiveType, "PrimitiveTypeEnum")
        record = ArraySinglePrimitive(offset, array_id, length, primitive_type)
        self._registry.register(record.object_id, record)
        for _ in range(length.value):
            record.values.append(self.read_primitive(primitive_type))
        return record
