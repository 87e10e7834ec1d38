"""
Decoded NRBF record shapes.

One dataclass per record kind. Scalars are kept as PrimitiveValue so the
source span survives decoding. Records never point at each other: a
member that refers to another object holds a MemberReference (an id), and
the entity itself lives only in the session's ObjectGraphRegistry.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Optional, Tuple, Union

from .cursor import PrimitiveValue
from .types import BinaryArrayType, BinaryType, PrimitiveType, RecordType


# ---------------------------------------------------------------------------
# Nested structures (never top-level tagged)
# ---------------------------------------------------------------------------

@dataclass
class ClassTypeInfo:
    """AdditionalInfo for BinaryType.Class members."""
    type_name: PrimitiveValue
    library_id: PrimitiveValue


AdditionalInfo = Union[PrimitiveType, ClassTypeInfo, str, None]


@dataclass(frozen=True)
class MemberType:
    """A member's BinaryType tag plus the AdditionalInfo it selects."""
    binary_type: BinaryType
    additional_info: AdditionalInfo = None

    @property
    def type_name(self) -> str:
        """Human name for the member's element type."""
        info = self.additional_info
        if isinstance(info, ClassTypeInfo):
            return info.type_name.value
        if isinstance(info, PrimitiveType):
            return info.name
        if isinstance(info, str):
            return info
        return self.binary_type.name


@dataclass
class ClassInfo:
    object_id: PrimitiveValue
    name: PrimitiveValue
    member_count: PrimitiveValue
    member_names: List[PrimitiveValue]


@dataclass
class MemberTypeInfo:
    member_types: List[MemberType]


@dataclass(frozen=True)
class ClassLayout:
    """Member-name / member-type schema of a class, reusable by id."""
    object_id: int
    class_name: str
    member_names: Tuple[str, ...]
    member_types: Tuple[MemberType, ...]

    @classmethod
    def from_infos(cls, class_info: ClassInfo, member_type_info: MemberTypeInfo) -> "ClassLayout":
        return cls(
            object_id=class_info.object_id.value,
            class_name=class_info.name.value,
            member_names=tuple(n.value for n in class_info.member_names),
            member_types=tuple(member_type_info.member_types),
        )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class Record:
    """Base for all tagged records; ``offset`` is where the tag byte sits."""
    offset: int

    record_type: ClassVar[RecordType]


@dataclass
class SerializationHeader(Record):
    root_id: PrimitiveValue
    header_id: PrimitiveValue
    major_version: PrimitiveValue
    minor_version: PrimitiveValue

    record_type = RecordType.SerializedStreamHeader


@dataclass
class BinaryLibrary(Record):
    library_id: PrimitiveValue
    library_name: PrimitiveValue

    record_type = RecordType.BinaryLibrary


@dataclass
class MemberReference(Record):
    """Placeholder for another object, resolved after the decode pass."""
    id_ref: PrimitiveValue
    resolved: bool = False

    record_type = RecordType.MemberReference

    @property
    def target_id(self) -> int:
        return self.id_ref.value


@dataclass
class ObjectNull(Record):
    record_type = RecordType.ObjectNull


@dataclass
class MessageEnd(Record):
    record_type = RecordType.MessageEnd


@dataclass
class BinaryObjectString(Record):
    object_id: PrimitiveValue
    value: PrimitiveValue

    record_type = RecordType.BinaryObjectString


@dataclass
class ClassWithMembersAndTypes(Record):
    class_info: ClassInfo
    member_type_info: MemberTypeInfo
    library_id: PrimitiveValue
    values: List[Any] = field(default_factory=list)

    record_type = RecordType.ClassWithMembersAndTypes

    @property
    def object_id(self) -> int:
        return self.class_info.object_id.value

    @property
    def layout(self) -> ClassLayout:
        return ClassLayout.from_infos(self.class_info, self.member_type_info)


@dataclass
class SystemClassWithMembersAndTypes(Record):
    class_info: ClassInfo
    member_type_info: MemberTypeInfo
    values: List[Any] = field(default_factory=list)

    record_type = RecordType.SystemClassWithMembersAndTypes

    @property
    def object_id(self) -> int:
        return self.class_info.object_id.value

    @property
    def layout(self) -> ClassLayout:
        return ClassLayout.from_infos(self.class_info, self.member_type_info)


@dataclass
class ClassWithId(Record):
    """A further instance of a class whose layout was declared earlier."""
    instance_id: PrimitiveValue
    metadata_id: PrimitiveValue
    layout: ClassLayout
    values: List[Any] = field(default_factory=list)

    record_type = RecordType.ClassWithId

    @property
    def object_id(self) -> int:
        return self.instance_id.value


@dataclass
class BinaryArray(Record):
    array_id: PrimitiveValue
    array_type: BinaryArrayType
    rank: PrimitiveValue
    lengths: List[PrimitiveValue]
    lower_bounds: Optional[List[PrimitiveValue]]
    element_type: MemberType
    values: List[Any] = field(default_factory=list)

    record_type = RecordType.BinaryArray

    @property
    def object_id(self) -> int:
        return self.array_id.value


@dataclass
class ArraySinglePrimitive(Record):
    array_id: PrimitiveValue
    length: PrimitiveValue
    primitive_type: PrimitiveType
    values: List[PrimitiveValue] = field(default_factory=list)

    record_type = RecordType.ArraySinglePrimitive

    @property
    def object_id(self) -> int:
        return self.array_id.value


CLASS_RECORDS = (ClassWithMembersAndTypes, SystemClassWithMembersAndTypes, ClassWithId)

# Records that own an object id and are stored in the registry
ENTITY_RECORDS = CLASS_RECORDS + (BinaryObjectString, BinaryArray, ArraySinglePrimitive)
