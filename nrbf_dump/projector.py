"""
Flatten a resolved NRBF object graph into plain JSON-ready values.

Two documents come out of a decode:

  intermediate (build_intermediate): every registered object keyed by id,
    each scalar kept with its offset/length/hex provenance. References
    stay references, so the document is finite even for cyclic graphs.

  simplified (GraphProjector): starting at the header's root id, every
    reference is replaced by the projection of its target:
      class instance  -> {"<ClassName>#<ObjectId>": {member: value, ...}}
      BinaryArray     -> {"name": "<ElementType>#<ObjectId>", "values": [...]}
      primitive array -> [value, ...]
      string          -> "..."
      null            -> None
    An object met again while it is still being projected (a true cycle)
    becomes {"$ref": "<Name>#<ObjectId>"} instead.
"""

import dataclasses
from enum import IntEnum
from typing import Any, Dict, Optional, Set

from .config import DEFAULT_MAX_PROJECTION_DEPTH, DecoderConfig
from .cursor import PrimitiveValue
from .decoder import DecodeResult, decode
from .errors import DanglingReference, LimitExceeded, StructuralAssertion
from .records import (
    CLASS_RECORDS,
    ENTITY_RECORDS,
    ArraySinglePrimitive,
    BinaryArray,
    BinaryObjectString,
    MemberReference,
    ObjectNull,
    Record,
)
from .registry import ObjectGraphRegistry

BACKREF_KEY = "$ref"


# ---------------------------------------------------------------------------
# Simplified value tree
# ---------------------------------------------------------------------------

class GraphProjector:
    """Walks the resolved graph from its root, dereferencing through the registry."""

    def __init__(self, registry: ObjectGraphRegistry, max_depth: int = DEFAULT_MAX_PROJECTION_DEPTH):
        self._registry = registry
        self._max_depth = max_depth

    def project(self, root_id: int) -> Any:
        root = self._registry.lookup(root_id)
        if root is None:
            raise DanglingReference(root_id)
        try:
            return self._project(root, set(), 0)
        except RecursionError:
            raise LimitExceeded(
                "Projection exceeds the interpreter recursion limit",
                getattr(root, "offset", None)) from None

    def _project(self, value: Any, path: Set[int], depth: int) -> Any:
        # Following a reference does not add a level
        while isinstance(value, MemberReference):
            value = self._registry.deref(value)

        if depth > self._max_depth:
            raise LimitExceeded(f"Projection deeper than {self._max_depth}",
                                getattr(value, "offset", None))

        if value is None or isinstance(value, ObjectNull):
            return None
        if isinstance(value, PrimitiveValue):
            return value.value
        if isinstance(value, BinaryObjectString):
            return value.value.value
        if isinstance(value, ArraySinglePrimitive):
            return [v.value for v in value.values]
        if isinstance(value, CLASS_RECORDS):
            name = f"{value.layout.class_name}#{value.object_id}"
            if value.object_id in path:
                return {BACKREF_KEY: name}
            path.add(value.object_id)
            try:
                members = [self._project(v, path, depth + 1) for v in value.values]
            finally:
                path.discard(value.object_id)
            return {name: dict(zip(value.layout.member_names, members))}
        if isinstance(value, BinaryArray):
            name = f"{value.element_type.type_name}#{value.object_id}"
            if value.object_id in path:
                return {BACKREF_KEY: name}
            path.add(value.object_id)
            try:
                values = [self._project(v, path, depth + 1) for v in value.values]
            finally:
                path.discard(value.object_id)
            return {"name": name, "values": values}

        offset = value.offset if isinstance(value, Record) else None
        raise StructuralAssertion(f"Cannot project a {type(value).__name__} value", offset)


def project_result(result: DecodeResult, config: Optional[DecoderConfig] = None) -> Any:
    """Simplified value tree of an already decoded stream."""
    max_depth = (config or DecoderConfig()).max_projection_depth
    return GraphProjector(result.registry, max_depth=max_depth).project(result.root_id)


def project(data: bytes, config: Optional[DecoderConfig] = None) -> Any:
    """Decode ``data`` and return its simplified value tree."""
    return project_result(decode(data, config), config)


# ---------------------------------------------------------------------------
# Intermediate document
# ---------------------------------------------------------------------------

def _ir_value(value: Any) -> Any:
    if isinstance(value, PrimitiveValue):
        return value.to_dict()
    if isinstance(value, IntEnum):
        return value.name
    if isinstance(value, ENTITY_RECORDS):
        # Nested objects appear once, under "objects"; link by id here
        return {"_type": value.record_type.name, "object_id": value.object_id}
    if isinstance(value, Record):
        return _ir_record(value)
    if dataclasses.is_dataclass(value):
        return {f.name: _ir_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (list, tuple)):
        return [_ir_value(v) for v in value]
    return value


def _ir_record(record: Record) -> Dict[str, Any]:
    doc: Dict[str, Any] = {"_type": record.record_type.name, "offset": record.offset}
    for f in dataclasses.fields(record):
        if f.name != "offset":
            doc[f.name] = _ir_value(getattr(record, f.name))
    return doc


def build_intermediate(result: DecodeResult) -> Dict[str, Any]:
    """Fully resolved object graph with byte provenance, keyed by object id."""
    return {
        "root_id": result.root_id,
        "header": _ir_record(result.header),
        "libraries": {str(lid): name for lid, name in result.libraries.items()},
        "objects": {str(oid): _ir_record(entity) for oid, entity in result.registry.items()},
    }
