"""Projection of resolved graphs and the intermediate document."""

from __future__ import annotations

import io
import json

import pytest

from nrbf_builder import NRBFWriter
from nrbf_dump import decode
from nrbf_dump.config import DecoderConfig
from nrbf_dump.errors import DanglingReference, LimitExceeded
from nrbf_dump.projector import GraphProjector, build_intermediate, project_result
from nrbf_dump.registry import ObjectGraphRegistry
from nrbf_dump.records import MemberReference, ObjectNull
from nrbf_dump.cursor import PrimitiveValue
from nrbf_dump.trace import TraceObserver, hexdump
from nrbf_dump.types import BinaryType, PrimitiveType


def _ref(target: int, offset: int = 0) -> MemberReference:
    return MemberReference(offset, id_ref=PrimitiveValue(offset + 1, 4, b'', target))


def test_shared_object_is_projected_at_each_use(writer: NRBFWriter) -> None:
    writer.write_header(root_id=1)
    writer.write_class(1, "Pair", [
        ("a", BinaryType.String, None),
        ("b", BinaryType.String, None),
    ])
    writer.write_object_string(2, "shared")
    writer.write_member_reference(2)

    tree = project_result(decode(writer.get_data()))

    assert tree == {"Pair#1": {"a": "shared", "b": "shared"}}


def test_null_member(writer: NRBFWriter) -> None:
    writer.write_header(root_id=1)
    writer.write_class(1, "Maybe", [("value", BinaryType.String, None)])
    writer.write_null()

    assert project_result(decode(writer.get_data())) == {"Maybe#1": {"value": None}}


def test_projector_depth_guard(writer: NRBFWriter) -> None:
    # A chain of references, each link one level deeper than the last
    writer.write_header(root_id=1)
    for i in range(1, 6):
        writer.write_class(i, "Link", [("next", BinaryType.Class, ("Link", 99))], library_id=99)
        writer.write_member_reference(i + 1)
    writer.write_object_string(6, "end")
    result = decode(writer.get_data())

    assert GraphProjector(result.registry).project(1) is not None
    with pytest.raises(LimitExceeded):
        GraphProjector(result.registry, max_depth=3).project(1)


def test_projector_unknown_root() -> None:
    with pytest.raises(DanglingReference):
        GraphProjector(ObjectGraphRegistry()).project(1)


def test_registry_resolves_in_queue_order() -> None:
    registry = ObjectGraphRegistry()
    first, second = _ref(2, 10), _ref(3, 20)
    registry.defer_link(first)
    registry.defer_link(second)
    registry.register(2, ObjectNull(30))

    with pytest.raises(DanglingReference) as excinfo:
        registry.resolve_all()

    assert first.resolved
    assert not second.resolved
    assert excinfo.value.id_ref == 3
    assert excinfo.value.offset == 20


def test_registry_register_overwrites_and_derefs() -> None:
    registry = ObjectGraphRegistry()
    registry.register(1, "old")
    registry.register(1, "new")
    registry.defer_link(_ref(1))

    assert registry.pending == 1
    assert registry.resolve_all() == 1
    assert registry.pending == 0
    assert registry.lookup(1) == "new"
    assert registry.deref(_ref(1)) == "new"
    assert registry.deref("plain") == "plain"
    assert registry.lookup(2) is None
    assert 1 in registry and len(registry) == 1


def test_intermediate_document(greeting_stream: bytes) -> None:
    result = decode(greeting_stream)

    doc = build_intermediate(result)

    assert doc["root_id"] == 1
    assert doc["header"]["_type"] == "SerializedStreamHeader"
    assert doc["header"]["root_id"] == {"value": 1, "offset": 1, "length": 4, "hex": "01000000"}
    assert set(doc["objects"]) == {"1", "3"}
    root = doc["objects"]["1"]
    assert root["_type"] == "ClassWithMembersAndTypes"
    assert root["offset"] == 17
    assert root["class_info"]["name"]["value"] == "Greeting"
    assert root["member_type_info"]["member_types"][0]["binary_type"] == "String"
    assert root["values"] == [{"_type": "BinaryObjectString", "object_id": 3}]
    assert doc["objects"]["3"]["value"]["value"] == "hello"
    json.dumps(doc)


def test_intermediate_document_is_finite_for_cycles(cyclic_stream: bytes) -> None:
    doc = build_intermediate(decode(cyclic_stream))

    link = doc["objects"]["1"]["values"][1]
    assert link["_type"] == "MemberReference"
    assert link["id_ref"]["value"] == 3
    assert link["resolved"] is True
    assert doc["objects"]["3"]["layout"]["member_names"] == ["value", "next"]
    assert doc["libraries"] == {"2": "Graph, Version=1.0.0.0"}
    json.dumps(doc)


def test_trace_observer_lists_reads(greeting_stream: bytes) -> None:
    buf = io.StringIO()

    decode(greeting_stream, observer=TraceObserver(buf))

    text = buf.getvalue()
    assert "SerializedStreamHeader: @0x0" in text
    assert "ClassWithMembersAndTypes: @0x11" in text
    assert "\n  BinaryObjectString: @0x" in text
    assert "Value: 'hello' [0x" in text
    assert "RecordTypeEnum" not in text


def test_hexdump_layout() -> None:
    dump = hexdump(b"AB\x00" + bytes(range(20)))

    lines = dump.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("  00000000  41 42 00")
    assert lines[0].endswith("AB..............")
    assert lines[1].startswith("  00000010")


def test_primitive_member_values_project_to_python_scalars(writer: NRBFWriter) -> None:
    writer.write_header(root_id=1)
    writer.write_class(1, "Flag", [("on", BinaryType.Primitive, PrimitiveType.Boolean)])
    writer.write_primitive(PrimitiveType.Boolean, False)

    assert project_result(decode(writer.get_data())) == {"Flag#1": {"on": False}}


def _linked_list(nodes: int) -> bytes:
    w = NRBFWriter()
    w.write_header(root_id=1)
    for i in range(1, nodes + 1):
        w.write_class(i, "Link", [("next", BinaryType.Class, ("Link", 99))], library_id=99)
        if i < nodes:
            w.write_member_reference(i + 1)
        else:
            w.write_null()
    return w.get_data()


def test_long_acyclic_chain_projects() -> None:
    tree = project_result(decode(_linked_list(150)))

    node, seen = tree, 0
    while node is not None:
        (name, members), = node.items()
        seen += 1
        assert name == f"Link#{seen}"
        node = members["next"]
    assert seen == 150


def test_projection_limit_is_separate_from_record_nesting() -> None:
    result = decode(_linked_list(10))

    with pytest.raises(LimitExceeded):
        project_result(result, DecoderConfig(max_depth=64, max_projection_depth=5))
    assert project_result(result, DecoderConfig(max_depth=1)) is not None


def test_projection_past_the_interpreter_stack_is_a_limit_error() -> None:
    result = decode(_linked_list(3000))

    with pytest.raises(LimitExceeded):
        GraphProjector(result.registry, max_depth=100000).project(1)


def test_hexdump_marks_an_offset() -> None:
    dump = hexdump(bytes(range(48)), 16, 32, mark=18)

    lines = dump.splitlines()
    assert lines[0].startswith("  00000010  10 11 12")
    assert lines[1] == " " * 18 + "^^"
    assert lines[2].startswith("  00000020")
    assert len(lines) == 3
