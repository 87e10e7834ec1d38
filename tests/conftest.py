from __future__ import annotations

import pytest

from nrbf_builder import NRBFWriter
from nrbf_dump.types import BinaryType, PrimitiveType


@pytest.fixture
def writer() -> NRBFWriter:
    return NRBFWriter()


@pytest.fixture
def greeting_stream() -> bytes:
    """Header, one class with a String member, its string value, MessageEnd."""
    w = NRBFWriter()
    w.write_header(root_id=1)
    w.write_class(1, "Greeting", [("text", BinaryType.String, None)])
    w.write_object_string(3, "hello")
    w.write_message_end()
    return w.get_data()


@pytest.fixture
def cyclic_stream() -> bytes:
    """Two Node instances pointing at each other, the second via ClassWithId."""
    node_members = [
        ("value", BinaryType.Primitive, PrimitiveType.Int32),
        ("next", BinaryType.Class, ("Node", 2)),
    ]
    w = NRBFWriter()
    w.write_header(root_id=1)
    w.write_library(2, "Graph, Version=1.0.0.0")
    w.write_class(1, "Node", node_members, library_id=2)
    w.write_primitive(PrimitiveType.Int32, 7)
    w.write_member_reference(3)
    w.write_class_with_id(3, 1)
    w.write_primitive(PrimitiveType.Int32, 8)
    w.write_member_reference(1)
    w.write_message_end()
    return w.get_data()
