"""
nrbf_dump - .NET BinaryFormatter (MS-NRBF) stream decoder.

Rebuilds the serialized object graph without the original assemblies and
flattens it into plain Python values.
"""

from .config import DecoderConfig, load_config, save_config
from .cursor import ByteCursor, PrimitiveValue
from .decoder import DecodeResult, DecodeSession, RecordDecoder, decode
from .errors import (
    DanglingReference,
    LimitExceeded,
    NRBFError,
    OutOfBounds,
    StructuralAssertion,
    UnknownEnumTag,
    UnknownRecordTag,
    UnsupportedArrayShape,
    UnsupportedMemberType,
    UnsupportedPrimitive,
)
from .projector import GraphProjector, build_intermediate, project, project_result
from .registry import ObjectGraphRegistry
from .trace import DecodeObserver, TraceObserver, hexdump
from .types import BinaryArrayType, BinaryType, PrimitiveType, RecordType

__version__ = "0.1.0"
