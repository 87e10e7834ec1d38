"""
Session-scoped object arena.

Objects are registered under the integer id the stream gives them. Any
record that refers to another object does so through a MemberReference
placeholder; placeholders are queued while decoding and checked in one
pass once the whole buffer has been consumed, which is what lets forward
and circular references resolve.
"""

from collections import deque
from typing import Any, Deque, Dict, Optional

from .errors import DanglingReference
from .records import MemberReference


class ObjectGraphRegistry:
    """Map of object id -> decoded entity plus the deferred-link queue."""

    def __init__(self):
        self._objects: Dict[int, Any] = {}
        self._pending: Deque[MemberReference] = deque()

    # -- arena --------------------------------------------------------------

    def register(self, object_id: int, entity: Any):
        """Store ``entity`` under ``object_id`` (later declarations win)."""
        self._objects[object_id] = entity

    def lookup(self, object_id: int) -> Optional[Any]:
        return self._objects.get(object_id)

    def items(self):
        return self._objects.items()

    def __contains__(self, object_id: int) -> bool:
        return object_id in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    # -- deferred links -----------------------------------------------------

    def defer_link(self, reference: MemberReference):
        self._pending.append(reference)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def resolve_all(self) -> int:
        """Resolve queued references in the order they were seen.

        Must only run after the decode pass: by then every id the stream
        declares is registered. Returns the number of references resolved.
        """
        count = 0
        while self._pending:
            ref = self._pending.popleft()
            if ref.target_id not in self._objects:
                raise DanglingReference(ref.target_id, ref.offset)
            ref.resolved = True
            count += 1
        return count

    def deref(self, value: Any) -> Any:
        """Follow a MemberReference to its entity; other values pass through."""
        if not isinstance(value, MemberReference):
            return value
        entity = self._objects.get(value.target_id)
        if entity is None:
            raise DanglingReference(value.target_id, value.offset)
        return entity
