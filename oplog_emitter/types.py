"""Custom type definitions for oplog-emitter."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from bson.timestamp import Timestamp
from typing_extensions import Self

from oplog_emitter.utils import sanitize_doc


class Operation(str, Enum):
    """Operation codes found in the ``op`` field of an oplog entry."""

    INSERT = "i"
    UPDATE = "u"
    DELETE = "d"
    COMMAND = "c"
    NOOP = "n"
    DB_DECLARE = "db"

    @property
    def event_name(self) -> Optional[str]:
        """Name of the specialized event fired for this operation, if there is one."""
        return OPERATION_EVENTS.get(self.value)


OPERATION_EVENTS: dict[str, str] = {
    Operation.INSERT.value: "insert",
    Operation.UPDATE.value: "update",
    Operation.DELETE.value: "delete",
}


def parse_operation(code: Any) -> Optional[Operation]:
    """Return the Operation for an oplog ``op`` code, or None for unknown or malformed codes."""
    if not isinstance(code, str):
        return None
    try:
        return Operation(code)
    except ValueError:
        return None


@dataclass(frozen=True)
class OplogEntry:
    """Read-only typed view of a raw oplog document.

    The emitter hands listeners the raw document; this class is for listeners that prefer attribute access. ``o2`` is
    only set on updates, where it holds the selector of the updated document.
    """

    namespace: str
    operation: str
    timestamp: Optional[Timestamp]
    document: Optional[dict[str, Any]]
    document_key: Optional[dict[str, Any]]
    raw: dict[str, Any] = field(repr=False, compare=False)

    @property
    def database(self) -> str:
        return self.namespace.split(".", 1)[0]

    @property
    def collection(self) -> str:
        parts = self.namespace.split(".", 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def object_id(self) -> Any:
        """The ``_id`` of the affected document, taken from ``o2`` on updates and from ``o`` otherwise."""
        for source in (self.document_key, self.document):
            if source and "_id" in source:
                return source["_id"]
        return None

    @property
    def known_operation(self) -> Optional[Operation]:
        return parse_operation(self.operation)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Self:
        """Create an OplogEntry from a document read from the oplog collection."""
        if not isinstance(document, Mapping):
            raise ValueError("Oplog document must be a mapping")
        namespace = document.get("ns")
        operation = document.get("op")
        if not isinstance(namespace, str) or not isinstance(operation, str):
            raise ValueError("Oplog document must have string 'ns' and 'op' fields")
        timestamp = document.get("ts")
        return cls(
            namespace=namespace,
            operation=operation,
            timestamp=timestamp if isinstance(timestamp, Timestamp) else None,
            document=document.get("o"),
            document_key=document.get("o2"),
            raw=dict(document),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the entry."""
        return sanitize_doc(
            {
                "namespace": {"database": self.database, "collection": self.collection},
                "operation": self.operation,
                "timestamp": self.timestamp,
                "object_id": self.object_id,
                "document": self.document,
                "document_key": self.document_key,
            }
        )
