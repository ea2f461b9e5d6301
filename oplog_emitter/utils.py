"""Utility functions for oplog-emitter."""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Any
from uuid import UUID

from bson import Binary, ObjectId
from bson.timestamp import Timestamp


def sanitize_doc(doc: Any) -> Any:
    """
    Recursively convert MongoDB-specific types found in an oplog entry to JSON-serializable types.

    Type conversions performed:
    - bson.Timestamp → dict with the seconds ``t`` and increment ``i`` (MongoDB extended JSON layout)
    - bson.ObjectId → str
    - uuid.UUID → str
    - datetime.datetime → str (ISO format)
    - bson.Binary, bytes → str (base64-encoded)
    - dict, list → recursively sanitized
    - All other types → unchanged

    Examples:
        >>> from bson import ObjectId, Timestamp
        >>> sanitize_doc({"_id": ObjectId("507f1f77bcf86cd799439011"), "ts": Timestamp(1700000000, 3)})
        {'_id': '507f1f77bcf86cd799439011', 'ts': {'t': 1700000000, 'i': 3}}
    """
    if isinstance(doc, Timestamp):
        return {"t": doc.time, "i": doc.inc}
    if isinstance(doc, (ObjectId, UUID)):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    if isinstance(doc, (Binary, bytes)):
        return base64.b64encode(doc).decode("utf-8")
    if isinstance(doc, dict):
        return {key: sanitize_doc(value) for key, value in doc.items()}
    if isinstance(doc, list):
        return [sanitize_doc(item) for item in doc]
    return doc
