from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId


def utcnow() -> datetime:
    """Current UTC time at BSON date precision (milliseconds)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_object_id(value: Union[str, ObjectId, None]) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if not value:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def normalize_id(doc: Optional[Dict[str, Any]], *fields: str) -> Optional[Dict[str, Any]]:
    """Stringify ``_id`` (and any extra ObjectId fields) for the API layer."""
    if doc is None:
        return None
    for field in ("_id",) + fields:
        if field in doc and doc[field] is not None:
            doc[field] = str(doc[field])
    return doc
