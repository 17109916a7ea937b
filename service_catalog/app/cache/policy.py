"""
Cache key and serialization policy for catalog records.

Keys are namespaced by entity kind (``"<kind>:<id>"``) so repositories can
share one cache instance. Values are opaque bytes to the cache layer; the
serializer guarantees ``deserialize(serialize(course)) == course``.
"""

import json
import math
from datetime import datetime
from typing import Any, Dict

from shared.errors import SerializationError
from ..models import Course


KEY_SEPARATOR = ":"
FORMAT_VERSION = 1


def make_cache_key(kind: str, record_id: str) -> str:
    """Build the namespaced cache key for a record."""
    if not kind or KEY_SEPARATOR in kind:
        raise ValueError(f"invalid cache kind: {kind!r}")
    if not record_id:
        raise ValueError("record id is required to build a cache key")
    return f"{kind}{KEY_SEPARATOR}{record_id}"


class CourseSerializer:
    """UTF-8 JSON codec for Course cache entries."""

    def serialize(self, course: Course) -> bytes:
        try:
            if not math.isfinite(course.price):
                raise ValueError("price must be finite")
            data = {
                "v": FORMAT_VERSION,
                "id": course.id,
                "name": course.name,
                "price": course.price,
                "created_at": course.created_at.isoformat(),
                "updated_at": course.updated_at.isoformat(),
            }
            return json.dumps(data, ensure_ascii=False, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError, AttributeError) as e:
            raise SerializationError(
                "Failed to serialize course",
                {"course_id": getattr(course, "id", None), "error": str(e)}
            ) from e

    def deserialize(self, payload: bytes) -> Course:
        try:
            data: Dict[str, Any] = json.loads(payload)
            if data.get("v") != FORMAT_VERSION:
                raise ValueError(f"unsupported format version {data.get('v')!r}")

            return Course(
                id=_expect(data, "id", str),
                name=_expect(data, "name", str),
                price=float(_expect(data, "price", (int, float))),
                created_at=datetime.fromisoformat(_expect(data, "created_at", str)),
                updated_at=datetime.fromisoformat(_expect(data, "updated_at", str)),
            )
        except (TypeError, ValueError, AttributeError, UnicodeDecodeError) as e:
            raise SerializationError("Failed to deserialize course", {"error": str(e)}) from e


def _expect(data: Dict[str, Any], name: str, kind) -> Any:
    value = data.get(name)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ValueError(f"field {name!r} missing or of wrong type")
    return value
