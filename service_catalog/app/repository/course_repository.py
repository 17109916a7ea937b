"""
Cache-aside repository for courses.

Reads go cache first and refill the cache from the record store on a miss.
Writes go to the record store first; only after the store accepted the
mutation is the cache entry invalidated (never updated in place). Cache
failures are logged and absorbed; record store failures propagate.

Two concurrent reads racing an update may still observe the pre-update
value until the entry expires. That staleness window is bounded by the TTL.
"""

import asyncio
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from shared.logging import get_logger
from shared.errors import RecordNotFoundError, SerializationError, ValidationError
from shared.metrics import MetricsCollector
from ..cache.base import CacheLayer
from ..cache.policy import CourseSerializer, make_cache_key
from ..models import Course
from ..persistence.base import RecordStore


CREATE_COURSES_TABLE = """
    CREATE TABLE IF NOT EXISTS courses (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        price DOUBLE PRECISION NOT NULL CHECK (price >= 0),
        created_at TIMESTAMP WITH TIME ZONE NOT NULL,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
"""

INSERT_COURSE = """
    INSERT INTO courses (id, name, price, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5)
"""

SELECT_COURSE = """
    SELECT id, name, price, created_at, updated_at FROM courses WHERE id = $1
"""

UPDATE_COURSE = """
    UPDATE courses
    SET name = COALESCE($2, name),
        price = COALESCE($3, price),
        updated_at = $4
    WHERE id = $1
    RETURNING id, name, price, created_at, updated_at
"""

DELETE_COURSE = """
    DELETE FROM courses WHERE id = $1
"""


class CourseRepository:
    """Mediates every course read and write between callers, cache and store."""

    kind = "course"

    def __init__(
        self,
        store: RecordStore,
        cache: CacheLayer,
        ttl_seconds: int = 300,
        serializer: Optional[CourseSerializer] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.serializer = serializer or CourseSerializer()
        self.metrics = metrics
        self.logger = get_logger("catalog.repository")

        # Invalidations that outlived a cancelled caller
        self._background: Set[asyncio.Task] = set()

    async def ensure_schema(self) -> None:
        """Create the courses table if it does not exist."""
        await self.store.exec(CREATE_COURSES_TABLE)

    async def create(self, name: str, price: float) -> Course:
        """Persist a new course. The cache is not touched; the first read fills it."""
        self._validate_name(name)
        self._validate_price(price)

        now = _utcnow()
        course = Course(
            id=str(uuid.uuid4()),
            name=name,
            price=float(price),
            created_at=now,
            updated_at=now
        )

        await self._store_call(
            "create",
            self.store.exec(
                INSERT_COURSE,
                (course.id, course.name, course.price, course.created_at, course.updated_at)
            )
        )

        self.logger.info("Course created", course_id=course.id, name=course.name)
        return course

    async def get_by_id(self, course_id: str) -> Course:
        """Return a course, from the cache when fresh, otherwise from the store."""
        key = self.cache_key(course_id)

        cached = await self._cache_get(key)
        if cached is not None:
            try:
                course = self.serializer.deserialize(cached)
            except SerializationError as e:
                self.logger.warning("Discarding undecodable cache entry", cache_key=key, error=e.message)
            else:
                self._count("cache_hits_total", cache_type=self.kind)
                self.logger.debug("Cache hit", cache_key=key)
                return course

        self._count("cache_misses_total", cache_type=self.kind)

        # RecordNotFoundError propagates; absence is never cached
        row = await self._store_call("get", self.store.query_one(SELECT_COURSE, (course_id,)))
        course = self._row_to_course(row)

        await self._cache_fill(key, course)
        return course

    async def update(
        self,
        course_id: str,
        name: Optional[str] = None,
        price: Optional[float] = None
    ) -> Course:
        """Apply a partial update in the store, then invalidate the cache entry."""
        key = self.cache_key(course_id)
        if name is None and price is None:
            raise ValidationError("At least one of name or price is required", {"course_id": course_id})
        if name is not None:
            self._validate_name(name)
        if price is not None:
            self._validate_price(price)
            price = float(price)

        row = await self._store_mutation(
            "update",
            self.store.query_one(UPDATE_COURSE, (course_id, name, price, _utcnow())),
            key
        )
        course = self._row_to_course(row)

        await self._invalidate(key)

        self.logger.info("Course updated", course_id=course_id)
        return course

    async def delete(self, course_id: str) -> None:
        """Delete from the store, then invalidate the cache entry."""
        key = self.cache_key(course_id)
        affected = await self._store_mutation("delete", self.store.exec(DELETE_COURSE, (course_id,)), key)
        if affected == 0:
            # Nothing was mutated, so the cache is left as it is
            raise RecordNotFoundError("Course not found", {"course_id": course_id})

        await self._invalidate(key)

        self.logger.info("Course deleted", course_id=course_id)

    def cache_key(self, course_id: str) -> str:
        if not isinstance(course_id, str) or not course_id:
            raise ValidationError("Course id must be a non-empty string")
        return make_cache_key(self.kind, course_id)

    async def _store_call(self, operation: str, call):
        start_time = time.time()
        status = "error"
        try:
            result = await call
            status = "ok"
            return result
        except RecordNotFoundError:
            status = "not_found"
            raise
        finally:
            if self.metrics:
                self.metrics.increment_counter("store_operations_total", operation=operation, status=status)
                self.metrics.observe_histogram(
                    "store_operation_duration_seconds", time.time() - start_time, operation=operation
                )

    async def _store_mutation(self, operation: str, call, key: str):
        """Run a store write; a caller cancelled mid-write still drops the entry.

        The statement may have committed before the reply arrived, and an
        extra invalidation is always safe.
        """
        try:
            return await self._store_call(operation, call)
        except asyncio.CancelledError:
            self._schedule_cache_delete(key)
            self.logger.warning(
                "Caller cancelled during store write; invalidating in background",
                operation=operation,
                cache_key=key
            )
            raise

    async def _cache_get(self, key: str) -> Optional[bytes]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            self._cache_error("get", key, e)
            return None

    async def _cache_fill(self, key: str, course: Course) -> None:
        try:
            payload = self.serializer.serialize(course)
        except SerializationError as e:
            self._cache_error("serialize", key, e)
            return

        try:
            await self.cache.set(key, payload, self.ttl_seconds)
        except Exception as e:
            self._cache_error("set", key, e)

    async def _cache_delete(self, key: str) -> None:
        try:
            await self.cache.delete(key)
        except Exception as e:
            # The entry expires on its own once the TTL runs out
            self._cache_error("delete", key, e)

    async def _invalidate(self, key: str) -> None:
        """Drop the cache entry after a committed store mutation.

        Runs in its own task so a cancelled caller cannot abort it; the store
        mutation is never rolled back.
        """
        task = self._schedule_cache_delete(key)
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            self.logger.warning("Caller cancelled; cache invalidation continues in background", cache_key=key)
            raise

    def _schedule_cache_delete(self, key: str) -> asyncio.Task:
        task = asyncio.ensure_future(self._cache_delete(key))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _cache_error(self, operation: str, key: str, error: Exception) -> None:
        self.logger.warning("Cache operation failed", operation=operation, cache_key=key, error=str(error))
        self._count("cache_errors_total", cache_type=self.kind, operation=operation)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    @staticmethod
    def _row_to_course(row: Dict[str, Any]) -> Course:
        return Course(
            id=row["id"],
            name=row["name"],
            price=float(row["price"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"]
        )

    @staticmethod
    def _validate_name(name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Course name must be a non-empty string")

    @staticmethod
    def _validate_price(price: float) -> None:
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise ValidationError("Course price must be a number")
        if not math.isfinite(price) or price < 0:
            raise ValidationError("Course price must be a finite, non-negative number", {"price": price})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
