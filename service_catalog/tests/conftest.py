"""
Shared fakes for Catalog service tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pytest

from service_catalog.app.cache import InMemoryCache
from service_catalog.app.repository import CourseRepository
from service_catalog.app.repository.course_repository import (
    CREATE_COURSES_TABLE, INSERT_COURSE, SELECT_COURSE, UPDATE_COURSE, DELETE_COURSE
)
from shared.errors import (
    CacheUnavailableError, ConstraintViolationError, RecordNotFoundError, StoreUnavailableError
)


class FakeCourseStore:
    """Dict-backed record store that understands the repository's statements."""

    def __init__(self, events: Optional[List[str]] = None, delay: float = 0.0):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.events = events if events is not None else []
        self.delay = delay
        self.fail_with: Optional[Exception] = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def health_check(self) -> bool:
        return self.fail_with is None

    async def exec(self, statement: str, params: Sequence[Any] = ()) -> int:
        if statement == CREATE_COURSES_TABLE:
            return 0

        await self._enter("exec")
        try:
            if statement == INSERT_COURSE:
                course_id, name, price, created_at, updated_at = params
                if course_id in self.rows:
                    raise ConstraintViolationError("duplicate key value violates unique constraint")
                self.rows[course_id] = {
                    "id": course_id,
                    "name": name,
                    "price": price,
                    "created_at": created_at,
                    "updated_at": updated_at,
                }
                self.events.append(f"store:insert:{course_id}")
                return 1

            if statement == DELETE_COURSE:
                (course_id,) = params
                removed = self.rows.pop(course_id, None)
                self.events.append(f"store:delete:{course_id}")
                return 1 if removed else 0

            raise AssertionError(f"unexpected exec statement: {statement}")
        finally:
            self.in_flight -= 1

    async def query_one(self, statement: str, params: Sequence[Any] = ()) -> Dict[str, Any]:
        await self._enter("query_one")
        try:
            if statement == SELECT_COURSE:
                (course_id,) = params
                self.events.append(f"store:select:{course_id}")
                if course_id not in self.rows:
                    raise RecordNotFoundError()
                return dict(self.rows[course_id])

            if statement == UPDATE_COURSE:
                course_id, name, price, updated_at = params
                self.events.append(f"store:update:{course_id}")
                if course_id not in self.rows:
                    raise RecordNotFoundError()
                row = self.rows[course_id]
                if name is not None:
                    row["name"] = name
                if price is not None:
                    row["price"] = price
                row["updated_at"] = updated_at
                return dict(row)

            raise AssertionError(f"unexpected query statement: {statement}")
        finally:
            self.in_flight -= 1

    async def _enter(self, operation: str):
        self.calls.append(operation)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            self.in_flight -= 1
            raise self.fail_with


class RecordingCache(InMemoryCache):
    """In-memory cache that logs every mutation into a shared event list."""

    def __init__(self, events: List[str], clock=None):
        if clock is None:
            super().__init__()
        else:
            super().__init__(clock=clock)
        self.events = events

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.events.append(f"cache:set:{key}")
        await super().set(key, value, ttl_seconds)

    async def delete(self, key: str) -> None:
        self.events.append(f"cache:delete:{key}")
        await super().delete(key)


class UnavailableCache:
    """Cache whose every operation fails like an unreachable Redis."""

    def __init__(self):
        self.attempts = 0

    async def get(self, key: str):
        self.attempts += 1
        raise CacheUnavailableError("connection refused")

    async def set(self, key: str, value: bytes, ttl_seconds: int):
        self.attempts += 1
        raise CacheUnavailableError("connection refused")

    async def delete(self, key: str):
        self.attempts += 1
        raise CacheUnavailableError("connection refused")

    async def start(self):
        raise CacheUnavailableError("connection refused")

    async def stop(self):
        return None

    async def health_check(self) -> bool:
        return False


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))

    def count(self, metric_name: str) -> int:
        return sum(1 for name, _ in self.counters if name == metric_name)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def events():
    return []


@pytest.fixture
def store(events):
    return FakeCourseStore(events=events)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(events, clock):
    return RecordingCache(events, clock=clock)


@pytest.fixture
def metrics():
    return DummyMetrics()


@pytest.fixture
def repository(store, cache, metrics):
    return CourseRepository(store, cache, ttl_seconds=60, metrics=metrics)
