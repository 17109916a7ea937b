"""
Catalog service for the Course Catalog.
"""

from typing import Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import CacheUnavailableError

from .cache import CacheLayer, build_cache
from .models import (
    CourseCreateRequest, CourseUpdateRequest, CourseResponse, DeleteResponse
)
from .persistence import PostgreSQLStore, RecordStore
from .repository import CourseRepository


class CatalogService(BaseService):
    """Catalog service implementation.

    Routes translate requests into repository calls. Error translation lives
    in the base service exception handler.
    """

    critical_dependencies = ("postgres",)

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[RecordStore] = None,
        cache: Optional[CacheLayer] = None
    ):
        super().__init__("catalog", 8020, config=config)

        # Initialize components
        self.store = store if store is not None else PostgreSQLStore(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            command_timeout=self.config.postgres_command_timeout
        )
        self.cache = cache if cache is not None else build_cache(
            self.config.cache_backend,
            self.config.redis_url,
            socket_timeout=self.config.redis_socket_timeout
        )
        self.repository = CourseRepository(
            self.store,
            self.cache,
            ttl_seconds=self.config.cache_ttl_seconds,
            metrics=self.metrics
        )

        self._setup_catalog_routes()

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "catalog",
                "message": "Course Catalog - Catalog Service",
                "version": "1.0.0",
                "capabilities": ["courses", "caching", "persistence"]
            }

        @self.app.post("/courses", status_code=201, response_model=CourseResponse)
        async def create_course(request: CourseCreateRequest):
            """Create a new course."""
            course = await self.repository.create(request.name, request.price)
            return CourseResponse.from_course(course)

        @self.app.get("/courses/{course_id}", response_model=CourseResponse)
        async def get_course(course_id: str):
            """Get a course by ID."""
            course = await self.repository.get_by_id(course_id)
            return CourseResponse.from_course(course)

        @self.app.patch("/courses/{course_id}", response_model=CourseResponse)
        async def update_course(course_id: str, request: CourseUpdateRequest):
            """Update name and/or price of a course."""
            course = await self.repository.update(
                course_id,
                name=request.name,
                price=request.price
            )
            return CourseResponse.from_course(course)

        @self.app.delete("/courses/{course_id}", response_model=DeleteResponse)
        async def delete_course(course_id: str):
            """Delete a course."""
            await self.repository.delete(course_id)
            return DeleteResponse(success=True, message="Course deleted successfully")

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        dependencies = {}

        dependencies["postgres"] = "ok" if await self.store.health_check() else "error"
        dependencies["cache"] = "ok" if await self.cache.health_check() else "error"

        return dependencies

    async def start(self):
        """Start catalog service components."""
        await self.store.start()

        try:
            await self.cache.start()
        except CacheUnavailableError as e:
            # Reads fall back to the store until the cache comes back
            self.logger.warning("Cache unavailable at startup; running degraded", error=e.message)

        await self.repository.ensure_schema()

        self.logger.info("Catalog service started", cache_backend=type(self.cache).__name__)

    async def stop(self):
        """Stop catalog service components."""
        await self.cache.stop()
        await self.store.stop()

        self.logger.info("Catalog service stopped")


def create_app():
    """Create catalog service application."""
    service = CatalogService()
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
