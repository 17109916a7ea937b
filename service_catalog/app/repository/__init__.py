"""
Repository package for the Catalog Service.

The course repository is the only component that talks to both the cache
layer and the record store, and it owns the ordering between them.
"""

from .course_repository import CourseRepository

__all__ = ["CourseRepository"]
