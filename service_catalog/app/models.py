"""
Course data models for the Catalog Service.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field


@dataclass
class Course:
    """Catalog course. ``id`` is assigned at creation and never changes."""
    id: str
    name: str
    price: float
    created_at: datetime
    updated_at: datetime


class CourseCreateRequest(BaseModel):
    """Request model for creating a course."""
    name: str = Field(..., min_length=1, description="Course name")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Course price")


class CourseUpdateRequest(BaseModel):
    """Request model for updating a course. Omitted fields are left as they are."""
    name: Optional[str] = Field(None, min_length=1, description="Course name")
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Course price")


class CourseResponse(BaseModel):
    """Response model for course operations."""
    id: str
    name: str
    price: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_course(cls, course: Course) -> "CourseResponse":
        return cls(
            id=course.id,
            name=course.name,
            price=course.price,
            created_at=course.created_at,
            updated_at=course.updated_at
        )


class DeleteResponse(BaseModel):
    """Response model for course deletion."""
    success: bool
    message: str
