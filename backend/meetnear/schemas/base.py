"""
Base schemas that provide common fields and validation patterns.
These are used as building blocks for other schemas.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

class BaseSchema(BaseModel):
    """
    Base schema with common configuration for all schemas.

    Features:
    - Reads attributes straight off ORM objects
    - Extra fields are ignored (security)
    - Surrounding whitespace stripped from strings
    - Validation on assignment
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        str_strip_whitespace=True,
        validate_assignment=True,
    )

class TimestampSchema(BaseSchema):
    """
    Schema with automatic timestamp fields.
    Used for responses that include creation/update times.
    """
    created_at: datetime = Field(..., description="When the record was created")
    updated_at: datetime = Field(..., description="When the record was last updated")

class IDSchema(BaseSchema):
    """
    Schema with an ID field.
    Used for responses that include database IDs.
    """
    id: int = Field(..., description="Unique identifier for the record")

class BaseResponseSchema(TimestampSchema, IDSchema):
    """
    Base response schema with both ID and timestamp fields.
    Used for most API responses.
    """
    pass


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; convert aware input before it reaches the store."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
