"""
Common data structures used across multiple schemas:
GeoJSON points with address/venue details, and the error envelope.
"""

from typing import List, Optional, Dict, Any, Literal
from datetime import datetime
from pydantic import Field, field_validator
from .base import BaseSchema


class Address(BaseSchema):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class Venue(BaseSchema):
    name: Optional[str] = None
    type: Optional[str] = None


class GeoPoint(BaseSchema):
    """
    GeoJSON point. Coordinates are [longitude, latitude].
    """
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator("coordinates")
    @classmethod
    def _check_coordinates(cls, v: List[float]) -> List[float]:
        if len(v) != 2:
            raise ValueError("Invalid coordinates")
        lon, lat = v
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            raise ValueError("Invalid coordinates")
        return v

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class Location(GeoPoint):
    """A session's place: point plus optional address and venue."""
    address: Optional[Address] = None
    venue: Optional[Venue] = None


class ErrorResponse(BaseSchema):
    """
    Standard error response format for API errors.
    """
    error: str = Field(..., description="Human-readable error message")
    error_code: str = Field(..., description="Machine-readable error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="When the error occurred (ISO 8601)")
