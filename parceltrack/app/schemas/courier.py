"""
Courier Pydantic schemas.

The courier PIN is accepted on creation but never returned.
"""

from pydantic import BaseModel, Field
from typing import List

from parceltrack.app.models.courier import Courier


class CourierCreate(BaseModel):
    """Schema for adding a courier."""
    name: str = Field(..., max_length=100)
    id: str = Field(..., max_length=50)
    pin: str = Field("", max_length=20, description="Numeric PIN, 4 digits recommended")


class CourierResponse(BaseModel):
    """Schema for courier response."""
    id: str
    name: str
    available: bool
    average_rating: float
    ratings_count: int

    @classmethod
    def from_courier(cls, courier: Courier) -> "CourierResponse":
        return cls(
            id=courier.id,
            name=courier.name,
            available=courier.available,
            average_rating=round(courier.average_rating, 2),
            ratings_count=courier.ratings_count,
        )


class CourierListResponse(BaseModel):
    couriers: List[CourierResponse]
    total: int


class CourierRatingResponse(BaseModel):
    """Average rating of a single courier."""
    courier_id: str
    average_rating: float
    ratings_count: int
