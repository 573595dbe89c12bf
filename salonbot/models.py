"""
Pydantic models for the salon booking domain.

Pydantic-модели: салоны, брони, извлечённые из текста детали и состояние диалога.
"""

from __future__ import annotations

from datetime import datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


SERVICES = ("haircut", "beard trim", "coloring", "shave")


def parse_clock(value: str | time) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time of day."""
    if isinstance(value, time):
        return value
    return time.fromisoformat(value.strip())


class Salon(BaseModel):
    """Salon record as returned by the directory."""

    id: int
    name: str
    starting_price: float
    image_url: Optional[str] = None
    opening_time: time
    closing_time: time
    barber_count: int = Field(ge=1)
    latitude: float
    longitude: float

    @field_validator("opening_time", "closing_time", mode="before")
    @classmethod
    def _clock(cls, value: str | time) -> time:
        return parse_clock(value)

    @property
    def map_link(self) -> str:
        return f"https://www.google.com/maps?q={self.latitude},{self.longitude}"


class Booking(BaseModel):
    """Booking row written to storage. Never mutated after creation."""

    name: str
    service: str
    booking_time: datetime
    salon_id: int


class BookingDetails(BaseModel):
    """Best-effort extraction result. Absent fields are ``None``, never guessed."""

    service: Optional[str] = None
    date: Optional[datetime] = None
    name: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.service is not None and self.date is not None


class Awaiting(str, Enum):
    NONE = "none"
    DETAILS = "details"
    NAME = "name"


class ConversationState(BaseModel):
    """Per-user booking draft accumulated across turns."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    awaiting: Awaiting = Awaiting.NONE
    service: Optional[str] = None
    date: Optional[datetime] = None
    name: Optional[str] = None
    salon_id: Optional[int] = None


__all__ = [
    "SERVICES",
    "Salon",
    "Booking",
    "BookingDetails",
    "Awaiting",
    "ConversationState",
    "parse_clock",
]
