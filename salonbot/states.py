"""
Dialogue stages derived from the stored conversation record.

Каждая стадия несёт ровно те поля, которые в ней гарантированно заполнены,
поэтому контроллеру не нужно проверять Optional-поля вручную.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from .models import Awaiting, ConversationState


@dataclass(frozen=True)
class Initial:
    """No location shared yet."""


@dataclass(frozen=True)
class AwaitingDetails:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class AwaitingName:
    latitude: float
    longitude: float
    service: str
    date: datetime


@dataclass(frozen=True)
class AwaitingSalon:
    latitude: float
    longitude: float
    service: str
    date: datetime
    name: str


@dataclass(frozen=True)
class AwaitingSlot:
    latitude: float
    longitude: float
    service: str
    date: datetime
    name: str
    salon_id: int


Stage = Union[Initial, AwaitingDetails, AwaitingName, AwaitingSalon, AwaitingSlot]


def stage_of(state: Optional[ConversationState]) -> Stage:
    """Classify a stored record into the stage the dialogue is in."""
    if state is None or state.latitude is None or state.longitude is None:
        return Initial()
    lat, lon = state.latitude, state.longitude

    if state.service is None or state.date is None:
        return AwaitingDetails(lat, lon)
    if state.awaiting is Awaiting.NAME or state.name is None:
        return AwaitingName(lat, lon, state.service, state.date)
    if state.salon_id is None:
        return AwaitingSalon(lat, lon, state.service, state.date, state.name)
    return AwaitingSlot(lat, lon, state.service, state.date, state.name, state.salon_id)


__all__ = [
    "Initial",
    "AwaitingDetails",
    "AwaitingName",
    "AwaitingSalon",
    "AwaitingSlot",
    "Stage",
    "stage_of",
]
