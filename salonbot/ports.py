"""
Collaborator interfaces used by the dialogue core.

Интерфейсы внешних зависимостей: чат, распознавание речи,
извлечение деталей из текста, справочник салонов и хранилище броней.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import List, Optional, Sequence

from .models import Booking, BookingDetails, Salon


@dataclass(frozen=True)
class Button:
    text: str
    payload: str


class ChatPort(ABC):
    """Outbound side of the chat with one user."""

    @abstractmethod
    async def send_text(
        self,
        text: str,
        buttons: Sequence[Button] = (),
        columns: int = 1,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_photo(
        self,
        url: str,
        caption: str,
        buttons: Sequence[Button] = (),
    ) -> None:
        """Send an image by URL. Raises if the image cannot be delivered."""
        raise NotImplementedError

    @abstractmethod
    async def request_location(self, text: str) -> None:
        """Send text with a one-button "share location" keyboard."""
        raise NotImplementedError

    @abstractmethod
    async def remove_keyboard(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def typing(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def notify(self, text: str) -> None:
        """Short toast answering a button press."""
        raise NotImplementedError


class Transcriber(ABC):
    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        """Return recognized text, or an empty string on failure. Never raises."""
        raise NotImplementedError


class Extractor(ABC):
    @abstractmethod
    async def extract(self, text: str, now: datetime, tz: tzinfo) -> BookingDetails:
        raise NotImplementedError


class SalonDirectory(ABC):
    @abstractmethod
    async def find_nearby(
        self, latitude: float, longitude: float, radius_meters: int = 5000
    ) -> List[Salon]:
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, salon_id: int) -> Optional[Salon]:
        raise NotImplementedError


class BookingStore(ABC):
    @abstractmethod
    async def list_booking_times(self, salon_id: int, day: date) -> List[datetime]:
        """All booking start times of the salon on the given calendar day."""
        raise NotImplementedError

    @abstractmethod
    async def insert(self, booking: Booking) -> bool:
        raise NotImplementedError


__all__ = [
    "Button",
    "ChatPort",
    "Transcriber",
    "Extractor",
    "SalonDirectory",
    "BookingStore",
]
