"""
Booking transaction.

Финальный шаг: повторно получаем салон, записываем бронь и собираем
подтверждение. Номер барбера и код нужны только для отображения.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional

from aiogram.utils.text_decorations import html_decoration as hd

from .models import Booking, Salon
from .ports import BookingStore, SalonDirectory


logger = logging.getLogger(__name__)


class SalonNotFound(Exception):
    """Salon disappeared between selection and booking."""


class BookingFailed(Exception):
    """Storage rejected the booking write."""


@dataclass(frozen=True)
class Confirmation:
    salon: Salon
    booking: Booking
    # Не гарантия расписания и не секрет: просто номер и код для показа в салоне
    barber_number: int
    code: int


class BookingService:
    """Commits exactly one booking per call. No retries, nothing to roll back."""

    def __init__(
        self,
        salons: SalonDirectory,
        bookings: BookingStore,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._salons = salons
        self._bookings = bookings
        self._rng = rng or random.Random()

    async def book(
        self, *, name: str, service: str, when: datetime, salon_id: int
    ) -> Confirmation:
        salon = await self._salons.get_by_id(salon_id)
        if salon is None:
            raise SalonNotFound(salon_id)

        booking = Booking(
            name=name,
            service=service,
            booking_time=when.astimezone(timezone.utc),
            salon_id=salon_id,
        )
        if not await self._bookings.insert(booking):
            raise BookingFailed(salon_id)

        logger.info("Booking saved: salon=%s at %s", salon_id, booking.booking_time.isoformat())
        return Confirmation(
            salon=salon,
            booking=booking,
            barber_number=self._rng.randint(1, salon.barber_count),
            code=self._rng.randint(1000, 9999),
        )


def format_when(moment: datetime, tz: tzinfo) -> str:
    """``Friday, August 15 at 3:00 PM`` in the given timezone."""
    local = moment.astimezone(tz)
    hour = local.hour % 12 or 12
    return f"{local:%A, %B} {local.day} at {hour}:{local:%M %p}"


def render_confirmation(confirmation: Confirmation, tz: tzinfo) -> str:
    """HTML confirmation text; every stored or user-provided value is escaped."""
    salon = confirmation.salon
    booking = confirmation.booking
    lines = [
        f"✅ {hd.bold('Booking Confirmed!')}",
        "",
        f"{hd.bold('Salon:')} {hd.quote(salon.name)}",
        f"{hd.bold('Service:')} {hd.quote(booking.service)}",
        f"{hd.bold('For:')} {hd.quote(booking.name)}",
        "",
        f"{hd.bold('Date & Time:')} {hd.quote(format_when(booking.booking_time, tz))}",
        f"{hd.bold('Assigned to:')} Barber #{confirmation.barber_number}",
        f"{hd.bold('Your OTP:')} {hd.bold(str(confirmation.code))}",
        "",
        f"{hd.bold('Location:')} {hd.link('View on Google Maps', salon.map_link)}",
        "",
        "Please show this confirmation and provide your OTP at the salon.",
    ]
    return "\n".join(lines)


__all__ = [
    "BookingService",
    "BookingFailed",
    "Confirmation",
    "SalonNotFound",
    "format_when",
    "render_confirmation",
]
