"""
Bookable slot computation.

Расчёт свободных слотов салона на день: часы работы, вместимость
(число барберов) и отсечение уже прошедшего времени.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, List

from .models import Salon


SLOT_STEP = timedelta(minutes=30)


def _as_utc(moment: datetime, tz: tzinfo) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return moment.astimezone(timezone.utc)


def compute_slots(
    salon: Salon,
    existing: Iterable[datetime],
    target_date: date,
    now: datetime,
    tz: tzinfo,
) -> List[str]:
    """
    Return available ``HH:MM`` slots for ``salon`` on ``target_date``.

    Opening and closing times are anchored to the calendar day in ``tz``.
    A slot is offered while fewer than ``barber_count`` bookings start at the
    exact same instant and the slot lies strictly after ``now``. Closing time
    itself is never offered. Naive timestamps are read as ``tz`` local time.
    """
    opening = datetime.combine(target_date, salon.opening_time, tzinfo=tz)
    closing = datetime.combine(target_date, salon.closing_time, tzinfo=tz)
    # Шагаем в UTC, чтобы переход на летнее время не сдвигал сетку
    slot = opening.astimezone(timezone.utc)
    end = closing.astimezone(timezone.utc)
    now_utc = _as_utc(now, tz)

    taken = Counter(_as_utc(ts, tz) for ts in existing)

    available: List[str] = []
    while slot < end:
        if taken[slot] < salon.barber_count and slot > now_utc:
            available.append(slot.astimezone(tz).strftime("%H:%M"))
        slot += SLOT_STEP
    return available


__all__ = ["SLOT_STEP", "compute_slots"]
