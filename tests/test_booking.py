from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest

from salonbot.booking import (
    BookingFailed,
    BookingService,
    Confirmation,
    SalonNotFound,
    format_when,
    render_confirmation,
)
from salonbot.models import Booking

from conftest import TZ, FakeDirectory, make_salon


WHEN = datetime(2030, 5, 10, 15, 30, tzinfo=TZ)


@pytest.mark.asyncio
async def test_book_assigns_barber_and_code_in_range():
    directory = FakeDirectory([make_salon(barber_count=3)])
    service = BookingService(directory, directory)

    for _ in range(50):
        confirmation = await service.book(name="Alex", service="haircut", when=WHEN, salon_id=7)
        assert confirmation.barber_number in {1, 2, 3}
        assert 1000 <= confirmation.code <= 9999


@pytest.mark.asyncio
async def test_book_writes_single_utc_row():
    directory = FakeDirectory([make_salon()])
    service = BookingService(directory, directory, rng=random.Random(1))

    confirmation = await service.book(name="Alex", service="shave", when=WHEN, salon_id=7)

    assert len(directory.inserted) == 1
    row = directory.inserted[0]
    assert row == confirmation.booking
    assert row.booking_time == datetime(2030, 5, 10, 10, 0, tzinfo=timezone.utc)
    assert row.booking_time.utcoffset().total_seconds() == 0
    assert (row.name, row.service, row.salon_id) == ("Alex", "shave", 7)


@pytest.mark.asyncio
async def test_missing_salon_raises_without_writing():
    directory = FakeDirectory([])
    service = BookingService(directory, directory)

    with pytest.raises(SalonNotFound):
        await service.book(name="Alex", service="shave", when=WHEN, salon_id=7)
    assert directory.inserted == []


@pytest.mark.asyncio
async def test_storage_failure_raises():
    directory = FakeDirectory([make_salon()])
    directory.insert_ok = False
    service = BookingService(directory, directory)

    with pytest.raises(BookingFailed):
        await service.book(name="Alex", service="shave", when=WHEN, salon_id=7)


def test_format_when_uses_full_names_in_timezone():
    assert format_when(WHEN.astimezone(timezone.utc), TZ) == "Friday, May 10 at 3:30 PM"
    assert format_when(datetime(2030, 5, 11, 0, 5, tzinfo=TZ), TZ) == "Saturday, May 11 at 12:05 AM"


def test_confirmation_escapes_user_fields():
    salon = make_salon(name="<b>Cuts</b> & Co")
    booking = Booking(name="Al <script>", service="haircut", booking_time=WHEN, salon_id=7)
    text = render_confirmation(Confirmation(salon, booking, barber_number=2, code=4821), TZ)

    assert "&lt;b&gt;Cuts&lt;/b&gt; &amp; Co" in text
    assert "Al &lt;script&gt;" in text
    assert "<script>" not in text
    assert "Barber #2" in text
    assert "<b>4821</b>" in text
    assert "Friday, May 10 at 3:30 PM" in text
    assert 'href="https://www.google.com/maps?q=12.97,77.59"' in text
