from __future__ import annotations

import random
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import pytest

from salonbot.booking import BookingService
from salonbot.controller import DialogueController
from salonbot.models import Booking, BookingDetails, Salon
from salonbot.ports import BookingStore, Button, ChatPort, Extractor, SalonDirectory, Transcriber
from salonbot.store import MemoryStateStore


TZ = ZoneInfo("Asia/Kolkata")


def make_salon(**overrides) -> Salon:
    data = dict(
        id=7,
        name="Sharp & Co",
        starting_price=350,
        image_url="https://img.example/7.jpg",
        opening_time="09:00",
        closing_time="11:00",
        barber_count=1,
        latitude=12.97,
        longitude=77.59,
    )
    data.update(overrides)
    return Salon.model_validate(data)


class FakeChat(ChatPort):
    def __init__(self, photo_fails: bool = False) -> None:
        self.sent: List[Tuple[str, str, Sequence[Button]]] = []
        self.notifications: List[str] = []
        self.photo_fails = photo_fails
        self.typing_count = 0

    async def send_text(self, text: str, buttons: Sequence[Button] = (), columns: int = 1) -> None:
        self.sent.append(("text", text, list(buttons)))

    async def send_photo(self, url: str, caption: str, buttons: Sequence[Button] = ()) -> None:
        if self.photo_fails:
            raise RuntimeError("image unavailable")
        self.sent.append(("photo", caption, list(buttons)))

    async def request_location(self, text: str) -> None:
        self.sent.append(("location", text, []))

    async def remove_keyboard(self, text: str) -> None:
        self.sent.append(("text", text, []))

    async def typing(self) -> None:
        self.typing_count += 1

    async def notify(self, text: str) -> None:
        self.notifications.append(text)

    @property
    def texts(self) -> List[str]:
        return [text for _, text, _ in self.sent]

    @property
    def last_buttons(self) -> Sequence[Button]:
        return self.sent[-1][2]


class FakeDirectory(SalonDirectory, BookingStore):
    def __init__(self, salons: Sequence[Salon] = (), existing: Sequence[datetime] = ()) -> None:
        self.salons: Dict[int, Salon] = {s.id: s for s in salons}
        self.existing = list(existing)
        self.inserted: List[Booking] = []
        self.insert_ok = True
        self.nearby_calls: List[Tuple[float, float, int]] = []

    async def find_nearby(self, latitude: float, longitude: float, radius_meters: int = 5000) -> List[Salon]:
        self.nearby_calls.append((latitude, longitude, radius_meters))
        return list(self.salons.values())

    async def get_by_id(self, salon_id: int) -> Optional[Salon]:
        return self.salons.get(salon_id)

    async def list_booking_times(self, salon_id: int, day: date) -> List[datetime]:
        return list(self.existing)

    async def insert(self, booking: Booking) -> bool:
        if self.insert_ok:
            self.inserted.append(booking)
        return self.insert_ok


class FakeExtractor(Extractor):
    def __init__(self, *results: BookingDetails) -> None:
        self.results = list(results)
        self.texts: List[str] = []

    async def extract(self, text: str, now: datetime, tz) -> BookingDetails:
        self.texts.append(text)
        return self.results.pop(0) if self.results else BookingDetails()


class FakeTranscriber(Transcriber):
    def __init__(self, text: str = "") -> None:
        self.text = text

    async def transcribe(self, audio: bytes) -> str:
        return self.text


# 2030-05-10 08:00 в Калькутте
NOW = datetime(2030, 5, 10, 8, 0, tzinfo=TZ)
REQUESTED = datetime(2030, 5, 10, 15, 0, tzinfo=TZ)


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory([make_salon()])


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def make_controller(store, directory):
    def _make(extractor: Extractor | None = None, transcriber: Transcriber | None = None) -> DialogueController:
        return DialogueController(
            store=store,
            salons=directory,
            bookings=directory,
            extractor=extractor or FakeExtractor(),
            transcriber=transcriber or FakeTranscriber(),
            booking_service=BookingService(directory, directory, rng=random.Random(42)),
            tz=TZ,
            clock=lambda: NOW.astimezone(timezone.utc),
        )

    return _make


