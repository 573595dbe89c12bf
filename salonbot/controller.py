"""
Dialogue controller: multi-turn booking flow.

Машина состояний диалога:
локация -> услуга/дата/имя -> выбор салона -> выбор слота -> бронь.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone, tzinfo
from typing import Awaitable, Callable, Optional

from aiogram.utils.text_decorations import html_decoration as hd

from .booking import BookingFailed, BookingService, SalonNotFound, render_confirmation
from .models import Awaiting
from .ports import BookingStore, Button, ChatPort, Extractor, SalonDirectory, Transcriber
from .slots import compute_slots
from .states import (
    AwaitingName,
    AwaitingSalon,
    AwaitingSlot,
    Initial,
    stage_of,
)
from .store import StateStore


logger = logging.getLogger(__name__)


SALON_PREFIX = "select_salon_"
TIME_PREFIX = "select_time_"

Clock = Callable[[], datetime]
AudioFetcher = Callable[[], Awaitable[bytes]]


def parse_salon_payload(payload: str) -> Optional[int]:
    if not payload.startswith(SALON_PREFIX):
        return None
    raw = payload[len(SALON_PREFIX):]
    # isdigit() alone also accepts "²" and other non-ASCII digits
    return int(raw) if raw.isascii() and raw.isdigit() else None


def parse_time_payload(payload: str) -> Optional[time]:
    if not payload.startswith(TIME_PREFIX):
        return None
    raw = payload[len(TIME_PREFIX):]
    try:
        return datetime.strptime(raw, "%H:%M").time()
    except ValueError:
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DialogueController:
    """Routes inbound events of one user into state transitions."""

    def __init__(
        self,
        store: StateStore,
        salons: SalonDirectory,
        bookings: BookingStore,
        extractor: Extractor,
        transcriber: Transcriber,
        booking_service: BookingService,
        tz: tzinfo,
        search_radius_meters: int = 5000,
        currency_symbol: str = "₹",
        clock: Clock = _utcnow,
    ) -> None:
        self.store = store
        self.salons = salons
        self.bookings = bookings
        self.extractor = extractor
        self.transcriber = transcriber
        self.booking_service = booking_service
        self.tz = tz
        self.search_radius_meters = search_radius_meters
        self.currency_symbol = currency_symbol
        self.clock = clock

    # region inbound events
    async def handle_start(self, chat: ChatPort, user_id: int) -> None:
        await self.store.delete(user_id)
        await chat.request_location("Welcome! 💇‍♂️ To find salons, please share your location.")

    async def handle_location(
        self, chat: ChatPort, user_id: int, latitude: float, longitude: float
    ) -> None:
        # Новая локация начинает черновик заново
        await self.store.delete(user_id)
        await self.store.set(
            user_id, latitude=latitude, longitude=longitude, awaiting=Awaiting.DETAILS
        )
        await chat.remove_keyboard(
            "Thanks! Now, what service would you like and for when? "
            '(e.g., "haircut for tomorrow for Alex")'
        )

    async def handle_text(self, chat: ChatPort, user_id: int, text: str) -> None:
        stage = stage_of(await self.store.get(user_id))

        if isinstance(stage, Initial):
            await chat.request_location(
                "I need your location to get started. Please use the button below."
            )
        elif isinstance(stage, AwaitingName):
            name = text.strip()
            if not name:
                await chat.send_text("Got it. And what name should I use for the booking?")
                return
            await self.store.set(user_id, name=name, awaiting=Awaiting.DETAILS)
            await self._show_nearby_salons(chat, stage.latitude, stage.longitude)
        else:
            await self._process_details(chat, user_id, text)

    async def handle_voice(self, chat: ChatPort, user_id: int, fetch_audio: AudioFetcher) -> None:
        try:
            audio = await fetch_audio()
        except Exception as e:  # noqa: BLE001
            logger.warning("Failed to download voice message of user %s: %s", user_id, e)
            audio = b""

        text = (await self.transcriber.transcribe(audio)).strip() if audio else ""
        if not text:
            await chat.send_text("Sorry, I had trouble with that voice message.")
            return

        await chat.send_text(f'I heard: "{hd.quote(text)}"')
        await self.handle_text(chat, user_id, text)

    async def handle_callback(self, chat: ChatPort, user_id: int, payload: str) -> None:
        stage = stage_of(await self.store.get(user_id))

        salon_id = parse_salon_payload(payload)
        if salon_id is not None and isinstance(stage, (AwaitingSalon, AwaitingSlot)):
            await self.store.set(user_id, salon_id=salon_id)
            await chat.notify("Fetching slots...")
            await self._show_available_slots(chat, salon_id, stage.date)
            return

        chosen = parse_time_payload(payload)
        if chosen is not None and isinstance(stage, AwaitingSlot):
            # Выбор слота одноразовый: повторное нажатие уже не найдёт состояния
            await self.store.delete(user_id)
            await chat.notify(f"Booking for {chosen:%H:%M}...")
            await self._book(chat, stage, chosen)
            return

        logger.debug("Ignoring callback %r from user %s in %s", payload, user_id, type(stage).__name__)

    # endregion

    # region flow steps
    async def _process_details(self, chat: ChatPort, user_id: int, text: str) -> None:
        await chat.typing()
        details = await self.extractor.extract(text, self.clock(), self.tz)

        if not details.complete:
            await chat.send_text(
                "I'm sorry, I didn't catch that. Please tell me the service and the date."
            )
            return

        fields = {"service": details.service, "date": details.date, "salon_id": None}
        if details.name:
            fields["name"] = details.name
        state = await self.store.set(user_id, **fields)
        stage = stage_of(state)

        if not isinstance(stage, AwaitingSalon):
            await self.store.set(user_id, awaiting=Awaiting.NAME)
            await chat.send_text("Got it. And what name should I use for the booking?")
            return

        await self._show_nearby_salons(chat, stage.latitude, stage.longitude)

    async def _show_nearby_salons(self, chat: ChatPort, latitude: float, longitude: float) -> None:
        await chat.send_text("Perfect! Searching for salons...")
        salons = await self.salons.find_nearby(latitude, longitude, self.search_radius_meters)

        if not salons:
            # Состояние не сбрасываем: пользователь может прислать детали заново
            km = self.search_radius_meters / 1000
            await chat.send_text(f"Sorry, I couldn’t find any salons within {km:g}km.")
            return

        await chat.send_text("Here are the best options. Please choose a salon to see available times:")
        for salon in salons:
            caption = (
                f"{hd.quote(salon.name)}\n"
                f"Starting Price: {hd.quote(self.currency_symbol)}{salon.starting_price:g}"
            )
            buttons = [Button("Choose & See Times 🕒", f"{SALON_PREFIX}{salon.id}")]
            if salon.image_url:
                try:
                    await chat.send_photo(salon.image_url, caption, buttons)
                    continue
                except Exception as e:  # noqa: BLE001
                    logger.warning("Failed to send photo for salon %s: %s", salon.id, e)
            await chat.send_text(caption, buttons)

    async def _show_available_slots(self, chat: ChatPort, salon_id: int, requested: datetime) -> None:
        salon = await self.salons.get_by_id(salon_id)
        if salon is None:
            await chat.send_text("Sorry, I couldn’t find details for that salon.")
            return

        day = requested.astimezone(self.tz).date()
        existing = await self.bookings.list_booking_times(salon_id, day)
        slots = compute_slots(salon, existing, day, self.clock(), self.tz)
        day_label = f"{day:%B} {day.day}"

        if not slots:
            await chat.send_text(
                f"Sorry, {hd.quote(salon.name)} has no available slots on {day_label}. "
                "Would you like to try another day?"
            )
            return

        await chat.send_text(
            f"Here are the available slots for {hd.quote(salon.name)} on {day_label}. "
            "Please choose a time:",
            [Button(slot, f"{TIME_PREFIX}{slot}") for slot in slots],
            columns=4,
        )

    async def _book(self, chat: ChatPort, stage: AwaitingSlot, chosen: time) -> None:
        day = stage.date.astimezone(self.tz).date()
        when = datetime.combine(day, chosen, tzinfo=self.tz)

        try:
            confirmation = await self.booking_service.book(
                name=stage.name,
                service=stage.service,
                when=when,
                salon_id=stage.salon_id,
            )
        except SalonNotFound:
            logger.warning("Salon %s vanished before booking", stage.salon_id)
            await chat.send_text("Sorry, an error occurred while fetching salon details.")
            return
        except BookingFailed:
            await chat.send_text("Sorry, there was an error saving your booking.")
            return

        await chat.send_text(render_confirmation(confirmation, self.tz))

    # endregion


__all__ = [
    "DialogueController",
    "SALON_PREFIX",
    "TIME_PREFIX",
    "parse_salon_payload",
    "parse_time_payload",
]
