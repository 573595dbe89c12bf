"""
Supabase-backed salon directory and booking store.

Доступ к Supabase: поиск салонов рядом (RPC), детали салона (RPC),
брони салона за день и запись новой брони.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, List, Optional

from pydantic import ValidationError
from supabase import AsyncClient, create_async_client

from .config import SupabaseConfig
from .models import Booking, Salon
from .ports import BookingStore, SalonDirectory


logger = logging.getLogger(__name__)


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Start and end of the calendar day in ``tz``, as UTC instants."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz) - timedelta(microseconds=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class SupabaseRepository(SalonDirectory, BookingStore):
    def __init__(self, cfg: SupabaseConfig, tz: tzinfo) -> None:
        self.cfg = cfg
        self.tz = tz
        self._client: Optional[AsyncClient] = None

    async def get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await create_async_client(self.cfg.url, self.cfg.anon_key)
            logger.info("Supabase async client initialized")
        return self._client

    async def find_nearby(
        self, latitude: float, longitude: float, radius_meters: int = 5000
    ) -> List[Salon]:
        try:
            client = await self.get_client()
            response = await client.rpc(
                "get_nearby_salons",
                {"lat": latitude, "long": longitude, "radius": radius_meters},
            ).execute()
            return [Salon.model_validate(row) for row in response.data or []]
        except Exception as e:  # noqa: BLE001
            logger.error("Error fetching nearby salons: %s", e)
            return []

    async def get_by_id(self, salon_id: int) -> Optional[Salon]:
        try:
            client = await self.get_client()
            response = await client.rpc(
                "get_salon_details", {"salon_id_input": salon_id}
            ).execute()
        except Exception as e:  # noqa: BLE001
            logger.error("Error fetching salon with ID %s: %s", salon_id, e)
            return None

        data: Any = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None
        try:
            return Salon.model_validate(data)
        except ValidationError as e:
            logger.error("Malformed salon %s: %s", salon_id, e)
            return None

    async def list_booking_times(self, salon_id: int, day: date) -> List[datetime]:
        start, end = day_bounds(day, self.tz)
        try:
            client = await self.get_client()
            response = await (
                client.table("bookings")
                .select("booking_time")
                .eq("salon_id", salon_id)
                .gte("booking_time", start.isoformat())
                .lte("booking_time", end.isoformat())
                .execute()
            )
            return [parse_timestamp(row["booking_time"]) for row in response.data or []]
        except Exception as e:  # noqa: BLE001
            logger.error("Error fetching bookings for salon %s on %s: %s", salon_id, day, e)
            return []

    async def insert(self, booking: Booking) -> bool:
        row = booking.model_dump(mode="json")
        try:
            client = await self.get_client()
            await client.table("bookings").insert([row]).execute()
        except Exception as e:  # noqa: BLE001
            logger.error("Failed to save booking %s: %s", row, e)
            return False
        logger.info("Booking saved successfully: %s", row)
        return True


__all__ = ["SupabaseRepository", "day_bounds", "parse_timestamp"]
