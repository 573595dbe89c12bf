"""
Speech-to-text and booking-details extraction via Groq.

Groq предоставляет OpenAI-совместимый API, поэтому используем клиент openai.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, tzinfo
from typing import Any

from openai import AsyncOpenAI
from pydantic import ValidationError

from .config import GroqConfig
from .models import SERVICES, BookingDetails
from .ports import Extractor, Transcriber


logger = logging.getLogger(__name__)


def build_system_prompt(now: datetime, tz: tzinfo) -> str:
    services = ", ".join(f'"{s}"' for s in SERVICES)
    return (
        "You are an expert appointment booking assistant for a salon. "
        "Your goal is to extract the service type, date, and time from the user's message.\n"
        f"- Today's date is {now.isoformat()}.\n"
        f"- The current time zone is {tz}.\n"
        f"- The services available are: {services}.\n"
        "- If a name is provided, extract it.\n"
        "- If any information is missing, identify exactly what is needed.\n"
        "- Respond ONLY with a JSON object.\n"
        '- Example response for a complete request: '
        '{"service": "haircut", "date": "2025-08-15T15:00:00+05:30", "name": "Alex"}\n'
        '- Example response for an incomplete request: {"missing": "date and time"}\n'
        '- Example response if only a name is missing: {"missing": "name"}'
    )


def parse_details(content: str, tz: tzinfo) -> BookingDetails:
    """
    Turn raw model output into BookingDetails.

    Anything unparseable is dropped rather than guessed: unknown services,
    invalid dates and blank names become ``None``. Naive dates are read in ``tz``.
    """
    try:
        data: Any = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Extraction returned non-JSON content: %r", content)
        return BookingDetails()
    if not isinstance(data, dict):
        return BookingDetails()

    service = data.get("service")
    if isinstance(service, str):
        service = service.strip().lower()
    if service not in SERVICES:
        service = None

    name = data.get("name")
    name = name.strip() if isinstance(name, str) and name.strip() else None

    raw_date = data.get("date")
    try:
        date = BookingDetails(date=raw_date).date if isinstance(raw_date, str) else None
    except ValidationError:
        date = None
    if date is not None and date.tzinfo is None:
        date = date.replace(tzinfo=tz)

    return BookingDetails(service=service, date=date, name=name)


class GroqClient(Transcriber, Extractor):
    """Whisper transcription and LLaMA extraction over one AsyncOpenAI client."""

    def __init__(self, cfg: GroqConfig) -> None:
        self.cfg = cfg
        self.client = AsyncOpenAI(api_key=cfg.api_key, base_url=cfg.base_url)

    async def transcribe(self, audio: bytes) -> str:
        logger.info("Transcribing voice message (%s bytes)", len(audio))
        try:
            transcription = await self.client.audio.transcriptions.create(
                file=("voice.ogg", audio),
                model=self.cfg.transcription_model,
            )
        except Exception as e:  # noqa: BLE001
            logger.error("Error during transcription: %s", e)
            return ""
        logger.info("Transcription successful.")
        return transcription.text or ""

    async def extract(self, text: str, now: datetime, tz: tzinfo) -> BookingDetails:
        logger.info("Getting booking details for text: %r", text)
        try:
            completion = await self.client.chat.completions.create(
                model=self.cfg.extraction_model,
                messages=[
                    {"role": "system", "content": build_system_prompt(now, tz)},
                    {"role": "user", "content": text},
                ],
                temperature=self.cfg.temperature,
                response_format={"type": "json_object"},
            )
        except Exception as e:  # noqa: BLE001
            logger.error("Error getting booking details: %s", e)
            return BookingDetails()

        content = (completion.choices[0].message.content or "").strip() if completion.choices else ""
        if not content:
            return BookingDetails()
        logger.info("Extraction model responded with: %s", content)
        return parse_details(content, tz)

    async def close(self) -> None:
        await self.client.close()


__all__ = ["GroqClient", "build_system_prompt", "parse_details"]
