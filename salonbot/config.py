"""
Config loading via Pydantic v2 and python-dotenv.

Загрузка конфигурации из .env и базовая валидация.
"""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Явно загружаем переменные окружения из .env, если файл существует
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)


class BotConfig(BaseModel):
    token: str = Field(min_length=1)


class GroqConfig(BaseModel):
    api_key: str = Field(min_length=1)
    base_url: str = "https://api.groq.com/openai/v1"
    transcription_model: str = "whisper-large-v3"
    extraction_model: str = "llama-3.1-8b-instant"
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)


class SupabaseConfig(BaseModel):
    url: str = Field(min_length=1)
    anon_key: str = Field(min_length=1)


class BookingConfig(BaseModel):
    timezone: str = "Asia/Kolkata"
    search_radius_meters: int = Field(default=5000, gt=0)
    currency_symbol: str = "₹"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class LoggingConfig(BaseModel):
    logs_dir: Path = Field(default_factory=lambda: BASE_DIR / "logs")
    log_level: str = Field(default="INFO")
    max_bytes: int = Field(default=5 * 1024 * 1024)  # 5 MB
    backup_count: int = Field(default=5)


class Settings(BaseModel):
    bot: BotConfig
    groq: GroqConfig
    supabase: SupabaseConfig
    booking: BookingConfig = BookingConfig()
    logging: LoggingConfig = LoggingConfig()


@lru_cache
def get_settings() -> Settings:
    """
    Load and cache settings.

    Raises ValidationError if .env is incomplete or invalid.
    """
    # Собираем значения из окружения вручную, чтобы не зависеть от pydantic-settings
    env = os.environ

    try:
        bot = BotConfig(token=env.get("TELEGRAM_BOT_TOKEN", ""))
        groq = GroqConfig(
            api_key=env.get("GROQ_API_KEY", ""),
            base_url=env.get("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
            transcription_model=env.get("GROQ_TRANSCRIPTION_MODEL", "whisper-large-v3"),
            extraction_model=env.get("GROQ_EXTRACTION_MODEL", "llama-3.1-8b-instant"),
        )
        supabase = SupabaseConfig(
            url=env.get("SUPABASE_URL", ""),
            anon_key=env.get("SUPABASE_ANON_KEY", ""),
        )
        booking = BookingConfig(
            timezone=env.get("BOOKING_TIMEZONE", "Asia/Kolkata"),
            search_radius_meters=int(env.get("SEARCH_RADIUS_METERS", "5000")),
            currency_symbol=env.get("CURRENCY_SYMBOL", "₹"),
        )
        logging_cfg = LoggingConfig(log_level=env.get("LOG_LEVEL", "INFO"))
        if env.get("LOGS_DIR"):
            logging_cfg = LoggingConfig(
                logs_dir=Path(env["LOGS_DIR"]),
                log_level=env.get("LOG_LEVEL", "INFO"),
            )
        return Settings(
            bot=bot,
            groq=groq,
            supabase=supabase,
            booking=booking,
            logging=logging_cfg,
        )
    except ValidationError:
        # Пробрасываем дальше, чтобы верхний уровень мог вывести аккуратную ошибку
        raise


__all__ = ["Settings", "get_settings", "BASE_DIR"]
