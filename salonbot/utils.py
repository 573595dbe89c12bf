"""
Utility helpers: logging setup and a retry decorator.

Вспомогательные функции: настройка логирования и ретраи.
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

from .config import LoggingConfig, get_settings


T = TypeVar("T")

QUIET_LOGGERS = ("httpx", "httpcore", "hpack")


def setup_logging(logging_cfg: LoggingConfig | None = None) -> None:
    """
    Configure application-wide logging with rotation.

    Настраивает логирование в файл с ротацией и вывод в консоль.
    """
    if logging_cfg is None:
        logging_cfg = get_settings().logging

    logs_dir: Path = logging_cfg.logs_dir
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "salonbot.log"

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=logging_cfg.max_bytes,
        backupCount=logging_cfg.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging_cfg.log_level.upper())
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    # httpx пишет каждый запрос к Groq/Supabase на INFO
    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def async_retry(
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Exponential backoff retry decorator for async functions.

    Only ``exceptions`` are retried; the last one is re-raised.

    Простой декоратор ретраев с экспоненциальной задержкой.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            delay = base_delay
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:  # type: ignore[misc]
                    attempt += 1
                    if attempt >= attempts:
                        raise
                    logging.getLogger(func.__module__).warning(
                        "Retrying %s after error %s (attempt %s/%s, delay %.1fs)",
                        func.__name__,
                        exc,
                        attempt,
                        attempts,
                        delay,
                    )
                    await sleep(delay)
                    delay = min(max_delay, delay * 2)

        return wrapper

    return decorator


__all__ = ["setup_logging", "async_retry"]
