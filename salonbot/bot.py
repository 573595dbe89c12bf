"""
Telegram bot entrypoint built with aiogram 3.

Основной модуль Telegram-бота:
- /start, локация, текст, голос, нажатия inline-кнопок
- адаптер ChatPort поверх aiogram
- мидлвара, которая обрабатывает апдейты одного пользователя по очереди
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from aiogram import BaseMiddleware, Bot, Dispatcher, F
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ChatAction, ParseMode
from aiogram.exceptions import TelegramNetworkError, TelegramServerError
from aiogram.filters import CommandStart
from aiogram.types import (
    CallbackQuery,
    ErrorEvent,
    InlineKeyboardMarkup,
    KeyboardButton,
    Message,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    TelegramObject,
)
from aiogram.utils.keyboard import InlineKeyboardBuilder

from .booking import BookingService
from .config import get_settings
from .controller import DialogueController
from .database import SupabaseRepository
from .llm import GroqClient
from .ports import Button, ChatPort
from .store import MemoryStateStore
from .utils import async_retry, setup_logging


logger = logging.getLogger(__name__)


class PerUserSerialMiddleware(BaseMiddleware):
    """Process updates of the same user one at a time."""

    def __init__(self) -> None:
        super().__init__()
        self._locks: Dict[int, asyncio.Lock] = {}
        self._pending: Dict[int, int] = {}

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return await handler(event, data)

        lock = self._locks.setdefault(user.id, asyncio.Lock())
        self._pending[user.id] = self._pending.get(user.id, 0) + 1
        try:
            async with lock:
                return await handler(event, data)
        finally:
            self._pending[user.id] -= 1
            # Замки без ожидающих удаляем, чтобы таблица не росла
            if not self._pending[user.id]:
                del self._pending[user.id]
                del self._locks[user.id]


def location_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text="📍 Share My Location", request_location=True)]],
        resize_keyboard=True,
    )


def inline_keyboard(buttons: Sequence[Button], columns: int = 1) -> Optional[InlineKeyboardMarkup]:
    if not buttons:
        return None
    builder = InlineKeyboardBuilder()
    for button in buttons:
        builder.button(text=button.text, callback_data=button.payload)
    builder.adjust(columns)
    return builder.as_markup()


class TelegramChat(ChatPort):
    """ChatPort bound to one chat and, for button presses, one callback query."""

    def __init__(self, bot: Bot, chat_id: int, callback: Optional[CallbackQuery] = None) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.callback = callback
        self.answered = False

    async def send_text(self, text: str, buttons: Sequence[Button] = (), columns: int = 1) -> None:
        await self.bot.send_message(
            chat_id=self.chat_id,
            text=text,
            reply_markup=inline_keyboard(buttons, columns),
        )

    async def send_photo(self, url: str, caption: str, buttons: Sequence[Button] = ()) -> None:
        await self.bot.send_photo(
            chat_id=self.chat_id,
            photo=url,
            caption=caption,
            reply_markup=inline_keyboard(buttons),
        )

    async def request_location(self, text: str) -> None:
        await self.bot.send_message(chat_id=self.chat_id, text=text, reply_markup=location_keyboard())

    async def remove_keyboard(self, text: str) -> None:
        await self.bot.send_message(chat_id=self.chat_id, text=text, reply_markup=ReplyKeyboardRemove())

    async def typing(self) -> None:
        await self.bot.send_chat_action(chat_id=self.chat_id, action=ChatAction.TYPING)

    async def notify(self, text: str) -> None:
        if self.callback is not None and not self.answered:
            self.answered = True
            await self.callback.answer(text)

    async def finish(self) -> None:
        """Answer the callback silently if nothing else did."""
        if self.callback is not None and not self.answered:
            self.answered = True
            await self.callback.answer()


def build_dispatcher(controller: DialogueController) -> Dispatcher:
    dp = Dispatcher()
    dp.update.outer_middleware(PerUserSerialMiddleware())

    @dp.message(CommandStart())
    async def cmd_start(message: Message, bot: Bot) -> None:
        await controller.handle_start(TelegramChat(bot, message.chat.id), message.from_user.id)

    @dp.message(F.location)
    async def on_location(message: Message, bot: Bot) -> None:
        await controller.handle_location(
            TelegramChat(bot, message.chat.id),
            message.from_user.id,
            message.location.latitude,
            message.location.longitude,
        )

    @dp.message(F.voice)
    async def on_voice(message: Message, bot: Bot) -> None:
        @async_retry(attempts=3, exceptions=(TelegramNetworkError, TelegramServerError))
        async def fetch_audio() -> bytes:
            buffer = await bot.download(message.voice)
            return buffer.read() if buffer is not None else b""

        await controller.handle_voice(
            TelegramChat(bot, message.chat.id), message.from_user.id, fetch_audio
        )

    @dp.message(F.text)
    async def on_text(message: Message, bot: Bot) -> None:
        await controller.handle_text(TelegramChat(bot, message.chat.id), message.from_user.id, message.text)

    @dp.callback_query(F.data)
    async def on_callback(callback: CallbackQuery, bot: Bot) -> None:
        chat_id = callback.message.chat.id if callback.message else callback.from_user.id
        chat = TelegramChat(bot, chat_id, callback)
        try:
            await controller.handle_callback(chat, callback.from_user.id, callback.data)
        finally:
            await chat.finish()

    @dp.errors()
    async def on_error(event: ErrorEvent) -> bool:
        logger.error("Unhandled error while processing update", exc_info=event.exception)
        return True

    return dp


def main() -> None:
    """Entry point for running the bot."""
    settings = get_settings()
    setup_logging()

    bot = Bot(
        settings.bot.token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    repository = SupabaseRepository(settings.supabase, settings.booking.tz)
    groq = GroqClient(settings.groq)
    controller = DialogueController(
        store=MemoryStateStore(),
        salons=repository,
        bookings=repository,
        extractor=groq,
        transcriber=groq,
        booking_service=BookingService(repository, repository),
        tz=settings.booking.tz,
        search_radius_meters=settings.booking.search_radius_meters,
        currency_symbol=settings.booking.currency_symbol,
    )
    dp = build_dispatcher(controller)

    logger.info("Starting polling")
    asyncio.run(_run_polling(dp, bot, groq))


async def _run_polling(dp: Dispatcher, bot: Bot, groq: GroqClient) -> None:
    try:
        await dp.start_polling(bot)
    finally:
        await groq.close()
        await bot.session.close()


if __name__ == "__main__":
    main()
