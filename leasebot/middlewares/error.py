import logging
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import TelegramObject, Message, CallbackQuery, Update
from leasebot.utils.ui import UIMessages

class GlobalErrorMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception as e:
            logging.exception(f"Unhandled exception in bot update: {e}")

            if isinstance(event, Update):
                event = event.message or event.callback_query

            try:
                if isinstance(event, Message):
                    await event.answer(UIMessages.error("Something went wrong. Please try again later."))
                elif isinstance(event, CallbackQuery):
                    await event.answer("Something went wrong. Please try again later.", show_alert=True)
            except TelegramAPIError as send_error:
                logging.warning(f"Could not report error to user: {send_error}")

            # Keep polling alive; the exception is already logged
            return None
