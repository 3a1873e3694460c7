from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from sqlalchemy.ext.asyncio import AsyncSession
from leasebot.services.session_context import SessionContext
from leasebot.services.user_service import get_or_create_user

class AuthMiddleware(BaseMiddleware):
    """
    Resolves the Telegram sender to an account and hands handlers a
    SessionContext (data["ctx"]) plus the user itself (data["user"]).
    The context is detached when the update is done.
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        ctx = SessionContext()
        data["ctx"] = ctx

        tg_user = data.get("event_from_user")
        session: AsyncSession = data.get("session")
        if tg_user and session is not None and not tg_user.is_bot:
            user = await get_or_create_user(session, tg_user)
            ctx.attach(user)
            data["user"] = user

        try:
            return await handler(event, data)
        finally:
            ctx.detach()
