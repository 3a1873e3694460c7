import logging
from typing import List, Optional
from aiogram import Bot
from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import Notification, NotificationType, User


# --- Landlord inbox records ---

async def create_notification(
    session: AsyncSession,
    landlord_id: int,
    type: NotificationType,
    title: str,
    message: str = "",
    property_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
) -> Notification:
    """Stage a notification; the caller commits it with the rest of its transaction."""
    notification = Notification(
        landlord_id=landlord_id,
        type=type.value,
        title=title,
        message=message,
        property_id=property_id,
        unit_id=unit_id,
        tenant_id=tenant_id,
        read=False,
    )
    session.add(notification)
    return notification


async def clear_unit_request_notifications(
    session: AsyncSession,
    landlord_id: int,
    unit_id: int,
    tenant_id: Optional[int] = None,
) -> int:
    stmt = delete(Notification).where(
        Notification.landlord_id == landlord_id,
        Notification.type == NotificationType.unit_request.value,
        Notification.unit_id == unit_id,
    )
    if tenant_id is not None:
        stmt = stmt.where(Notification.tenant_id == tenant_id)
    result = await session.execute(stmt)
    return result.rowcount or 0


async def list_notifications(session: AsyncSession, landlord_id: int, unread_only: bool = False) -> List[Notification]:
    stmt = select(Notification).where(Notification.landlord_id == landlord_id)
    if unread_only:
        stmt = stmt.where(Notification.read == False)
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_all_read(session: AsyncSession, landlord_id: int) -> None:
    await session.execute(
        update(Notification)
        .where(Notification.landlord_id == landlord_id, Notification.read == False)
        .values(read=True)
    )
    await session.commit()


# --- Telegram delivery ---

class NotificationService:
    def __init__(self, bot: Bot):
        self.bot = bot

    async def notify_user(self, user: Optional[User], text: str):
        """Send a message to a registered user; ghost tenants have no chat."""
        if not user or not user.tg_id:
            return
        try:
            await self.bot.send_message(user.tg_id, text, parse_mode="HTML")
            logging.info(f"Notification sent to {user.tg_id}")
        except Exception as e:
            logging.warning(f"Failed to notify {user.tg_id}: {e}")

    async def notify_by_id(self, session: AsyncSession, user_id: Optional[int], text: str):
        if user_id is None:
            return
        await self.notify_user(await session.get(User, user_id), text)

notification_service = None

def setup_notifications(bot: Bot):
    global notification_service
    notification_service = NotificationService(bot)


def get_notification_service() -> Optional[NotificationService]:
    return notification_service
