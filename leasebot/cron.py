import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from aiogram import html
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from leasebot.config import config
from leasebot.database.core import AsyncSessionLocal
from leasebot.database.models import Reminder
from leasebot.services.invite_token_service import expire_stale_tokens
from leasebot.services.invoice_service import generate_due_invoices, mark_overdue_invoices
from leasebot.services.notification_service import get_notification_service
from leasebot.services.reminder_service import schedule_reminders, mark_reminders_sent
from leasebot.utils.dates import utcnow
from leasebot.utils.ui import UIEmojis, format_amount, format_date


async def daily_job(session_factory: async_sessionmaker = AsyncSessionLocal, now: Optional[datetime] = None) -> dict:
    """Persist invite expiry, draft due invoices, flag overdue ones and queue reminders."""
    logging.info("Running daily job...")
    now = now or utcnow()

    async with session_factory() as session:
        expired = await expire_stale_tokens(session, now=now)

    async with session_factory() as session:
        invoices = await generate_due_invoices(session, now=now)

    async with session_factory() as session:
        overdue = await mark_overdue_invoices(session, now=now)

    async with session_factory() as session:
        reminders = await schedule_reminders(session, now=now)
        await deliver_reminders(session, reminders)

    logging.info(
        f"Daily job done: {expired} invites expired, {len(invoices)} invoices drafted, "
        f"{overdue} overdue, {len(reminders)} reminders"
    )
    return {
        "expired_tokens": expired,
        "invoices": len(invoices),
        "overdue": overdue,
        "reminders": len(reminders),
    }


async def deliver_reminders(session: AsyncSession, reminders: List[Reminder]) -> int:
    """Push queued reminders to Telegram. Without a running bot they stay pending."""
    service = get_notification_service()
    if not service or not reminders:
        return 0

    for reminder in reminders:
        text = (
            f"{UIEmojis.CALENDAR} <b>{html.quote(reminder.title)}</b>\n"
            f"{format_amount(reminder.amount, reminder.currency)} due {format_date(reminder.due_date)}"
        )
        await service.notify_by_id(session, reminder.user_id, text)
    await mark_reminders_sent(session, reminders)
    return len(reminders)


def seconds_until_next_run(now: datetime, hour: int) -> float:
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def scheduler_loop():
    """Run the daily job at SCHEDULER_HOUR (UTC)."""
    logging.info("Scheduler started.")

    # Initial delay to settle startup
    await asyncio.sleep(10)

    while True:
        try:
            wait_seconds = seconds_until_next_run(utcnow(), config.SCHEDULER_HOUR)
            logging.info(f"Next scheduler job in {wait_seconds/3600:.1f}h")
            await asyncio.sleep(wait_seconds)

            await daily_job()

            # Skip the rest of the current minute
            await asyncio.sleep(60)

        except Exception as e:
            logging.error(f"Error in scheduler loop: {e}")
            await asyncio.sleep(60)
