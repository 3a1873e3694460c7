"""
Reminder Service - upcoming rent due dates

Once a day, every unpaid invoice due in 30, 7 or 1 days gets a reminder for the
landlord and, when the tenant has an account, for the tenant. A reminder is
written at most once per invoice, audience and lead time.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import (
    Invoice, InvoiceStatus, Reminder, ReminderAudience, ReminderStatus, Tenancy,
)
from leasebot.utils.dates import utcnow, ensure_utc

REMINDER_DAYS = (30, 7, 1)


def due_label(days_before: int) -> str:
    if days_before == 1:
        return "tomorrow"
    return f"in {days_before} days"


def _day_window(now: datetime, days_before: int):
    start = (now + timedelta(days=days_before)).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def _existing_keys(session: AsyncSession, invoice_ids: List[int]) -> set:
    if not invoice_ids:
        return set()
    stmt = select(Reminder.invoice_id, Reminder.audience, Reminder.days_before).where(
        Reminder.invoice_id.in_(invoice_ids)
    )
    result = await session.execute(stmt)
    return {tuple(row) for row in result.all()}


async def schedule_reminders(session: AsyncSession, now: Optional[datetime] = None) -> List[Reminder]:
    now = now or utcnow()
    created = []

    for days_before in REMINDER_DAYS:
        start, end = _day_window(now, days_before)
        stmt = (
            select(Invoice, Tenancy)
            .join(Tenancy, Tenancy.id == Invoice.tenancy_id)
            .where(
                Invoice.status.in_([InvoiceStatus.sent.value, InvoiceStatus.overdue.value]),
                Invoice.due_date >= start,
                Invoice.due_date < end,
            )
        )
        rows = (await session.execute(stmt)).all()
        seen = await _existing_keys(session, [invoice.id for invoice, _ in rows])

        for invoice, tenancy in rows:
            place = tenancy.unit_name or tenancy.property_name
            recipients = [(ReminderAudience.landlord, invoice.landlord_id, f"Rent due {due_label(days_before)} - {place}")]
            if invoice.tenant_id:
                recipients.append(
                    (ReminderAudience.tenant, invoice.tenant_id, f"Rent payment due {due_label(days_before)} - {place}")
                )

            for audience, user_id, title in recipients:
                if (invoice.id, audience.value, days_before) in seen:
                    continue
                reminder = Reminder(
                    invoice_id=invoice.id,
                    tenancy_id=invoice.tenancy_id,
                    user_id=user_id,
                    audience=audience.value,
                    days_before=days_before,
                    title=title,
                    amount=invoice.amount,
                    currency=invoice.currency,
                    due_date=ensure_utc(invoice.due_date),
                    status=ReminderStatus.pending.value,
                    created_at=now,
                )
                session.add(reminder)
                created.append(reminder)

    if created:
        await session.commit()
        logging.info(f"Scheduled {len(created)} rent reminders")
    return created


async def list_pending_reminders(session: AsyncSession, user_id: int) -> List[Reminder]:
    stmt = select(Reminder).where(
        Reminder.user_id == user_id, Reminder.status == ReminderStatus.pending.value
    ).order_by(Reminder.due_date, Reminder.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_reminders_sent(session: AsyncSession, reminders: List[Reminder]) -> None:
    for reminder in reminders:
        reminder.status = ReminderStatus.sent.value
    await session.commit()
