import logging
from datetime import datetime, timedelta
from typing import List, Optional
from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import BillingCycle, Invoice, InvoiceStatus, Tenancy, TenancyStatus
from leasebot.utils.dates import utcnow, ensure_utc


def advance_invoice_date(billing_cycle: Optional[str], from_date: datetime) -> datetime:
    """Next due date one billing period after `from_date`. Unknown cycles bill monthly."""
    if billing_cycle == BillingCycle.daily.value:
        return from_date + timedelta(days=1)
    if billing_cycle == BillingCycle.weekly.value:
        return from_date + timedelta(weeks=1)
    if billing_cycle == BillingCycle.yearly.value:
        return from_date + relativedelta(years=1)
    # relativedelta clamps to the last day of shorter months
    return from_date + relativedelta(months=1)


async def generate_due_invoices(session: AsyncSession, now: Optional[datetime] = None) -> List[Invoice]:
    """
    Draft one invoice for every active tenancy whose scheduled date has come,
    then move the schedule forward.
    """
    now = now or utcnow()
    stmt = select(Tenancy).where(
        Tenancy.status == TenancyStatus.active.value,
        Tenancy.invoice_scheduling_enabled == True,
        Tenancy.next_invoice_date.is_not(None),
    ).with_for_update()
    result = await session.execute(stmt)

    created = []
    for tenancy in result.scalars().all():
        due = ensure_utc(tenancy.next_invoice_date)
        if due > now:
            continue

        invoice = Invoice(
            tenancy_id=tenancy.id,
            landlord_id=tenancy.landlord_id,
            tenant_id=tenancy.tenant_id,
            amount=tenancy.rent_amount,
            currency=tenancy.currency,
            status=InvoiceStatus.draft.value,
            due_date=due,
            created_at=now,
            updated_at=now,
        )
        session.add(invoice)
        tenancy.next_invoice_date = advance_invoice_date(tenancy.billing_cycle, due)
        tenancy.updated_at = now
        created.append(invoice)

    if created:
        await session.commit()
        logging.info(f"Drafted {len(created)} invoices")
    return created


async def list_tenancy_invoices(session: AsyncSession, tenancy_id: int) -> List[Invoice]:
    stmt = select(Invoice).where(Invoice.tenancy_id == tenancy_id).order_by(Invoice.created_at.desc(), Invoice.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_landlord_invoices(session: AsyncSession, landlord_id: int, status: Optional[InvoiceStatus] = None) -> List[Invoice]:
    stmt = select(Invoice).where(Invoice.landlord_id == landlord_id)
    if status is not None:
        stmt = stmt.where(Invoice.status == status.value)
    stmt = stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_overdue_invoices(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Sent invoices past their due date become overdue."""
    now = now or utcnow()
    result = await session.execute(
        update(Invoice)
        .where(
            Invoice.status == InvoiceStatus.sent.value,
            Invoice.due_date.is_not(None),
            Invoice.due_date < now,
        )
        .values(status=InvoiceStatus.overdue.value, updated_at=now)
        .execution_options(synchronize_session="fetch")
    )
    await session.commit()
    count = result.rowcount or 0
    if count:
        logging.info(f"Marked {count} invoices overdue")
    return count
