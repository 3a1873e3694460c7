import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.config import config
from leasebot.database.models import (
    Tenancy, TenancyStatus, Invoice, InvoiceStatus, BillingCycle
)
from leasebot.services.live import publish_unit_change
from leasebot.utils.dates import utcnow

# Placeholder billing schedule: first invoice one year after move-in
NEXT_INVOICE_OFFSET = timedelta(days=365)


def calculate_next_invoice_date(now: datetime) -> datetime:
    return now + NEXT_INVOICE_OFFSET


async def create_tenancy(
    session: AsyncSession,
    *,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    tenant_id: Optional[int] = None,
    tenant_name: str = "",
    tenant_email: str = "",
    unit_name: str = "",
    property_name: str = "",
    rent_amount=0,
    billing_cycle: str = BillingCycle.monthly.value,
    currency: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Tenancy:
    """
    Open a new active tenancy for a unit.
    Any tenancy still active for the same unit is closed first, so at most
    one active record exists per (landlord, property, unit).
    """
    now = now or utcnow()

    await terminate_active_leases_for_unit(
        session, landlord_id, property_id, unit_id, now=now, commit=False
    )

    tenancy = Tenancy(
        landlord_id=landlord_id,
        property_id=property_id,
        unit_id=unit_id,
        tenant_id=tenant_id,
        tenant_name=tenant_name or "",
        tenant_email=tenant_email or "",
        unit_name=unit_name or "",
        property_name=property_name or "",
        rent_amount=Decimal(str(rent_amount or 0)),
        billing_cycle=billing_cycle or BillingCycle.monthly.value,
        currency=currency or config.DEFAULT_CURRENCY,
        status=TenancyStatus.active.value,
        start_date=now,
        end_date=None,
        closed_at=None,
        invoice_scheduling_enabled=True,
        next_invoice_date=calculate_next_invoice_date(now),
        created_at=now,
        updated_at=now,
    )
    session.add(tenancy)
    await session.flush()

    logging.info(f"Tenancy {tenancy.id} opened for unit {unit_id} (tenant {tenant_id or tenant_name})")

    if commit:
        await session.commit()
        await publish_unit_change(landlord_id, tenant_id, tenancy_changed=True)
    return tenancy


async def terminate_lease(
    session: AsyncSession,
    tenancy_id: int,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Tenancy:
    """
    Close a tenancy (move-out). The record is kept as history.
    Pending invoices are cancelled and no further invoices are scheduled.
    """
    stmt = select(Tenancy).where(Tenancy.id == tenancy_id).with_for_update()
    result = await session.execute(stmt)
    tenancy = result.scalar_one_or_none()

    if not tenancy:
        raise ValueError(f"Tenancy {tenancy_id} not found")

    if tenancy.status == TenancyStatus.former.value:
        logging.info(f"Tenancy {tenancy_id} already closed")
        return tenancy

    now = now or utcnow()
    tenancy.status = TenancyStatus.former.value
    tenancy.end_date = now
    tenancy.closed_at = now
    tenancy.invoice_scheduling_enabled = False
    tenancy.updated_at = now

    cancelled = await session.execute(
        update(Invoice)
        .where(
            Invoice.tenancy_id == tenancy_id,
            Invoice.status.in_([InvoiceStatus.draft.value, InvoiceStatus.sent.value]),
        )
        .values(status=InvoiceStatus.cancelled.value, updated_at=now)
    )
    if cancelled.rowcount:
        logging.info(f"Cancelled {cancelled.rowcount} pending invoices for tenancy {tenancy_id}")

    logging.info(f"Tenancy {tenancy_id} closed")

    if commit:
        await session.commit()
        await publish_unit_change(tenancy.landlord_id, tenancy.tenant_id, tenancy_changed=True)
    return tenancy


async def terminate_active_leases_for_unit(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> List[Tenancy]:
    """Close every active tenancy of a unit (normally there is at most one)."""
    stmt = select(Tenancy).where(
        Tenancy.landlord_id == landlord_id,
        Tenancy.property_id == property_id,
        Tenancy.unit_id == unit_id,
        Tenancy.status == TenancyStatus.active.value,
    )
    result = await session.execute(stmt)
    active = list(result.scalars().all())

    closed = []
    for tenancy in active:
        closed.append(await terminate_lease(session, tenancy.id, now=now, commit=False))

    if commit and closed:
        await session.commit()
        for tenancy in closed:
            await publish_unit_change(landlord_id, tenancy.tenant_id, tenancy_changed=True)
    return closed


async def get_active_tenancy(
    session: AsyncSession, landlord_id: int, property_id: int, unit_id: int
) -> Optional[Tenancy]:
    stmt = (
        select(Tenancy)
        .where(
            Tenancy.landlord_id == landlord_id,
            Tenancy.property_id == property_id,
            Tenancy.unit_id == unit_id,
            Tenancy.status == TenancyStatus.active.value,
        )
        .order_by(Tenancy.created_at.desc(), Tenancy.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_landlord_tenancies(session: AsyncSession, landlord_id: int) -> List[Tenancy]:
    stmt = (
        select(Tenancy)
        .where(Tenancy.landlord_id == landlord_id)
        .order_by(Tenancy.created_at.desc(), Tenancy.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_tenant_tenancies(session: AsyncSession, tenant_id: int) -> List[Tenancy]:
    """Active and former tenancies of a tenant, newest first."""
    stmt = (
        select(Tenancy)
        .where(Tenancy.tenant_id == tenant_id)
        .order_by(Tenancy.created_at.desc(), Tenancy.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_unit_tenancy_history(session: AsyncSession, property_id: int, unit_id: int) -> List[Tenancy]:
    stmt = (
        select(Tenancy)
        .where(Tenancy.property_id == property_id, Tenancy.unit_id == unit_id)
        .order_by(Tenancy.created_at.desc(), Tenancy.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
