import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import select, func

from leasebot.database.models import Tenancy, TenancyStatus
from leasebot.services.tenancy_service import (
    create_tenancy, terminate_lease, terminate_active_leases_for_unit, get_active_tenancy,
    list_landlord_tenancies, list_tenant_tenancies, get_unit_tenancy_history, calculate_next_invoice_date,
)
from leasebot.utils.dates import ensure_utc

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def open_tenancy(session, landlord, prop, unit, tenant=None, name="", now=NOW):
    return await create_tenancy(
        session,
        landlord_id=landlord.id,
        property_id=prop.id,
        unit_id=unit.id,
        tenant_id=tenant.id if tenant else None,
        tenant_name=tenant.full_name if tenant else name,
        unit_name=unit.name,
        property_name=prop.name,
        rent_amount=unit.rent_amount,
        billing_cycle=unit.billing_cycle,
        now=now,
    )


async def count_active(session, unit_id):
    stmt = select(func.count()).select_from(Tenancy).where(
        Tenancy.unit_id == unit_id, Tenancy.status == TenancyStatus.active.value
    )
    return (await session.execute(stmt)).scalar_one()


def test_next_invoice_date_is_one_year_out():
    assert calculate_next_invoice_date(NOW) == datetime(2027, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_at_most_one_active_tenancy_per_unit(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, a2) = rental

    for i, occupant in enumerate([tenant, other_tenant, None, tenant]):
        await open_tenancy(async_session, landlord, prop, a1, occupant, name="Ghost", now=NOW + timedelta(days=i))
        assert await count_active(async_session, a1.id) == 1

    await open_tenancy(async_session, landlord, prop, a2, other_tenant)
    assert await count_active(async_session, a2.id) == 1
    assert await count_active(async_session, a1.id) == 1

    history = await get_unit_tenancy_history(async_session, prop.id, a1.id)
    assert len(history) == 4
    assert [t.status for t in history] == ["active", "former", "former", "former"]


@pytest.mark.asyncio
async def test_create_tenancy_fields(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    tenancy = await open_tenancy(async_session, landlord, prop, a1, tenant)

    await async_session.refresh(tenancy)
    assert tenancy.status == TenancyStatus.active.value
    assert ensure_utc(tenancy.start_date) == NOW
    assert ensure_utc(tenancy.next_invoice_date) == NOW + timedelta(days=365)
    assert tenancy.end_date is None
    assert tenancy.invoice_scheduling_enabled is True
    assert tenancy.currency == "NGN"


@pytest.mark.asyncio
async def test_terminate_lease_is_idempotent(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    tenancy = await open_tenancy(async_session, landlord, prop, a1, tenant)

    closed = await terminate_lease(async_session, tenancy.id, now=NOW + timedelta(days=30))
    again = await terminate_lease(async_session, tenancy.id, now=NOW + timedelta(days=60))

    assert again.status == TenancyStatus.former.value
    assert ensure_utc(again.end_date) == NOW + timedelta(days=30)
    assert ensure_utc(closed.closed_at) == NOW + timedelta(days=30)
    assert again.invoice_scheduling_enabled is False
    assert await get_active_tenancy(async_session, landlord.id, prop.id, a1.id) is None


@pytest.mark.asyncio
async def test_terminate_unknown_lease(async_session):
    with pytest.raises(ValueError):
        await terminate_lease(async_session, 424242)


@pytest.mark.asyncio
async def test_terminate_cleans_up_duplicate_actives(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, _) = rental
    # Two active rows written behind the service's back
    for occupant in (tenant, other_tenant):
        async_session.add(Tenancy(
            landlord_id=landlord.id, property_id=prop.id, unit_id=a1.id, tenant_id=occupant.id,
            status=TenancyStatus.active.value, start_date=NOW, rent_amount=0,
        ))
    await async_session.commit()

    closed = await terminate_active_leases_for_unit(async_session, landlord.id, prop.id, a1.id, now=NOW)

    assert len(closed) == 2
    assert await count_active(async_session, a1.id) == 0


@pytest.mark.asyncio
async def test_listings_are_newest_first(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, a2) = rental
    first = await open_tenancy(async_session, landlord, prop, a1, tenant, now=NOW)
    second = await open_tenancy(async_session, landlord, prop, a2, other_tenant, now=NOW + timedelta(days=1))
    third = await open_tenancy(async_session, landlord, prop, a1, tenant, now=NOW + timedelta(days=2))

    assert [t.id for t in await list_landlord_tenancies(async_session, landlord.id)] == [third.id, second.id, first.id]
    assert [t.id for t in await list_tenant_tenancies(async_session, tenant.id)] == [third.id, first.id]
    assert [t.id for t in await list_tenant_tenancies(async_session, other_tenant.id)] == [second.id]
    assert [t.id for t in await get_unit_tenancy_history(async_session, prop.id, a1.id)] == [third.id, first.id]

    active = await get_active_tenancy(async_session, landlord.id, prop.id, a1.id)
    assert active.id == third.id
