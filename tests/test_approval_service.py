import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import select

from leasebot.database.models import (
    Invoice, InvoiceStatus, InviteToken, InviteTokenStatus, Notification, NotificationType,
    Tenancy, TenancyStatus, UnitStatus,
)
from leasebot.services.approval_service import (
    request_unit_approval, approve_request, decline_request, record_move_out, assign_tenant,
)
from leasebot.services.errors import WorkflowError, PermissionDeniedError
from leasebot.services.invite_token_service import create_invite_token
from leasebot.services.tenancy_service import get_active_tenancy

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def tenancies_for(session, unit_id):
    result = await session.execute(select(Tenancy).where(Tenancy.unit_id == unit_id))
    return list(result.scalars().all())


async def notifications_for(session, landlord_id):
    result = await session.execute(select(Notification).where(Notification.landlord_id == landlord_id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_request_then_approve(async_session, landlord, tenant, rental):
    """vacant -> pending_approval -> occupied with an active tenancy"""
    prop, (a1, _) = rental

    unit = await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)
    assert unit.status == UnitStatus.pending_approval.value
    assert unit.pending_tenant_id == tenant.id
    assert unit.pending_tenant_name == "Tom Tenant"
    assert unit.pending_tenant_email == "tom@example.com"
    assert unit.pending_requested_at == NOW

    [notification] = await notifications_for(async_session, landlord.id)
    assert notification.type == NotificationType.unit_request.value
    assert notification.tenant_id == tenant.id
    assert notification.unit_id == a1.id

    tenancy = await approve_request(async_session, landlord.id, prop.id, a1.id, tenant.id, now=NOW + timedelta(hours=3))

    assert a1.status == UnitStatus.occupied.value
    assert a1.tenant_id == tenant.id
    assert a1.tenant_name == "Tom Tenant"
    assert a1.pending_tenant_id is None
    assert a1.pending_tenant_name is None
    assert a1.pending_tenant_email is None
    assert a1.pending_requested_at is None

    assert tenancy.status == TenancyStatus.active.value
    assert tenancy.tenant_id == tenant.id
    assert tenancy.unit_name == "A1"
    assert tenancy.property_name == "Sunset Villas"
    assert tenancy.start_date == NOW + timedelta(hours=3)
    assert tenancy.next_invoice_date == NOW + timedelta(hours=3, days=365)

    assert await notifications_for(async_session, landlord.id) == []


@pytest.mark.asyncio
async def test_request_then_decline(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)

    unit = await decline_request(async_session, landlord.id, prop.id, a1.id)

    assert unit.status == UnitStatus.vacant.value
    assert unit.pending_tenant_id is None
    assert unit.pending_tenant_name is None
    assert unit.pending_tenant_email is None
    assert unit.pending_requested_at is None
    assert await tenancies_for(async_session, a1.id) == []
    assert await notifications_for(async_session, landlord.id) == []


@pytest.mark.asyncio
async def test_declined_unit_accepts_new_request(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)
    await decline_request(async_session, landlord.id, prop.id, a1.id)

    unit = await request_unit_approval(async_session, landlord.id, prop.id, a1.id, other_tenant, now=NOW)
    assert unit.pending_tenant_id == other_tenant.id


@pytest.mark.asyncio
async def test_request_rejected_when_unit_taken(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)

    with pytest.raises(WorkflowError):
        await request_unit_approval(async_session, landlord.id, prop.id, a1.id, other_tenant, now=NOW)

    # Asking twice is harmless
    unit = await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)
    assert unit.pending_tenant_id == tenant.id
    assert len(await notifications_for(async_session, landlord.id)) == 1


@pytest.mark.asyncio
async def test_landlord_cannot_request_own_unit(async_session, landlord, rental):
    prop, (a1, _) = rental
    with pytest.raises(WorkflowError):
        await request_unit_approval(async_session, landlord.id, prop.id, a1.id, landlord, now=NOW)


@pytest.mark.asyncio
async def test_request_for_unknown_unit(async_session, landlord, tenant, rental):
    prop, _ = rental
    with pytest.raises(PermissionDeniedError):
        await request_unit_approval(async_session, landlord.id, prop.id, 9999, tenant, now=NOW)


@pytest.mark.asyncio
async def test_approve_checks_pending_tenant(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, a2) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)

    with pytest.raises(WorkflowError):
        await approve_request(async_session, landlord.id, prop.id, a1.id, other_tenant.id, now=NOW)
    assert a1.status == UnitStatus.pending_approval.value

    with pytest.raises(WorkflowError):
        await approve_request(async_session, landlord.id, prop.id, a2.id, tenant.id, now=NOW)


@pytest.mark.asyncio
async def test_second_approval_is_rejected(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)
    await approve_request(async_session, landlord.id, prop.id, a1.id, tenant.id, now=NOW)

    with pytest.raises(WorkflowError):
        await approve_request(async_session, landlord.id, prop.id, a1.id, tenant.id, now=NOW)

    assert len(await tenancies_for(async_session, a1.id)) == 1


@pytest.mark.asyncio
async def test_move_out_closes_tenancy_and_cancels_invoices(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, tenant, now=NOW)
    tenancy = await approve_request(async_session, landlord.id, prop.id, a1.id, tenant.id, now=NOW)

    for status in (InvoiceStatus.draft, InvoiceStatus.sent, InvoiceStatus.paid):
        async_session.add(Invoice(
            tenancy_id=tenancy.id, landlord_id=landlord.id, tenant_id=tenant.id,
            amount=tenancy.rent_amount, currency="NGN", status=status.value,
        ))
    await async_session.commit()

    closed = await record_move_out(async_session, landlord.id, prop.id, a1.id, now=NOW + timedelta(days=90))

    assert closed.id == tenancy.id
    assert closed.status == TenancyStatus.former.value
    assert closed.end_date == NOW + timedelta(days=90)
    assert closed.invoice_scheduling_enabled is False

    assert a1.status == UnitStatus.vacant.value
    assert a1.tenant_id is None
    assert a1.tenant_name == ""

    result = await async_session.execute(
        select(Invoice.status).where(Invoice.tenancy_id == tenancy.id).order_by(Invoice.id)
    )
    assert list(result.scalars().all()) == [
        InvoiceStatus.cancelled.value, InvoiceStatus.cancelled.value, InvoiceStatus.paid.value,
    ]

    [notification] = await notifications_for(async_session, landlord.id)
    assert notification.type == NotificationType.lease_end.value


@pytest.mark.asyncio
async def test_move_out_requires_occupied_unit(async_session, landlord, rental):
    prop, (a1, _) = rental
    with pytest.raises(WorkflowError):
        await record_move_out(async_session, landlord.id, prop.id, a1.id, now=NOW)


@pytest.mark.asyncio
async def test_assign_ghost_tenant(async_session, landlord, rental):
    prop, (a1, _) = rental
    link = await create_invite_token(
        async_session, landlord.id, prop.id, property_name=prop.name, unit_id=a1.id, unit_name=a1.name, now=NOW
    )

    tenancy = await assign_tenant(
        async_session, landlord.id, prop.id, a1.id, tenant_name="  Gary Ghost ", tenant_email="gary@example.com", now=NOW
    )

    assert tenancy.tenant_id is None
    assert tenancy.tenant_name == "Gary Ghost"
    assert tenancy.status == TenancyStatus.active.value
    assert a1.status == UnitStatus.occupied.value
    assert a1.tenant_id is None
    assert a1.tenant_email == "gary@example.com"

    invite = await async_session.get(InviteToken, link.token)
    await async_session.refresh(invite)
    assert invite.status == InviteTokenStatus.expired.value


@pytest.mark.asyncio
async def test_assign_registered_tenant_over_pending_request(async_session, landlord, tenant, other_tenant, rental):
    prop, (a1, _) = rental
    await request_unit_approval(async_session, landlord.id, prop.id, a1.id, other_tenant, now=NOW)

    tenancy = await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)

    assert tenancy.tenant_id == tenant.id
    assert a1.tenant_id == tenant.id
    assert a1.pending_tenant_id is None
    assert await notifications_for(async_session, landlord.id) == []


@pytest.mark.asyncio
async def test_assign_needs_name_or_email(async_session, landlord, rental):
    prop, (a1, _) = rental
    with pytest.raises(WorkflowError):
        await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant_name=" ", tenant_email="")
    assert a1.status == UnitStatus.vacant.value


@pytest.mark.asyncio
async def test_assign_refuses_occupied_unit(async_session, landlord, rental):
    prop, (a1, _) = rental
    await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant_name="Gary Ghost", now=NOW)

    with pytest.raises(WorkflowError):
        await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant_name="Second Ghost", now=NOW)

    active = await get_active_tenancy(async_session, landlord.id, prop.id, a1.id)
    assert active.tenant_name == "Gary Ghost"
