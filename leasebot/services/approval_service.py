"""
Approval workflow for unit occupancy.

    vacant --request--> pending_approval --approve--> occupied
                                         --decline--> vacant
    occupied --move-out--> vacant

Every transition locks the unit row and commits the unit, tenancy and
notification changes together.
"""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import Unit, UnitStatus, User, Property, Tenancy, NotificationType
from leasebot.services.errors import WorkflowError, PermissionDeniedError
from leasebot.services.invite_token_service import revoke_pending_tokens_for_unit
from leasebot.services.live import publish_unit_change
from leasebot.services.notification_service import (
    create_notification, clear_unit_request_notifications
)
from leasebot.services.tenancy_service import (
    create_tenancy, get_active_tenancy, terminate_lease
)
from leasebot.services.unit_service import (
    get_unit, clear_pending, clear_occupant, validate_occupancy
)
from leasebot.utils.dates import utcnow


async def _locked_unit(session: AsyncSession, landlord_id: int, property_id: int, unit_id: int) -> Unit:
    unit = await get_unit(session, landlord_id, property_id, unit_id, lock=True)
    if not unit:
        raise PermissionDeniedError("Unit not found.")
    return unit


async def request_unit_approval(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    tenant: User,
    now: Optional[datetime] = None,
) -> Unit:
    """Tenant asks to join a vacant unit; the landlord gets a unit_request notification."""
    if tenant is None or tenant.id is None:
        raise PermissionDeniedError("Please sign in to request a unit.")
    if tenant.id == landlord_id:
        raise WorkflowError("You can't request your own unit.")

    now = now or utcnow()
    unit = await _locked_unit(session, landlord_id, property_id, unit_id)

    if unit.status == UnitStatus.pending_approval.value and unit.pending_tenant_id == tenant.id:
        return unit
    if unit.status != UnitStatus.vacant.value:
        raise WorkflowError(f"{unit.name} is not available.")

    unit.status = UnitStatus.pending_approval.value
    unit.pending_tenant_id = tenant.id
    unit.pending_tenant_name = tenant.full_name or ""
    unit.pending_tenant_email = tenant.email or ""
    unit.pending_requested_at = now
    unit.updated_at = now
    validate_occupancy(unit)

    await create_notification(
        session,
        landlord_id,
        NotificationType.unit_request,
        title="New unit request",
        message=f"{tenant.full_name or 'A tenant'} requested to join {unit.name}.",
        property_id=property_id,
        unit_id=unit_id,
        tenant_id=tenant.id,
    )
    await session.commit()

    logging.info(f"Tenant {tenant.id} requested unit {unit_id}")
    await publish_unit_change(landlord_id)
    return unit


async def approve_request(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    tenant_id: int,
    now: Optional[datetime] = None,
) -> Tenancy:
    """Landlord accepts the pending request: the unit becomes occupied and a tenancy opens."""
    now = now or utcnow()
    unit = await _locked_unit(session, landlord_id, property_id, unit_id)

    if unit.status != UnitStatus.pending_approval.value or unit.pending_tenant_id != tenant_id:
        raise WorkflowError("Tenant ID mismatch or request no longer pending.")

    prop = await session.get(Property, property_id)

    tenant_name = unit.pending_tenant_name or ""
    tenant_email = unit.pending_tenant_email or ""

    unit.status = UnitStatus.occupied.value
    unit.tenant_id = tenant_id
    unit.tenant_name = tenant_name
    unit.tenant_email = tenant_email
    clear_pending(unit)
    unit.updated_at = now
    validate_occupancy(unit)

    # The approved tenant replaces any outstanding invite for this unit
    await revoke_pending_tokens_for_unit(session, property_id, unit_id, commit=False)

    tenancy = await create_tenancy(
        session,
        landlord_id=landlord_id,
        property_id=property_id,
        unit_id=unit_id,
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        tenant_email=tenant_email,
        unit_name=unit.name,
        property_name=prop.name if prop else "",
        rent_amount=unit.rent_amount,
        billing_cycle=unit.billing_cycle,
        currency=prop.currency if prop else None,
        now=now,
        commit=False,
    )
    await clear_unit_request_notifications(session, landlord_id, unit_id, tenant_id)
    await session.commit()

    logging.info(f"Landlord {landlord_id} approved tenant {tenant_id} for unit {unit_id}, tenancy {tenancy.id}")
    await publish_unit_change(landlord_id, tenant_id, tenancy_changed=True)
    return tenancy


async def decline_request(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    now: Optional[datetime] = None,
) -> Unit:
    """Landlord rejects the pending request; the unit is open for new requests."""
    unit = await _locked_unit(session, landlord_id, property_id, unit_id)

    if unit.status != UnitStatus.pending_approval.value:
        raise WorkflowError(f"{unit.name} has no pending request.")

    tenant_id = unit.pending_tenant_id
    unit.status = UnitStatus.vacant.value
    clear_pending(unit)
    unit.updated_at = now or utcnow()
    validate_occupancy(unit)

    await clear_unit_request_notifications(session, landlord_id, unit_id, tenant_id)
    await session.commit()

    logging.info(f"Landlord {landlord_id} declined tenant {tenant_id} for unit {unit_id}")
    await publish_unit_change(landlord_id)
    return unit


async def record_move_out(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    now: Optional[datetime] = None,
) -> Optional[Tenancy]:
    """Tenant leaves: the active tenancy is closed (pending invoices cancelled) and the unit is vacant."""
    now = now or utcnow()
    unit = await _locked_unit(session, landlord_id, property_id, unit_id)

    if unit.status != UnitStatus.occupied.value:
        raise WorkflowError(f"{unit.name} is not occupied.")

    tenancy = await get_active_tenancy(session, landlord_id, property_id, unit_id)
    if tenancy:
        await terminate_lease(session, tenancy.id, now=now, commit=False)

    tenant_id = unit.tenant_id
    unit.status = UnitStatus.vacant.value
    clear_occupant(unit)
    unit.updated_at = now
    validate_occupancy(unit)

    if tenancy:
        await create_notification(
            session,
            landlord_id,
            NotificationType.lease_end,
            title="Tenancy ended",
            message=f"{tenancy.tenant_name or tenancy.tenant_email or 'Tenant'} moved out of {unit.name}.",
            property_id=property_id,
            unit_id=unit_id,
            tenant_id=tenant_id,
        )
    await session.commit()

    logging.info(f"Move-out recorded for unit {unit_id}")
    await publish_unit_change(landlord_id, tenant_id, tenancy_changed=tenancy is not None)
    return tenancy


async def assign_tenant(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    unit_id: int,
    tenant: Optional[User] = None,
    tenant_name: str = "",
    tenant_email: str = "",
    now: Optional[datetime] = None,
) -> Tenancy:
    """
    Manual assignment by the landlord, either of a registered tenant or of a
    ghost tenant known only by name/email. Outstanding invites and join
    requests for the unit are dropped.
    """
    now = now or utcnow()

    if tenant is not None:
        tenant_id = tenant.id
        tenant_name = tenant.full_name or tenant_name
        tenant_email = tenant.email or tenant_email
    else:
        tenant_id = None
        tenant_name = (tenant_name or "").strip()
        tenant_email = (tenant_email or "").strip()
        if not tenant_name and not tenant_email:
            raise WorkflowError("Enter at least a name or email.")

    unit = await _locked_unit(session, landlord_id, property_id, unit_id)
    if unit.status == UnitStatus.occupied.value:
        raise WorkflowError(f"{unit.name} is already occupied. Record the move-out first.")

    prop = await session.get(Property, property_id)

    await revoke_pending_tokens_for_unit(session, property_id, unit_id, commit=False)
    await clear_unit_request_notifications(session, landlord_id, unit_id)

    unit.status = UnitStatus.occupied.value
    unit.tenant_id = tenant_id
    unit.tenant_name = tenant_name
    unit.tenant_email = tenant_email
    clear_pending(unit)
    unit.updated_at = now
    validate_occupancy(unit)

    tenancy = await create_tenancy(
        session,
        landlord_id=landlord_id,
        property_id=property_id,
        unit_id=unit_id,
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        tenant_email=tenant_email,
        unit_name=unit.name,
        property_name=prop.name if prop else "",
        rent_amount=unit.rent_amount,
        billing_cycle=unit.billing_cycle,
        currency=prop.currency if prop else None,
        now=now,
        commit=False,
    )
    await session.commit()

    logging.info(f"Tenant {tenant_id or tenant_name} assigned to unit {unit_id}")
    await publish_unit_change(landlord_id, tenant_id, tenancy_changed=True)
    return tenancy
