from decimal import Decimal
from typing import Optional, List, Iterable
from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.config import config
from leasebot.database.models import (
    Property, Unit, UnitStatus, BillingCycle, Tenancy, TenancyStatus,
    InviteCode, InviteCodeStatus, InviteToken, InviteTokenStatus,
)
from leasebot.services.errors import ActiveTenancyError, PermissionDeniedError
from leasebot.services.live import publish_unit_change


async def create_property(
    session: AsyncSession,
    landlord_id: int,
    name: str,
    address: str = "",
    currency: Optional[str] = None,
) -> Property:
    prop = Property(
        landlord_id=landlord_id,
        name=name,
        address=address or "",
        currency=currency or config.DEFAULT_CURRENCY,
    )
    session.add(prop)
    await session.commit()
    return prop


async def get_property(session: AsyncSession, landlord_id: int, property_id: int) -> Optional[Property]:
    stmt = select(Property).where(Property.id == property_id, Property.landlord_id == landlord_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_property_by_id(session: AsyncSession, property_id: int) -> Optional[Property]:
    """Public lookup (tenant portal); does not check ownership."""
    return await session.get(Property, property_id)


async def list_properties(session: AsyncSession, landlord_id: int) -> List[Property]:
    stmt = select(Property).where(Property.landlord_id == landlord_id).order_by(Property.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add_unit(
    session: AsyncSession,
    property_id: int,
    name: str,
    rent_amount=0,
    billing_cycle: str = BillingCycle.monthly.value,
    commit: bool = True,
) -> Unit:
    prop = await session.get(Property, property_id)
    if not prop:
        raise ValueError(f"Property {property_id} not found")

    unit = Unit(
        property_id=property_id,
        landlord_id=prop.landlord_id,
        name=name,
        status=UnitStatus.vacant.value,
        rent_amount=Decimal(str(rent_amount or 0)),
        billing_cycle=billing_cycle,
    )
    session.add(unit)
    if commit:
        await session.commit()
        await publish_unit_change(prop.landlord_id)
    return unit


async def add_units_batch(session: AsyncSession, property_id: int, units: Iterable[dict]) -> List[Unit]:
    """Create several units in one transaction, e.g. right after a property is created."""
    created = []
    for item in units:
        created.append(await add_unit(
            session,
            property_id,
            name=item["name"],
            rent_amount=item.get("rent_amount", 0),
            billing_cycle=item.get("billing_cycle", BillingCycle.monthly.value),
            commit=False,
        ))
    await session.commit()
    if created:
        await publish_unit_change(created[0].landlord_id)
    return created


async def get_unit(session: AsyncSession, landlord_id: int, property_id: int, unit_id: int, lock: bool = False) -> Optional[Unit]:
    stmt = select(Unit).where(
        Unit.id == unit_id,
        Unit.property_id == property_id,
        Unit.landlord_id == landlord_id,
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_units(session: AsyncSession, property_id: int) -> List[Unit]:
    stmt = select(Unit).where(Unit.property_id == property_id).order_by(Unit.name, Unit.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_vacant_units(session: AsyncSession, landlord_id: int, property_id: int) -> List[Unit]:
    stmt = select(Unit).where(
        Unit.landlord_id == landlord_id,
        Unit.property_id == property_id,
        Unit.status == UnitStatus.vacant.value,
    ).order_by(Unit.name, Unit.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_pending_units(session: AsyncSession, landlord_id: int) -> List[Unit]:
    """Units waiting for the landlord's decision, oldest request first."""
    stmt = select(Unit).where(
        Unit.landlord_id == landlord_id,
        Unit.status == UnitStatus.pending_approval.value,
    ).order_by(Unit.pending_requested_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def validate_occupancy(unit: Unit) -> None:
    """Raise ValueError if the unit's occupancy fields contradict its status."""
    has_pending = any([
        unit.pending_tenant_id,
        unit.pending_tenant_name,
        unit.pending_tenant_email,
        unit.pending_requested_at,
    ])
    has_occupant = bool(unit.tenant_id or unit.tenant_name or unit.tenant_email)

    if unit.status == UnitStatus.pending_approval.value:
        if not unit.pending_tenant_id or not unit.pending_requested_at:
            raise ValueError(f"Unit {unit.id}: pending approval without a request")
        if has_occupant:
            raise ValueError(f"Unit {unit.id}: pending approval while occupied")
    elif unit.status == UnitStatus.occupied.value:
        if not has_occupant:
            raise ValueError(f"Unit {unit.id}: occupied without an occupant")
        if has_pending:
            raise ValueError(f"Unit {unit.id}: occupied with a pending request")
    elif unit.status == UnitStatus.vacant.value:
        if has_occupant or has_pending:
            raise ValueError(f"Unit {unit.id}: vacant but has tenant data")
    else:
        raise ValueError(f"Unit {unit.id}: unknown status {unit.status}")


def clear_pending(unit: Unit) -> None:
    unit.pending_tenant_id = None
    unit.pending_tenant_name = None
    unit.pending_tenant_email = None
    unit.pending_requested_at = None


def clear_occupant(unit: Unit) -> None:
    unit.tenant_id = None
    unit.tenant_name = ""
    unit.tenant_email = ""


async def _has_active_tenancy(session: AsyncSession, landlord_id: int, property_id: int, unit_id: Optional[int] = None) -> bool:
    stmt = select(Tenancy.id).where(
        Tenancy.landlord_id == landlord_id,
        Tenancy.property_id == property_id,
        Tenancy.status == TenancyStatus.active.value,
    )
    if unit_id is not None:
        stmt = stmt.where(Tenancy.unit_id == unit_id)
    result = await session.execute(stmt.limit(1))
    return result.first() is not None


async def delete_unit(session: AsyncSession, landlord_id: int, property_id: int, unit_id: int) -> None:
    """
    Delete a unit unless it still has an active tenancy.
    The unit row stays locked between the check and the delete.
    """
    unit = await get_unit(session, landlord_id, property_id, unit_id, lock=True)
    if not unit:
        raise PermissionDeniedError(f"Unit {unit_id} not found")

    if await _has_active_tenancy(session, landlord_id, property_id, unit_id):
        raise ActiveTenancyError(
            f"Unit {unit.name} has an active tenancy. Record the move-out before deleting it."
        )

    await session.delete(unit)
    await session.commit()
    await publish_unit_change(landlord_id)


async def delete_property(session: AsyncSession, landlord_id: int, property_id: int) -> None:
    stmt = select(Property).where(
        Property.id == property_id, Property.landlord_id == landlord_id
    ).with_for_update()
    result = await session.execute(stmt)
    prop = result.scalar_one_or_none()
    if not prop:
        raise PermissionDeniedError(f"Property {property_id} not found")

    if await _has_active_tenancy(session, landlord_id, property_id):
        raise ActiveTenancyError(
            f"Property {prop.name} still has active tenancies. End them before deleting it."
        )

    # Invites outlive the property; close them instead of deleting them
    await session.execute(
        update(InviteCode)
        .where(InviteCode.property_id == property_id, InviteCode.status == InviteCodeStatus.active.value)
        .values(status=InviteCodeStatus.revoked.value)
    )
    await session.execute(
        update(InviteToken)
        .where(InviteToken.property_id == property_id, InviteToken.status == InviteTokenStatus.pending.value)
        .values(status=InviteTokenStatus.expired.value)
    )
    await session.execute(delete(Unit).where(Unit.property_id == property_id))
    await session.execute(delete(Property).where(Property.id == property_id))
    await session.commit()
    await publish_unit_change(landlord_id)
