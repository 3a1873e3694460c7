import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.config import config
from leasebot.database.models import (
    InviteToken, InviteTokenStatus, Unit, UnitStatus, User, Property, NotificationType
)
from leasebot.services.errors import InviteTokenError, PermissionDeniedError
from leasebot.services.live import publish_unit_change
from leasebot.services.notification_service import (
    clear_unit_request_notifications, create_notification
)
from leasebot.services.tenancy_service import create_tenancy
from leasebot.services.unit_service import clear_pending, validate_occupancy
from leasebot.utils.dates import utcnow, ensure_utc

SLUG_PREFIX_MAX = 40


@dataclass
class InviteLink:
    token: str
    link: str
    expires_at: datetime


@dataclass
class TokenCheck:
    valid: bool
    reason: str  # ok | not_found | already_used | expired | unit_occupied
    data: Optional[InviteToken] = None


def generate_slug(text: Optional[str]) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    slug = slug[:SLUG_PREFIX_MAX].rstrip("-")
    return slug or "invite"


def build_token_slug(property_name: Optional[str]) -> str:
    return f"{generate_slug(property_name)}-{secrets.token_hex(3)}"


def build_invite_link(token: str) -> str:
    if config.BOT_USERNAME:
        return f"https://t.me/{config.BOT_USERNAME}?start={token}"
    return f"{config.INVITE_BASE_URL.rstrip('/')}/join/{token}"


def is_token_expired(invite: InviteToken, now: Optional[datetime] = None) -> bool:
    """Wall-clock check only; the stored status is not consulted."""
    now = now or utcnow()
    return now > ensure_utc(invite.expires_at)


async def revoke_pending_tokens_for_unit(
    session: AsyncSession, property_id: int, unit_id: int, commit: bool = True
) -> int:
    result = await session.execute(
        update(InviteToken)
        .where(
            InviteToken.property_id == property_id,
            InviteToken.unit_id == unit_id,
            InviteToken.status == InviteTokenStatus.pending.value,
        )
        .values(status=InviteTokenStatus.expired.value)
    )
    if commit:
        await session.commit()
    return result.rowcount or 0


async def revoke_token(session: AsyncSession, token: str) -> None:
    """Mark a token expired. Accepted tokens keep their status."""
    await session.execute(
        update(InviteToken)
        .where(
            InviteToken.token == token,
            InviteToken.status != InviteTokenStatus.accepted.value,
        )
        .values(status=InviteTokenStatus.expired.value)
    )
    await session.commit()


async def create_invite_token(
    session: AsyncSession,
    landlord_id: int,
    property_id: int,
    property_name: str = "",
    unit_id: Optional[int] = None,
    unit_name: str = "",
    rent_amount=None,
    billing_cycle: Optional[str] = None,
    now: Optional[datetime] = None,
) -> InviteLink:
    """
    Create a single-use invite. A unit-scoped invite replaces any pending
    invite for the same unit.
    """
    if unit_id is not None:
        revoked = await revoke_pending_tokens_for_unit(session, property_id, unit_id, commit=False)
        if revoked:
            logging.info(f"Expired {revoked} pending invites for unit {unit_id}")

    token = build_token_slug(property_name)
    while await session.get(InviteToken, token) is not None:
        token = build_token_slug(property_name)

    now = now or utcnow()
    expires_at = now + timedelta(hours=config.INVITE_TOKEN_TTL_HOURS)

    session.add(InviteToken(
        token=token,
        landlord_id=landlord_id,
        property_id=property_id,
        unit_id=unit_id,
        unit_name=unit_name or "",
        property_name=property_name or "",
        rent_amount=rent_amount,
        billing_cycle=billing_cycle,
        created_at=now,
        expires_at=expires_at,
        status=InviteTokenStatus.pending.value,
        accepted_by=None,
    ))
    await session.commit()

    logging.info(f"Invite token {token} created for property {property_id} unit {unit_id}")
    return InviteLink(token=token, link=build_invite_link(token), expires_at=expires_at)


async def _check_token(
    session: AsyncSession,
    invite: Optional[InviteToken],
    now: datetime,
    persist_expiry: bool,
) -> TokenCheck:
    if invite is None:
        return TokenCheck(False, "not_found")

    if invite.status == InviteTokenStatus.accepted.value:
        return TokenCheck(False, "already_used", invite)

    if invite.status == InviteTokenStatus.expired.value:
        return TokenCheck(False, "expired", invite)

    if is_token_expired(invite, now):
        if persist_expiry:
            invite.status = InviteTokenStatus.expired.value
            await session.commit()
        return TokenCheck(False, "expired", invite)

    if invite.unit_id is not None:
        unit = await session.get(Unit, invite.unit_id)
        if unit and unit.status == UnitStatus.occupied.value and unit.tenant_id:
            return TokenCheck(False, "unit_occupied", invite)

    return TokenCheck(True, "ok", invite)


async def fetch_invite_token(
    session: AsyncSession,
    token: Optional[str],
    now: Optional[datetime] = None,
    persist_expiry: bool = True,
) -> TokenCheck:
    """
    Load a token and evaluate whether it can still be redeemed.
    With persist_expiry, a pending token found past its deadline is stored as expired.
    """
    if not token:
        return TokenCheck(False, "not_found")
    invite = await session.get(InviteToken, token)
    return await _check_token(session, invite, now or utcnow(), persist_expiry)


async def accept_invite_token(
    session: AsyncSession,
    token: str,
    caller: User,
    now: Optional[datetime] = None,
) -> dict:
    """
    Redeem a unit-scoped invite for the calling tenant.

    Marks the token accepted, assigns the unit, opens a tenancy and clears
    related notifications in a single transaction. The pending -> accepted
    flip is a conditional update, so a double submission yields exactly one
    success and the other call fails with ``already_used``.
    """
    now = now or utcnow()

    if caller is None or caller.id is None:
        raise PermissionDeniedError("You must be signed in to accept an invite.")
    if not token:
        raise InviteTokenError("not_found")

    # Lock order matches the approval workflow: unit row first, then the token
    peek = (await session.execute(
        select(InviteToken.unit_id, InviteToken.property_id, InviteToken.landlord_id)
        .where(InviteToken.token == token)
    )).first()

    unit = None
    if peek is not None and peek.unit_id is not None:
        unit_stmt = (
            select(Unit)
            .where(
                Unit.id == peek.unit_id,
                Unit.property_id == peek.property_id,
                Unit.landlord_id == peek.landlord_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        unit = (await session.execute(unit_stmt)).scalar_one_or_none()

    stmt = (
        select(InviteToken)
        .where(InviteToken.token == token)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    invite = result.scalar_one_or_none()

    # Occupancy is re-read from the locked unit row
    check = await _check_token(session, invite, now, persist_expiry=True)
    if not check.valid:
        raise InviteTokenError(check.reason)

    if caller.id == invite.landlord_id:
        raise InviteTokenError("own_invite")

    if invite.unit_id is None:
        raise InviteTokenError("unit_required")

    if unit is None:
        raise InviteTokenError("not_found", "The unit for this invite no longer exists.")

    claimed = await session.execute(
        update(InviteToken)
        .where(
            InviteToken.token == token,
            InviteToken.status == InviteTokenStatus.pending.value,
        )
        .values(
            status=InviteTokenStatus.accepted.value,
            accepted_by=caller.id,
            accepted_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await session.rollback()
        raise InviteTokenError("already_used")

    prop = await session.get(Property, invite.property_id)

    # Pricing comes from the invite, not the live unit
    rent_amount = invite.rent_amount if invite.rent_amount is not None else unit.rent_amount
    billing_cycle = invite.billing_cycle or unit.billing_cycle

    unit.status = UnitStatus.occupied.value
    unit.tenant_id = caller.id
    unit.tenant_name = caller.full_name or ""
    unit.tenant_email = caller.email or ""
    clear_pending(unit)
    unit.updated_at = now
    validate_occupancy(unit)

    tenancy = await create_tenancy(
        session,
        landlord_id=invite.landlord_id,
        property_id=invite.property_id,
        unit_id=unit.id,
        tenant_id=caller.id,
        tenant_name=caller.full_name or "",
        tenant_email=caller.email or "",
        unit_name=invite.unit_name or unit.name,
        property_name=invite.property_name or (prop.name if prop else ""),
        rent_amount=rent_amount,
        billing_cycle=billing_cycle,
        currency=prop.currency if prop else None,
        now=now,
        commit=False,
    )

    # Any join request for this unit is void once the invite is redeemed
    await clear_unit_request_notifications(session, invite.landlord_id, unit.id)
    await create_notification(
        session,
        invite.landlord_id,
        NotificationType.invite_accepted,
        title="Invite accepted",
        message=f"{caller.full_name or 'A tenant'} moved into {unit.name}.",
        property_id=invite.property_id,
        unit_id=unit.id,
        tenant_id=caller.id,
    )

    await session.commit()
    await session.refresh(invite)

    logging.info(f"Invite {token} accepted by {caller.id} for unit {unit.id}, tenancy {tenancy.id} created")
    await publish_unit_change(invite.landlord_id, caller.id, tenancy_changed=True)

    return {
        "success": True,
        "property_id": invite.property_id,
        "unit_id": unit.id,
        "landlord_id": invite.landlord_id,
        "tenancy_id": tenancy.id,
    }


async def expire_stale_tokens(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Persist lazy expiry for every pending token past its deadline."""
    now = now or utcnow()
    stmt = select(InviteToken).where(InviteToken.status == InviteTokenStatus.pending.value)
    result = await session.execute(stmt)

    expired = 0
    for invite in result.scalars().all():
        if is_token_expired(invite, now):
            invite.status = InviteTokenStatus.expired.value
            expired += 1

    if expired:
        await session.commit()
        logging.info(f"Expired {expired} stale invite tokens")
    return expired
