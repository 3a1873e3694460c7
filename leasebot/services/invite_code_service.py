import logging
import secrets
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import InviteCode, InviteCodeStatus, Property
from leasebot.services.errors import InviteCodeError

# No 0/O or 1/I
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MAX_GENERATION_ATTEMPTS = 5


def generate_invite_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def normalize_code(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    code = code.strip().upper()
    if len(code) != CODE_LENGTH:
        return None
    return code


async def create_invite_code(
    session: AsyncSession, landlord_id: int, property_id: int, property_name: str = ""
) -> str:
    """
    Issue a new active code for a property and denormalize it onto the property.
    """
    code = generate_invite_code()

    attempts = 0
    while await session.get(InviteCode, code) is not None:
        attempts += 1
        if attempts >= MAX_GENERATION_ATTEMPTS:
            raise InviteCodeError("Could not generate a unique invite code, try again.")
        code = generate_invite_code()

    session.add(InviteCode(
        code=code,
        landlord_id=landlord_id,
        property_id=property_id,
        property_name=property_name or "",
        status=InviteCodeStatus.active.value,
    ))

    await session.execute(
        update(Property)
        .where(Property.id == property_id, Property.landlord_id == landlord_id)
        .values(invite_code=code)
    )
    await session.commit()

    logging.info(f"Invite code {code} issued for property {property_id}")
    return code


async def get_invite_code_for_property(
    session: AsyncSession, landlord_id: int, property_id: int
) -> Optional[str]:
    """Return the active code of a property, or None."""
    try:
        stmt = select(InviteCode.code).where(
            InviteCode.landlord_id == landlord_id,
            InviteCode.property_id == property_id,
            InviteCode.status == InviteCodeStatus.active.value,
        ).order_by(InviteCode.created_at.desc()).limit(1)
        result = await session.execute(stmt)
        code = result.scalar_one_or_none()
        if code:
            return code
    except SQLAlchemyError as e:
        logging.warning(f"Invite code lookup failed, falling back to property record: {e}")
        await session.rollback()

    # Fallback: the denormalized field, verified against the code record
    stmt = select(Property.invite_code).where(
        Property.id == property_id, Property.landlord_id == landlord_id
    )
    result = await session.execute(stmt)
    code = result.scalar_one_or_none()
    if code:
        record = await session.get(InviteCode, code)
        if record and record.status == InviteCodeStatus.active.value:
            return code
    return None


async def get_or_create_invite_code(
    session: AsyncSession, landlord_id: int, property_id: int, property_name: str = ""
) -> str:
    """Codes are created lazily the first time a landlord opens the property portal."""
    code = await get_invite_code_for_property(session, landlord_id, property_id)
    if code:
        return code
    return await create_invite_code(session, landlord_id, property_id, property_name)


async def validate_invite_code(session: AsyncSession, code: Optional[str]) -> Optional[InviteCode]:
    code = normalize_code(code)
    if not code:
        return None
    record = await session.get(InviteCode, code)
    if not record or record.status != InviteCodeStatus.active.value:
        return None
    return record


async def revoke_invite_code(session: AsyncSession, code: str) -> None:
    await session.execute(
        update(InviteCode)
        .where(InviteCode.code == code)
        .values(status=InviteCodeStatus.revoked.value)
    )
    await session.commit()


async def regenerate_invite_code(
    session: AsyncSession, landlord_id: int, property_id: int, property_name: str = ""
) -> str:
    old_code = await get_invite_code_for_property(session, landlord_id, property_id)
    if old_code:
        await revoke_invite_code(session, old_code)
        logging.info(f"Invite code {old_code} revoked for property {property_id}")
    return await create_invite_code(session, landlord_id, property_id, property_name)
