"""
User Service - Telegram-authenticated landlords and tenants
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from leasebot.database.models import User, UserRole


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_tg_id(session: AsyncSession, tg_id: int) -> Optional[User]:
    """Get user by Telegram ID"""
    stmt = select(User).where(User.tg_id == tg_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_user(
    session: AsyncSession,
    tg_user,
    role: UserRole = UserRole.tenant,
) -> User:
    """
    Return the account of a Telegram user, creating it on first contact.
    Username and display name are refreshed from Telegram on every call.
    """
    user = await get_user_by_tg_id(session, tg_user.id)
    if user:
        if user.tg_username != tg_user.username or user.full_name != tg_user.full_name:
            user.tg_username = tg_user.username
            user.full_name = tg_user.full_name
            await session.commit()
        return user

    user = User(
        tg_id=tg_user.id,
        tg_username=tg_user.username,
        full_name=tg_user.full_name or "",
        role=role.value,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Concurrent first contact from the same account
        await session.rollback()
        user = await get_user_by_tg_id(session, tg_user.id)
    return user


async def create_landlord(
    session: AsyncSession,
    tg_id: int,
    full_name: str,
    username: str = None,
    email: str = None,
) -> User:
    """Register a landlord account, or promote an existing tenant account."""
    user = await get_user_by_tg_id(session, tg_id)
    if user:
        user.role = UserRole.landlord.value
        user.full_name = full_name or user.full_name
        if email:
            user.email = email
    else:
        user = User(
            tg_id=tg_id,
            tg_username=username,
            full_name=full_name,
            email=email,
            role=UserRole.landlord.value,
        )
        session.add(user)
    await session.commit()
    return user


async def set_email(session: AsyncSession, user_id: int, email: Optional[str]) -> Optional[User]:
    user = await session.get(User, user_id)
    if user:
        user.email = email
        await session.commit()
    return user


def is_landlord(user: Optional[User]) -> bool:
    return user is not None and user.role == UserRole.landlord.value
