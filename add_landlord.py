"""
Register a landlord account by Telegram ID
"""
import asyncio
from sqlalchemy import select
from leasebot.database.core import AsyncSessionLocal
from leasebot.database.models import User
from leasebot.services.user_service import create_landlord

async def add_landlord():
    print("Enter the landlord's Telegram ID:")
    tg_id = int(input().strip())

    print("Enter full name:")
    full_name = input().strip()

    print("Enter email (optional):")
    email = input().strip() or None

    async with AsyncSessionLocal() as session:
        user = await create_landlord(session, tg_id, full_name, email=email)
        print(f"✅ Landlord ready: {user.full_name} (ID: {user.tg_id})")

        result = await session.execute(select(User).order_by(User.id))
        print("\n📋 All users in database:")
        for u in result.scalars().all():
            print(f"  - {u.full_name} (ID: {u.tg_id}, Role: {u.role})")

if __name__ == "__main__":
    asyncio.run(add_landlord())
