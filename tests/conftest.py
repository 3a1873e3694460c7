import os

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from leasebot.database.core import Base
from leasebot.database.models import User, UserRole
from leasebot.services.live import hub
from leasebot.services.unit_service import create_property, add_units_batch


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File database so live listeners can open their own connections
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_hub():
    yield
    hub._listeners.clear()
    hub.session_factory = None


async def make_user(session, tg_id, full_name, email=None, role=UserRole.tenant):
    user = User(tg_id=tg_id, full_name=full_name, email=email, role=role.value)
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def landlord(async_session):
    return await make_user(async_session, 1001, "Lara Landlord", "lara@example.com", UserRole.landlord)


@pytest_asyncio.fixture
async def tenant(async_session):
    return await make_user(async_session, 2001, "Tom Tenant", "tom@example.com")


@pytest_asyncio.fixture
async def other_tenant(async_session):
    return await make_user(async_session, 2002, "Olive Other", "olive@example.com")


@pytest_asyncio.fixture
async def rental(async_session, landlord):
    """Property 'Sunset Villas' with two vacant units A1 and A2."""
    prop = await create_property(async_session, landlord.id, "Sunset Villas", "12 Palm Road")
    units = await add_units_batch(async_session, prop.id, [
        {"name": "A1", "rent_amount": 150000, "billing_cycle": "monthly"},
        {"name": "A2", "rent_amount": 200000, "billing_cycle": "yearly"},
    ])
    return prop, units


@pytest.fixture
def user_factory(async_session):
    counter = iter(range(3000, 4000))

    async def factory(full_name, email=None, role=UserRole.tenant):
        return await make_user(async_session, next(counter), full_name, email, role)

    return factory
