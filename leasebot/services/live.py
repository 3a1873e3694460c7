"""
Live query subscriptions.

A subscriber registers a query and a callback under a topic. The query runs in
its own session right away (initial snapshot) and again every time a service
publishes the topic after a committed write. ``subscribe`` returns a callable
that removes the listener.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leasebot.database.models import Tenancy, Unit, UnitStatus

QueryFn = Callable[[AsyncSession], Awaitable[List[Any]]]
Callback = Callable[[List[Any]], Awaitable[None]]


def units_topic(landlord_id: int) -> str:
    return f"units:{landlord_id}"


def tenancies_topic(landlord_id: int) -> str:
    return f"tenancies:{landlord_id}"


def tenant_tenancies_topic(tenant_id: int) -> str:
    return f"tenant-tenancies:{tenant_id}"


@dataclass
class _Listener:
    query: QueryFn
    callback: Callback
    session_factory: async_sessionmaker


@dataclass
class LiveQueryHub:
    session_factory: Optional[async_sessionmaker] = None
    _listeners: Dict[str, List[_Listener]] = field(default_factory=dict)

    def _factory(self, override: Optional[async_sessionmaker]) -> async_sessionmaker:
        if override is not None:
            return override
        if self.session_factory is None:
            from leasebot.database.core import AsyncSessionLocal
            self.session_factory = AsyncSessionLocal
        return self.session_factory

    async def subscribe(
        self,
        topic: str,
        query: QueryFn,
        callback: Callback,
        session_factory: Optional[async_sessionmaker] = None,
    ) -> Callable[[], None]:
        listener = _Listener(query, callback, self._factory(session_factory))
        self._listeners.setdefault(topic, []).append(listener)
        await self._deliver(topic, listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(topic, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(topic, None)

        return unsubscribe

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, []))

    async def publish(self, *topics: str) -> None:
        for topic in topics:
            for listener in list(self._listeners.get(topic, [])):
                await self._deliver(topic, listener)

    async def _deliver(self, topic: str, listener: _Listener) -> None:
        try:
            async with listener.session_factory() as session:
                rows = await listener.query(session)
            await listener.callback(rows)
        except Exception as e:
            logging.warning(f"Live listener on {topic} failed: {e}")


hub = LiveQueryHub()


# --- Query helpers ---

async def subscribe_units(landlord_id: int, property_id: int, callback: Callback, **kwargs):
    async def query(session: AsyncSession):
        stmt = select(Unit).where(
            Unit.landlord_id == landlord_id,
            Unit.property_id == property_id,
        ).order_by(Unit.name, Unit.id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return await hub.subscribe(units_topic(landlord_id), query, callback, **kwargs)


async def subscribe_pending_units(landlord_id: int, callback: Callback, **kwargs):
    """Landlord approval queue."""
    async def query(session: AsyncSession):
        stmt = select(Unit).where(
            Unit.landlord_id == landlord_id,
            Unit.status == UnitStatus.pending_approval.value,
        ).order_by(Unit.pending_requested_at)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return await hub.subscribe(units_topic(landlord_id), query, callback, **kwargs)


async def subscribe_tenancies(landlord_id: int, callback: Callback, **kwargs):
    async def query(session: AsyncSession):
        from leasebot.services.tenancy_service import list_landlord_tenancies
        return await list_landlord_tenancies(session, landlord_id)

    return await hub.subscribe(tenancies_topic(landlord_id), query, callback, **kwargs)


async def subscribe_tenant_tenancies(tenant_id: int, callback: Callback, **kwargs):
    async def query(session: AsyncSession):
        from leasebot.services.tenancy_service import list_tenant_tenancies
        return await list_tenant_tenancies(session, tenant_id)

    return await hub.subscribe(tenant_tenancies_topic(tenant_id), query, callback, **kwargs)


async def subscribe_unit_tenancy_history(landlord_id: int, property_id: int, unit_id: int, callback: Callback, **kwargs):
    async def query(session: AsyncSession):
        from leasebot.services.tenancy_service import get_unit_tenancy_history
        return await get_unit_tenancy_history(session, property_id, unit_id)

    return await hub.subscribe(tenancies_topic(landlord_id), query, callback, **kwargs)


async def publish_unit_change(landlord_id: int, tenant_id: Optional[int] = None, tenancy_changed: bool = False) -> None:
    topics = [units_topic(landlord_id)]
    if tenancy_changed:
        topics.append(tenancies_topic(landlord_id))
        if tenant_id is not None:
            topics.append(tenant_tenancies_topic(tenant_id))
    await hub.publish(*topics)
