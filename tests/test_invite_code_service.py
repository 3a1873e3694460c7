import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from leasebot.database.models import InviteCode, InviteCodeStatus, Property
from leasebot.services import invite_code_service
from leasebot.services.errors import InviteCodeError
from leasebot.services.invite_code_service import (
    ALPHABET, CODE_LENGTH, generate_invite_code, normalize_code, create_invite_code,
    get_invite_code_for_property, get_or_create_invite_code, validate_invite_code,
    revoke_invite_code, regenerate_invite_code,
)
from leasebot.services.unit_service import create_property


def test_generated_codes_use_restricted_alphabet():
    """10,000 samples: 6 characters each, never 0/O/1/I"""
    allowed = set(ALPHABET)
    assert len(allowed) == 32
    assert not allowed & set("0O1I")

    for _ in range(10_000):
        code = generate_invite_code()
        assert len(code) == CODE_LENGTH
        assert set(code) <= allowed


def test_normalize_code():
    assert normalize_code("  abc234 ") == "ABC234"
    assert normalize_code("ABC23") is None
    assert normalize_code("ABC2345") is None
    assert normalize_code("") is None
    assert normalize_code(None) is None


@pytest.mark.asyncio
async def test_create_code_denormalizes_onto_property(async_session, landlord, rental):
    prop, _ = rental

    code = await create_invite_code(async_session, landlord.id, prop.id, prop.name)

    record = await async_session.get(InviteCode, code)
    assert record.status == InviteCodeStatus.active.value
    assert record.property_id == prop.id
    assert record.property_name == "Sunset Villas"

    refreshed = (await async_session.execute(
        select(Property.invite_code).where(Property.id == prop.id)
    )).scalar_one()
    assert refreshed == code


@pytest.mark.asyncio
async def test_validate_code_is_case_insensitive(async_session, landlord, rental):
    prop, _ = rental
    code = await create_invite_code(async_session, landlord.id, prop.id, prop.name)

    record = await validate_invite_code(async_session, f" {code.lower()} ")
    assert record is not None
    assert record.code == code

    assert await validate_invite_code(async_session, code[:5]) is None
    assert await validate_invite_code(async_session, "ZZZZZZ") is None


@pytest.mark.asyncio
async def test_revoke_is_idempotent(async_session, landlord, rental):
    prop, _ = rental
    code = await create_invite_code(async_session, landlord.id, prop.id, prop.name)

    await revoke_invite_code(async_session, code)
    await revoke_invite_code(async_session, code)

    record = await async_session.get(InviteCode, code)
    await async_session.refresh(record)
    assert record.status == InviteCodeStatus.revoked.value
    assert await validate_invite_code(async_session, code) is None


@pytest.mark.asyncio
async def test_regenerate_twice_leaves_only_newest_active(async_session, landlord, rental):
    """Two regenerations in a row: only the latest code validates"""
    prop, _ = rental
    first = await get_or_create_invite_code(async_session, landlord.id, prop.id, prop.name)
    second = await regenerate_invite_code(async_session, landlord.id, prop.id, prop.name)
    third = await regenerate_invite_code(async_session, landlord.id, prop.id, prop.name)

    assert len({first, second, third}) == 3
    assert await validate_invite_code(async_session, first) is None
    assert await validate_invite_code(async_session, second) is None
    assert (await validate_invite_code(async_session, third)).code == third
    assert await get_invite_code_for_property(async_session, landlord.id, prop.id) == third

    for old in (first, second):
        record = await async_session.get(InviteCode, old)
        await async_session.refresh(record)
        assert record.status == InviteCodeStatus.revoked.value


@pytest.mark.asyncio
async def test_get_or_create_reuses_active_code(async_session, landlord, rental):
    prop, _ = rental
    first = await get_or_create_invite_code(async_session, landlord.id, prop.id, prop.name)
    again = await get_or_create_invite_code(async_session, landlord.id, prop.id, prop.name)
    assert first == again


@pytest.mark.asyncio
async def test_lookup_falls_back_to_property_field(async_session, landlord, rental):
    """Primary query finds nothing; the denormalized code is used once verified active"""
    prop, _ = rental
    other = await create_property(async_session, landlord.id, "Elsewhere")

    # Code record filed under another property, but the property row points at it
    async_session.add(InviteCode(
        code="QWERTY", landlord_id=landlord.id, property_id=other.id,
        property_name=prop.name, status=InviteCodeStatus.active.value,
    ))
    prop.invite_code = "QWERTY"
    await async_session.commit()

    assert await get_invite_code_for_property(async_session, landlord.id, prop.id) == "QWERTY"

    await revoke_invite_code(async_session, "QWERTY")
    assert await get_invite_code_for_property(async_session, landlord.id, prop.id) is None


@pytest.mark.asyncio
async def test_lookup_survives_primary_query_failure(async_session, landlord, rental, monkeypatch):
    prop, _ = rental
    landlord_id, property_id = landlord.id, prop.id
    code = await create_invite_code(async_session, landlord_id, property_id, "Sunset Villas")

    original = async_session.execute
    calls = []

    async def flaky_execute(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) == 1:
            raise OperationalError("SELECT", {}, Exception("index not ready"))
        return await original(statement, *args, **kwargs)

    monkeypatch.setattr(async_session, "execute", flaky_execute)

    assert await get_invite_code_for_property(async_session, landlord_id, property_id) == code
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_generation_gives_up_after_repeated_collisions(async_session, landlord, rental, monkeypatch):
    prop, _ = rental
    taken = await create_invite_code(async_session, landlord.id, prop.id, prop.name)

    monkeypatch.setattr(invite_code_service, "generate_invite_code", lambda length=CODE_LENGTH: taken)

    with pytest.raises(InviteCodeError):
        await create_invite_code(async_session, landlord.id, prop.id, prop.name)
