import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock

from leasebot.handlers.landlord import _render_property, _requests_view, property_invite_link
from leasebot.services.approval_service import assign_tenant, request_unit_approval
from leasebot.services.unit_service import create_property, add_unit
from leasebot.utils.ui import UIMessages


def fake_call(data):
    return SimpleNamespace(data=data, message=SimpleNamespace(answer=AsyncMock()), answer=AsyncMock())


def test_header_escapes_title():
    assert "<b>Smith &amp; Sons</b>" in UIMessages.header("Smith & Sons")


@pytest.mark.asyncio
async def test_property_card_escapes_user_text(async_session, landlord):
    """Names with HTML special characters must not break Telegram parsing"""
    prop = await create_property(async_session, landlord.id, "Smith & Sons", "1 <Main> St")
    loft = await add_unit(async_session, prop.id, "<Loft>", 1000)
    await assign_tenant(async_session, landlord.id, prop.id, loft.id, tenant_name="Tom <3")

    text, _ = await _render_property(async_session, landlord.id, prop.id)

    assert "Smith &amp; Sons" in text
    assert "1 &lt;Main&gt; St" in text
    assert "&lt;Loft&gt;" in text
    assert "Tom &lt;3" in text
    assert "<Loft>" not in text and "<Main>" not in text


@pytest.mark.asyncio
async def test_request_queue_escapes_names(async_session, landlord, user_factory):
    prop = await create_property(async_session, landlord.id, "Block A")
    unit = await add_unit(async_session, prop.id, "R&D flat", 1000)
    requester = await user_factory("Ann <Admin>")
    await request_unit_approval(async_session, landlord.id, prop.id, unit.id, requester)

    text, _ = _requests_view([unit])

    assert "R&amp;D flat" in text
    assert "Ann &lt;Admin&gt;" in text


@pytest.mark.asyncio
async def test_property_link_does_not_claim_single_use(async_session, landlord, rental):
    prop, _ = rental
    call = fake_call(f"plink_{prop.id}")

    await property_invite_link(call, async_session, landlord)

    text = call.message.answer.await_args.args[0]
    assert "Single use" not in text
    assert "needs your approval" in text
    assert "?start=" in text or "/join/" in text
