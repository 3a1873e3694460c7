import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from leasebot.cron import daily_job, seconds_until_next_run
from leasebot.database.models import InviteToken, InviteTokenStatus, Invoice, InvoiceStatus
from leasebot.services.approval_service import assign_tenant, record_move_out
from leasebot.services.invite_token_service import create_invite_token
from leasebot.services.invoice_service import (
    advance_invoice_date, generate_due_invoices, mark_overdue_invoices, list_tenancy_invoices, list_landlord_invoices,
)
from leasebot.utils.dates import ensure_utc

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
YEAR = timedelta(days=365)


@pytest.mark.asyncio
async def test_nothing_due_before_schedule(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)

    assert await generate_due_invoices(async_session, now=NOW + YEAR - timedelta(seconds=1)) == []


@pytest.mark.asyncio
async def test_due_tenancy_gets_draft_invoice(async_session, landlord, tenant, rental):
    """A due tenancy gets one draft and its schedule moves one billing period ahead"""
    prop, (a1, _) = rental
    tenancy = await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)

    [invoice] = await generate_due_invoices(async_session, now=NOW + YEAR)

    assert invoice.tenancy_id == tenancy.id
    assert invoice.tenant_id == tenant.id
    assert invoice.amount == Decimal("150000")
    assert invoice.currency == "NGN"
    assert invoice.status == InvoiceStatus.draft.value
    assert ensure_utc(invoice.due_date) == NOW + YEAR
    # A1 bills monthly
    assert ensure_utc(tenancy.next_invoice_date) == datetime(2027, 4, 1, 12, 0, tzinfo=timezone.utc)

    # Same day again: already handled
    assert await generate_due_invoices(async_session, now=NOW + YEAR) == []
    assert [i.id for i in await list_tenancy_invoices(async_session, tenancy.id)] == [invoice.id]


@pytest.mark.asyncio
async def test_former_and_paused_tenancies_are_skipped(async_session, landlord, tenant, rental):
    prop, (a1, a2) = rental
    await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)
    await record_move_out(async_session, landlord.id, prop.id, a1.id, now=NOW + timedelta(days=10))

    paused = await assign_tenant(async_session, landlord.id, prop.id, a2.id, tenant_name="Gary Ghost", now=NOW)
    paused.invoice_scheduling_enabled = False
    await async_session.commit()

    assert await generate_due_invoices(async_session, now=NOW + 2 * YEAR) == []


@pytest.mark.asyncio
async def test_landlord_invoice_filter(async_session, landlord, tenant, rental):
    prop, (a1, a2) = rental
    await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)
    await assign_tenant(async_session, landlord.id, prop.id, a2.id, tenant_name="Gary Ghost", now=NOW)
    drafted = await generate_due_invoices(async_session, now=NOW + YEAR)

    drafted[0].status = InvoiceStatus.sent.value
    await async_session.commit()

    assert len(await list_landlord_invoices(async_session, landlord.id)) == 2
    sent = await list_landlord_invoices(async_session, landlord.id, InvoiceStatus.sent)
    assert [i.id for i in sent] == [drafted[0].id]
    assert await list_landlord_invoices(async_session, tenant.id) == []


@pytest.mark.asyncio
async def test_daily_job(session_factory, async_session, landlord, tenant, rental):
    prop, (a1, a2) = rental
    link = await create_invite_token(
        async_session, landlord.id, prop.id, property_name=prop.name, unit_id=a2.id, unit_name=a2.name, now=NOW
    )
    await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)

    summary = await daily_job(session_factory, now=NOW + YEAR)

    assert summary == {"expired_tokens": 1, "invoices": 1, "overdue": 0, "reminders": 0}
    invite = await async_session.get(InviteToken, link.token)
    await async_session.refresh(invite)
    assert invite.status == InviteTokenStatus.expired.value


def test_seconds_until_next_run():
    assert seconds_until_next_run(datetime(2026, 3, 1, 6, 30, tzinfo=timezone.utc), 9) == 2.5 * 3600
    assert seconds_until_next_run(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc), 9) == 24 * 3600
    assert seconds_until_next_run(datetime(2026, 3, 1, 23, 0, tzinfo=timezone.utc), 0) == 3600


@pytest.mark.parametrize("cycle, start, expected", [
    ("daily", datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc), datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)),
    ("weekly", datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc), datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)),
    ("monthly", datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc), datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)),
    ("monthly", datetime(2026, 1, 31, tzinfo=timezone.utc), datetime(2026, 2, 28, tzinfo=timezone.utc)),
    ("yearly", datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc), datetime(2027, 3, 1, 12, 0, tzinfo=timezone.utc)),
    ("yearly", datetime(2028, 2, 29, tzinfo=timezone.utc), datetime(2029, 2, 28, tzinfo=timezone.utc)),
    (None, datetime(2026, 3, 1, tzinfo=timezone.utc), datetime(2026, 4, 1, tzinfo=timezone.utc)),
])
def test_advance_invoice_date(cycle, start, expected):
    assert advance_invoice_date(cycle, start) == expected


@pytest.mark.asyncio
async def test_schedule_follows_billing_cycle(async_session, landlord, tenant, rental):
    prop, (a1, a2) = rental
    monthly = await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)
    yearly = await assign_tenant(async_session, landlord.id, prop.id, a2.id, tenant_name="Gary Ghost", now=NOW)
    first_due = NOW + YEAR

    await generate_due_invoices(async_session, now=first_due)
    assert ensure_utc(monthly.next_invoice_date) == datetime(2027, 4, 1, 12, 0, tzinfo=timezone.utc)
    assert ensure_utc(yearly.next_invoice_date) == datetime(2028, 3, 1, 12, 0, tzinfo=timezone.utc)

    # One month later only the monthly tenancy is due again
    [invoice] = await generate_due_invoices(async_session, now=datetime(2027, 4, 1, 12, 0, tzinfo=timezone.utc))
    assert invoice.tenancy_id == monthly.id
    assert ensure_utc(monthly.next_invoice_date) == datetime(2027, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_sent_invoices_past_due_become_overdue(async_session, landlord, tenant, rental):
    prop, (a1, _) = rental
    tenancy = await assign_tenant(async_session, landlord.id, prop.id, a1.id, tenant=tenant, now=NOW)

    invoices = {}
    for label, status, due in [
        ("late", InvoiceStatus.sent, NOW - timedelta(days=1)),
        ("upcoming", InvoiceStatus.sent, NOW + timedelta(days=1)),
        ("draft", InvoiceStatus.draft, NOW - timedelta(days=1)),
        ("paid", InvoiceStatus.paid, NOW - timedelta(days=1)),
    ]:
        invoices[label] = Invoice(
            tenancy_id=tenancy.id, landlord_id=landlord.id, tenant_id=tenant.id,
            amount=tenancy.rent_amount, currency="NGN", status=status.value, due_date=due,
        )
        async_session.add(invoices[label])
    await async_session.commit()

    assert await mark_overdue_invoices(async_session, now=NOW) == 1
    assert await mark_overdue_invoices(async_session, now=NOW) == 0

    for invoice in invoices.values():
        await async_session.refresh(invoice)
    assert invoices["late"].status == InvoiceStatus.overdue.value
    assert invoices["upcoming"].status == InvoiceStatus.sent.value
    assert invoices["draft"].status == InvoiceStatus.draft.value
    assert invoices["paid"].status == InvoiceStatus.paid.value
