import logging
from aiogram import Router, F, html
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import User
from leasebot.schemas.occupancy import OccupancyView
from leasebot.schemas.validation import InviteCodeInput
from leasebot.services.approval_service import request_unit_approval
from leasebot.services.errors import InviteTokenError
from leasebot.services.invite_code_service import validate_invite_code
from leasebot.services.invite_token_service import fetch_invite_token, accept_invite_token
from leasebot.services.notification_service import get_notification_service
from leasebot.services.tenancy_service import list_tenant_tenancies
from leasebot.services.unit_service import get_property_by_id, get_vacant_units
from leasebot.states import JoinState
from leasebot.utils.ui import UIEmojis, UIMessages, format_amount, format_date, get_status_badge

router = Router()


async def _unit_picker(message: Message, session: AsyncSession, landlord_id: int, property_id: int, property_name: str):
    units = await get_vacant_units(session, landlord_id, property_id)
    text = UIMessages.header(property_name, UIEmojis.BUILDING)
    if not units:
        text += UIMessages.info_box("There are no vacant units right now. Ask your landlord for a unit invite.")
        await message.answer(text)
        return

    text += "Pick the unit you are moving into. Your landlord will review the request.\n"
    kb = InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(
            text=f"{unit.name} · {format_amount(unit.rent_amount)} / {unit.billing_cycle}",
            callback_data=f"req_{property_id}_{unit.id}",
        )]
        for unit in units
    ])
    await message.answer(text, reply_markup=kb)


async def show_property_for_code(message: Message, session: AsyncSession, user: User, code: str):
    try:
        code = InviteCodeInput(code=code).code
    except ValidationError:
        await message.answer(UIMessages.error("A property code has exactly 6 characters."))
        return

    record = await validate_invite_code(session, code)
    if not record:
        await message.answer(UIMessages.error("This code is not valid or has been revoked."))
        return

    if user and user.id == record.landlord_id:
        await message.answer(UIMessages.warning("This is your own property."))
        return

    await _unit_picker(message, session, record.landlord_id, record.property_id, record.property_name)


async def show_invite_token(message: Message, session: AsyncSession, user: User, token: str):
    check = await fetch_invite_token(session, token)
    if not check.valid:
        await message.answer(UIMessages.error(InviteTokenError(check.reason).args[0]))
        return

    invite = check.data
    if user and user.id == invite.landlord_id:
        await message.answer(UIMessages.warning(InviteTokenError("own_invite").args[0]))
        return

    if invite.unit_id is None:
        await _unit_picker(message, session, invite.landlord_id, invite.property_id, invite.property_name)
        return

    text = UIMessages.header("Unit invite", UIEmojis.KEY)
    text += UIMessages.field("Property", html.quote(invite.property_name), UIEmojis.BUILDING)
    text += UIMessages.field("Unit", html.quote(invite.unit_name), UIEmojis.HOME)
    if invite.rent_amount is not None:
        text += UIMessages.field("Rent", f"{format_amount(invite.rent_amount)} / {invite.billing_cycle}", UIEmojis.MONEY)
    text += UIMessages.field("Valid until", format_date(invite.expires_at), UIEmojis.CALENDAR)

    kb = InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=f"{UIEmojis.CHECK} Accept invite", callback_data=f"tok:{invite.token}")],
        [InlineKeyboardButton(text=f"{UIEmojis.CANCEL} Not now", callback_data="cancel")],
    ])
    await message.answer(text, reply_markup=kb)


# --- Join by code ---

@router.message(Command("join"))
@router.message(F.text.contains("Join property"))
async def start_join(message: Message, state: FSMContext):
    await message.answer("🔑 <b>Enter the 6-character property code:</b>")
    await state.set_state(JoinState.waiting_for_code)


@router.message(JoinState.waiting_for_code)
async def process_join_code(message: Message, state: FSMContext, session: AsyncSession, user: User = None):
    if message.text and message.text.startswith("/"):
        await state.clear()
        await message.answer(UIMessages.info_box("Cancelled."))
        return

    await state.clear()
    await show_property_for_code(message, session, user, message.text or "")


@router.callback_query(F.data.startswith("req_"))
async def request_unit(call: CallbackQuery, session: AsyncSession, user: User = None):
    _, property_id, unit_id = call.data.split("_")
    prop = await get_property_by_id(session, int(property_id))
    if not prop:
        await call.answer("Property not found.", show_alert=True)
        return

    try:
        unit = await request_unit_approval(session, prop.landlord_id, prop.id, int(unit_id), user)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return

    await call.message.edit_text(
        UIMessages.success(f"Request sent for <b>{html.quote(unit.name)}</b>.\nYou will be notified once your landlord decides.")
    )
    await call.answer()

    notifier = get_notification_service()
    if notifier:
        await notifier.notify_by_id(
            session, prop.landlord_id,
            f"{UIEmojis.BELL} <b>{html.quote(user.full_name)}</b> requested <b>{html.quote(unit.name)}</b> in {html.quote(prop.name)}.\nOpen /requests to review."
        )


# --- Unit invite ---

@router.callback_query(F.data.startswith("tok:"))
async def accept_token(call: CallbackQuery, session: AsyncSession, user: User = None):
    token = call.data.split(":", 1)[1]
    try:
        result = await accept_invite_token(session, token, user)
    except InviteTokenError as e:
        if e.reason == "unit_required":
            check = await fetch_invite_token(session, token, persist_expiry=False)
            invite = check.data
            await call.answer()
            await _unit_picker(call.message, session, invite.landlord_id, invite.property_id, invite.property_name)
            return
        await call.answer(str(e), show_alert=True)
        return
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return

    logging.info(f"User {user.id} joined unit {result['unit_id']} via invite")
    await call.message.edit_text(UIMessages.success("Welcome home! Your tenancy is now active.\nSee /home for details."))
    await call.answer()

    notifier = get_notification_service()
    if notifier:
        await notifier.notify_by_id(
            session, result["landlord_id"],
            f"{UIEmojis.BELL} <b>{html.quote(user.full_name)}</b> accepted your invite."
        )


# --- My home ---

@router.message(Command("home"))
@router.message(F.text.contains("My home"))
async def my_home(message: Message, session: AsyncSession, user: User = None):
    if not user:
        await message.answer(UIMessages.error("Please /start the bot first."))
        return

    tenancies = await list_tenant_tenancies(session, user.id)
    if not tenancies:
        await message.answer(UIMessages.info_box("You have no tenancies yet. Use an invite link or /join."))
        return

    text = UIMessages.header("My tenancies", UIEmojis.HOME)
    for tenancy in tenancies:
        view = OccupancyView.from_tenancy(tenancy)
        text += f"\n{get_status_badge(view.status)} <b>{html.quote(view.property_name)} · {html.quote(view.unit_name)}</b>\n"
        text += UIMessages.field("Rent", f"{format_amount(view.rent_amount, view.currency)} / {view.billing_cycle}")
        text += UIMessages.field("From", format_date(view.start_date))
        if view.end_date:
            text += UIMessages.field("Until", format_date(view.end_date))
    await message.answer(text)
