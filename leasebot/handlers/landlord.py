import logging
from typing import Dict
from aiogram import Router, F, Bot, html
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import Message, CallbackQuery, InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.filters import Filter, Command
from aiogram.fsm.context import FSMContext
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import User, Unit, UnitStatus, BillingCycle
from leasebot.schemas.occupancy import OccupancyView
from leasebot.schemas.validation import (
    PropertyNameModel, UnitNameModel, RentAmountModel, BillingCycleModel, ManualTenantModel
)
from leasebot.services import approval_service
from leasebot.services.invite_code_service import get_or_create_invite_code, regenerate_invite_code
from leasebot.services.invite_token_service import create_invite_token
from leasebot.services.live import subscribe_pending_units
from leasebot.services.notification_service import list_notifications, mark_all_read, get_notification_service
from leasebot.services.session_context import SessionContext
from leasebot.services.tenancy_service import list_landlord_tenancies, get_unit_tenancy_history
from leasebot.services.unit_service import (
    create_property, get_property, list_properties, add_unit, add_units_batch,
    get_unit, list_units, get_pending_units, delete_unit, delete_property
)
from leasebot.services.user_service import is_landlord
from leasebot.states import AddPropertyState, AddUnitState, AssignTenantState
from leasebot.utils.ui import UIEmojis, UIMessages, UIKeyboards, format_amount, format_date, get_status_badge


class LandlordFilter(Filter):
    async def __call__(self, event, user: User = None) -> bool:
        return is_landlord(user)

router = Router()
router.message.filter(LandlordFilter())
router.callback_query.filter(LandlordFilter())

# Live request queues, one per landlord
_watchers: Dict[int, SessionContext] = {}


def _ids(data: str):
    return [int(part) for part in data.split("_")[1:]]


async def _notify(session: AsyncSession, user_id, text: str):
    notifier = get_notification_service()
    if notifier:
        await notifier.notify_by_id(session, user_id, text)


# --- Properties ---

@router.message(Command("properties"))
@router.message(F.text.contains("Properties"))
async def show_properties(message: Message, session: AsyncSession, user: User):
    props = await list_properties(session, user.id)

    text = UIMessages.header("My properties", UIEmojis.BUILDING)
    if not props:
        text += UIMessages.info_box("No properties yet.")
    items = [(f"{UIEmojis.BUILDING} {prop.name}", f"prop_{prop.id}") for prop in props]
    items.append((f"{UIEmojis.ADD} Add property", "add_property"))
    await message.answer(text, reply_markup=UIKeyboards.menu_grid(items, columns=1))


@router.callback_query(F.data == "add_property")
async def add_property_start(call: CallbackQuery, state: FSMContext):
    await call.message.answer("🏢 <b>Property name:</b>")
    await state.set_state(AddPropertyState.waiting_for_name)
    await call.answer()


@router.message(AddPropertyState.waiting_for_name)
async def add_property_name(message: Message, state: FSMContext):
    try:
        data = PropertyNameModel(name=message.text)
    except ValidationError:
        await message.answer(UIMessages.warning("Enter a name (up to 128 characters) or /cancel"))
        return
    await state.update_data(name=data.name)
    await message.answer("📍 <b>Address</b> (or <code>-</code> to skip):")
    await state.set_state(AddPropertyState.waiting_for_address)


@router.message(AddPropertyState.waiting_for_address)
async def add_property_address(message: Message, state: FSMContext):
    address = "" if (message.text or "").strip() == "-" else message.text
    await state.update_data(address=address)
    await message.answer(
        "🏠 <b>Unit names</b>, comma separated (e.g. <code>Flat 1, Flat 2</code>), or <code>-</code> to add them later:"
    )
    await state.set_state(AddPropertyState.waiting_for_units)


@router.message(AddPropertyState.waiting_for_units)
async def add_property_units(message: Message, state: FSMContext, session: AsyncSession, user: User):
    data = await state.get_data()
    try:
        prop_data = PropertyNameModel(name=data.get("name"), address=data.get("address"))
    except ValidationError:
        await state.clear()
        await message.answer(UIMessages.error("Property details were lost, please start again."))
        return

    names = []
    if (message.text or "").strip() != "-":
        try:
            names = [UnitNameModel(name=part).name for part in (message.text or "").split(",") if part.strip()]
        except ValidationError:
            await message.answer(UIMessages.warning("Unit names must be 1-64 characters. Try again or /cancel"))
            return

    prop = await create_property(session, user.id, prop_data.name, prop_data.address)
    if names:
        await add_units_batch(session, prop.id, [{"name": name} for name in names])
    code = await get_or_create_invite_code(session, user.id, prop.id, prop.name)
    logging.info(f"Landlord {user.id} created property {prop.id} with {len(names)} units")

    await state.clear()
    text = UIMessages.success(f"Property <b>{html.quote(prop.name)}</b> created.")
    text += "\n" + UIMessages.field("Units", len(names))
    text += UIMessages.field("Property code", f"<code>{code}</code>", UIEmojis.KEY)
    await message.answer(text, reply_markup=UIKeyboards.menu_grid([("Open property", f"prop_{prop.id}")]))


async def _render_property(session: AsyncSession, landlord_id: int, property_id: int):
    prop = await get_property(session, landlord_id, property_id)
    if not prop:
        return None, None

    code = await get_or_create_invite_code(session, landlord_id, prop.id, prop.name)
    units = await list_units(session, prop.id)

    text = UIMessages.header(prop.name, UIEmojis.BUILDING)
    if prop.address:
        text += UIMessages.field("Address", html.quote(prop.address))
    text += UIMessages.field("Property code", f"<code>{code}</code>", UIEmojis.KEY)
    text += "\n"
    for unit in units:
        view = OccupancyView.from_unit(unit, prop.name, prop.currency)
        tenant = f" · {html.quote(view.display_tenant)}" if view.status != UnitStatus.vacant.value else ""
        text += f"{get_status_badge(view.status)} {html.quote(view.unit_name)}{tenant}\n"

    items = [(f"{get_status_badge(unit.status)} {unit.name}", f"unit_{prop.id}_{unit.id}") for unit in units]
    items += [
        (f"{UIEmojis.ADD} Add unit", f"addunit_{prop.id}"),
        (f"{UIEmojis.LINK} Property link", f"plink_{prop.id}"),
        ("🔄 New code", f"regen_{prop.id}"),
        (f"{UIEmojis.DELETE} Delete", f"delprop_{prop.id}"),
    ]
    return text, UIKeyboards.menu_grid(items)


@router.callback_query(F.data.startswith("prop_"))
async def show_property(call: CallbackQuery, session: AsyncSession, user: User):
    (property_id,) = _ids(call.data)
    text, kb = await _render_property(session, user.id, property_id)
    if text is None:
        await call.answer("Property not found.", show_alert=True)
        return
    await call.message.edit_text(text, reply_markup=kb)
    await call.answer()


@router.callback_query(F.data.startswith("regen_"))
async def regenerate_code(call: CallbackQuery, session: AsyncSession, user: User):
    (property_id,) = _ids(call.data)
    prop = await get_property(session, user.id, property_id)
    if not prop:
        await call.answer("Property not found.", show_alert=True)
        return
    try:
        code = await regenerate_invite_code(session, user.id, prop.id, prop.name)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return
    await call.answer(f"New code: {code}. The old code no longer works.", show_alert=True)
    text, kb = await _render_property(session, user.id, property_id)
    await call.message.edit_text(text, reply_markup=kb)


@router.callback_query(F.data.startswith("plink_"))
async def property_invite_link(call: CallbackQuery, session: AsyncSession, user: User):
    (property_id,) = _ids(call.data)
    prop = await get_property(session, user.id, property_id)
    if not prop:
        await call.answer("Property not found.", show_alert=True)
        return
    invite = await create_invite_token(session, user.id, prop.id, property_name=prop.name)
    text = UIMessages.header("Property invite", UIEmojis.LINK)
    text += f"{invite.link}\n\n"
    text += UIMessages.info_box(
        f"Valid until {format_date(invite.expires_at)}. Tenants pick a vacant unit and each request still needs your approval."
    )
    await call.message.answer(text)
    await call.answer()


@router.callback_query(F.data.startswith("delprop_"))
async def delete_property_prompt(call: CallbackQuery):
    (property_id,) = _ids(call.data)
    await call.message.edit_text(
        UIMessages.warning("Delete this property and all its units?"),
        reply_markup=UIKeyboards.confirm_cancel("Delete", "Keep", f"rmprop_{property_id}", f"prop_{property_id}"),
    )
    await call.answer()


@router.callback_query(F.data.startswith("rmprop_"))
async def delete_property_confirm(call: CallbackQuery, session: AsyncSession, user: User):
    (property_id,) = _ids(call.data)
    try:
        await delete_property(session, user.id, property_id)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return
    await call.message.edit_text(UIMessages.success("Property deleted."))
    await call.answer()


# --- Units ---

@router.callback_query(F.data.startswith("addunit_"))
async def add_unit_start(call: CallbackQuery, state: FSMContext):
    (property_id,) = _ids(call.data)
    await state.update_data(property_id=property_id)
    await call.message.answer("🏠 <b>Unit name:</b>")
    await state.set_state(AddUnitState.waiting_for_name)
    await call.answer()


@router.message(AddUnitState.waiting_for_name)
async def add_unit_name(message: Message, state: FSMContext):
    try:
        data = UnitNameModel(name=message.text)
    except ValidationError:
        await message.answer(UIMessages.warning("Enter a unit name (up to 64 characters) or /cancel"))
        return
    await state.update_data(name=data.name)
    await message.answer("💰 <b>Rent amount</b> per billing cycle:")
    await state.set_state(AddUnitState.waiting_for_rent)


@router.message(AddUnitState.waiting_for_rent)
async def add_unit_rent(message: Message, state: FSMContext):
    try:
        data = RentAmountModel(amount=message.text)
    except ValidationError:
        await message.answer(UIMessages.warning("Enter a non-negative number, e.g. <code>150000</code>"))
        return
    await state.update_data(rent_amount=str(data.amount))
    items = [(cycle.value.title(), f"cycle_{cycle.value}") for cycle in BillingCycle]
    await message.answer("📅 <b>Billing cycle:</b>", reply_markup=UIKeyboards.menu_grid(items))
    await state.set_state(AddUnitState.waiting_for_cycle)


@router.callback_query(AddUnitState.waiting_for_cycle, F.data.startswith("cycle_"))
async def add_unit_cycle(call: CallbackQuery, state: FSMContext, session: AsyncSession, user: User):
    try:
        cycle = BillingCycleModel(cycle=call.data.split("_", 1)[1]).cycle
    except ValidationError:
        await call.answer("Unknown billing cycle.", show_alert=True)
        return

    data = await state.get_data()
    await state.clear()

    prop = await get_property(session, user.id, data["property_id"])
    if not prop:
        await call.answer("Property not found.", show_alert=True)
        return

    unit = await add_unit(session, prop.id, data["name"], data["rent_amount"], cycle.value)
    await call.message.edit_text(
        UIMessages.success(f"Unit <b>{html.quote(unit.name)}</b> added to {html.quote(prop.name)}."),
        reply_markup=UIKeyboards.menu_grid([("Open unit", f"unit_{prop.id}_{unit.id}")]),
    )
    await call.answer()


def _unit_keyboard(unit: Unit) -> InlineKeyboardMarkup:
    pid, uid = unit.property_id, unit.id
    if unit.status == UnitStatus.pending_approval.value:
        items = [
            (f"{UIEmojis.CHECK} Approve", f"approve_{pid}_{uid}_{unit.pending_tenant_id}"),
            (f"{UIEmojis.CANCEL} Decline", f"decline_{pid}_{uid}"),
        ]
    elif unit.status == UnitStatus.occupied.value:
        items = [("🚪 Record move-out", f"moveout_{pid}_{uid}")]
    else:
        items = [
            (f"{UIEmojis.LINK} Invite link", f"ulink_{pid}_{uid}"),
            (f"{UIEmojis.GHOST} Assign manually", f"assign_{pid}_{uid}"),
            (f"{UIEmojis.DELETE} Delete", f"delunit_{pid}_{uid}"),
        ]
    items.append((f"{UIEmojis.HISTORY} History", f"history_{pid}_{uid}"))
    items.append((f"{UIEmojis.BACK} Back", f"prop_{pid}"))
    return UIKeyboards.menu_grid(items)


def _unit_text(unit: Unit) -> str:
    view = OccupancyView.from_unit(unit)
    text = UIMessages.header(view.unit_name, UIEmojis.HOME)
    text += UIMessages.field("Status", f"{get_status_badge(view.status)} {view.status.replace('_', ' ')}")
    text += UIMessages.field("Rent", f"{format_amount(view.rent_amount)} / {view.billing_cycle}", UIEmojis.MONEY)
    if view.status == UnitStatus.pending_approval.value:
        text += UIMessages.field("Requested by", html.quote(view.display_tenant), UIEmojis.TENANT)
        text += UIMessages.field("Requested on", format_date(view.start_date), UIEmojis.CALENDAR)
    elif view.status == UnitStatus.occupied.value:
        emoji = UIEmojis.GHOST if view.is_ghost else UIEmojis.TENANT
        text += UIMessages.field("Tenant", html.quote(view.display_tenant), emoji)
    return text


@router.callback_query(F.data.startswith("unit_"))
async def show_unit(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    unit = await get_unit(session, user.id, property_id, unit_id)
    if not unit:
        await call.answer("Unit not found.", show_alert=True)
        return
    await call.message.edit_text(_unit_text(unit), reply_markup=_unit_keyboard(unit))
    await call.answer()


@router.callback_query(F.data.startswith("ulink_"))
async def unit_invite_link(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    prop = await get_property(session, user.id, property_id)
    unit = await get_unit(session, user.id, property_id, unit_id)
    if not prop or not unit:
        await call.answer("Unit not found.", show_alert=True)
        return

    invite = await create_invite_token(
        session, user.id, prop.id,
        property_name=prop.name,
        unit_id=unit.id,
        unit_name=unit.name,
        rent_amount=unit.rent_amount,
        billing_cycle=unit.billing_cycle,
    )
    text = UIMessages.header(f"Invite for {unit.name}", UIEmojis.LINK)
    text += f"{invite.link}\n\n"
    text += UIMessages.info_box(
        f"Single use, valid until {format_date(invite.expires_at)}. Any earlier link for this unit no longer works."
    )
    await call.message.answer(text)
    await call.answer()


@router.callback_query(F.data.startswith("delunit_"))
async def delete_unit_prompt(call: CallbackQuery):
    property_id, unit_id = _ids(call.data)
    await call.message.edit_text(
        UIMessages.warning("Delete this unit?"),
        reply_markup=UIKeyboards.confirm_cancel("Delete", "Keep", f"rmunit_{property_id}_{unit_id}", f"unit_{property_id}_{unit_id}"),
    )
    await call.answer()


@router.callback_query(F.data.startswith("rmunit_"))
async def delete_unit_confirm(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    try:
        await delete_unit(session, user.id, property_id, unit_id)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return
    await call.message.edit_text(
        UIMessages.success("Unit deleted."),
        reply_markup=UIKeyboards.menu_grid([("Back to property", f"prop_{property_id}")]),
    )
    await call.answer()


@router.callback_query(F.data.startswith("history_"))
async def unit_history(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    unit = await get_unit(session, user.id, property_id, unit_id)
    if not unit:
        await call.answer("Unit not found.", show_alert=True)
        return

    tenancies = await get_unit_tenancy_history(session, property_id, unit_id)
    text = UIMessages.header(f"{unit.name} history", UIEmojis.HISTORY)
    if not tenancies:
        text += UIMessages.info_box("No tenancies yet.")
    for tenancy in tenancies:
        view = OccupancyView.from_tenancy(tenancy)
        text += f"{get_status_badge(view.status)} {html.quote(view.display_tenant)}: {format_date(view.start_date)} - {format_date(view.end_date)}\n"
    await call.message.answer(text)
    await call.answer()


# --- Approval workflow ---

@router.callback_query(F.data.startswith("approve_"))
async def approve(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id, tenant_id = _ids(call.data)
    try:
        tenancy = await approval_service.approve_request(session, user.id, property_id, unit_id, tenant_id)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return

    await call.message.edit_text(UIMessages.success(f"{html.quote(tenancy.tenant_name or 'Tenant')} moved into <b>{html.quote(tenancy.unit_name)}</b>."))
    await call.answer()
    await _notify(
        session, tenant_id,
        f"{UIEmojis.CHECK} Your request for <b>{html.quote(tenancy.unit_name)}</b> in {html.quote(tenancy.property_name)} was approved. Welcome home!"
    )


@router.callback_query(F.data.startswith("decline_"))
async def decline(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    unit = await get_unit(session, user.id, property_id, unit_id)
    tenant_id = unit.pending_tenant_id if unit else None
    try:
        unit = await approval_service.decline_request(session, user.id, property_id, unit_id)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return

    await call.message.edit_text(UIMessages.info_box(f"Request for {html.quote(unit.name)} declined."))
    await call.answer()
    await _notify(session, tenant_id, f"{UIEmojis.CANCEL} Your request for <b>{html.quote(unit.name)}</b> was declined.")


@router.callback_query(F.data.startswith("moveout_"))
async def move_out(call: CallbackQuery, session: AsyncSession, user: User):
    property_id, unit_id = _ids(call.data)
    try:
        tenancy = await approval_service.record_move_out(session, user.id, property_id, unit_id)
    except ValueError as e:
        await call.answer(str(e), show_alert=True)
        return

    unit = await get_unit(session, user.id, property_id, unit_id)
    await call.message.edit_text(_unit_text(unit), reply_markup=_unit_keyboard(unit))
    await call.answer("Move-out recorded.")
    if tenancy:
        await _notify(
            session, tenancy.tenant_id,
            f"{UIEmojis.HOME} Your tenancy at <b>{html.quote(tenancy.unit_name)}</b> ended on {format_date(tenancy.end_date)}."
        )


@router.callback_query(F.data.startswith("assign_"))
async def assign_start(call: CallbackQuery, state: FSMContext):
    property_id, unit_id = _ids(call.data)
    await state.update_data(property_id=property_id, unit_id=unit_id)
    await call.message.answer(f"{UIEmojis.TENANT} <b>Tenant name</b> (or <code>-</code> to skip):")
    await state.set_state(AssignTenantState.waiting_for_name)
    await call.answer()


@router.message(AssignTenantState.waiting_for_name)
async def assign_name(message: Message, state: FSMContext):
    name = "" if (message.text or "").strip() == "-" else message.text
    await state.update_data(tenant_name=name)
    await message.answer("📧 <b>Tenant email</b> (or <code>-</code> to skip):")
    await state.set_state(AssignTenantState.waiting_for_email)


@router.message(AssignTenantState.waiting_for_email)
async def assign_email(message: Message, state: FSMContext, session: AsyncSession, user: User):
    data = await state.get_data()
    email = "" if (message.text or "").strip() == "-" else message.text
    try:
        tenant = ManualTenantModel(name=data.get("tenant_name"), email=email)
    except ValidationError as e:
        await message.answer(UIMessages.warning(e.errors()[0]["msg"]))
        return

    await state.clear()
    try:
        tenancy = await approval_service.assign_tenant(
            session, user.id, data["property_id"], data["unit_id"],
            tenant_name=tenant.name, tenant_email=tenant.email or "",
        )
    except ValueError as e:
        await message.answer(UIMessages.error(html.quote(str(e))))
        return

    await message.answer(UIMessages.success(f"{html.quote(tenancy.tenant_name or tenancy.tenant_email)} assigned to <b>{html.quote(tenancy.unit_name)}</b>."))


# --- Requests queue ---

def _requests_view(units):
    text = UIMessages.header("Join requests", UIEmojis.PENDING)
    if not units:
        text += UIMessages.info_box("No pending requests.")
    items = []
    for unit in units:
        view = OccupancyView.from_unit(unit)
        text += f"• <b>{html.quote(view.unit_name)}</b>: {html.quote(view.display_tenant)} ({format_date(view.start_date)})\n"
        items.append((f"{UIEmojis.CHECK} {unit.name}", f"approve_{unit.property_id}_{unit.id}_{unit.pending_tenant_id}"))
        items.append((f"{UIEmojis.CANCEL} {unit.name}", f"decline_{unit.property_id}_{unit.id}"))
    return text, UIKeyboards.menu_grid(items)


@router.message(Command("requests"))
@router.message(F.text.contains("Requests"))
async def show_requests(message: Message, session: AsyncSession, user: User):
    text, kb = _requests_view(await get_pending_units(session, user.id))
    await message.answer(text, reply_markup=kb)


@router.message(Command("watch"))
async def watch_requests(message: Message, bot: Bot, user: User):
    """Post a request queue message that keeps itself up to date."""
    if user.id in _watchers:
        await message.answer(UIMessages.info_box("Already watching. Use /unwatch to stop."))
        return

    board = await message.answer(UIMessages.header("Join requests", UIEmojis.PENDING))
    chat_id, message_id = board.chat.id, board.message_id

    async def on_snapshot(units):
        text, kb = _requests_view(units)
        try:
            await bot.edit_message_text(text, chat_id=chat_id, message_id=message_id, reply_markup=kb)
        except TelegramBadRequest as e:
            # Telegram rejects edits that change nothing
            if "not modified" not in str(e):
                raise

    ctx = SessionContext().attach(user)
    ctx.track(await subscribe_pending_units(user.id, on_snapshot))
    _watchers[user.id] = ctx


@router.message(Command("unwatch"))
async def unwatch_requests(message: Message, user: User):
    ctx = _watchers.pop(user.id, None)
    if ctx:
        ctx.detach()
    await message.answer(UIMessages.info_box("Live request queue stopped."))


# --- Inbox and tenancies ---

@router.message(Command("notifications"))
@router.message(F.text.contains("Notifications"))
async def show_notifications(message: Message, session: AsyncSession, user: User):
    notifications = await list_notifications(session, user.id)
    text = UIMessages.header("Notifications", UIEmojis.BELL)
    if not notifications:
        text += UIMessages.info_box("Nothing here.")
    for item in notifications[:20]:
        marker = "🆕 " if not item.read else ""
        text += f"{marker}<b>{html.quote(item.title)}</b> {html.quote(item.message or '')}\n"
    await mark_all_read(session, user.id)
    await message.answer(text)


@router.message(Command("tenancies"))
@router.message(F.text.contains("Tenancies"))
async def show_tenancies(message: Message, session: AsyncSession, user: User):
    tenancies = await list_landlord_tenancies(session, user.id)
    text = UIMessages.header("Tenancies", UIEmojis.HISTORY)
    if not tenancies:
        text += UIMessages.info_box("No tenancies yet.")
    for tenancy in tenancies[:30]:
        view = OccupancyView.from_tenancy(tenancy)
        text += (
            f"{get_status_badge(view.status)} <b>{html.quote(view.property_name)} · {html.quote(view.unit_name)}</b>: {html.quote(view.display_tenant)}, "
            f"{format_amount(view.rent_amount, view.currency)} / {view.billing_cycle}, since {format_date(view.start_date)}\n"
        )
    await message.answer(text)
