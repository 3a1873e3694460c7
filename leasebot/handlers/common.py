from aiogram import Router, F, html
from aiogram.types import Message, CallbackQuery
from aiogram.filters import CommandStart, Command, CommandObject
from aiogram.fsm.context import FSMContext
from sqlalchemy.ext.asyncio import AsyncSession

from leasebot.database.models import User
from leasebot.services.user_service import is_landlord
from leasebot.utils.ui import UIEmojis, UIMessages, UIKeyboards

router = Router()


def is_token_payload(payload: str) -> bool:
    """Invite tokens are slugs with a hyphen; invite codes are 6 plain characters."""
    return "-" in payload


@router.message(CommandStart())
async def cmd_start(message: Message, command: CommandObject, state: FSMContext, session: AsyncSession, user: User = None):
    from leasebot.handlers.tenant import show_invite_token, show_property_for_code

    await state.clear()

    # t.me/<bot>?start=<payload> arrives as "/start <payload>"
    payload = (command.args or "").strip()
    if payload:
        if is_token_payload(payload):
            await show_invite_token(message, session, user, payload)
        else:
            await show_property_for_code(message, session, user, payload)
        return

    landlord = is_landlord(user)
    text = UIMessages.header("Welcome!", UIEmojis.HOME)
    if user and user.full_name:
        text += f"Hello, <b>{html.quote(user.full_name)}</b>!\n\n"
    if landlord:
        text += "Manage your properties, invites and tenant requests from the menu below.\n"
    else:
        text += "Got an invite link or a 6-character property code from your landlord?\n"
        text += "Tap <b>Join property</b> to use it.\n"

    await message.answer(text, reply_markup=UIKeyboards.main_reply_keyboard(landlord))


@router.message(Command("help"))
async def cmd_help(message: Message, user: User = None):
    text = UIMessages.header("Help", UIEmojis.KEY)
    if is_landlord(user):
        text += "/properties - your properties and units\n"
        text += "/requests - join requests waiting for you\n"
        text += "/notifications - your inbox\n"
    else:
        text += "/join - enter a property code\n"
        text += "/home - your current and past tenancies\n"
    text += "/id - your Telegram ID\n"
    text += "/cancel - abort the current step\n"
    await message.answer(text)


@router.message(Command("id"))
async def cmd_id(message: Message):
    await message.answer(f"Your Telegram ID: <code>{message.from_user.id}</code>")


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    await state.clear()
    await message.answer(UIMessages.info_box("Cancelled."))


@router.callback_query(F.data == "cancel")
async def cancel_callback(call: CallbackQuery, state: FSMContext):
    await state.clear()
    await call.message.edit_text(UIMessages.info_box("Cancelled."))
    await call.answer()


@router.callback_query(F.data == "ignore")
async def ignore_callback(call: CallbackQuery):
    await call.answer()
