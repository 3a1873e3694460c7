from aiogram import html
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton, ReplyKeyboardMarkup, KeyboardButton
from decimal import Decimal
from typing import List, Tuple, Optional

# ========== UI Constants ==========
class UIEmojis:
    HOME = "🏠"
    BUILDING = "🏢"
    KEY = "🔑"
    LINK = "🔗"
    CHECK = "✅"
    CANCEL = "❌"
    BACK = "◀️"
    ADD = "➕"
    DELETE = "🗑️"
    WARNING = "⚠️"
    PENDING = "⏳"
    TENANT = "👤"
    GHOST = "👻"
    BELL = "🔔"
    MONEY = "💰"
    CALENDAR = "📅"
    HISTORY = "📜"


class UIMessages:
    """Formatted message templates"""

    DIVIDER_FULL = "━" * 30

    @staticmethod
    def header(title: str, emoji: str = "") -> str:
        """Titles often carry property or unit names, so they are escaped here."""
        title = html.quote(title)
        if emoji:
            return f"\n{emoji} <b>{title}</b>\n{UIMessages.DIVIDER_FULL}\n"
        return f"\n<b>{title}</b>\n{UIMessages.DIVIDER_FULL}\n"

    @staticmethod
    def field(name: str, value, emoji: str = "") -> str:
        prefix = f"{emoji} " if emoji else "• "
        return f"{prefix}<b>{name}:</b> {value}\n"

    @staticmethod
    def info_box(text: str) -> str:
        return f"ℹ️ <i>{text}</i>"

    @staticmethod
    def success(text: str) -> str:
        return f"✅ {text}"

    @staticmethod
    def error(text: str) -> str:
        return f"❌ {text}"

    @staticmethod
    def warning(text: str) -> str:
        return f"⚠️ {text}"


class UIKeyboards:
    """Common keyboard layouts"""

    @staticmethod
    def back_button(callback_data: str = "back") -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(text=f"{UIEmojis.BACK} Back", callback_data=callback_data)]
        ])

    @staticmethod
    def confirm_cancel(
        confirm_text: str = "Confirm",
        cancel_text: str = "Cancel",
        confirm_callback: str = "confirm",
        cancel_callback: str = "cancel"
    ) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(inline_keyboard=[
            [
                InlineKeyboardButton(text=f"{UIEmojis.CHECK} {confirm_text}", callback_data=confirm_callback),
                InlineKeyboardButton(text=f"{UIEmojis.CANCEL} {cancel_text}", callback_data=cancel_callback)
            ]
        ])

    @staticmethod
    def menu_grid(items: List[Tuple[str, str]], columns: int = 2) -> InlineKeyboardMarkup:
        """Create a grid menu from list of (text, callback_data) tuples"""
        keyboard = []
        row = []

        for text, callback in items:
            row.append(InlineKeyboardButton(text=text, callback_data=callback))
            if len(row) == columns:
                keyboard.append(row)
                row = []

        if row:
            keyboard.append(row)

        return InlineKeyboardMarkup(inline_keyboard=keyboard)

    @staticmethod
    def main_reply_keyboard(is_landlord: bool = False) -> ReplyKeyboardMarkup:
        if is_landlord:
            keyboard = [
                [KeyboardButton(text="🏢 Properties"), KeyboardButton(text="⏳ Requests")],
                [KeyboardButton(text="🔔 Notifications"), KeyboardButton(text="📜 Tenancies")],
            ]
        else:
            keyboard = [
                [KeyboardButton(text="🏠 My home"), KeyboardButton(text="🔑 Join property")],
            ]
        return ReplyKeyboardMarkup(keyboard=keyboard, resize_keyboard=True)


# === Helper Functions ===

def format_amount(amount, currency: Optional[str] = None) -> str:
    if amount is None:
        return "-"
    text = f"{Decimal(str(amount)):,.2f}"
    return f"{text} {currency}" if currency else text


def format_date(date_obj) -> str:
    if not date_obj:
        return "-"
    return date_obj.strftime("%d %b %Y")


def get_status_badge(status: str) -> str:
    badges = {
        "vacant": "⚪",
        "pending_approval": "🟡",
        "occupied": "🟢",
        "active": "🟢",
        "former": "📦",
    }
    return badges.get(status, "⚪")
