"""
Per-update identity.

A SessionContext starts anonymous, gets the authenticated user via
``attach`` and gives it up via ``detach``. Live subscriptions opened on
behalf of the user are tracked so ``detach`` can release them.
"""
import logging
from typing import Callable, List, Optional

from leasebot.database.models import User, UserRole


class SessionContext:
    def __init__(self):
        self.user: Optional[User] = None
        self._unsubscribers: List[Callable[[], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user else None

    @property
    def is_landlord(self) -> bool:
        return self.user is not None and self.user.role == UserRole.landlord.value

    def attach(self, user: User) -> "SessionContext":
        if self.user is not None and self.user.id != user.id:
            self.detach()
        self.user = user
        return self

    def track(self, unsubscribe: Callable[[], None]) -> Callable[[], None]:
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def detach(self) -> None:
        while self._unsubscribers:
            unsubscribe = self._unsubscribers.pop()
            try:
                unsubscribe()
            except Exception as e:
                logging.warning(f"Failed to release subscription: {e}")
        self.user = None

    def require_user(self) -> User:
        if self.user is None:
            from leasebot.services.errors import PermissionDeniedError
            raise PermissionDeniedError("Please /start the bot first.")
        return self.user
