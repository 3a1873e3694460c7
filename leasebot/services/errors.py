"""
Domain errors raised by the service layer.

All of them are ``ValueError`` subclasses carrying a human-readable message,
so handlers can show ``str(error)`` directly.
"""


class InviteCodeError(ValueError):
    pass


class InviteTokenError(ValueError):
    """Invite token redemption failure.

    ``reason`` is one of ``not_found``, ``already_used``, ``expired``,
    ``unit_occupied``, ``own_invite`` or ``unit_required``.
    """

    MESSAGES = {
        "not_found": "Invite link not found.",
        "already_used": "This invite has already been accepted.",
        "expired": "This invite link has expired.",
        "unit_occupied": "This unit already has a tenant assigned.",
        "own_invite": "You cannot accept your own invite.",
        "unit_required": "This invite is for a whole property, pick a unit first.",
    }

    def __init__(self, reason: str, message: str = None):
        self.reason = reason
        super().__init__(message or self.MESSAGES.get(reason, "Invite is not valid."))


class WorkflowError(ValueError):
    """Invalid unit state transition (e.g. approving a unit that is not pending)."""


class PermissionDeniedError(ValueError):
    pass


class ActiveTenancyError(ValueError):
    """Destructive action refused while an active tenancy references the target."""
