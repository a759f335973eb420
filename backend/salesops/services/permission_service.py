# Overview: Role checks for writes against a driver-day.

"""
The caller's role is handed in explicitly by the route layer (taken from the
authenticated user). Nothing here reads session state.
"""

from ..domain import PRIVILEGED_ROLES, is_privileged


class PermissionDeniedError(Exception):
    """Authenticated but not allowed to perform this action."""

    def __init__(self, message: str, *, role: str | None = None, action: str | None = None):
        super().__init__(message)
        self.role = role
        self.action = action


def require_privileged(role: str | None, action: str) -> None:
    if not is_privileged(role):
        allowed = ", ".join(sorted(PRIVILEGED_ROLES))
        raise PermissionDeniedError(
            f"Only {allowed} may {action}",
            role=role,
            action=action,
        )


def ensure_editable(summary, role: str | None, action: str = "edit this day") -> None:
    """
    Locked days (status left Pending and not unlocked) are read-only for
    everyone but admins and managers.
    """
    if summary.is_locked and not is_privileged(role):
        raise PermissionDeniedError(
            f"Day is locked ({summary.reconciliation_status}); ask an admin or manager to unlock it before you {action}",
            role=role,
            action=action,
        )
