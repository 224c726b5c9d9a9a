"""
Host role signal: whether the viewer may edit the layout.

The host tells us once per session who is looking. We only use that to
decide whether layout editing is offered; the host remains responsible for
real authorization.
"""
from typing import Any, Mapping, Optional

PRIVILEGED_ROLES = {"owner", "admin"}


class ReadOnlyViolation(Exception):
    """Raised when a non-privileged viewer attempts a layout edit."""
    pass


def is_privileged(user: Optional[Mapping[str, Any]]) -> bool:
    """Owner/admin role OR the account-owner flag makes a viewer privileged."""
    if not user:
        return False
    role = user.get("role")
    if isinstance(role, str) and role.strip().lower() in PRIVILEGED_ROLES:
        return True
    owner_flag = user.get("isAccountOwner", user.get("is_account_owner"))
    return _truthy(owner_flag)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class EditGuard:
    """Advisory gate in front of layout edits."""

    def __init__(self, privileged: bool = False):
        self.privileged = privileged

    def require_editor(self, action: str) -> None:
        """
        Raise ReadOnlyViolation unless the viewer is privileged.
        """
        if not self.privileged:
            raise ReadOnlyViolation(
                f"'{action}' is only offered to board owners and admins"
            )
