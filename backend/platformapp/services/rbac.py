from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rest_framework.exceptions import PermissionDenied

from platformapp.models import Role, RoleScreenPermission, Screen

ACTION_FLAGS = {
    "view": "can_view",
    "add": "can_add",
    "edit": "can_edit",
    "delete": "can_delete",
}

ACTION_VERBS = {
    "view": "view",
    "add": "create",
    "edit": "update",
    "delete": "delete",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    # True when the actor could not be identified at all (401 rather than 403).
    unauthenticated: bool = False


ALLOW = Decision(True)


def is_super_admin(actor) -> bool:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return False
    if getattr(actor, "is_superuser", False):
        return True
    return getattr(actor, "role_slug", None) == Role.Slug.SUPER_ADMIN


def authorize(actor, screen_name: str, action: str) -> Decision:
    """
    Screen-level RBAC check. Fail-closed: an unknown screen or missing
    permission row denies every non-super-admin role.
    """
    if action not in ACTION_FLAGS:
        raise ValueError(f"Unknown action: {action}")

    if is_super_admin(actor):
        return ALLOW

    role_id = getattr(actor, "role_id", None)
    if actor is None or not getattr(actor, "is_authenticated", False) or not role_id:
        return Decision(False, "Unauthenticated", unauthenticated=True)

    screen = Screen.objects.filter(name=screen_name).first()
    if screen is None:
        return Decision(False, f"Permission denied: '{screen_name}' is not available. "
                               "Contact an administrator.")

    perm = RoleScreenPermission.objects.filter(role_id=role_id, screen=screen).first()
    if perm is None:
        return Decision(False, f"Permission denied: You do not have access to '{screen_name}'. "
                               "Contact an administrator.")

    if not getattr(perm, ACTION_FLAGS[action]):
        return Decision(False, f"Permission denied: You are not allowed to {ACTION_VERBS[action]} "
                               f"'{screen_name}'. Contact an administrator if you need this access.")
    return ALLOW


def permission_matrix(actor) -> dict:
    """{screen name: {view, add, edit, delete}} for the actor's role."""
    if is_super_admin(actor):
        flags = {k: True for k in ACTION_FLAGS}
        return {name: dict(flags) for name in Screen.objects.values_list("name", flat=True)}
    rows = (
        RoleScreenPermission.objects
        .select_related("screen")
        .filter(role_id=getattr(actor, "role_id", None))
    )
    return {
        r.screen.name: {action: getattr(r, flag) for action, flag in ACTION_FLAGS.items()}
        for r in rows
    }


def require_super_admin(actor, message: str = "Only super administrators can perform this action") -> None:
    """Writes to global (unscoped) tables are reserved for super admins."""
    if not is_super_admin(actor):
        raise PermissionDenied(message)


def super_admin_writes(label: str):
    """Hook usable as pre_create / pre_update / pre_delete on a global resource."""
    message = f"Only super administrators can manage {label}"

    def guard(actor, *args):
        require_super_admin(actor, message)
    return guard
