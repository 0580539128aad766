from __future__ import annotations

from rest_framework.exceptions import NotAuthenticated, PermissionDenied
from rest_framework.permissions import BasePermission

from platformapp.services.rbac import authorize

METHOD_ACTIONS = {
    "GET": "view",
    "HEAD": "view",
    "OPTIONS": "view",
    "POST": "add",
    "PUT": "edit",
    "PATCH": "edit",
    "DELETE": "delete",
}


class ScreenPermission(BasePermission):
    """
    Screen-based RBAC for a view.

    The view declares `screen_name` and may map individual DRF actions to a
    different RBAC action through `screen_actions`, e.g.
    `{"attachments": {"POST": "edit"}}`. Denials raise with the resolver's
    reason so the client sees why.
    """

    def required_action(self, request, view) -> str:
        overrides = getattr(view, "screen_actions", None) or {}
        per_action = overrides.get(getattr(view, "action", None)) or {}
        if isinstance(per_action, str):
            return per_action
        return per_action.get(request.method) or METHOD_ACTIONS.get(request.method, "view")

    def has_permission(self, request, view):
        screen = getattr(view, "screen_name", None)
        if not screen:
            # Views without a screen still require an authenticated principal.
            if not (request.user and request.user.is_authenticated):
                raise NotAuthenticated("Unauthenticated")
            return True

        decision = authorize(request.user, screen, self.required_action(request, view))
        if decision.allowed:
            return True
        if decision.unauthenticated:
            raise NotAuthenticated(decision.reason)
        raise PermissionDenied(decision.reason)


