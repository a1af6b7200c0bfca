# am_core/iam/permissions.py

from __future__ import annotations

from rest_framework.permissions import BasePermission

from am_core.iam.roles import ROLE_ADMIN, ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR, user_roles


class ActionRolePermission(BasePermission):
    """
    Role-based permission keyed by ViewSet action.

    Subclasses declare `action_roles = {"approve": {ROLE_MANAGER}, ...}`.
    - ADMIN: everything
    - list/retrieve: any known role (AUDITOR included)
    - unknown action => deny by default
    """

    message = "You do not have permission to perform this action."

    read_actions = {"list", "retrieve"}
    action_roles: dict[str, set[str]] = {}

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False

        roles = user_roles(user)
        if ROLE_ADMIN in roles:
            return True

        action = getattr(view, "action", None)

        if action in self.read_actions:
            return bool(roles & {ROLE_MANAGER, ROLE_OPERATOR, ROLE_AUDITOR})

        allowed = self.action_roles.get(action)
        if allowed is None:
            return False
        return bool(roles & allowed)
