# am_core/movements/permissions.py
from __future__ import annotations

from am_core.iam.permissions import ActionRolePermission
from am_core.iam.roles import ROLE_MANAGER, ROLE_OPERATOR


class MovementPermission(ActionRolePermission):
    """
    Operators request and carry out movements; only managers decide on them.
    """

    action_roles = {
        "create": {ROLE_OPERATOR, ROLE_MANAGER},
        "destroy": {ROLE_OPERATOR, ROLE_MANAGER},
        "approve": {ROLE_MANAGER},
        "reject": {ROLE_MANAGER},
        "complete": {ROLE_OPERATOR, ROLE_MANAGER},
        "cancel": {ROLE_OPERATOR, ROLE_MANAGER},
    }
