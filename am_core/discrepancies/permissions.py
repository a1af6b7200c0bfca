# am_core/discrepancies/permissions.py
from __future__ import annotations

from am_core.iam.permissions import ActionRolePermission
from am_core.iam.roles import ROLE_MANAGER, ROLE_OPERATOR


class DiscrepancyPermission(ActionRolePermission):
    action_roles = {
        "create": {ROLE_OPERATOR, ROLE_MANAGER},
        "start": {ROLE_OPERATOR, ROLE_MANAGER},
        "resolve": {ROLE_MANAGER},
        "close": {ROLE_MANAGER},
    }
