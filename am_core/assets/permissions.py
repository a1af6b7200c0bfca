# am_core/assets/permissions.py
from __future__ import annotations

from am_core.iam.permissions import ActionRolePermission
from am_core.iam.roles import ROLE_MANAGER, ROLE_OPERATOR


class AssetPermission(ActionRolePermission):
    action_roles = {
        "create": {ROLE_MANAGER},
        "partial_update": {ROLE_MANAGER},
        "destroy": {ROLE_MANAGER},
        "scan": {ROLE_OPERATOR, ROLE_MANAGER},
    }
