# am_core/audit/permissions.py
from __future__ import annotations

from am_core.iam.permissions import ActionRolePermission
from am_core.iam.roles import ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR


class AuditPermission(ActionRolePermission):
    action_roles = {
        "verify": {ROLE_AUDITOR, ROLE_MANAGER},
        "action_names": {ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR},
        "entity_types": {ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR},
    }
