# am_core/sites/permissions.py
from __future__ import annotations

from am_core.iam.permissions import ActionRolePermission
from am_core.iam.roles import ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR

_READERS = {ROLE_MANAGER, ROLE_OPERATOR, ROLE_AUDITOR}


class SitePermission(ActionRolePermission):
    """
    Sites and locations are master data: everyone reads, managers maintain.
    """

    action_roles = {
        "create": {ROLE_MANAGER},
        "partial_update": {ROLE_MANAGER},
        "destroy": {ROLE_MANAGER},
        "types": _READERS,
        "locations": _READERS,
    }
