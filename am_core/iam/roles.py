# am_core/iam/roles.py

from __future__ import annotations

from typing import Set

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "MANAGER"      # approves/rejects movements, resolves discrepancies
ROLE_OPERATOR = "OPERATOR"    # requests/completes movements, scans, opens discrepancies
ROLE_AUDITOR = "AUDITOR"      # read-only, including the audit ledger

ALL_ROLES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_OPERATOR, ROLE_AUDITOR]


def user_roles(user) -> Set[str]:
    """
    Resolve roles from:
    1) Django groups: user.groups
    2) Optional user.role / user.roles attribute supplied by the identity provider

    Returns set of role strings.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    # Superuser treated as admin
    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if getattr(user, "role", None):
        roles.add(str(user.role))

    if getattr(user, "roles", None):
        try:
            roles.update(set(user.roles))
        except TypeError:
            roles.add(str(user.roles))

    return roles


def actor_id_for(user) -> str:
    """
    The core never authenticates; it trusts the identity collaborator's user id.
    """
    return str(user.pk)
