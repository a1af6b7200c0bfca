# am_core/common/policy.py
from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

_DEFAULTS = {
    "SELF_COMPLETING_TYPES": ["CHECKOUT", "RETURN"],
    "DEFAULT_DISCREPANCY_PRIORITY": "MEDIUM",
    "AUDIT_PAGE_SIZE": 50,
}


@dataclass(frozen=True)
class MovementPolicy:
    self_completing_types: frozenset[str]
    default_discrepancy_priority: str
    audit_page_size: int


def get_policy() -> MovementPolicy:
    """
    Read at call time (not import time) so settings overrides apply.
    """
    conf = {**_DEFAULTS, **getattr(settings, "ASSET_MOVEMENTS", {})}
    return MovementPolicy(
        self_completing_types=frozenset(str(t).upper() for t in conf["SELF_COMPLETING_TYPES"]),
        default_discrepancy_priority=str(conf["DEFAULT_DISCREPANCY_PRIORITY"]).upper(),
        audit_page_size=int(conf["AUDIT_PAGE_SIZE"]),
    )
