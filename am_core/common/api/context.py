# am_core/common/api/context.py
from __future__ import annotations

from typing import Any, Dict

from am_core.common.middleware import client_ip
from am_core.iam.roles import actor_id_for


def actor_context(request) -> Dict[str, Any]:
    """
    Who and from where, in the keyword shape every service write accepts.
    """
    return {
        "actor_id": actor_id_for(request.user),
        "ip_address": getattr(request, "client_ip", None) or client_ip(request),
    }
