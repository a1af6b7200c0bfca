# am_core/common/hashing.py
"""
Deterministic hashing for the audit chain.
"""
from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace, stable handling of UUID/Decimal/datetime."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_serializer)


def hash_payload(payload: dict) -> str:
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def to_jsonable(data: Any) -> Any:
    """Round-trip through the canonical encoder so JSONField stores plain types."""
    return json.loads(canonicalize_json(data))
