# am_core/audit/selectors.py
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional
from uuid import UUID

from django.db.models import Q, QuerySet
from django.utils.dateparse import parse_datetime

from am_core.audit.models import AuditEntry
from am_core.common.exceptions import ValidationError
from am_core.common.policy import get_policy

# Newest first; id breaks ties between entries sharing a timestamp.
LEDGER_ORDERING = ("-timestamp", "-id")


def query_by_entity(entity_type: str, entity_id: UUID) -> QuerySet[AuditEntry]:
    return AuditEntry.objects.filter(entity_type=entity_type, entity_id=entity_id).order_by(*LEDGER_ORDERING)


def query_by_actor(actor_id: str) -> QuerySet[AuditEntry]:
    return AuditEntry.objects.filter(actor_id=str(actor_id)).order_by(*LEDGER_ORDERING)


def list_audit_entries(
    *,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    actor_id: str | None = None,
    action: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> QuerySet[AuditEntry]:
    qs = AuditEntry.objects.all()

    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if actor_id:
        qs = qs.filter(actor_id=str(actor_id))
    if action:
        qs = qs.filter(action=action)
    if start:
        qs = qs.filter(timestamp__gte=start)
    if end:
        qs = qs.filter(timestamp__lte=end)

    return qs.order_by(*LEDGER_ORDERING)


def distinct_actions() -> List[str]:
    return list(AuditEntry.objects.order_by("action").values_list("action", flat=True).distinct())


def distinct_entity_types() -> List[str]:
    return list(AuditEntry.objects.order_by("entity_type").values_list("entity_type", flat=True).distinct())


# -------------------------------------------------------------------
# Keyset pagination (restartable cursors for non-HTTP consumers)
# -------------------------------------------------------------------

@dataclass(frozen=True)
class AuditPage:
    entries: List[AuditEntry]
    next_cursor: Optional[str]


def encode_cursor(entry: AuditEntry) -> str:
    raw = json.dumps({"ts": entry.timestamp.isoformat(), "id": entry.id}).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        ts = parse_datetime(data["ts"])
        entry_id = int(data["id"])
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeError):
        raise ValidationError("cursor", "Invalid audit cursor.")
    if ts is None:
        raise ValidationError("cursor", "Invalid audit cursor.")
    return ts, entry_id


def fetch_page(
    qs: QuerySet[AuditEntry],
    *,
    cursor: str | None = None,
    page_size: int | None = None,
) -> AuditPage:
    """
    One newest-first page strictly after `cursor`.
    The same cursor always yields the same page, so callers can resume.
    """
    size = page_size or get_policy().audit_page_size
    qs = qs.order_by(*LEDGER_ORDERING)

    if cursor:
        ts, entry_id = decode_cursor(cursor)
        qs = qs.filter(Q(timestamp__lt=ts) | Q(timestamp=ts, id__lt=entry_id))

    rows = list(qs[: size + 1])
    has_more = len(rows) > size
    rows = rows[:size]
    return AuditPage(entries=rows, next_cursor=encode_cursor(rows[-1]) if has_more else None)


def iter_pages(
    qs: QuerySet[AuditEntry],
    *,
    page_size: int | None = None,
    cursor: str | None = None,
) -> Iterator[AuditPage]:
    """
    Lazy reverse-chronological walk, one page per query. Each page carries the
    cursor to resume from if the consumer stops early.
    """
    while True:
        page = fetch_page(qs, cursor=cursor, page_size=page_size)
        yield page
        if page.next_cursor is None:
            return
        cursor = page.next_cursor


def iter_entries(
    qs: QuerySet[AuditEntry],
    *,
    page_size: int | None = None,
    cursor: str | None = None,
) -> Iterator[AuditEntry]:
    for page in iter_pages(qs, page_size=page_size, cursor=cursor):
        yield from page.entries
