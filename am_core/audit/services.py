# am_core/audit/services.py
from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, Iterable, Optional, Tuple
from uuid import UUID

from django.db import DatabaseError, connection, transaction
from django.db.transaction import TransactionManagementError
from django.db.models import Model
from django.utils import timezone

from am_core.audit.models import AuditEntry
from am_core.common.db import translate_db_error
from am_core.common.exceptions import AuditChainBrokenError, ValidationError
from am_core.common.hashing import hash_payload, to_jsonable

logger = logging.getLogger(__name__)


def snapshot(instance: Model, fields: Iterable[str]) -> Dict[str, Any]:
    """
    Plain-value view of selected model fields (FKs as their raw id).
    """
    data: Dict[str, Any] = {}
    for name in fields:
        field = instance._meta.get_field(name)
        attname = getattr(field, "attname", name)
        data[name] = getattr(instance, attname)
    return to_jsonable(data)


def diff_values(
    previous: Optional[Dict[str, Any]],
    new: Optional[Dict[str, Any]],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Field-level diff: only keys whose value changed, on both sides.
    """
    previous = to_jsonable(previous or {})
    new = to_jsonable(new or {})
    changed = [k for k in sorted(set(previous) | set(new)) if previous.get(k) != new.get(k)]
    return (
        {k: previous.get(k) for k in changed},
        {k: new.get(k) for k in changed},
    )


def _chain_payload(entry: AuditEntry) -> Dict[str, Any]:
    return {
        "entity_type": entry.entity_type,
        "entity_id": str(entry.entity_id),
        "action": entry.action,
        "actor_id": entry.actor_id,
        "ip_address": entry.ip_address,
        "previous_values": entry.previous_values,
        "new_values": entry.new_values,
        "description": entry.description,
        "timestamp": entry.timestamp.isoformat(),
        "sequence": entry.sequence,
        "previous_hash": entry.previous_hash,
    }


class AuditLedger:
    """
    Append-only writer for AuditEntry.

    record() must run inside the transaction of the mutation it describes;
    a ledger write outside a transaction is a programming error.
    """

    @staticmethod
    def record(
        *,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_id: str | None,
        previous: Optional[Dict[str, Any]] = None,
        new: Optional[Dict[str, Any]] = None,
        ip_address: str | None = None,
        description: str = "",
        timestamp: datetime | None = None,
    ) -> AuditEntry:
        if not connection.in_atomic_block:
            raise TransactionManagementError(
                "AuditLedger.record() must be called inside the mutation's transaction."
            )

        try:
            with transaction.atomic():
                last = (
                    AuditEntry.objects.select_for_update()
                    .filter(entity_type=entity_type, entity_id=entity_id)
                    .order_by("-sequence")
                    .first()
                )

                now = timezone.now()
                if timestamp is None:
                    # clock skew between workers must not reorder an entity's history
                    ts = max(now, last.timestamp) if last else now
                else:
                    if last and timestamp < last.timestamp:
                        raise ValidationError(
                            "timestamp",
                            "Audit timestamp is earlier than the entity's last recorded entry.",
                        )
                    ts = timestamp
                ts = ts.astimezone(dt_timezone.utc)

                entry = AuditEntry(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=action,
                    actor_id=str(actor_id) if actor_id is not None else "",
                    ip_address=ip_address or None,
                    previous_values=to_jsonable(previous) if previous is not None else None,
                    new_values=to_jsonable(new) if new is not None else None,
                    description=description or "",
                    timestamp=ts,
                    sequence=(last.sequence + 1) if last else 1,
                    previous_hash=last.entry_hash if last else "",
                )
                entry.entry_hash = hash_payload(_chain_payload(entry))
                entry.save(force_insert=True)
        except DatabaseError as exc:
            raise translate_db_error(exc) from exc

        logger.debug("audit %s %s:%s #%s", action, entity_type, entity_id, entry.sequence)
        return entry

    @staticmethod
    def record_change(
        *,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_id: str | None,
        before: Dict[str, Any],
        after: Dict[str, Any],
        ip_address: str | None = None,
        description: str = "",
    ) -> AuditEntry:
        """
        record() with previous/new reduced to the fields that actually changed.
        """
        prev, new = diff_values(before, after)
        return AuditLedger.record(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            previous=prev,
            new=new,
            ip_address=ip_address,
            description=description,
        )

    @staticmethod
    def verify_chain(*, entity_type: str, entity_id: UUID) -> int:
        """
        Recompute the entity's hash chain. Returns the number of verified entries.
        """
        expected_prev = ""
        count = 0
        qs = AuditEntry.objects.filter(entity_type=entity_type, entity_id=entity_id).order_by("sequence")
        for entry in qs.iterator():
            count += 1
            if entry.sequence != count:
                raise AuditChainBrokenError(
                    "Audit chain has a gap.", entity_type=entity_type, entity_id=str(entity_id), sequence=count
                )
            if entry.previous_hash != expected_prev:
                raise AuditChainBrokenError(
                    "Audit chain link mismatch.",
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    sequence=entry.sequence,
                )
            if hash_payload(_chain_payload(entry)) != entry.entry_hash:
                raise AuditChainBrokenError(
                    "Audit entry content does not match its hash.",
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    sequence=entry.sequence,
                )
            expected_prev = entry.entry_hash
        return count
