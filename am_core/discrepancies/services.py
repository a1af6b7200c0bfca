# am_core/discrepancies/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from am_core.assets.models import ASSET_AUDIT_FIELDS, Asset
from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, EntityType
from am_core.audit.services import AuditLedger, snapshot
from am_core.common.db import atomic_operation
from am_core.common.events import publish
from am_core.common.exceptions import InvalidStateError, NotFoundError, ValidationError
from am_core.common.policy import get_policy
from am_core.common.validation import raise_if_invalid, require_choice, require_text
from am_core.discrepancies.models import (
    ACTIVE_STATUSES,
    DISCREPANCY_AUDIT_FIELDS,
    Discrepancy,
    DiscrepancyPriority,
    DiscrepancySource,
    DiscrepancyStatus,
    DiscrepancyType,
)
from am_core.movements.models import MOVEMENT_AUDIT_FIELDS, Movement

logger = logging.getLogger(__name__)


def _event_payload(d: Discrepancy, actor_id: str) -> dict:
    return {
        "discrepancy_id": str(d.id),
        "asset_id": str(d.asset_id),
        "movement_id": str(d.movement_id) if d.movement_id else None,
        "discrepancy_type": d.discrepancy_type,
        "status": d.status,
        "priority": d.priority,
        "actor_id": actor_id,
    }


def _lock_discrepancy(discrepancy_id: UUID) -> Discrepancy:
    try:
        return Discrepancy.objects.select_for_update().get(pk=discrepancy_id)
    except (Discrepancy.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Discrepancy not found.", discrepancy_id=str(discrepancy_id))


def _discrepancy_asset_id(discrepancy_id: UUID):
    try:
        asset_id = Discrepancy.objects.filter(pk=discrepancy_id).values_list("asset_id", flat=True).first()
    except (ValueError, DjangoValidationError):
        asset_id = None
    if asset_id is None:
        raise NotFoundError("Discrepancy not found.", discrepancy_id=str(discrepancy_id))
    return asset_id


def _lock_with_asset(discrepancy_id: UUID) -> Discrepancy:
    """
    Asset row first, then the discrepancy: the order movement completion uses.
    """
    AssetService.lock(_discrepancy_asset_id(discrepancy_id), include_deleted=True)
    return _lock_discrepancy(discrepancy_id)


class DiscrepancyService:
    """
    Discrepancy lifecycle: OPEN -> IN_PROGRESS -> RESOLVED -> CLOSED
    (OPEN may resolve directly).

    Opening raises the has_discrepancy flag on the asset (and the movement it
    came from); resolving the last active one on an asset clears it again.
    """

    @staticmethod
    def create_record(
        *,
        asset: Asset,
        movement: Movement | None,
        discrepancy_type: str,
        description: str,
        actor_id: str,
        expected_value: str = "",
        actual_value: str = "",
        priority: str | None = None,
        source: str = DiscrepancySource.MANUAL,
        notes: str = "",
        ip_address: str | None = None,
    ) -> Discrepancy:
        """
        Insert an OPEN discrepancy for an asset the caller already holds locked.

        Flags are raised on the passed instances only; persisting them (and
        auditing that change) is the caller's job, so a movement completion
        writes the asset exactly once.
        """
        priority = priority or get_policy().default_discrepancy_priority
        raise_if_invalid(
            require_choice(discrepancy_type, DiscrepancyType.values, "discrepancy_type"),
            require_text(description, "description", "Description is required."),
            require_choice(priority, DiscrepancyPriority.values, "priority"),
            require_choice(source, DiscrepancySource.values, "source"),
        )
        if movement is not None and movement.asset_id != asset.id:
            raise ValidationError("movement_id", "Movement belongs to a different asset.")

        d = Discrepancy.objects.create(
            discrepancy_type=discrepancy_type,
            asset=asset,
            movement=movement,
            description=description.strip(),
            expected_value=expected_value or "",
            actual_value=actual_value or "",
            status=DiscrepancyStatus.OPEN,
            priority=priority,
            source=source,
            detected_at=timezone.now(),
            detected_by_id=str(actor_id),
            notes=notes or "",
        )

        AuditLedger.record(
            entity_type=EntityType.DISCREPANCY,
            entity_id=d.id,
            action=AuditAction.CREATE,
            actor_id=actor_id,
            new=snapshot(d, DISCREPANCY_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"{d.get_discrepancy_type_display()} discrepancy opened on {asset.asset_tag}",
        )

        asset.has_discrepancy = True
        if movement is not None:
            movement.has_discrepancy = True

        publish("discrepancy.opened", _event_payload(d, actor_id))
        logger.info(
            "discrepancy %s opened on asset %s (%s, expected=%r actual=%r)",
            d.id, asset.asset_tag, discrepancy_type, d.expected_value, d.actual_value,
        )
        return d

    @staticmethod
    def link_movement(
        d: Discrepancy,
        *,
        movement: Movement,
        actor_id: str,
        ip_address: str | None = None,
    ) -> Discrepancy:
        """
        Attach an already active discrepancy to the movement that observed it
        again. Like create_record, the movement flag is only raised in memory.
        """
        movement.has_discrepancy = True
        if d.movement_id == movement.id:
            return d

        before = snapshot(d, DISCREPANCY_AUDIT_FIELDS)
        d.movement = movement
        d.save(update_fields=["movement", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.DISCREPANCY,
            entity_id=d.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=before,
            after=snapshot(d, DISCREPANCY_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Discrepancy observed again on movement completion",
        )
        return d

    @staticmethod
    def persist_asset_flag(
        asset: Asset,
        *,
        before: dict,
        actor_id: str,
        ip_address: str | None = None,
        description: str = "",
    ) -> None:
        after = snapshot(asset, ASSET_AUDIT_FIELDS)
        if after.get("has_discrepancy") == before.get("has_discrepancy"):
            return
        AssetService.save_versioned(asset, expected_version=asset.version, fields=["has_discrepancy"])
        AuditLedger.record_change(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=before,
            after=after,
            ip_address=ip_address,
            description=description,
        )

    @staticmethod
    def persist_movement_flag(
        movement: Movement,
        *,
        before: dict,
        actor_id: str,
        ip_address: str | None = None,
        description: str = "",
    ) -> None:
        after = snapshot(movement, MOVEMENT_AUDIT_FIELDS)
        if after.get("has_discrepancy") == before.get("has_discrepancy"):
            return
        movement.save(update_fields=["has_discrepancy", "updated_at"])
        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=movement.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=before,
            after=after,
            ip_address=ip_address,
            description=description,
        )

    @staticmethod
    @atomic_operation
    def open(
        *,
        asset_id: UUID,
        discrepancy_type: str,
        description: str,
        actor_id: str,
        expected_value: str = "",
        actual_value: str = "",
        priority: str | None = None,
        movement_id: UUID | None = None,
        source: str = DiscrepancySource.MANUAL,
        notes: str = "",
        ip_address: str | None = None,
    ) -> Discrepancy:
        raise_if_invalid(require_text(description, "description", "Description is required."))

        asset = AssetService.lock(asset_id)
        movement = None
        if movement_id:
            movement = Movement.objects.select_for_update().alive().filter(pk=movement_id).first()
            if movement is None:
                raise ValidationError("movement_id", "Movement not found.")

        asset_before = snapshot(asset, ASSET_AUDIT_FIELDS)
        movement_before = snapshot(movement, MOVEMENT_AUDIT_FIELDS) if movement else None

        d = DiscrepancyService.create_record(
            asset=asset,
            movement=movement,
            discrepancy_type=discrepancy_type,
            description=description,
            actor_id=actor_id,
            expected_value=expected_value,
            actual_value=actual_value,
            priority=priority,
            source=source,
            notes=notes,
            ip_address=ip_address,
        )

        DiscrepancyService.persist_asset_flag(
            asset, before=asset_before, actor_id=actor_id, ip_address=ip_address,
            description=f"Discrepancy flagged on {asset.asset_tag}",
        )
        if movement is not None:
            DiscrepancyService.persist_movement_flag(
                movement, before=movement_before, actor_id=actor_id, ip_address=ip_address,
                description="Discrepancy flagged on movement",
            )
        return d

    @staticmethod
    @atomic_operation
    def start(*, discrepancy_id: UUID, actor_id: str, ip_address: str | None = None) -> Discrepancy:
        d = _lock_with_asset(discrepancy_id)
        if d.status != DiscrepancyStatus.OPEN:
            raise InvalidStateError(
                "Only open discrepancies can be started.",
                current=d.status,
                attempted=DiscrepancyStatus.IN_PROGRESS,
            )

        before = snapshot(d, DISCREPANCY_AUDIT_FIELDS)
        d.status = DiscrepancyStatus.IN_PROGRESS
        d.save(update_fields=["status", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.DISCREPANCY,
            entity_id=d.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=before,
            after=snapshot(d, DISCREPANCY_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Discrepancy investigation started",
        )
        return d

    @staticmethod
    @atomic_operation
    def resolve(
        *,
        discrepancy_id: UUID,
        actor_id: str,
        resolution: str,
        notes: str | None = None,
        ip_address: str | None = None,
    ) -> Discrepancy:
        # asset before discrepancy: same lock order as movement completion
        asset = AssetService.lock(_discrepancy_asset_id(discrepancy_id), include_deleted=True)
        d = _lock_discrepancy(discrepancy_id)

        if d.status not in ACTIVE_STATUSES:
            raise InvalidStateError(
                "Discrepancy is already resolved.",
                current=d.status,
                attempted=DiscrepancyStatus.RESOLVED,
            )
        raise_if_invalid(require_text(resolution, "resolution", "Resolution is required."))

        before = snapshot(d, DISCREPANCY_AUDIT_FIELDS)
        d.status = DiscrepancyStatus.RESOLVED
        d.resolved_at = timezone.now()
        d.resolved_by_id = str(actor_id)
        d.resolution = resolution.strip()
        if notes is not None:
            d.notes = notes
        d.save(update_fields=["status", "resolved_at", "resolved_by_id", "resolution", "notes", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.DISCREPANCY,
            entity_id=d.id,
            action=AuditAction.RESOLVE,
            actor_id=actor_id,
            before=before,
            after=snapshot(d, DISCREPANCY_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Discrepancy resolved",
        )

        remaining = Discrepancy.objects.filter(asset_id=asset.id, status__in=ACTIVE_STATUSES)
        if asset.has_discrepancy and not remaining.exists():
            asset_before = snapshot(asset, ASSET_AUDIT_FIELDS)
            asset.has_discrepancy = False
            DiscrepancyService.persist_asset_flag(
                asset, before=asset_before, actor_id=actor_id, ip_address=ip_address,
                description=f"Discrepancy flag cleared on {asset.asset_tag}",
            )

        if d.movement_id:
            movement = Movement.objects.select_for_update().get(pk=d.movement_id)
            if movement.has_discrepancy and not remaining.filter(movement_id=movement.id).exists():
                movement_before = snapshot(movement, MOVEMENT_AUDIT_FIELDS)
                movement.has_discrepancy = False
                DiscrepancyService.persist_movement_flag(
                    movement, before=movement_before, actor_id=actor_id, ip_address=ip_address,
                    description="Discrepancy flag cleared on movement",
                )

        publish("discrepancy.resolved", _event_payload(d, actor_id))
        logger.info("discrepancy %s resolved by %s", d.id, actor_id)
        return d

    @staticmethod
    @atomic_operation
    def close(
        *,
        discrepancy_id: UUID,
        actor_id: str,
        notes: str | None = None,
        ip_address: str | None = None,
    ) -> Discrepancy:
        d = _lock_with_asset(discrepancy_id)
        if d.status != DiscrepancyStatus.RESOLVED:
            raise InvalidStateError(
                "Only resolved discrepancies can be closed.",
                current=d.status,
                attempted=DiscrepancyStatus.CLOSED,
            )

        before = snapshot(d, DISCREPANCY_AUDIT_FIELDS)
        d.status = DiscrepancyStatus.CLOSED
        d.closed_at = timezone.now()
        if notes is not None:
            d.notes = notes
        d.save(update_fields=["status", "closed_at", "notes", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.DISCREPANCY,
            entity_id=d.id,
            action=AuditAction.CLOSE,
            actor_id=actor_id,
            before=before,
            after=snapshot(d, DISCREPANCY_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Discrepancy closed",
        )

        publish("discrepancy.closed", _event_payload(d, actor_id))
        return d
