# am_core/movements/services.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from am_core.assets.models import ASSET_AUDIT_FIELDS, Asset, AssetStatus
from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, EntityType
from am_core.audit.services import AuditLedger, snapshot
from am_core.common.db import atomic_operation
from am_core.common.events import publish
from am_core.common.exceptions import InvalidStateError, NotFoundError
from am_core.common.policy import get_policy
from am_core.common.validation import raise_if_invalid, require_choice, require_text
from am_core.movements.models import MOVEMENT_AUDIT_FIELDS, Movement, MovementStatus, MovementType
from am_core.movements.validation import (
    validate_asset_movable,
    validate_destination,
    validate_no_open_movement,
)
from am_core.reconciliation.services import ReconciliationResult, ReconciliationService
from am_core.sites.locations import LocationRef

logger = logging.getLogger(__name__)

# Asset status a completed movement leaves behind. Transfer keeps the current one.
COMPLETION_STATUS = {
    MovementType.CHECKOUT: AssetStatus.IN_USE,
    MovementType.RETURN: AssetStatus.AVAILABLE,
    MovementType.MAINTENANCE: AssetStatus.IN_MAINTENANCE,
    MovementType.DISPOSAL: AssetStatus.RETIRED,
}

_ASSET_PLACEMENT_FIELDS = ["status", "site", "location", "location_label", "custodian", "has_discrepancy"]


def _event_payload(m: Movement, actor_id: str) -> dict:
    return {
        "movement_id": str(m.id),
        "asset_id": str(m.asset_id),
        "movement_type": m.movement_type,
        "status": m.status,
        "actor_id": actor_id,
    }


def _lock_movement(movement_id: UUID) -> Movement:
    try:
        return Movement.objects.select_for_update().alive().get(pk=movement_id)
    except (Movement.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Movement not found.", movement_id=str(movement_id))


def _movement_asset_id(movement_id: UUID):
    try:
        asset_id = Movement.objects.alive().filter(pk=movement_id).values_list("asset_id", flat=True).first()
    except (ValueError, DjangoValidationError):
        asset_id = None
    if asset_id is None:
        raise NotFoundError("Movement not found.", movement_id=str(movement_id))
    return asset_id


def _lock_with_asset(movement_id: UUID) -> Movement:
    """
    Asset row first, then the movement: every transition takes the same order
    as complete().
    """
    AssetService.lock(_movement_asset_id(movement_id), include_deleted=True)
    return _lock_movement(movement_id)


def _require_status(m: Movement, allowed, attempted: str) -> None:
    if m.status not in allowed:
        raise InvalidStateError(
            f"Cannot move a {m.get_status_display().lower()} movement to {attempted.lower()}.",
            current=m.status,
            attempted=attempted,
        )


def _apply_declared(m: Movement, asset: Asset) -> None:
    if m.movement_type == MovementType.DISPOSAL:
        asset.apply_location(LocationRef())
        asset.custodian = ""
    else:
        to_ref = m.to_ref()
        if not to_ref.is_empty:
            asset.apply_location(to_ref)
        if m.to_custodian:
            asset.custodian = m.to_custodian
    asset.status = COMPLETION_STATUS.get(m.movement_type, asset.status)


class MovementService:
    """
    Movement state machine.

    REQUESTED -> APPROVED | REJECTED | CANCELLED
    APPROVED  -> COMPLETED | CANCELLED

    Every transition is one transaction that also writes the audit entries;
    notifications go out only after commit.
    """

    @staticmethod
    @atomic_operation
    def request_movement(
        *,
        asset_id: UUID,
        movement_type: str,
        actor_id: str,
        to_location: Optional[LocationRef] = None,
        to_custodian: str = "",
        from_location: Optional[LocationRef] = None,
        from_custodian: Optional[str] = None,
        reason: str = "",
        notes: str = "",
        ip_address: str | None = None,
    ) -> Movement:
        raise_if_invalid(require_choice(movement_type, MovementType.values, "movement_type"))

        asset = AssetService.lock(asset_id, include_deleted=True)
        to_location = to_location or LocationRef()
        to_custodian = (to_custodian or "").strip()

        raise_if_invalid(
            validate_asset_movable(asset),
            validate_destination(movement_type, to_location, to_custodian),
            validate_no_open_movement(asset),
        )

        from_location = from_location if from_location is not None else asset.location_ref()
        from_custodian = asset.custodian if from_custodian is None else from_custodian.strip()

        m = Movement(
            movement_type=movement_type,
            asset=asset,
            status=MovementStatus.REQUESTED,
            from_site_id=from_location.site_id,
            from_location_id=from_location.location_id,
            from_location_label=from_location.label,
            to_site_id=to_location.site_id,
            to_location_id=to_location.location_id,
            to_location_label=to_location.label,
            from_custodian=from_custodian,
            to_custodian=to_custodian,
            request_date=timezone.now(),
            reason=reason or "",
            notes=notes or "",
            requested_by_id=str(actor_id),
        )
        m.save(force_insert=True)

        AuditLedger.record(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.CREATE,
            actor_id=actor_id,
            new=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"{m.get_movement_type_display()} requested for {asset.asset_tag}",
        )

        publish("movement.requested", _event_payload(m, actor_id))
        logger.info("movement %s requested (%s, asset %s)", m.id, movement_type, asset.asset_tag)
        return m

    @staticmethod
    @atomic_operation
    def approve(
        *,
        movement_id: UUID,
        actor_id: str,
        notes: str | None = None,
        ip_address: str | None = None,
    ) -> Movement:
        m = _lock_with_asset(movement_id)
        _require_status(m, {MovementStatus.REQUESTED}, MovementStatus.APPROVED)

        before = snapshot(m, MOVEMENT_AUDIT_FIELDS)
        m.status = MovementStatus.APPROVED
        m.approval_date = timezone.now()
        m.approved_by_id = str(actor_id)
        if notes is not None:
            m.notes = notes
        m.save(update_fields=["status", "approval_date", "approved_by_id", "notes", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.APPROVE,
            actor_id=actor_id,
            before=before,
            after=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Movement approved",
        )

        publish("movement.approved", _event_payload(m, actor_id))
        logger.info("movement %s approved by %s", m.id, actor_id)
        return m

    @staticmethod
    @atomic_operation
    def reject(
        *,
        movement_id: UUID,
        actor_id: str,
        reason: str,
        ip_address: str | None = None,
    ) -> Movement:
        m = _lock_with_asset(movement_id)
        _require_status(m, {MovementStatus.REQUESTED}, MovementStatus.REJECTED)
        raise_if_invalid(require_text(reason, "reason", "A rejection reason is required."))

        before = snapshot(m, MOVEMENT_AUDIT_FIELDS)
        m.status = MovementStatus.REJECTED
        m.approval_date = timezone.now()
        m.approved_by_id = str(actor_id)
        m.rejection_reason = reason.strip()
        m.save(update_fields=["status", "approval_date", "approved_by_id", "rejection_reason", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.REJECT,
            actor_id=actor_id,
            before=before,
            after=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"Movement rejected: {m.rejection_reason}",
        )

        publish("movement.rejected", _event_payload(m, actor_id))
        logger.info("movement %s rejected by %s", m.id, actor_id)
        return m

    @staticmethod
    @atomic_operation
    def complete(
        *,
        movement_id: UUID,
        actor_id: str,
        observed_to: Optional[LocationRef] = None,
        observed_custodian: Optional[str] = None,
        ip_address: str | None = None,
    ) -> Movement:
        """
        Apply the movement to its asset and reconcile what was observed on arrival.

        Locks the asset row first, then the movement. The asset write is a
        version compare-and-swap; losing it raises ConflictError and rolls back
        the whole completion.
        """
        asset = AssetService.lock(_movement_asset_id(movement_id), include_deleted=True)
        m = _lock_movement(movement_id)

        allowed = {MovementStatus.APPROVED}
        if m.movement_type in get_policy().self_completing_types:
            allowed.add(MovementStatus.REQUESTED)
        _require_status(m, allowed, MovementStatus.COMPLETED)

        movement_before = snapshot(m, MOVEMENT_AUDIT_FIELDS)
        asset_before = snapshot(asset, ASSET_AUDIT_FIELDS)
        expected_version = asset.version

        now = timezone.now()
        m.status = MovementStatus.COMPLETED
        m.completion_date = now
        m.completed_by_id = str(actor_id)

        _apply_declared(m, asset)

        result: ReconciliationResult | None = None
        if m.movement_type != MovementType.DISPOSAL:
            result = ReconciliationService.reconcile_movement(
                movement=m,
                asset=asset,
                actor_id=actor_id,
                observed_to=observed_to,
                observed_custodian=observed_custodian,
                ip_address=ip_address,
            )

        AssetService.save_versioned(asset, expected_version=expected_version, fields=_ASSET_PLACEMENT_FIELDS)
        m.save(update_fields=["status", "completion_date", "completed_by_id", "has_discrepancy", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.COMPLETE,
            actor_id=actor_id,
            before=movement_before,
            after=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"{m.get_movement_type_display()} completed",
        )
        AuditLedger.record_change(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=asset_before,
            after=snapshot(asset, ASSET_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"Asset {asset.asset_tag} updated by {m.get_movement_type_display().lower()}",
        )

        publish("movement.completed", _event_payload(m, actor_id))
        logger.info(
            "movement %s completed by %s (%d discrepancy(ies) opened)",
            m.id, actor_id, len(result.opened) if result else 0,
        )
        return m

    @staticmethod
    @atomic_operation
    def cancel(
        *,
        movement_id: UUID,
        actor_id: str,
        reason: str = "",
        ip_address: str | None = None,
    ) -> Movement:
        m = _lock_with_asset(movement_id)
        _require_status(m, {MovementStatus.REQUESTED, MovementStatus.APPROVED}, MovementStatus.CANCELLED)

        before = snapshot(m, MOVEMENT_AUDIT_FIELDS)
        m.status = MovementStatus.CANCELLED
        m.cancelled_at = timezone.now()
        if reason:
            m.notes = f"{m.notes}\n{reason}".strip()
        m.save(update_fields=["status", "cancelled_at", "notes", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.CANCEL,
            actor_id=actor_id,
            before=before,
            after=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Movement cancelled",
        )

        publish("movement.cancelled", _event_payload(m, actor_id))
        logger.info("movement %s cancelled by %s", m.id, actor_id)
        return m

    @staticmethod
    @atomic_operation
    def delete(*, movement_id: UUID, actor_id: str, ip_address: str | None = None) -> Movement:
        """
        Soft delete. Only a movement nobody has acted on yet can disappear.
        """
        m = _lock_with_asset(movement_id)
        if m.status != MovementStatus.REQUESTED:
            raise InvalidStateError(
                "Only requested movements can be deleted.",
                current=m.status,
                attempted="DELETED",
            )

        before = snapshot(m, MOVEMENT_AUDIT_FIELDS)
        m.mark_deleted()
        m.save(update_fields=["deleted_at", "updated_at"])

        AuditLedger.record_change(
            entity_type=EntityType.MOVEMENT,
            entity_id=m.id,
            action=AuditAction.DELETE,
            actor_id=actor_id,
            before=before,
            after=snapshot(m, MOVEMENT_AUDIT_FIELDS),
            ip_address=ip_address,
            description="Movement deleted",
        )
        logger.info("movement %s deleted by %s", m.id, actor_id)
        return m
