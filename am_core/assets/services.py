# am_core/assets/services.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F
from django.utils import timezone

from am_core.assets.models import ASSET_AUDIT_FIELDS, Asset, AssetCondition, AssetStatus
from am_core.audit.models import AuditAction, EntityType
from am_core.audit.services import AuditLedger, snapshot
from am_core.common.db import atomic_operation
from am_core.common.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from am_core.common.validation import OK, Invalid, raise_if_invalid, require_choice, require_text
from am_core.movements.models import IN_FLIGHT_STATUSES
from am_core.sites.locations import LocationRef

logger = logging.getLogger(__name__)

# Location and custodian only change through completed movements.
EDITABLE_FIELDS = ("name", "category", "serial_number", "status", "condition", "notes")


def _validate_status_edit(current: str, new: str):
    if new == current:
        return OK
    if AssetStatus.RETIRED in (current, new):
        return Invalid("status", "Retirement is only changed through a Disposal movement.")
    return require_choice(new, AssetStatus.values, "status")


class AssetService:
    """
    Direct asset edits, plus the locking primitives movements and scans share.
    """

    @staticmethod
    def lock(asset_id: UUID, *, include_deleted: bool = False) -> Asset:
        """
        Row-lock an asset for the rest of the transaction.
        """
        qs = Asset.objects.select_for_update()
        if not include_deleted:
            qs = qs.alive()
        try:
            return qs.get(pk=asset_id)
        except (Asset.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError("Asset not found.", asset_id=str(asset_id))

    @staticmethod
    def save_versioned(asset: Asset, *, expected_version: int, fields: Iterable[str]) -> Asset:
        """
        Compare-and-swap write: succeeds only if nobody bumped `version` since
        `expected_version` was read.
        """
        now = timezone.now()
        values: Dict[str, Any] = {}
        for name in fields:
            attname = Asset._meta.get_field(name).attname
            values[attname] = getattr(asset, attname)
        values["updated_at"] = now

        rows = Asset.objects.filter(pk=asset.pk, version=expected_version).update(
            version=F("version") + 1, **values
        )
        if rows != 1:
            logger.warning("asset %s version conflict (expected %s)", asset.pk, expected_version)
            raise ConflictError(
                "Asset was modified concurrently, retry the request.",
                asset_id=str(asset.pk),
                expected_version=expected_version,
            )

        asset.version = expected_version + 1
        asset.updated_at = now
        return asset

    @staticmethod
    @atomic_operation
    def create(
        *,
        actor_id: str,
        asset_tag: str,
        name: str,
        category: str = "",
        serial_number: str | None = None,
        status: str = AssetStatus.AVAILABLE,
        condition: str = AssetCondition.GOOD,
        location: Optional[LocationRef] = None,
        custodian: str = "",
        notes: str = "",
        ip_address: str | None = None,
    ) -> Asset:
        asset_tag = (asset_tag or "").strip()
        serial_number = (serial_number or "").strip() or None
        raise_if_invalid(
            require_text(asset_tag, "asset_tag", "Asset tag is required."),
            require_text(name, "name", "Asset name is required."),
            require_choice(status, AssetStatus.values, "status"),
            require_choice(condition, AssetCondition.values, "condition"),
        )
        if Asset.objects.filter(asset_tag=asset_tag).exists():
            raise ValidationError("asset_tag", "Asset tag already exists.")
        if serial_number and Asset.objects.filter(serial_number=serial_number).exists():
            raise ValidationError("serial_number", "Serial number already exists.")

        asset = Asset(
            asset_tag=asset_tag,
            name=name.strip(),
            category=category or "",
            serial_number=serial_number,
            status=status,
            condition=condition,
            custodian=(custodian or "").strip(),
            notes=notes or "",
        )
        asset.apply_location(location or LocationRef())
        asset.save(force_insert=True)

        AuditLedger.record(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.CREATE,
            actor_id=actor_id,
            new=snapshot(asset, ASSET_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"Asset {asset.asset_tag} created",
        )
        logger.info("asset %s created by %s", asset.asset_tag, actor_id)
        return asset

    @staticmethod
    @atomic_operation
    def update(
        *,
        asset_id: UUID,
        actor_id: str,
        changes: Dict[str, Any],
        ip_address: str | None = None,
    ) -> Asset:
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(unknown[0], "Field cannot be edited directly.")

        asset = AssetService.lock(asset_id)
        before = snapshot(asset, ASSET_AUDIT_FIELDS)

        checks = []
        if "name" in changes:
            checks.append(require_text(changes["name"], "name", "Asset name is required."))
        if "status" in changes:
            checks.append(_validate_status_edit(asset.status, changes["status"]))
        if "condition" in changes:
            checks.append(require_choice(changes["condition"], AssetCondition.values, "condition"))
        raise_if_invalid(*checks)

        if "serial_number" in changes:
            changes = {**changes, "serial_number": (changes["serial_number"] or "").strip() or None}
            serial = changes["serial_number"]
            if serial and Asset.objects.filter(serial_number=serial).exclude(pk=asset.pk).exists():
                raise ValidationError("serial_number", "Serial number already exists.")

        for key, value in changes.items():
            setattr(asset, key, value)

        AssetService.save_versioned(asset, expected_version=asset.version, fields=changes.keys())

        AuditLedger.record_change(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.UPDATE,
            actor_id=actor_id,
            before=before,
            after=snapshot(asset, ASSET_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"Asset {asset.asset_tag} updated",
        )
        return asset

    @staticmethod
    @atomic_operation
    def soft_delete(*, asset_id: UUID, actor_id: str, ip_address: str | None = None) -> Asset:
        asset = AssetService.lock(asset_id)
        if asset.movements.alive().filter(status__in=IN_FLIGHT_STATUSES).exists():
            raise InvalidStateError("Asset has an open movement and cannot be deleted.")

        before = snapshot(asset, ASSET_AUDIT_FIELDS)
        asset.mark_deleted()
        AssetService.save_versioned(asset, expected_version=asset.version, fields=["deleted_at"])

        AuditLedger.record_change(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.DELETE,
            actor_id=actor_id,
            before=before,
            after=snapshot(asset, ASSET_AUDIT_FIELDS),
            ip_address=ip_address,
            description=f"Asset {asset.asset_tag} deleted",
        )
        logger.info("asset %s soft-deleted by %s", asset.asset_tag, actor_id)
        return asset
