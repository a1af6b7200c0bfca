# am_core/reconciliation/services.py
"""
Reconciliation: compare what was observed against what the store says, and
turn every mismatch into a Discrepancy (at most one active per asset and type).

The authoritative location is never overwritten from an observation. It only
moves through completed movements.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from django.db import connection
from django.db.transaction import TransactionManagementError
from django.utils import timezone

from am_core.assets.models import ASSET_AUDIT_FIELDS, Asset
from am_core.assets.selectors import get_asset_by_tag
from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, EntityType
from am_core.audit.services import AuditLedger, snapshot
from am_core.common.db import atomic_operation
from am_core.common.events import publish
from am_core.common.validation import raise_if_invalid, require_text
from am_core.discrepancies.models import Discrepancy, DiscrepancySource, DiscrepancyType
from am_core.discrepancies.selectors import active_discrepancies
from am_core.discrepancies.services import DiscrepancyService
from am_core.movements.models import Movement
from am_core.sites.locations import LocationRef, normalize_label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanEvent:
    asset_tag: str
    observed_location: Optional[LocationRef] = None
    observed_custodian: Optional[str] = None
    scanned_at: Optional[datetime] = None


@dataclass(frozen=True)
class Mismatch:
    discrepancy_type: str
    expected: str
    actual: str


@dataclass
class ReconciliationResult:
    asset: Asset
    opened: List[Discrepancy] = field(default_factory=list)
    reused: List[Discrepancy] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return not self.opened and not self.reused


def find_mismatches(
    asset: Asset,
    *,
    observed_location: Optional[LocationRef],
    observed_custodian: Optional[str],
) -> List[Mismatch]:
    """
    Only what was actually observed is compared; None means "not observed".
    """
    found: List[Mismatch] = []

    if observed_location is not None and not observed_location.is_empty:
        expected = asset.location_ref()
        if not expected.matches(observed_location):
            found.append(Mismatch(DiscrepancyType.LOCATION, expected.display(), observed_location.display()))

    if observed_custodian is not None:
        if normalize_label(observed_custodian) != normalize_label(asset.custodian):
            found.append(Mismatch(DiscrepancyType.CUSTODIAN, asset.custodian, observed_custodian.strip()))

    return found


def _describe(mismatch: Mismatch, source: str) -> str:
    kind = "location" if mismatch.discrepancy_type == DiscrepancyType.LOCATION else "custodian"
    if source == DiscrepancySource.SCAN:
        return f"Asset {kind} discrepancy detected during scan"
    return f"Asset {kind} discrepancy detected on movement completion"


def _reusable(existing: Discrepancy, mismatch: Mismatch, movement: Movement | None) -> bool:
    """
    A scan is suppressed by any active discrepancy of the same type. A movement
    completion only reuses one that records the same expected and observed
    values, and is not already tied to another movement.
    """
    if movement is None:
        return True
    if existing.movement_id not in (None, movement.id):
        return False
    return (
        normalize_label(existing.expected_value) == normalize_label(mismatch.expected)
        and normalize_label(existing.actual_value) == normalize_label(mismatch.actual)
    )


def _open_or_reuse(
    *,
    asset: Asset,
    movement: Movement | None,
    mismatches: List[Mismatch],
    source: str,
    actor_id: str,
    ip_address: str | None,
) -> Tuple[List[Discrepancy], List[Discrepancy]]:
    opened: List[Discrepancy] = []
    reused: List[Discrepancy] = []
    for m in mismatches:
        candidates = active_discrepancies(asset_id=asset.id, discrepancy_type=m.discrepancy_type)
        existing = next((d for d in candidates if _reusable(d, m, movement)), None)
        if existing is not None:
            if movement is not None:
                DiscrepancyService.link_movement(
                    existing, movement=movement, actor_id=actor_id, ip_address=ip_address
                )
            reused.append(existing)
            continue
        opened.append(
            DiscrepancyService.create_record(
                asset=asset,
                movement=movement,
                discrepancy_type=m.discrepancy_type,
                description=_describe(m, source),
                expected_value=m.expected,
                actual_value=m.actual,
                source=source,
                actor_id=actor_id,
                ip_address=ip_address,
            )
        )
    return opened, reused


class ReconciliationService:
    @staticmethod
    def reconcile_movement(
        *,
        movement: Movement,
        asset: Asset,
        actor_id: str,
        observed_to: Optional[LocationRef] = None,
        observed_custodian: Optional[str] = None,
        ip_address: str | None = None,
    ) -> ReconciliationResult:
        """
        Runs inside MovementService.complete(), after the declared values were
        applied to `asset`. Flags are raised on the passed instances; the caller
        persists them with the rest of the completion.
        """
        if not connection.in_atomic_block:
            raise TransactionManagementError("reconcile_movement() must run inside the completion transaction.")

        mismatches = find_mismatches(asset, observed_location=observed_to, observed_custodian=observed_custodian)
        opened, reused = _open_or_reuse(
            asset=asset,
            movement=movement,
            mismatches=mismatches,
            source=DiscrepancySource.MOVEMENT,
            actor_id=actor_id,
            ip_address=ip_address,
        )
        if mismatches:
            logger.warning(
                "movement %s completed with %d mismatch(es) on asset %s",
                movement.id, len(mismatches), asset.asset_tag,
            )
        return ReconciliationResult(asset=asset, opened=opened, reused=reused)

    @staticmethod
    @atomic_operation
    def process_scan(event: ScanEvent, *, actor_id: str, ip_address: str | None = None) -> ReconciliationResult:
        raise_if_invalid(require_text(event.asset_tag, "asset_tag", "Asset tag is required."))

        asset = AssetService.lock(get_asset_by_tag(event.asset_tag.strip()).id)
        before = snapshot(asset, ASSET_AUDIT_FIELDS)

        mismatches = find_mismatches(
            asset,
            observed_location=event.observed_location,
            observed_custodian=event.observed_custodian,
        )
        opened, reused = _open_or_reuse(
            asset=asset,
            movement=None,
            mismatches=mismatches,
            source=DiscrepancySource.SCAN,
            actor_id=actor_id,
            ip_address=ip_address,
        )

        scanned_at = event.scanned_at or timezone.now()
        if asset.last_scanned_at is None or scanned_at > asset.last_scanned_at:
            asset.last_scanned_at = scanned_at

        AssetService.save_versioned(
            asset, expected_version=asset.version, fields=["last_scanned_at", "has_discrepancy"]
        )

        observed = []
        if event.observed_location is not None and not event.observed_location.is_empty:
            observed.append(f"at {event.observed_location.display()}")
        if event.observed_custodian is not None:
            observed.append(f"with {event.observed_custodian.strip() or 'no custodian'}")
        AuditLedger.record_change(
            entity_type=EntityType.ASSET,
            entity_id=asset.id,
            action=AuditAction.SCAN,
            actor_id=actor_id,
            before=before,
            after=snapshot(asset, ASSET_AUDIT_FIELDS),
            ip_address=ip_address,
            description=" ".join([f"Asset {asset.asset_tag} scanned", *observed]),
        )

        publish(
            "asset.scanned",
            {
                "asset_id": str(asset.id),
                "asset_tag": asset.asset_tag,
                "opened": [str(d.id) for d in opened],
                "reused": [str(d.id) for d in reused],
                "actor_id": actor_id,
            },
        )
        logger.info(
            "scan of %s: %d opened, %d reused", asset.asset_tag, len(opened), len(reused)
        )
        return ReconciliationResult(asset=asset, opened=opened, reused=reused)
