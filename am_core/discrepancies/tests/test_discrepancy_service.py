import pytest

from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, AuditEntry, EntityType
from am_core.common.exceptions import InvalidStateError, ValidationError
from am_core.discrepancies.models import (
    Discrepancy,
    DiscrepancyPriority,
    DiscrepancySource,
    DiscrepancyStatus,
    DiscrepancyType,
)
from am_core.discrepancies.services import DiscrepancyService
from am_core.movements.models import MovementType
from am_core.movements.services import MovementService
from am_core.sites.locations import LocationRef

pytestmark = pytest.mark.django_db


def _open(asset, **kwargs):
    data = {
        "discrepancy_type": DiscrepancyType.CONDITION,
        "description": "Screen cracked",
        "expected_value": "GOOD",
        "actual_value": "DAMAGED",
        "actor_id": "op-1",
        **kwargs,
    }
    return DiscrepancyService.open(asset_id=asset.id, **data)


def test_open_flags_asset_and_is_audited(asset):
    d = _open(asset)

    asset.refresh_from_db()
    assert d.status == DiscrepancyStatus.OPEN
    assert d.detected_at is not None
    assert d.detected_by_id == "op-1"
    assert d.source == DiscrepancySource.MANUAL
    assert d.priority == DiscrepancyPriority.MEDIUM
    assert asset.has_discrepancy is True

    assert AuditEntry.objects.filter(
        entity_type=EntityType.DISCREPANCY, entity_id=d.id, action=AuditAction.CREATE
    ).count() == 1
    flagged = AuditEntry.objects.get(entity_type=EntityType.ASSET, entity_id=asset.id, action=AuditAction.UPDATE)
    assert flagged.new_values == {"has_discrepancy": True}


def test_priority_is_kept_verbatim(asset):
    d = _open(asset, priority=DiscrepancyPriority.CRITICAL)
    d.refresh_from_db()
    assert d.priority == DiscrepancyPriority.CRITICAL


def test_description_is_required(asset):
    with pytest.raises(ValidationError) as exc:
        _open(asset, description="   ")

    assert exc.value.field == "description"
    assert not Discrepancy.objects.exists()
    asset.refresh_from_db()
    assert asset.has_discrepancy is False


def test_movement_must_belong_to_the_asset(asset, make_asset, warehouses):
    other = make_asset(location=warehouses["WH2"])
    m = MovementService.request_movement(
        asset_id=other.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(warehouses["WH3"]),
        actor_id="op-1",
    )

    with pytest.raises(ValidationError) as exc:
        _open(asset, movement_id=m.id)

    assert exc.value.field == "movement_id"
    assert not Discrepancy.objects.exists()


def test_open_with_movement_flags_the_movement(asset, warehouses):
    m = MovementService.request_movement(
        asset_id=asset.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(warehouses["WH2"]),
        actor_id="op-1",
    )

    d = _open(asset, movement_id=m.id)

    m.refresh_from_db()
    assert d.movement_id == m.id
    assert m.has_discrepancy is True


def test_resolving_last_active_discrepancy_clears_flag(asset):
    first = _open(asset)
    second = _open(asset, discrepancy_type=DiscrepancyType.OTHER, description="Sticker missing")

    DiscrepancyService.resolve(discrepancy_id=first.id, actor_id="mgr-1", resolution="Screen replaced")
    asset.refresh_from_db()
    assert asset.has_discrepancy is True

    DiscrepancyService.resolve(discrepancy_id=second.id, actor_id="mgr-1", resolution="Re-labelled")
    asset.refresh_from_db()
    assert asset.has_discrepancy is False

    first.refresh_from_db()
    assert first.status == DiscrepancyStatus.RESOLVED
    assert first.resolved_at is not None
    assert first.resolved_by_id == "mgr-1"
    assert first.resolution == "Screen replaced"


def test_resolving_clears_movement_flag(asset, warehouses):
    m = MovementService.request_movement(
        asset_id=asset.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(warehouses["WH2"]),
        actor_id="op-1",
    )
    MovementService.approve(movement_id=m.id, actor_id="mgr-1")
    MovementService.complete(
        movement_id=m.id, actor_id="op-1", observed_to=LocationRef.for_location(warehouses["WH3"])
    )
    d = Discrepancy.objects.get(movement=m)

    DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="Moved to WH2")

    m.refresh_from_db()
    asset.refresh_from_db()
    assert m.has_discrepancy is False
    assert asset.has_discrepancy is False


def test_second_resolve_fails_and_changes_nothing(asset):
    d = _open(asset)
    DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="Fixed")

    with pytest.raises(InvalidStateError):
        DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-2", resolution="Fixed again")

    d.refresh_from_db()
    assert d.resolution == "Fixed"
    assert d.resolved_by_id == "mgr-1"
    assert AuditEntry.objects.filter(entity_id=d.id, action=AuditAction.RESOLVE).count() == 1


def test_resolution_text_is_required(asset):
    d = _open(asset)

    with pytest.raises(ValidationError) as exc:
        DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="")

    assert exc.value.field == "resolution"
    d.refresh_from_db()
    assert d.status == DiscrepancyStatus.OPEN


def test_start_then_resolve_then_close(asset):
    d = _open(asset)

    DiscrepancyService.start(discrepancy_id=d.id, actor_id="op-1")
    d.refresh_from_db()
    assert d.status == DiscrepancyStatus.IN_PROGRESS

    with pytest.raises(InvalidStateError):
        DiscrepancyService.start(discrepancy_id=d.id, actor_id="op-1")
    with pytest.raises(InvalidStateError):
        DiscrepancyService.close(discrepancy_id=d.id, actor_id="mgr-1")

    DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="Repaired")
    DiscrepancyService.close(discrepancy_id=d.id, actor_id="mgr-1", notes="Verified on site")

    d.refresh_from_db()
    assert d.status == DiscrepancyStatus.CLOSED
    assert d.closed_at is not None
    assert d.resolution == "Repaired"
    assert d.notes == "Verified on site"

    with pytest.raises(InvalidStateError):
        DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="again")


def test_in_progress_discrepancy_keeps_asset_flagged(asset):
    d = _open(asset)
    DiscrepancyService.start(discrepancy_id=d.id, actor_id="op-1")

    asset.refresh_from_db()
    assert asset.has_discrepancy is True


def test_start_and_close_lock_the_asset_row(monkeypatch, asset):
    d = _open(asset)
    locked = []
    real_lock = AssetService.lock

    def spy(asset_id, **kwargs):
        locked.append(asset_id)
        return real_lock(asset_id, **kwargs)

    monkeypatch.setattr(AssetService, "lock", staticmethod(spy))

    DiscrepancyService.start(discrepancy_id=d.id, actor_id="op-1")
    DiscrepancyService.resolve(discrepancy_id=d.id, actor_id="mgr-1", resolution="Fixed")
    DiscrepancyService.close(discrepancy_id=d.id, actor_id="mgr-1")

    assert locked == [asset.id] * 3
