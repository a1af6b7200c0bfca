from datetime import timedelta

import pytest
from django.db import transaction
from django.utils import timezone

from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, AuditEntry, EntityType
from am_core.common.events import subscribe, unsubscribe
from am_core.common.exceptions import NotFoundError, ValidationError
from am_core.discrepancies.models import Discrepancy, DiscrepancySource, DiscrepancyStatus, DiscrepancyType
from am_core.discrepancies.services import DiscrepancyService
from am_core.reconciliation.services import ReconciliationService, ScanEvent
from am_core.sites.locations import LocationRef

pytestmark = pytest.mark.django_db


def _scan(tag, location=None, custodian=None, scanned_at=None):
    return ReconciliationService.process_scan(
        ScanEvent(asset_tag=tag, observed_location=location, observed_custodian=custodian, scanned_at=scanned_at),
        actor_id="scanner-1",
        ip_address="10.1.2.3",
    )


def test_matching_scan_only_touches_last_scanned_at(asset, warehouses):
    result = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH1"]), "alice")

    assert result.matched
    asset.refresh_from_db()
    assert asset.last_scanned_at is not None
    assert asset.has_discrepancy is False
    assert not Discrepancy.objects.exists()

    entry = AuditEntry.objects.get(entity_type=EntityType.ASSET, entity_id=asset.id, action=AuditAction.SCAN)
    assert entry.actor_id == "scanner-1"
    assert entry.ip_address == "10.1.2.3"
    assert "last_scanned_at" in entry.new_values


def test_location_mismatch_opens_discrepancy_without_moving_the_asset(asset, warehouses):
    result = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]))

    assert len(result.opened) == 1
    d = result.opened[0]
    assert d.discrepancy_type == DiscrepancyType.LOCATION
    assert d.source == DiscrepancySource.SCAN
    assert d.status == DiscrepancyStatus.OPEN
    assert d.expected_value == "WH1/MAIN"
    assert d.actual_value == "WH3/MAIN"
    assert d.description == "Asset location discrepancy detected during scan"
    assert d.movement_id is None

    asset.refresh_from_db()
    assert asset.location_id == warehouses["WH1"].id
    assert asset.has_discrepancy is True


def test_repeated_identical_scans_reuse_the_open_discrepancy(asset, warehouses):
    wrong = LocationRef.for_location(warehouses["WH3"])

    first = _scan(asset.asset_tag, wrong)
    second = _scan(asset.asset_tag, wrong)
    third = _scan(asset.asset_tag, wrong)

    assert len(first.opened) == 1
    assert second.opened == [] and third.opened == []
    assert [d.id for d in second.reused] == [first.opened[0].id]
    assert Discrepancy.objects.filter(asset=asset, status=DiscrepancyStatus.OPEN).count() == 1


def test_in_progress_discrepancy_also_suppresses_duplicates(asset, warehouses):
    first = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]))
    DiscrepancyService.start(discrepancy_id=first.opened[0].id, actor_id="op-1")

    again = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH2"]))

    assert again.opened == []
    assert Discrepancy.objects.filter(asset=asset).count() == 1


def test_new_discrepancy_after_previous_one_was_resolved(asset, warehouses):
    first = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]))
    DiscrepancyService.resolve(discrepancy_id=first.opened[0].id, actor_id="mgr-1", resolution="Brought back")

    again = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]))

    assert len(again.opened) == 1
    assert Discrepancy.objects.filter(asset=asset).count() == 2


def test_custodian_mismatch_is_its_own_discrepancy(asset, warehouses):
    result = _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]), "mallory")

    types = sorted(d.discrepancy_type for d in result.opened)
    assert types == [DiscrepancyType.CUSTODIAN, DiscrepancyType.LOCATION]
    custodian = next(d for d in result.opened if d.discrepancy_type == DiscrepancyType.CUSTODIAN)
    assert custodian.description == "Asset custodian discrepancy detected during scan"
    assert (custodian.expected_value, custodian.actual_value) == ("alice", "mallory")


def test_legacy_labels_compare_case_and_whitespace_insensitively(db):
    legacy = AssetService.create(
        actor_id="setup",
        asset_tag="LEG-1",
        name="Old printer",
        location=LocationRef.from_legacy("Back Office"),
    )
    assert legacy.location_id is None

    result = _scan(legacy.asset_tag, LocationRef.from_legacy("  back   OFFICE "))

    assert result.matched


def test_older_scan_does_not_rewind_last_scanned_at(asset):
    now = timezone.now()
    _scan(asset.asset_tag, scanned_at=now)
    _scan(asset.asset_tag, scanned_at=now - timedelta(hours=2))

    asset.refresh_from_db()
    assert asset.last_scanned_at == now


def test_unknown_or_missing_tag(asset):
    with pytest.raises(NotFoundError):
        _scan("NO-SUCH-TAG")
    with pytest.raises(ValidationError):
        _scan("  ")


def test_scan_event_is_published_after_commit(django_capture_on_commit_callbacks, asset, warehouses):
    received = []

    def handler(payload):
        received.append(payload)

    subscribe("asset.scanned")(handler)
    try:
        with django_capture_on_commit_callbacks(execute=True):
            with transaction.atomic():
                _scan(asset.asset_tag, LocationRef.for_location(warehouses["WH3"]))
                assert received == []
    finally:
        unsubscribe("asset.scanned", handler)

    assert len(received) == 1
    assert received[0]["asset_id"] == str(asset.id)
    assert len(received[0]["opened"]) == 1
