import pytest

from am_core.assets.models import Asset, AssetCondition, AssetStatus
from am_core.assets.selectors import get_asset, list_assets
from am_core.assets.services import AssetService
from am_core.audit.models import AuditAction, AuditEntry, EntityType
from am_core.common.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from am_core.movements.models import MovementType
from am_core.movements.services import MovementService
from am_core.sites.locations import LocationRef

pytestmark = pytest.mark.django_db


def test_create_is_audited(warehouses):
    asset = AssetService.create(
        actor_id="mgr-1",
        asset_tag=" AT-100 ",
        name="Forklift",
        location=LocationRef.for_location(warehouses["WH1"]),
        custodian="dock team",
        ip_address="192.168.0.9",
    )

    assert asset.asset_tag == "AT-100"
    assert asset.version == 1
    entry = AuditEntry.objects.get(entity_type=EntityType.ASSET, entity_id=asset.id)
    assert entry.action == AuditAction.CREATE
    assert entry.new_values["location"] == str(warehouses["WH1"].id)
    assert entry.new_values["custodian"] == "dock team"
    assert entry.ip_address == "192.168.0.9"


def test_tag_and_serial_must_be_unique(make_asset):
    make_asset(asset_tag="DUP-1", serial_number="SN-1")

    with pytest.raises(ValidationError) as exc:
        AssetService.create(actor_id="mgr-1", asset_tag="DUP-1", name="Other")
    assert exc.value.field == "asset_tag"

    with pytest.raises(ValidationError) as exc:
        AssetService.create(actor_id="mgr-1", asset_tag="DUP-2", name="Other", serial_number="SN-1")
    assert exc.value.field == "serial_number"


def test_blank_tag_is_rejected():
    with pytest.raises(ValidationError) as exc:
        AssetService.create(actor_id="mgr-1", asset_tag="  ", name="Thing")
    assert exc.value.field == "asset_tag"


def test_update_audits_only_changed_fields(asset):
    AssetService.update(
        asset_id=asset.id,
        actor_id="mgr-1",
        changes={"name": asset.name, "condition": AssetCondition.DAMAGED},
    )

    asset.refresh_from_db()
    assert asset.condition == AssetCondition.DAMAGED
    assert asset.version == 2
    entry = AuditEntry.objects.get(entity_id=asset.id, action=AuditAction.UPDATE)
    assert entry.previous_values == {"condition": AssetCondition.GOOD}
    assert entry.new_values == {"condition": AssetCondition.DAMAGED}


def test_location_and_custodian_are_not_directly_editable(asset):
    with pytest.raises(ValidationError) as exc:
        AssetService.update(asset_id=asset.id, actor_id="mgr-1", changes={"custodian": "eve"})
    assert exc.value.field == "custodian"


def test_retirement_only_through_disposal(asset):
    with pytest.raises(ValidationError) as exc:
        AssetService.update(asset_id=asset.id, actor_id="mgr-1", changes={"status": AssetStatus.RETIRED})
    assert exc.value.field == "status"

    AssetService.update(asset_id=asset.id, actor_id="mgr-1", changes={"status": AssetStatus.RESERVED})
    asset.refresh_from_db()
    assert asset.status == AssetStatus.RESERVED


def test_versioned_write_detects_concurrent_change(asset):
    stale = Asset.objects.get(pk=asset.pk)
    AssetService.update(asset_id=asset.id, actor_id="mgr-1", changes={"notes": "first"})

    stale.notes = "second"
    with pytest.raises(ConflictError):
        AssetService.save_versioned(stale, expected_version=stale.version, fields=["notes"])

    asset.refresh_from_db()
    assert asset.notes == "first"


def test_soft_delete_hides_asset_and_keeps_history(asset):
    AssetService.soft_delete(asset_id=asset.id, actor_id="mgr-1")

    assert not list_assets().filter(pk=asset.pk).exists()
    with pytest.raises(NotFoundError):
        get_asset(asset.id)
    assert Asset.objects.deleted().filter(pk=asset.pk).exists()
    assert AuditEntry.objects.filter(entity_id=asset.id, action=AuditAction.DELETE).count() == 1


def test_soft_delete_refused_while_movement_in_flight(asset, warehouses):
    MovementService.request_movement(
        asset_id=asset.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(warehouses["WH2"]),
        actor_id="op-1",
    )

    with pytest.raises(InvalidStateError):
        AssetService.soft_delete(asset_id=asset.id, actor_id="mgr-1")

    asset.refresh_from_db()
    assert asset.deleted_at is None


def test_list_filters(make_asset, warehouses):
    a = make_asset(location=warehouses["WH1"], name="Dell laptop")
    make_asset(location=warehouses["WH2"], name="Office chair")

    assert [x.pk for x in list_assets(site_id=warehouses["WH1"].site_id)] == [a.pk]
    assert [x.pk for x in list_assets(q="dell")] == [a.pk]
    assert list_assets(has_discrepancy=True).count() == 0
