import pytest

from am_core.common.exceptions import InvalidStateError, ValidationError
from am_core.movements.models import MovementType
from am_core.movements.services import MovementService
from am_core.sites.locations import LocationRef
from am_core.sites.models import Location, Site
from am_core.sites.services import LocationService, SiteService

pytestmark = pytest.mark.django_db

SITES = "/api/v1/sites/"
LOCATIONS = "/api/v1/locations/"


def test_manager_creates_site_and_location_usable_as_destination(api_client, manager, operator, make_asset, warehouses):
    api_client.force_authenticate(user=manager)
    site = api_client.post(SITES, {"code": "HQ", "name": "Head office", "site_type": "OFFICE"}, format="json")
    assert site.status_code == 201, site.data
    site_id = site.json()["id"]

    loc = api_client.post(
        LOCATIONS, {"site_id": site_id, "code": "R101", "name": "Room 101"}, format="json"
    )
    assert loc.status_code == 201, loc.data
    assert loc.json()["label"] == "HQ/R101"
    assert loc.json()["location_type"] == "ROOM"

    # the new location resolves from legacy text
    ref = LocationRef.from_legacy("hq/r101")
    assert str(ref.location_id) == loc.json()["id"]

    asset = make_asset(location=warehouses["WH1"])
    api_client.force_authenticate(user=operator)
    res = api_client.post(
        "/api/v1/movements/",
        {"asset_id": str(asset.id), "movement_type": "TRANSFER", "to_location": "HQ/R101"},
        format="json",
    )
    assert res.status_code == 201, res.data
    assert res.json()["to_display"] == "HQ/R101"


def test_operator_cannot_create_sites(api_client, operator):
    api_client.force_authenticate(user=operator)
    res = api_client.post(SITES, {"code": "X", "name": "X"}, format="json")
    assert res.status_code == 403


def test_list_counts_and_filters(api_client, auditor, make_asset, warehouses, make_location):
    make_location("WH1", "DOCK")
    make_asset(location=warehouses["WH1"])
    api_client.force_authenticate(user=auditor)

    body = api_client.get(SITES, {"q": "wh1"}).json()
    assert body["count"] == 1
    row = body["results"][0]
    assert row["code"] == "WH1"
    assert row["location_count"] == 2
    assert row["asset_count"] == 1

    wh1 = Site.objects.get(code="WH1")
    by_site = api_client.get(f"{SITES}{wh1.id}/locations/").json()
    assert [r["code"] for r in by_site["results"]] == ["DOCK", "MAIN"]
    assert api_client.get(LOCATIONS, {"site_id": str(wh1.id)}).json()["count"] == 2


def test_type_listings(api_client, operator):
    api_client.force_authenticate(user=operator)

    site_types = api_client.get(f"{SITES}types/").json()
    location_types = api_client.get(f"{LOCATIONS}types/").json()

    assert {"value": "WAREHOUSE", "label": "Warehouse"} in site_types
    assert {"value": "RACK", "label": "Rack"} in location_types


def test_duplicate_codes_are_rejected(api_client, manager, warehouses):
    api_client.force_authenticate(user=manager)
    site_id = str(warehouses["WH1"].site_id)

    dup_site = api_client.post(SITES, {"code": "wh1", "name": "Again"}, format="json")
    dup_loc = api_client.post(LOCATIONS, {"site_id": site_id, "code": "main", "name": "Again"}, format="json")

    assert dup_site.status_code == 400
    assert dup_site.json()["error"]["details"]["field"] == "code"
    assert dup_loc.status_code == 400
    assert dup_loc.json()["error"]["message"] == "Location code already exists in this site."


def test_patch_location_and_refuse_site_move(api_client, manager, make_location):
    loc = make_location("WH9", "A1")
    other = make_location("WH8", "B1")
    api_client.force_authenticate(user=manager)

    res = api_client.patch(f"{LOCATIONS}{loc.id}/", {"name": "Aisle 1", "is_active": False}, format="json")
    assert res.status_code == 200
    assert res.json()["name"] == "Aisle 1"
    assert res.json()["is_active"] is False

    moved = api_client.patch(f"{LOCATIONS}{loc.id}/", {"site_id": str(other.site_id)}, format="json")
    assert moved.status_code == 400


def test_delete_refused_while_in_use(api_client, manager, make_asset, warehouses, make_location):
    make_asset(location=warehouses["WH1"])
    spare = make_location("WH7", "SPARE")
    api_client.force_authenticate(user=manager)

    busy = api_client.delete(f"{LOCATIONS}{warehouses['WH1'].id}/")
    assert busy.status_code == 409
    assert "assets" in busy.json()["error"]["message"]

    site_with_locations = api_client.delete(f"{SITES}{spare.site_id}/")
    assert site_with_locations.status_code == 409

    assert api_client.delete(f"{LOCATIONS}{spare.id}/").status_code == 204
    assert api_client.delete(f"{SITES}{spare.site_id}/").status_code == 204
    assert not Site.objects.filter(code="WH7").exists()


def test_unknown_site_is_404(api_client, auditor):
    api_client.force_authenticate(user=auditor)
    assert api_client.get(f"{SITES}00000000-0000-0000-0000-000000000000/").status_code == 404
    assert api_client.get(f"{SITES}not-a-uuid/").status_code == 404


def test_code_frozen_once_referenced(asset, warehouses):
    wh2 = warehouses["WH2"]
    MovementService.request_movement(
        asset_id=asset.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(wh2),
        actor_id="op-1",
    )

    with pytest.raises(ValidationError) as exc:
        LocationService.update(location_id=wh2.id, actor_id="mgr-1", changes={"code": "NEW"})
    assert exc.value.field == "code"
    with pytest.raises(ValidationError):
        SiteService.update(site_id=warehouses["WH1"].site_id, actor_id="mgr-1", changes={"code": "W1"})

    # renaming is always allowed
    SiteService.update(site_id=wh2.site_id, actor_id="mgr-1", changes={"name": "Second warehouse"})
    assert Site.objects.get(pk=wh2.site_id).name == "Second warehouse"


def test_location_referenced_only_by_a_movement_cannot_be_deleted(asset, warehouses):
    wh3 = warehouses["WH3"]
    MovementService.request_movement(
        asset_id=asset.id,
        movement_type=MovementType.TRANSFER,
        to_location=LocationRef.for_location(wh3),
        actor_id="op-1",
    )

    with pytest.raises(InvalidStateError):
        LocationService.delete(location_id=wh3.id, actor_id="mgr-1")
    assert Location.objects.filter(pk=wh3.id).exists()


def test_unknown_site_for_new_location(db):
    with pytest.raises(ValidationError) as exc:
        LocationService.create(
            actor_id="mgr-1", site_id="00000000-0000-0000-0000-000000000000", code="X", name="X"
        )
    assert exc.value.field == "site_id"
