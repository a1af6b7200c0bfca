import pytest

from am_core.assets.models import Asset

pytestmark = pytest.mark.django_db

BASE = "/api/v1/assets/"


def test_manager_creates_asset_with_legacy_location(api_client, manager, warehouses):
    api_client.force_authenticate(user=manager)
    res = api_client.post(
        BASE,
        {"asset_tag": "AT-900", "name": "Projector", "location": "wh2/main", "custodian": "av team"},
        format="json",
    )

    assert res.status_code == 201, res.data
    body = res.json()
    assert body["location_id"] == str(warehouses["WH2"].id)
    assert body["location_display"] == "WH2/MAIN"
    assert body["version"] == 1


def test_operator_cannot_edit_assets(api_client, operator, asset):
    api_client.force_authenticate(user=operator)
    res = api_client.patch(f"{BASE}{asset.id}/", {"name": "Renamed"}, format="json")
    assert res.status_code == 403


def test_patch_and_delete(api_client, manager, asset):
    api_client.force_authenticate(user=manager)

    res = api_client.patch(f"{BASE}{asset.id}/", {"condition": "FAIR", "notes": "Scratched lid"}, format="json")
    assert res.status_code == 200
    assert res.json()["condition"] == "FAIR"
    assert res.json()["version"] == 2

    assert api_client.delete(f"{BASE}{asset.id}/").status_code == 204
    assert api_client.get(f"{BASE}{asset.id}/").status_code == 404
    assert Asset.objects.deleted().filter(pk=asset.pk).exists()


def test_scan_endpoint_reports_and_reuses_discrepancies(api_client, operator, asset, warehouses):
    api_client.force_authenticate(user=operator)
    payload = {
        "asset_tag": asset.asset_tag,
        "site_id": str(warehouses["WH3"].site_id),
        "location_id": str(warehouses["WH3"].id),
    }

    first = api_client.post(f"{BASE}scan/", payload, format="json")
    second = api_client.post(f"{BASE}scan/", payload, format="json")

    assert first.status_code == 200
    assert first.json()["matched"] is False
    assert len(first.json()["opened"]) == 1
    assert first.json()["opened"][0]["description"] == "Asset location discrepancy detected during scan"
    assert second.json()["opened"] == []
    assert [d["id"] for d in second.json()["reused"]] == [first.json()["opened"][0]["id"]]
    assert second.json()["asset"]["location_id"] == str(warehouses["WH1"].id)


def test_scan_of_unknown_tag_is_404(api_client, operator):
    api_client.force_authenticate(user=operator)
    res = api_client.post(f"{BASE}scan/", {"asset_tag": "GHOST"}, format="json")
    assert res.status_code == 404
