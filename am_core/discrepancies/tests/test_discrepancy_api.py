import pytest

from am_core.discrepancies.models import DiscrepancyStatus

pytestmark = pytest.mark.django_db

BASE = "/api/v1/discrepancies/"


def _open(api_client, user, asset, **extra):
    api_client.force_authenticate(user=user)
    payload = {
        "asset_id": str(asset.id),
        "discrepancy_type": "CONDITION",
        "description": "Casing dented",
        "expected_value": "GOOD",
        "actual_value": "DAMAGED",
        **extra,
    }
    return api_client.post(BASE, payload, format="json")


def test_open_then_resolve_and_close(api_client, operator, manager, asset):
    res = _open(api_client, operator, asset, priority="HIGH")
    assert res.status_code == 201, res.data
    body = res.json()
    assert body["status"] == DiscrepancyStatus.OPEN
    assert body["priority"] == "HIGH"
    assert body["source"] == "MANUAL"
    assert body["asset_tag"] == asset.asset_tag
    did = body["id"]

    assert api_client.post(f"{BASE}{did}/start/", {}, format="json").status_code == 200
    # operators investigate, managers sign off
    assert api_client.post(f"{BASE}{did}/resolve/", {"resolution": "x"}, format="json").status_code == 403

    api_client.force_authenticate(user=manager)
    res = api_client.post(f"{BASE}{did}/resolve/", {"resolution": "Panel replaced"}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == DiscrepancyStatus.RESOLVED

    again = api_client.post(f"{BASE}{did}/resolve/", {"resolution": "Panel replaced"}, format="json")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "invalid_state"

    res = api_client.post(f"{BASE}{did}/close/", {}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == DiscrepancyStatus.CLOSED

    asset.refresh_from_db()
    assert asset.has_discrepancy is False


def test_blank_description_is_rejected(api_client, operator, asset):
    res = _open(api_client, operator, asset, description="")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_list_filters_by_asset_and_status(api_client, operator, auditor, asset, make_asset, warehouses):
    other = make_asset(location=warehouses["WH2"])
    _open(api_client, operator, asset)
    _open(api_client, operator, other)

    api_client.force_authenticate(user=auditor)
    res = api_client.get(BASE, {"asset_id": str(asset.id), "status": "OPEN"})

    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert res.json()["results"][0]["asset_id"] == str(asset.id)


def test_auditor_cannot_open(api_client, auditor, asset):
    res = _open(api_client, auditor, asset)
    assert res.status_code == 403
