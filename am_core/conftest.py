# am_core/conftest.py
import itertools

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from am_core.assets.services import AssetService
from am_core.iam.roles import ALL_ROLES, ROLE_ADMIN, ROLE_AUDITOR, ROLE_MANAGER, ROLE_OPERATOR
from am_core.sites.locations import LocationRef
from am_core.sites.models import Location, Site, SiteType

_seq = itertools.count(1)


@pytest.fixture
def make_user(db):
    def _make(username: str, *roles: str):
        for name in ALL_ROLES:
            Group.objects.get_or_create(name=name)
        User = get_user_model()
        user = User.objects.create_user(username=username, password="pass123", is_active=True)
        for role in roles:
            user.groups.add(Group.objects.get(name=role))
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture
def manager(make_user):
    return make_user("manager", ROLE_MANAGER)


@pytest.fixture
def operator(make_user):
    return make_user("operator", ROLE_OPERATOR)


@pytest.fixture
def auditor(make_user):
    return make_user("auditor", ROLE_AUDITOR)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def make_location(db):
    def _make(site_code: str, code: str = "MAIN", name: str | None = None) -> Location:
        site, _ = Site.objects.get_or_create(
            code=site_code,
            defaults={"name": site_code, "site_type": SiteType.WAREHOUSE},
        )
        return Location.objects.create(site=site, code=code, name=name or f"{site_code} {code}")

    return _make


@pytest.fixture
def warehouses(make_location):
    """
    Three single-location warehouses: WH1, WH2, WH3.
    """
    return {code: make_location(code) for code in ("WH1", "WH2", "WH3")}


@pytest.fixture
def make_asset(db):
    def _make(*, location: Location | None = None, custodian: str = "", **overrides):
        n = next(_seq)
        data = {
            "asset_tag": f"AT-{n:05d}",
            "name": f"Laptop {n}",
            "category": "IT",
            **overrides,
        }
        return AssetService.create(
            actor_id="setup",
            location=LocationRef.for_location(location) if location else None,
            custodian=custodian,
            **data,
        )

    return _make


@pytest.fixture
def asset(make_asset, warehouses):
    return make_asset(location=warehouses["WH1"], custodian="alice")
