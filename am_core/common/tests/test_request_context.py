import pytest
from django.core.management import call_command
from django.contrib.auth.models import Group
from django.test import RequestFactory

from am_core.common.middleware import client_ip
from am_core.iam.roles import ALL_ROLES, ROLE_ADMIN, user_roles


def test_client_ip_prefers_first_forwarded_hop():
    rf = RequestFactory()
    req = rf.get("/", HTTP_X_FORWARDED_FOR="203.0.113.5, 10.0.0.1", REMOTE_ADDR="10.0.0.1")
    assert client_ip(req) == "203.0.113.5"

    assert client_ip(rf.get("/", REMOTE_ADDR="10.0.0.2")) == "10.0.0.2"


@pytest.mark.django_db
def test_request_id_is_generated_when_absent(api_client, auditor):
    api_client.force_authenticate(user=auditor)
    res = api_client.get("/api/v1/movements/")

    assert res.status_code == 200
    assert len(res["X-Request-Id"]) == 32


@pytest.mark.django_db
def test_roles_from_groups_and_superuser(make_user, django_user_model):
    user = make_user("multi", "MANAGER", "AUDITOR")
    assert user_roles(user) == {"MANAGER", "AUDITOR"}

    root = django_user_model.objects.create_superuser("root", "root@example.com", "pw")
    assert user_roles(root) == {ROLE_ADMIN}


@pytest.mark.django_db
def test_ensure_roles_is_idempotent():
    call_command("ensure_roles")
    call_command("ensure_roles")
    assert sorted(Group.objects.values_list("name", flat=True)) == sorted(ALL_ROLES)


@pytest.mark.django_db
def test_ensure_roles_reports_members(make_user, capsys):
    make_user("m1", "MANAGER")
    call_command("ensure_roles", "--show-members")

    out = capsys.readouterr().out
    assert "0 created" in out
    assert "MANAGER: 1 user(s)" in out
