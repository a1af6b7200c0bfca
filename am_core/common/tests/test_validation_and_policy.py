import pytest

from am_core.common.exceptions import ValidationError
from am_core.common.policy import get_policy
from am_core.common.validation import OK, Invalid, first_invalid, raise_if_invalid, require_choice, require_text


def test_checks_return_tagged_results():
    assert require_text("x", "name") is OK
    assert require_text("  ", "name") == Invalid("name", "name must not be empty.")
    assert require_choice("A", ["A", "B"], "kind") is OK
    assert isinstance(require_choice("C", ["A", "B"], "kind"), Invalid)


def test_first_invalid_wins():
    results = [OK, Invalid("a", "first"), Invalid("b", "second")]
    assert first_invalid(results) == Invalid("a", "first")

    with pytest.raises(ValidationError) as exc:
        raise_if_invalid(*results)
    assert exc.value.field == "a"
    assert exc.value.reason == "first"

    raise_if_invalid(OK, OK)


def test_policy_defaults(settings):
    del settings.ASSET_MOVEMENTS
    policy = get_policy()
    assert policy.self_completing_types == frozenset({"CHECKOUT", "RETURN"})
    assert policy.default_discrepancy_priority == "MEDIUM"
    assert policy.audit_page_size == 50


def test_policy_is_read_at_call_time(settings):
    settings.ASSET_MOVEMENTS = {"SELF_COMPLETING_TYPES": ["transfer"], "DEFAULT_DISCREPANCY_PRIORITY": "low"}
    policy = get_policy()
    assert policy.self_completing_types == frozenset({"TRANSFER"})
    assert policy.default_discrepancy_priority == "LOW"
