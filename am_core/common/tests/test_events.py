import logging

import pytest
from django.db import transaction

from am_core.common.events import publish, subscribe, unsubscribe


@pytest.fixture
def received():
    got = []

    def handler(payload):
        got.append(payload)

    subscribe("test.event")(handler)
    yield got
    unsubscribe("test.event", handler)


@pytest.mark.django_db
def test_delivered_only_after_commit(django_capture_on_commit_callbacks, received):
    with django_capture_on_commit_callbacks(execute=True):
        publish("test.event", {"id": 1})
        assert received == []
    assert received == [{"id": 1}]


@pytest.mark.django_db
def test_rolled_back_work_publishes_nothing(django_capture_on_commit_callbacks, received):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        try:
            with transaction.atomic():
                publish("test.event", {"id": 2})
                raise RuntimeError("abort")
        except RuntimeError:
            pass
    assert callbacks == []
    assert received == []


@pytest.mark.django_db
def test_failing_handler_is_logged_not_raised(django_capture_on_commit_callbacks, received, caplog):
    def broken(payload):
        raise ValueError("boom")

    subscribe("test.event")(broken)
    try:
        with caplog.at_level(logging.ERROR, logger="am_core.common.events"):
            with django_capture_on_commit_callbacks(execute=True):
                publish("test.event", {"id": 3})
    finally:
        unsubscribe("test.event", broken)

    assert received == [{"id": 3}]
    assert "event handler" in caplog.text
