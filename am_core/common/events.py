# am_core/common/events.py
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

from django.db import transaction

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("movement.completed")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def unsubscribe(event_name: str, fn: Handler) -> None:
    handlers = _registry.get(event_name, [])
    if fn in handlers:
        handlers.remove(fn)


def _deliver(event_name: str, payload: Dict[str, Any]) -> None:
    for handler in list(_registry.get(event_name, [])):
        try:
            handler(payload)
        except Exception:
            # Fire-and-forget: a subscriber must never undo a committed change.
            logger.exception("event handler %r failed for %s", handler, event_name)


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish to in-process subscribers once the surrounding transaction commits.
    Rolled-back work never notifies anyone. Keep payloads ID-based.
    """
    transaction.on_commit(lambda: _deliver(event_name, payload))
