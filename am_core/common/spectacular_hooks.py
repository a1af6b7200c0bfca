# am_core/common/spectacular_hooks.py
from __future__ import annotations

VERSIONED_PREFIX = "/api/v1/"


def preprocess_exclude_legacy_api(endpoints):
    """
    Schema only documents the versioned surface.

    The unversioned /api/ alias mounts the same router a second time, and the
    router's browsable root is not part of the contract either.
    """
    kept = []
    for path, path_regex, method, callback in endpoints:
        if not path.startswith(VERSIONED_PREFIX):
            continue
        if path == VERSIONED_PREFIX:
            continue
        kept.append((path, path_regex, method, callback))
    return kept
