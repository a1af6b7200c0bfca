# am_core/common/db.py
from __future__ import annotations

import functools
import logging

from django.db import DatabaseError, IntegrityError, OperationalError, transaction

from am_core.common.exceptions import ConflictError, PersistenceError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs that mean "somebody else holds the row".
_CONFLICT_SQLSTATES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available (lock_timeout)
}


def _sqlstate(exc: BaseException) -> str | None:
    cause = exc.__cause__
    return getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)


def _is_lock_error(exc: OperationalError) -> bool:
    if _sqlstate(exc) in _CONFLICT_SQLSTATES:
        return True
    # SQLite reports contention as a plain OperationalError message.
    return "database is locked" in str(exc).lower()


def translate_db_error(exc: DatabaseError) -> Exception:
    """
    Map raw driver errors onto the domain taxonomy.
    IntegrityError here always means a concurrent writer won a uniqueness race.
    """
    if isinstance(exc, IntegrityError):
        return ConflictError(f"Concurrent modification rejected by the store: {exc}")
    if isinstance(exc, OperationalError) and _is_lock_error(exc):
        return ConflictError("Asset is locked by a concurrent operation, retry the request.")
    return PersistenceError(f"Storage error: {exc}")


def atomic_operation(fn):
    """
    Transaction boundary for core operations.

    The wrapped call runs in one `transaction.atomic` block (a savepoint when
    nested). Domain errors pass through untouched; driver errors are rolled
    back and re-raised as ConflictError / PersistenceError.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            with transaction.atomic():
                return fn(*args, **kwargs)
        except DatabaseError as exc:
            translated = translate_db_error(exc)
            logger.warning("%s rolled back: %s", fn.__qualname__, translated)
            raise translated from exc

    return wrapper
