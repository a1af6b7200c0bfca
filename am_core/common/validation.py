# am_core/common/validation.py
"""
Explicit validation: each check returns a tagged result instead of raising,
so transition methods can run them up front and fail on the first Invalid.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from am_core.common.exceptions import ValidationError


@dataclass(frozen=True)
class Ok:
    pass


@dataclass(frozen=True)
class Invalid:
    field: str
    reason: str


Result = Union[Ok, Invalid]

OK = Ok()


def require_text(value: str | None, field: str, reason: str | None = None) -> Result:
    if value is None or not str(value).strip():
        return Invalid(field, reason or f"{field} must not be empty.")
    return OK


def require_choice(value, choices, field: str) -> Result:
    if value not in set(choices):
        return Invalid(field, f"{field} must be one of {sorted(choices)}.")
    return OK


def first_invalid(results: Iterable[Result]) -> Invalid | None:
    for r in results:
        if isinstance(r, Invalid):
            return r
    return None


def raise_if_invalid(*results: Result) -> None:
    bad = first_invalid(results)
    if bad is not None:
        raise ValidationError(bad.field, bad.reason)
