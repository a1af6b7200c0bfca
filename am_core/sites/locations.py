# am_core/sites/locations.py
"""
LocationRef: the one shape a "where is it" value takes inside the core.

Structured refs carry (site_id, location_id); legacy free text that cannot be
resolved against a Location stays a label-only ref. Comparison never mixes
the two silently: ids when both sides have them, normalized labels otherwise.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from django.db.models import Q

from am_core.common.exceptions import ValidationError
from am_core.sites.models import Location


def normalize_label(text: str | None) -> str:
    return " ".join((text or "").split()).casefold()


@dataclass(frozen=True)
class LocationRef:
    site_id: Optional[UUID] = None
    location_id: Optional[UUID] = None
    label: str = ""

    @property
    def is_empty(self) -> bool:
        return self.location_id is None and self.site_id is None and not self.label.strip()

    @property
    def is_structured(self) -> bool:
        return self.location_id is not None

    def display(self) -> str:
        return self.label

    def matches(self, other: "LocationRef") -> bool:
        if self.is_structured and other.is_structured:
            return (self.site_id, self.location_id) == (other.site_id, other.location_id)
        return normalize_label(self.display()) == normalize_label(other.display())

    @classmethod
    def for_location(cls, location: Location) -> "LocationRef":
        return cls(
            site_id=location.site_id,
            location_id=location.id,
            label=f"{location.site.code}/{location.code}",
        )

    @classmethod
    def from_ids(cls, site_id, location_id) -> "LocationRef":
        """
        Resolve explicit ids; a location that is not under the given site is rejected.
        """
        try:
            location = Location.objects.select_related("site").get(pk=location_id)
        except (Location.DoesNotExist, ValueError, TypeError):
            raise ValidationError("location_id", "Unknown location.")
        if site_id is not None and str(location.site_id) != str(site_id):
            raise ValidationError("location_id", "Location does not belong to the given site.")
        return cls.for_location(location)

    @classmethod
    def from_legacy(cls, text: str | None) -> "LocationRef":
        """
        Resolve free text ("WH1/A-01", "A-01" or a location name) against stored
        Locations. Ambiguous or unknown text stays a label-only ref.
        """
        raw = " ".join((text or "").split())
        if not raw:
            return cls()

        qs = Location.objects.select_related("site").filter(is_active=True)
        if "/" in raw:
            site_code, _, loc_code = raw.partition("/")
            candidates = qs.filter(site__code__iexact=site_code.strip(), code__iexact=loc_code.strip())
        else:
            candidates = qs.filter(Q(code__iexact=raw) | Q(name__iexact=raw))

        matches = list(candidates[:2])
        if len(matches) == 1:
            return cls.for_location(matches[0])
        return cls(label=raw)

    @classmethod
    def from_fields(cls, site_id, location_id, label: str | None) -> "LocationRef":
        """
        Rebuild from a model's stored (site_id, location_id, label) triple.
        """
        if location_id is not None:
            return cls(site_id=site_id, location_id=location_id, label=label or "")
        return cls(site_id=site_id, label=(label or "").strip())


def resolve_location(*, site_id=None, location_id=None, text: str | None = None) -> LocationRef:
    """
    Boundary normalizer used by services and serializers.
    """
    if location_id:
        return LocationRef.from_ids(site_id, location_id)
    return LocationRef.from_legacy(text)
