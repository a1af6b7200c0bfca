# am_core/sites/selectors.py
from __future__ import annotations

from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, Q, QuerySet

from am_core.common.exceptions import NotFoundError
from am_core.sites.models import Location, Site

_LIVE_ASSETS = Q(assets__deleted_at__isnull=True)


def list_sites(
    *,
    site_type: str | None = None,
    is_active: bool | None = None,
    q: str | None = None,
) -> QuerySet[Site]:
    qs = Site.objects.annotate(
        asset_count=Count("assets", filter=_LIVE_ASSETS, distinct=True),
        location_count=Count("locations", distinct=True),
    )
    if site_type:
        qs = qs.filter(site_type=site_type)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if q:
        qs = qs.filter(Q(code__icontains=q) | Q(name__icontains=q) | Q(address__icontains=q))
    return qs.order_by("code")


def get_site(site_id) -> Site:
    try:
        return list_sites().get(pk=site_id)
    except (Site.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Site not found.", site_id=str(site_id))


def list_locations(
    *,
    site_id: UUID | None = None,
    location_type: str | None = None,
    is_active: bool | None = None,
    q: str | None = None,
) -> QuerySet[Location]:
    qs = Location.objects.select_related("site").annotate(
        asset_count=Count("assets", filter=_LIVE_ASSETS, distinct=True),
    )
    if site_id:
        qs = qs.filter(site_id=site_id)
    if location_type:
        qs = qs.filter(location_type=location_type)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    if q:
        qs = qs.filter(Q(code__icontains=q) | Q(name__icontains=q))
    return qs.order_by("site__code", "code")


def get_location(location_id) -> Location:
    try:
        return list_locations().get(pk=location_id)
    except (Location.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Location not found.", location_id=str(location_id))
