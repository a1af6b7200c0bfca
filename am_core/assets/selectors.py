# am_core/assets/selectors.py
from __future__ import annotations

from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q, QuerySet

from am_core.assets.models import Asset
from am_core.common.exceptions import NotFoundError


def list_assets(
    *,
    status: str | None = None,
    site_id: UUID | None = None,
    has_discrepancy: bool | None = None,
    q: str | None = None,
) -> QuerySet[Asset]:
    qs = Asset.objects.alive().select_related("site", "location")
    if status:
        qs = qs.filter(status=status)
    if site_id:
        qs = qs.filter(site_id=site_id)
    if has_discrepancy is not None:
        qs = qs.filter(has_discrepancy=has_discrepancy)
    if q:
        qs = qs.filter(Q(asset_tag__icontains=q) | Q(name__icontains=q) | Q(serial_number__icontains=q))
    return qs.order_by("asset_tag")


def get_asset(asset_id) -> Asset:
    try:
        return Asset.objects.alive().select_related("site", "location").get(pk=asset_id)
    except (Asset.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Asset not found.", asset_id=str(asset_id))


def get_asset_by_tag(asset_tag: str) -> Asset:
    try:
        return Asset.objects.alive().get(asset_tag=asset_tag)
    except Asset.DoesNotExist:
        raise NotFoundError("Asset not found.", asset_tag=asset_tag)
