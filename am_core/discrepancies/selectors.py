# am_core/discrepancies/selectors.py
from __future__ import annotations

import django_filters
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import QuerySet

from am_core.common.exceptions import NotFoundError
from am_core.discrepancies.models import (
    ACTIVE_STATUSES,
    Discrepancy,
    DiscrepancyPriority,
    DiscrepancySource,
    DiscrepancyStatus,
    DiscrepancyType,
)


class DiscrepancyFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=DiscrepancyStatus.choices)
    discrepancy_type = django_filters.ChoiceFilter(choices=DiscrepancyType.choices)
    priority = django_filters.MultipleChoiceFilter(choices=DiscrepancyPriority.choices)
    source = django_filters.ChoiceFilter(choices=DiscrepancySource.choices)
    asset_id = django_filters.UUIDFilter(field_name="asset_id")
    movement_id = django_filters.UUIDFilter(field_name="movement_id")
    detected_after = django_filters.IsoDateTimeFilter(field_name="detected_at", lookup_expr="gte")
    detected_before = django_filters.IsoDateTimeFilter(field_name="detected_at", lookup_expr="lt")

    class Meta:
        model = Discrepancy
        fields = [
            "status",
            "discrepancy_type",
            "priority",
            "source",
            "asset_id",
            "movement_id",
            "detected_after",
            "detected_before",
        ]


def discrepancy_queryset() -> QuerySet[Discrepancy]:
    return Discrepancy.objects.select_related("asset", "movement")


def get_discrepancy(discrepancy_id) -> Discrepancy:
    try:
        return discrepancy_queryset().get(pk=discrepancy_id)
    except (Discrepancy.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Discrepancy not found.", discrepancy_id=str(discrepancy_id))


def active_discrepancies(*, asset_id, discrepancy_type: str | None = None) -> QuerySet[Discrepancy]:
    qs = Discrepancy.objects.filter(asset_id=asset_id, status__in=ACTIVE_STATUSES)
    if discrepancy_type:
        qs = qs.filter(discrepancy_type=discrepancy_type)
    return qs.order_by("detected_at")
