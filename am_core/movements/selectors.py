# am_core/movements/selectors.py
from __future__ import annotations

import django_filters
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import QuerySet

from am_core.common.exceptions import NotFoundError
from am_core.movements.models import Movement, MovementStatus, MovementType


class MovementFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=MovementStatus.choices)
    movement_type = django_filters.ChoiceFilter(choices=MovementType.choices)
    asset_id = django_filters.UUIDFilter(field_name="asset_id")
    has_discrepancy = django_filters.BooleanFilter()
    requested_by_id = django_filters.CharFilter()
    requested_after = django_filters.IsoDateTimeFilter(field_name="request_date", lookup_expr="gte")
    requested_before = django_filters.IsoDateTimeFilter(field_name="request_date", lookup_expr="lt")

    class Meta:
        model = Movement
        fields = [
            "status",
            "movement_type",
            "asset_id",
            "has_discrepancy",
            "requested_by_id",
            "requested_after",
            "requested_before",
        ]


def movement_queryset() -> QuerySet[Movement]:
    return Movement.objects.alive().select_related(
        "asset", "from_site", "from_location", "to_site", "to_location"
    )


def get_movement(movement_id) -> Movement:
    try:
        return movement_queryset().get(pk=movement_id)
    except (Movement.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Movement not found.", movement_id=str(movement_id))


def open_movement_for_asset(asset_id) -> Movement | None:
    return (
        Movement.objects.alive()
        .filter(asset_id=asset_id, status__in=[MovementStatus.REQUESTED, MovementStatus.APPROVED])
        .first()
    )
