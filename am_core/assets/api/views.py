# am_core/assets/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from am_core.assets.api.serializers import (
    AssetCreateSerializer,
    AssetSerializer,
    AssetUpdateSerializer,
    ScanSerializer,
)
from am_core.assets.models import Asset
from am_core.assets.permissions import AssetPermission
from am_core.assets.selectors import get_asset, list_assets
from am_core.assets.services import AssetService
from am_core.common.api.context import actor_context
from am_core.common.api.pagination import paginate
from am_core.common.exceptions import ValidationError
from am_core.discrepancies.api.serializers import DiscrepancySerializer
from am_core.reconciliation.services import ReconciliationService, ScanEvent
from am_core.sites.locations import resolve_location


def _uuid_param(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(field_name, "Invalid UUID.")


def _bool_param(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.strip().lower() in {"1", "true", "yes"}


class AssetViewSet(viewsets.GenericViewSet):
    """
    Reads go through selectors, writes through AssetService.
    Location and custodian are not editable here: they move with movements.
    """

    permission_classes = [AssetPermission]
    serializer_class = AssetSerializer
    queryset = Asset.objects.none()

    @extend_schema(
        tags=["Assets"],
        responses={200: AssetSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="site_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="has_discrepancy", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False,
                             description="Search asset tag, name or serial number."),
        ],
    )
    def list(self, request):
        p = request.query_params
        qs = list_assets(
            status=p.get("status") or None,
            site_id=_uuid_param(p.get("site_id"), "site_id"),
            has_discrepancy=_bool_param(p.get("has_discrepancy")),
            q=p.get("q") or None,
        )
        return paginate(request, qs, AssetSerializer)

    @extend_schema(tags=["Assets"], responses={200: AssetSerializer})
    def retrieve(self, request, pk=None):
        return Response(AssetSerializer(get_asset(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Assets"], request=AssetCreateSerializer, responses={201: AssetSerializer})
    def create(self, request):
        ser = AssetCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        location = resolve_location(
            site_id=data.get("site_id"),
            location_id=data.get("location_id"),
            text=data.get("location"),
        )
        asset = AssetService.create(
            asset_tag=data["asset_tag"],
            name=data["name"],
            category=data.get("category", ""),
            serial_number=data.get("serial_number"),
            status=data.get("status"),
            condition=data.get("condition"),
            location=location,
            custodian=data.get("custodian", ""),
            notes=data.get("notes", ""),
            **actor_context(request),
        )
        return Response(AssetSerializer(asset).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Assets"], request=AssetUpdateSerializer, responses={200: AssetSerializer})
    def partial_update(self, request, pk=None):
        ser = AssetUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        asset = AssetService.update(asset_id=pk, changes=dict(ser.validated_data), **actor_context(request))
        return Response(AssetSerializer(asset).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Assets"], responses={204: None})
    def destroy(self, request, pk=None):
        AssetService.soft_delete(asset_id=pk, **actor_context(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Assets"], request=ScanSerializer, responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["post"], url_path="scan")
    def scan(self, request):
        """
        Record a physical scan. The stored location is never changed by a scan;
        mismatches open (or reuse) discrepancies instead.
        """
        ser = ScanSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        observed = None
        if data.get("location_id") or data.get("location"):
            observed = resolve_location(
                site_id=data.get("site_id"),
                location_id=data.get("location_id"),
                text=data.get("location"),
            )

        result = ReconciliationService.process_scan(
            ScanEvent(
                asset_tag=data["asset_tag"],
                observed_location=observed,
                observed_custodian=data.get("custodian"),
                scanned_at=data.get("scanned_at"),
            ),
            **actor_context(request),
        )
        return Response(
            {
                "asset": AssetSerializer(result.asset).data,
                "matched": result.matched,
                "opened": DiscrepancySerializer(result.opened, many=True).data,
                "reused": DiscrepancySerializer(result.reused, many=True).data,
            },
            status=status.HTTP_200_OK,
        )
