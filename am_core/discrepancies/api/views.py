# am_core/discrepancies/api/views.py
from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.response import Response

from am_core.common.api.context import actor_context
from am_core.common.api.pagination import paginate
from am_core.discrepancies.api.serializers import (
    DiscrepancyCreateSerializer,
    DiscrepancyNotesSerializer,
    DiscrepancyResolveSerializer,
    DiscrepancySerializer,
)
from am_core.discrepancies.models import DiscrepancySource
from am_core.discrepancies.permissions import DiscrepancyPermission
from am_core.discrepancies.selectors import DiscrepancyFilter, discrepancy_queryset, get_discrepancy
from am_core.discrepancies.services import DiscrepancyService


class DiscrepancyViewSet(viewsets.GenericViewSet):
    permission_classes = [DiscrepancyPermission]
    serializer_class = DiscrepancySerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = DiscrepancyFilter
    ordering_fields = ["detected_at", "priority", "status"]
    ordering = ["-detected_at"]

    def get_queryset(self):
        return discrepancy_queryset()

    @extend_schema(tags=["Discrepancies"], responses={200: DiscrepancySerializer(many=True)})
    def list(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return paginate(request, qs, DiscrepancySerializer)

    @extend_schema(tags=["Discrepancies"], responses={200: DiscrepancySerializer})
    def retrieve(self, request, pk=None):
        return Response(DiscrepancySerializer(get_discrepancy(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Discrepancies"], request=DiscrepancyCreateSerializer, responses={201: DiscrepancySerializer})
    def create(self, request):
        ser = DiscrepancyCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        d = DiscrepancyService.open(
            asset_id=data["asset_id"],
            movement_id=data.get("movement_id"),
            discrepancy_type=data["discrepancy_type"],
            description=data["description"],
            expected_value=data.get("expected_value", ""),
            actual_value=data.get("actual_value", ""),
            priority=data.get("priority"),
            notes=data.get("notes", ""),
            source=DiscrepancySource.MANUAL,
            **actor_context(request),
        )
        return Response(DiscrepancySerializer(get_discrepancy(d.id)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Discrepancies"], request=None, responses={200: DiscrepancySerializer})
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        DiscrepancyService.start(discrepancy_id=pk, **actor_context(request))
        return Response(DiscrepancySerializer(get_discrepancy(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Discrepancies"], request=DiscrepancyResolveSerializer, responses={200: DiscrepancySerializer})
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        ser = DiscrepancyResolveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        DiscrepancyService.resolve(
            discrepancy_id=pk,
            resolution=ser.validated_data["resolution"],
            notes=ser.validated_data.get("notes"),
            **actor_context(request),
        )
        return Response(DiscrepancySerializer(get_discrepancy(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Discrepancies"], request=DiscrepancyNotesSerializer, responses={200: DiscrepancySerializer})
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        ser = DiscrepancyNotesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        DiscrepancyService.close(discrepancy_id=pk, notes=ser.validated_data.get("notes"), **actor_context(request))
        return Response(DiscrepancySerializer(get_discrepancy(pk)).data, status=status.HTTP_200_OK)
