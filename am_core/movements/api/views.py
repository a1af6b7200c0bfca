# am_core/movements/api/views.py
from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.response import Response

from am_core.common.api.context import actor_context
from am_core.common.api.pagination import paginate
from am_core.movements.api.serializers import (
    MovementApproveSerializer,
    MovementCancelSerializer,
    MovementCompleteSerializer,
    MovementCreateSerializer,
    MovementRejectSerializer,
    MovementSerializer,
)
from am_core.movements.permissions import MovementPermission
from am_core.movements.selectors import MovementFilter, get_movement, movement_queryset
from am_core.movements.services import MovementService
from am_core.sites.locations import resolve_location


class MovementViewSet(viewsets.GenericViewSet):
    """
    Thin API layer:
    - input validation via serializers
    - location text/ids normalized to LocationRef here, once
    - selectors for reads, MovementService for every write
    """

    permission_classes = [MovementPermission]
    serializer_class = MovementSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = MovementFilter
    ordering_fields = ["request_date", "completion_date", "status"]
    ordering = ["-request_date"]

    def get_queryset(self):
        return movement_queryset()

    def _respond(self, movement_id, code=status.HTTP_200_OK) -> Response:
        return Response(MovementSerializer(get_movement(movement_id)).data, status=code)

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(tags=["Movements"], responses={200: MovementSerializer(many=True)})
    def list(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return paginate(request, qs, MovementSerializer)

    @extend_schema(tags=["Movements"], responses={200: MovementSerializer})
    def retrieve(self, request, pk=None):
        return self._respond(pk)

    # ----------------------------
    # Writes
    # ----------------------------
    @extend_schema(tags=["Movements"], request=MovementCreateSerializer, responses={201: MovementSerializer})
    def create(self, request):
        ser = MovementCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        from_location = None
        if data.get("from_location_id") or data.get("from_location"):
            from_location = resolve_location(
                site_id=data.get("from_site_id"),
                location_id=data.get("from_location_id"),
                text=data.get("from_location"),
            )

        m = MovementService.request_movement(
            asset_id=data["asset_id"],
            movement_type=data["movement_type"],
            to_location=resolve_location(
                site_id=data.get("to_site_id"),
                location_id=data.get("to_location_id"),
                text=data.get("to_location"),
            ),
            to_custodian=data.get("to_custodian", ""),
            from_location=from_location,
            from_custodian=data.get("from_custodian"),
            reason=data.get("reason", ""),
            notes=data.get("notes", ""),
            **actor_context(request),
        )
        return self._respond(m.id, status.HTTP_201_CREATED)

    @extend_schema(tags=["Movements"], responses={204: None})
    def destroy(self, request, pk=None):
        MovementService.delete(movement_id=pk, **actor_context(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ----------------------------
    # Workflow actions
    # ----------------------------
    @extend_schema(tags=["Movements"], request=MovementApproveSerializer, responses={200: MovementSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        ser = MovementApproveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MovementService.approve(movement_id=pk, notes=ser.validated_data.get("notes"), **actor_context(request))
        return self._respond(pk)

    @extend_schema(tags=["Movements"], request=MovementRejectSerializer, responses={200: MovementSerializer})
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        ser = MovementRejectSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MovementService.reject(movement_id=pk, reason=ser.validated_data["reason"], **actor_context(request))
        return self._respond(pk)

    @extend_schema(tags=["Movements"], request=MovementCompleteSerializer, responses={200: MovementSerializer})
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        ser = MovementCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        observed_to = None
        if data.get("observed_location_id") or data.get("observed_location"):
            observed_to = resolve_location(
                site_id=data.get("observed_site_id"),
                location_id=data.get("observed_location_id"),
                text=data.get("observed_location"),
            )

        MovementService.complete(
            movement_id=pk,
            observed_to=observed_to,
            observed_custodian=data.get("observed_custodian"),
            **actor_context(request),
        )
        return self._respond(pk)

    @extend_schema(tags=["Movements"], request=MovementCancelSerializer, responses={200: MovementSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        ser = MovementCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        MovementService.cancel(movement_id=pk, reason=ser.validated_data.get("reason", ""), **actor_context(request))
        return self._respond(pk)
