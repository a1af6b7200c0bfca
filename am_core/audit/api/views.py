# am_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from django.utils.dateparse import parse_datetime
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from am_core.audit.api.serializers import AuditEntrySerializer, ChainVerificationSerializer
from am_core.audit.models import AuditEntry
from am_core.audit.permissions import AuditPermission
from am_core.audit.selectors import distinct_actions, distinct_entity_types, list_audit_entries
from am_core.audit.services import AuditLedger
from am_core.common.api.pagination import LedgerCursorPagination, paginate
from am_core.common.exceptions import NotFoundError, ValidationError


def _param(request, *names: str) -> str | None:
    # snake_case is canonical; camelCase kept for older clients
    for name in names:
        value = request.query_params.get(name)
        if value:
            return value
    return None


def _uuid_param(value: str | None, field_name: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(field_name, "Invalid UUID.")


def _datetime_param(value: str | None, field_name: str):
    if not value:
        return None
    dt = parse_datetime(value)
    if dt is None:
        raise ValidationError(field_name, f"{field_name} is invalid. Use ISO datetime.")
    return dt


class AuditEntryViewSet(viewsets.GenericViewSet):
    """
    Read-only access to the audit ledger (newest first, cursor-paginated).
    """
    permission_classes = [AuditPermission]
    filter_backends = []
    serializer_class = AuditEntrySerializer
    queryset = AuditEntry.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEntrySerializer(many=True)},
        parameters=[
            OpenApiParameter(name="entity_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False, description="Asset, Movement or Discrepancy."),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="actor_id", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="action", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="start", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="end", type=OpenApiTypes.DATETIME, location=OpenApiParameter.QUERY,
                             required=False),
            OpenApiParameter(name="cursor", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=False),
        ],
    )
    def list(self, request):
        qs = list_audit_entries(
            entity_type=_param(request, "entity_type", "entityType"),
            entity_id=_uuid_param(_param(request, "entity_id", "entityId"), "entity_id"),
            actor_id=_param(request, "actor_id", "actorId"),
            action=_param(request, "action"),
            start=_datetime_param(_param(request, "start", "startDate"), "start"),
            end=_datetime_param(_param(request, "end", "endDate"), "end"),
        )
        return paginate(request, qs, AuditEntrySerializer, paginator=LedgerCursorPagination())

    @extend_schema(tags=["Audit"], responses={200: AuditEntrySerializer})
    def retrieve(self, request, pk=None):
        try:
            entry = AuditEntry.objects.get(pk=int(pk))
        except (AuditEntry.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Audit entry not found.", entry_id=str(pk))
        return Response(AuditEntrySerializer(entry).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Audit"],
        responses={200: ChainVerificationSerializer},
        parameters=[
            OpenApiParameter(name="entity_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                             required=True),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY,
                             required=True),
        ],
    )
    @action(detail=False, methods=["get"], url_path="verify")
    def verify(self, request):
        entity_type = _param(request, "entity_type", "entityType")
        entity_id = _uuid_param(_param(request, "entity_id", "entityId"), "entity_id")
        if not entity_type or not entity_id:
            raise ValidationError("entity_type", "entity_type and entity_id are required.")

        count = AuditLedger.verify_chain(entity_type=entity_type, entity_id=entity_id)
        data = {"entity_type": entity_type, "entity_id": entity_id, "verified_entries": count}
        return Response(ChainVerificationSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="actions")
    def action_names(self, request):
        return Response(distinct_actions(), status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="entity-types")
    def entity_types(self, request):
        return Response(distinct_entity_types(), status=status.HTTP_200_OK)
