# am_core/sites/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from am_core.common.api.pagination import paginate
from am_core.common.exceptions import ValidationError
from am_core.iam.roles import actor_id_for
from am_core.sites.api.serializers import (
    ChoiceSerializer,
    LocationSerializer,
    LocationWriteSerializer,
    SiteSerializer,
    SiteWriteSerializer,
)
from am_core.sites.models import Location, LocationType, Site, SiteType
from am_core.sites.permissions import SitePermission
from am_core.sites.selectors import get_location, get_site, list_locations, list_sites
from am_core.sites.services import LocationService, SiteService


def _bool_param(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.strip().lower() in {"1", "true", "yes"}


def _choices(enum) -> list[dict]:
    return [{"value": value, "label": label} for value, label in enum.choices]


def _patch_data(request, serializer_class) -> dict:
    ser = serializer_class(data=request.data, partial=True)
    ser.is_valid(raise_exception=True)
    return dict(ser.validated_data)


_LIST_FILTERS = [
    OpenApiParameter(name="is_active", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
]


class SiteViewSet(viewsets.GenericViewSet):
    permission_classes = [SitePermission]
    serializer_class = SiteSerializer
    queryset = Site.objects.none()

    @extend_schema(
        tags=["Sites"],
        responses={200: SiteSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="site_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            *_LIST_FILTERS,
        ],
    )
    def list(self, request):
        p = request.query_params
        qs = list_sites(
            site_type=p.get("site_type") or None,
            is_active=_bool_param(p.get("is_active")),
            q=p.get("q") or None,
        )
        return paginate(request, qs, SiteSerializer)

    @extend_schema(tags=["Sites"], responses={200: SiteSerializer})
    def retrieve(self, request, pk=None):
        return Response(SiteSerializer(get_site(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Sites"], request=SiteWriteSerializer, responses={201: SiteSerializer})
    def create(self, request):
        ser = SiteWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        site = SiteService.create(actor_id=actor_id_for(request.user), **ser.validated_data)
        return Response(SiteSerializer(get_site(site.pk)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Sites"], request=SiteWriteSerializer, responses={200: SiteSerializer})
    def partial_update(self, request, pk=None):
        changes = _patch_data(request, SiteWriteSerializer)
        site = SiteService.update(site_id=pk, actor_id=actor_id_for(request.user), changes=changes)
        return Response(SiteSerializer(get_site(site.pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Sites"], responses={204: None})
    def destroy(self, request, pk=None):
        SiteService.delete(site_id=pk, actor_id=actor_id_for(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Sites"], responses={200: ChoiceSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="types")
    def types(self, request):
        return Response(_choices(SiteType), status=status.HTTP_200_OK)

    @extend_schema(tags=["Sites"], responses={200: LocationSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="locations")
    def locations(self, request, pk=None):
        site = get_site(pk)
        qs = list_locations(site_id=site.pk, is_active=_bool_param(request.query_params.get("is_active")))
        return paginate(request, qs, LocationSerializer)


class LocationViewSet(viewsets.GenericViewSet):
    permission_classes = [SitePermission]
    serializer_class = LocationSerializer
    queryset = Location.objects.none()

    @extend_schema(
        tags=["Locations"],
        responses={200: LocationSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="site_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="location_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False
            ),
            *_LIST_FILTERS,
        ],
    )
    def list(self, request):
        p = request.query_params
        site_id = p.get("site_id") or None
        if site_id:
            site_id = get_site(site_id).pk
        qs = list_locations(
            site_id=site_id,
            location_type=p.get("location_type") or None,
            is_active=_bool_param(p.get("is_active")),
            q=p.get("q") or None,
        )
        return paginate(request, qs, LocationSerializer)

    @extend_schema(tags=["Locations"], responses={200: LocationSerializer})
    def retrieve(self, request, pk=None):
        return Response(LocationSerializer(get_location(pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Locations"], request=LocationWriteSerializer, responses={201: LocationSerializer})
    def create(self, request):
        ser = LocationWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        location = LocationService.create(actor_id=actor_id_for(request.user), **ser.validated_data)
        return Response(LocationSerializer(get_location(location.pk)).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Locations"], request=LocationWriteSerializer, responses={200: LocationSerializer})
    def partial_update(self, request, pk=None):
        changes = _patch_data(request, LocationWriteSerializer)
        if "site_id" in changes:
            raise ValidationError("site_id", "A location cannot move to another site.")
        location = LocationService.update(location_id=pk, actor_id=actor_id_for(request.user), changes=changes)
        return Response(LocationSerializer(get_location(location.pk)).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Locations"], responses={204: None})
    def destroy(self, request, pk=None):
        LocationService.delete(location_id=pk, actor_id=actor_id_for(request.user))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Locations"], responses={200: ChoiceSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="types")
    def types(self, request):
        return Response(_choices(LocationType), status=status.HTTP_200_OK)
