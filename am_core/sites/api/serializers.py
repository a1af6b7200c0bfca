# am_core/sites/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from am_core.sites.models import Location, LocationType, Site, SiteType


class SiteSerializer(serializers.ModelSerializer):
    asset_count = serializers.IntegerField(read_only=True, default=0)
    location_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Site
        fields = [
            "id",
            "code",
            "name",
            "site_type",
            "address",
            "is_active",
            "asset_count",
            "location_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SiteWriteSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)
    name = serializers.CharField(max_length=255)
    site_type = serializers.ChoiceField(choices=SiteType.choices, required=False, default=SiteType.OFFICE)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    is_active = serializers.BooleanField(required=False, default=True)


class LocationSerializer(serializers.ModelSerializer):
    site_id = serializers.UUIDField(read_only=True)
    site_code = serializers.CharField(source="site.code", read_only=True)
    label = serializers.SerializerMethodField()
    asset_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Location
        fields = [
            "id",
            "site_id",
            "site_code",
            "code",
            "name",
            "label",
            "location_type",
            "is_active",
            "asset_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_label(self, obj: Location) -> str:
        return f"{obj.site.code}/{obj.code}"


class LocationWriteSerializer(serializers.Serializer):
    site_id = serializers.UUIDField()
    code = serializers.CharField(max_length=32)
    name = serializers.CharField(max_length=255)
    location_type = serializers.ChoiceField(choices=LocationType.choices, required=False, default=LocationType.ROOM)
    is_active = serializers.BooleanField(required=False, default=True)


class ChoiceSerializer(serializers.Serializer):
    value = serializers.CharField()
    label = serializers.CharField()
