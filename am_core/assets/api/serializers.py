# am_core/assets/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from am_core.assets.models import Asset, AssetCondition, AssetStatus


class AssetSerializer(serializers.ModelSerializer):
    site_id = serializers.UUIDField(read_only=True, allow_null=True)
    location_id = serializers.UUIDField(read_only=True, allow_null=True)
    location_display = serializers.SerializerMethodField()

    class Meta:
        model = Asset
        fields = [
            "id",
            "asset_tag",
            "name",
            "category",
            "serial_number",
            "status",
            "condition",
            "site_id",
            "location_id",
            "location_label",
            "location_display",
            "custodian",
            "has_discrepancy",
            "last_scanned_at",
            "version",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_location_display(self, obj: Asset) -> str:
        return obj.location_ref().display()


class AssetCreateSerializer(serializers.Serializer):
    asset_tag = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    category = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    serial_number = serializers.CharField(max_length=128, required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=AssetStatus.choices, required=False, default=AssetStatus.AVAILABLE)
    condition = serializers.ChoiceField(choices=AssetCondition.choices, required=False, default=AssetCondition.GOOD)
    site_id = serializers.UUIDField(required=False, allow_null=True)
    location_id = serializers.UUIDField(required=False, allow_null=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    custodian = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AssetUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    category = serializers.CharField(max_length=64, required=False, allow_blank=True)
    serial_number = serializers.CharField(max_length=128, required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=AssetStatus.choices, required=False)
    condition = serializers.ChoiceField(choices=AssetCondition.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class ScanSerializer(serializers.Serializer):
    asset_tag = serializers.CharField(max_length=64)
    site_id = serializers.UUIDField(required=False, allow_null=True)
    location_id = serializers.UUIDField(required=False, allow_null=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    custodian = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    scanned_at = serializers.DateTimeField(required=False, allow_null=True)
