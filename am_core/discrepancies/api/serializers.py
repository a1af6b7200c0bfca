# am_core/discrepancies/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from am_core.discrepancies.models import (
    Discrepancy,
    DiscrepancyPriority,
    DiscrepancyType,
)


class DiscrepancySerializer(serializers.ModelSerializer):
    asset_id = serializers.UUIDField(read_only=True)
    asset_tag = serializers.CharField(source="asset.asset_tag", read_only=True)
    movement_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Discrepancy
        fields = [
            "id",
            "discrepancy_type",
            "asset_id",
            "asset_tag",
            "movement_id",
            "description",
            "expected_value",
            "actual_value",
            "status",
            "priority",
            "source",
            "detected_at",
            "detected_by_id",
            "resolved_at",
            "resolved_by_id",
            "resolution",
            "closed_at",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DiscrepancyCreateSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    movement_id = serializers.UUIDField(required=False, allow_null=True)
    discrepancy_type = serializers.ChoiceField(choices=DiscrepancyType.choices)
    description = serializers.CharField()
    expected_value = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    actual_value = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    priority = serializers.ChoiceField(choices=DiscrepancyPriority.choices, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class DiscrepancyResolveSerializer(serializers.Serializer):
    resolution = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DiscrepancyNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
