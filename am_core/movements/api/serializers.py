# am_core/movements/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from am_core.movements.models import Movement, MovementType


class MovementSerializer(serializers.ModelSerializer):
    asset_id = serializers.UUIDField(read_only=True)
    asset_tag = serializers.CharField(source="asset.asset_tag", read_only=True)
    from_site_id = serializers.UUIDField(read_only=True, allow_null=True)
    from_location_id = serializers.UUIDField(read_only=True, allow_null=True)
    to_site_id = serializers.UUIDField(read_only=True, allow_null=True)
    to_location_id = serializers.UUIDField(read_only=True, allow_null=True)
    from_display = serializers.SerializerMethodField()
    to_display = serializers.SerializerMethodField()

    class Meta:
        model = Movement
        fields = [
            "id",
            "movement_type",
            "asset_id",
            "asset_tag",
            "status",
            "from_site_id",
            "from_location_id",
            "from_location_label",
            "from_display",
            "to_site_id",
            "to_location_id",
            "to_location_label",
            "to_display",
            "from_custodian",
            "to_custodian",
            "request_date",
            "approval_date",
            "completion_date",
            "cancelled_at",
            "has_discrepancy",
            "reason",
            "rejection_reason",
            "notes",
            "requested_by_id",
            "approved_by_id",
            "completed_by_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_from_display(self, obj: Movement) -> str:
        return obj.from_ref().display()

    def get_to_display(self, obj: Movement) -> str:
        return obj.to_ref().display()


class MovementCreateSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    movement_type = serializers.ChoiceField(choices=MovementType.choices)

    to_site_id = serializers.UUIDField(required=False, allow_null=True)
    to_location_id = serializers.UUIDField(required=False, allow_null=True)
    to_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    to_custodian = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    # Omitted "from" values default to the asset's current placement.
    from_site_id = serializers.UUIDField(required=False, allow_null=True)
    from_location_id = serializers.UUIDField(required=False, allow_null=True)
    from_location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    from_custodian = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)

    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class MovementApproveSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class MovementRejectSerializer(serializers.Serializer):
    reason = serializers.CharField()


class MovementCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class MovementCompleteSerializer(serializers.Serializer):
    """
    What was actually found on arrival. Anything omitted is not reconciled.
    """
    observed_site_id = serializers.UUIDField(required=False, allow_null=True)
    observed_location_id = serializers.UUIDField(required=False, allow_null=True)
    observed_location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    observed_custodian = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
