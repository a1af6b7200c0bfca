# am_core/audit/api/serializers.py
from rest_framework import serializers

from am_core.audit.models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "entity_type",
            "entity_id",
            "action",
            "actor_id",
            "previous_values",
            "new_values",
            "description",
            "timestamp",
            "ip_address",
            "sequence",
            "previous_hash",
            "entry_hash",
        ]
        read_only_fields = fields


class ChainVerificationSerializer(serializers.Serializer):
    entity_type = serializers.CharField()
    entity_id = serializers.UUIDField()
    verified_entries = serializers.IntegerField()
