# am_core/audit/admin.py
from django.contrib import admin

from am_core.audit.models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = (
        "timestamp",
        "entity_type",
        "entity_id",
        "sequence",
        "action",
        "actor_id",
        "ip_address",
    )
    list_filter = ("entity_type", "action")
    search_fields = ("entity_id", "actor_id")
    ordering = ("-timestamp", "-id")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
