# am_core/audit/models.py
from django.db import models

from am_core.common.exceptions import ImmutabilityViolationError


class AuditAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    UPDATE = "UPDATE", "Update"
    DELETE = "DELETE", "Delete"
    APPROVE = "APPROVE", "Approve"
    REJECT = "REJECT", "Reject"
    COMPLETE = "COMPLETE", "Complete"
    CANCEL = "CANCEL", "Cancel"
    RESOLVE = "RESOLVE", "Resolve"
    CLOSE = "CLOSE", "Close"
    SCAN = "SCAN", "Scan"
    LOGIN = "LOGIN", "Login"
    LOGOUT = "LOGOUT", "Logout"


class EntityType(models.TextChoices):
    ASSET = "Asset", "Asset"
    MOVEMENT = "Movement", "Movement"
    DISCREPANCY = "Discrepancy", "Discrepancy"


class AppendOnlyQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutabilityViolationError("Audit entries are append-only; bulk update is not allowed.")

    def delete(self):
        raise ImmutabilityViolationError("Audit entries are append-only; delete is not allowed.")


class AuditEntry(models.Model):
    """
    Immutable ledger record.

    No foreign key to the described entity: entries outlive soft-deleted rows.
    Each entity has its own hash chain (sequence + previous_hash -> entry_hash),
    so any retroactive edit is detectable by AuditLedger.verify_chain().
    """
    id = models.BigAutoField(primary_key=True)

    entity_type = models.CharField(max_length=64, db_index=True)
    entity_id = models.UUIDField(db_index=True)
    action = models.CharField(max_length=32, choices=AuditAction.choices, db_index=True)

    actor_id = models.CharField(max_length=64, blank=True, db_index=True)
    ip_address = models.CharField(max_length=45, null=True, blank=True)

    previous_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    description = models.TextField(blank=True)

    timestamp = models.DateTimeField(db_index=True)
    sequence = models.PositiveIntegerField()
    previous_hash = models.CharField(max_length=64, blank=True)
    entry_hash = models.CharField(max_length=64)

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        db_table = "audit_audit_entry"
        constraints = [
            models.UniqueConstraint(
                fields=["entity_type", "entity_id", "sequence"],
                name="uq_audit_entity_sequence",
            ),
        ]
        indexes = [
            models.Index(fields=["entity_type", "entity_id", "timestamp"]),
            models.Index(fields=["actor_id", "timestamp"]),
        ]

    def __str__(self) -> str:
        return f"{self.entity_type}:{self.entity_id} #{self.sequence} {self.action}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutabilityViolationError("Audit entries are append-only; update is not allowed.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutabilityViolationError("Audit entries are append-only; delete is not allowed.")
