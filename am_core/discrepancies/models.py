# am_core/discrepancies/models.py
from django.db import models
from django.db.models import Q

from am_core.assets.models import Asset
from am_core.common.models import UUIDModel
from am_core.movements.models import Movement


class DiscrepancyType(models.TextChoices):
    LOCATION = "LOCATION", "Location"
    CUSTODIAN = "CUSTODIAN", "Custodian"
    CONDITION = "CONDITION", "Condition"
    MISSING = "MISSING", "Missing"
    DUPLICATE = "DUPLICATE", "Duplicate"
    OTHER = "OTHER", "Other"


class DiscrepancyStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    RESOLVED = "RESOLVED", "Resolved"
    CLOSED = "CLOSED", "Closed"


class DiscrepancyPriority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    CRITICAL = "CRITICAL", "Critical"


class DiscrepancySource(models.TextChoices):
    MANUAL = "MANUAL", "Manual"
    SCAN = "SCAN", "Scan"
    MOVEMENT = "MOVEMENT", "Movement"


ACTIVE_STATUSES = (DiscrepancyStatus.OPEN, DiscrepancyStatus.IN_PROGRESS)
SETTLED_STATUSES = (DiscrepancyStatus.RESOLVED, DiscrepancyStatus.CLOSED)

DISCREPANCY_AUDIT_FIELDS = (
    "discrepancy_type",
    "asset",
    "movement",
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
)


class Discrepancy(UUIDModel):
    """
    A recorded mismatch between expected and observed asset state.
    Never deleted: the end of its life is CLOSED.
    """

    discrepancy_type = models.CharField(max_length=16, choices=DiscrepancyType.choices)
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="discrepancies")
    movement = models.ForeignKey(
        Movement, null=True, blank=True, on_delete=models.PROTECT, related_name="discrepancies"
    )

    description = models.TextField()
    expected_value = models.CharField(max_length=255, blank=True, default="")
    actual_value = models.CharField(max_length=255, blank=True, default="")

    status = models.CharField(max_length=16, choices=DiscrepancyStatus.choices, default=DiscrepancyStatus.OPEN)
    priority = models.CharField(
        max_length=16, choices=DiscrepancyPriority.choices, default=DiscrepancyPriority.MEDIUM
    )
    source = models.CharField(max_length=16, choices=DiscrepancySource.choices, default=DiscrepancySource.MANUAL)

    detected_at = models.DateTimeField()
    detected_by_id = models.CharField(max_length=64)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by_id = models.CharField(max_length=64, blank=True, default="")
    resolution = models.TextField(blank=True, default="")
    closed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "discrepancies_discrepancy"
        ordering = ["-detected_at"]
        indexes = [
            models.Index(fields=["asset", "status"]),
            models.Index(fields=["asset", "discrepancy_type", "status"]),
            models.Index(fields=["status", "priority"]),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(description=""), name="ck_discrepancy_description_not_empty"),
            models.CheckConstraint(
                condition=(
                    (Q(status__in=SETTLED_STATUSES) & Q(resolved_at__isnull=False) & ~Q(resolution=""))
                    | (Q(status__in=ACTIVE_STATUSES) & Q(resolved_at__isnull=True) & Q(resolution=""))
                ),
                name="ck_discrepancy_resolution_iff_settled",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.discrepancy_type} on {self.asset_id} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
