# am_core/movements/models.py
from django.db import models

from am_core.assets.models import Asset
from am_core.common.models import SoftDeleteModel
from am_core.sites.locations import LocationRef
from am_core.sites.models import Location, Site


class MovementType(models.TextChoices):
    TRANSFER = "TRANSFER", "Transfer"
    CHECKOUT = "CHECKOUT", "Checkout"
    RETURN = "RETURN", "Return"
    MAINTENANCE = "MAINTENANCE", "Maintenance"
    DISPOSAL = "DISPOSAL", "Disposal"


class MovementStatus(models.TextChoices):
    REQUESTED = "REQUESTED", "Requested"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


IN_FLIGHT_STATUSES = (MovementStatus.REQUESTED, MovementStatus.APPROVED)
TERMINAL_STATUSES = (MovementStatus.REJECTED, MovementStatus.COMPLETED, MovementStatus.CANCELLED)

MOVEMENT_AUDIT_FIELDS = (
    "movement_type",
    "asset",
    "status",
    "from_site",
    "from_location",
    "from_location_label",
    "to_site",
    "to_location",
    "to_location_label",
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
    "deleted_at",
)


class Movement(SoftDeleteModel):
    """
    One requested change of an asset's location and/or custodian.

    Requested -> Approved | Rejected | Cancelled
    Approved  -> Completed | Cancelled
    Rejected, Completed, Cancelled are terminal.
    """

    movement_type = models.CharField(max_length=16, choices=MovementType.choices)
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="movements")
    status = models.CharField(max_length=16, choices=MovementStatus.choices, default=MovementStatus.REQUESTED)

    from_site = models.ForeignKey(Site, null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    from_location = models.ForeignKey(Location, null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    from_location_label = models.CharField(max_length=255, blank=True, default="")
    to_site = models.ForeignKey(Site, null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    to_location = models.ForeignKey(Location, null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    to_location_label = models.CharField(max_length=255, blank=True, default="")
    from_custodian = models.CharField(max_length=255, blank=True, default="")
    to_custodian = models.CharField(max_length=255, blank=True, default="")

    request_date = models.DateTimeField()
    approval_date = models.DateTimeField(null=True, blank=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    has_discrepancy = models.BooleanField(default=False)
    reason = models.TextField(blank=True, default="")
    rejection_reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    requested_by_id = models.CharField(max_length=64)
    approved_by_id = models.CharField(max_length=64, blank=True, default="")
    completed_by_id = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        db_table = "movements_movement"
        ordering = ["-request_date"]
        indexes = [
            models.Index(fields=["asset", "status"]),
            models.Index(fields=["status", "request_date"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=models.Q(status__in=IN_FLIGHT_STATUSES, deleted_at__isnull=True),
                name="uq_movement_one_in_flight_per_asset",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status=MovementStatus.COMPLETED, completion_date__isnull=False)
                    | (~models.Q(status=MovementStatus.COMPLETED) & models.Q(completion_date__isnull=True))
                ),
                name="ck_movement_completion_date_iff_completed",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.movement_type} {self.asset_id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def from_ref(self) -> LocationRef:
        return LocationRef.from_fields(self.from_site_id, self.from_location_id, self.from_location_label)

    def to_ref(self) -> LocationRef:
        return LocationRef.from_fields(self.to_site_id, self.to_location_id, self.to_location_label)
