# am_core/assets/models.py
from django.db import models

from am_core.common.models import SoftDeleteModel
from am_core.sites.locations import LocationRef
from am_core.sites.models import Location, Site


class AssetStatus(models.TextChoices):
    AVAILABLE = "AVAILABLE", "Available"
    IN_USE = "IN_USE", "In Use"
    IN_MAINTENANCE = "IN_MAINTENANCE", "In Maintenance"
    RESERVED = "RESERVED", "Reserved"
    RETIRED = "RETIRED", "Retired"


class AssetCondition(models.TextChoices):
    NEW = "NEW", "New"
    GOOD = "GOOD", "Good"
    FAIR = "FAIR", "Fair"
    POOR = "POOR", "Poor"
    DAMAGED = "DAMAGED", "Damaged"
    RETIRED = "RETIRED", "Retired"


# Fields mirrored into the audit ledger on every asset mutation.
ASSET_AUDIT_FIELDS = (
    "asset_tag",
    "name",
    "category",
    "serial_number",
    "status",
    "condition",
    "site",
    "location",
    "location_label",
    "custodian",
    "has_discrepancy",
    "last_scanned_at",
    "notes",
    "deleted_at",
)


class Asset(SoftDeleteModel):
    asset_tag = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=64, blank=True, default="")
    serial_number = models.CharField(max_length=128, null=True, blank=True, unique=True)

    status = models.CharField(max_length=16, choices=AssetStatus.choices, default=AssetStatus.AVAILABLE)
    condition = models.CharField(max_length=16, choices=AssetCondition.choices, default=AssetCondition.GOOD)

    # Authoritative location: structured (site/location) or a legacy free-text label.
    site = models.ForeignKey(Site, null=True, blank=True, on_delete=models.PROTECT, related_name="assets")
    location = models.ForeignKey(Location, null=True, blank=True, on_delete=models.PROTECT, related_name="assets")
    location_label = models.CharField(max_length=255, blank=True, default="")
    custodian = models.CharField(max_length=255, blank=True, default="")

    has_discrepancy = models.BooleanField(default=False)
    last_scanned_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "assets_asset"
        ordering = ["asset_tag"]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["site", "location"]),
            models.Index(fields=["has_discrepancy"]),
        ]
        constraints = [
            models.CheckConstraint(condition=~models.Q(asset_tag=""), name="ck_asset_tag_not_empty"),
        ]

    def __str__(self) -> str:
        return f"{self.asset_tag} - {self.name}"

    def location_ref(self) -> LocationRef:
        return LocationRef.from_fields(self.site_id, self.location_id, self.location_label)

    def apply_location(self, ref: LocationRef) -> None:
        self.site_id = ref.site_id
        self.location_id = ref.location_id
        self.location_label = ref.label
