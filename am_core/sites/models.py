# am_core/sites/models.py
from django.db import models

from am_core.common.models import UUIDModel


class SiteType(models.TextChoices):
    OFFICE = "OFFICE", "Office"
    WAREHOUSE = "WAREHOUSE", "Warehouse"
    FACTORY = "FACTORY", "Factory"
    STORE = "STORE", "Store"
    BRANCH = "BRANCH", "Branch"
    DATA_CENTER = "DATA_CENTER", "Data Center"
    OTHER = "OTHER", "Other"


class LocationType(models.TextChoices):
    ROOM = "ROOM", "Room"
    FLOOR = "FLOOR", "Floor"
    BUILDING = "BUILDING", "Building"
    ZONE = "ZONE", "Zone"
    RACK = "RACK", "Rack"
    SHELF = "SHELF", "Shelf"
    DESK = "DESK", "Desk"
    STORAGE = "STORAGE", "Storage"
    OTHER = "OTHER", "Other"


class Site(UUIDModel):
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    site_type = models.CharField(max_length=16, choices=SiteType.choices, default=SiteType.OFFICE)
    address = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "sites_site"
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(condition=~models.Q(code=""), name="ck_site_code_not_empty"),
        ]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class Location(UUIDModel):
    site = models.ForeignKey(Site, on_delete=models.PROTECT, related_name="locations")
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=255)
    location_type = models.CharField(max_length=16, choices=LocationType.choices, default=LocationType.ROOM)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "sites_location"
        ordering = ["site__code", "code"]
        constraints = [
            models.UniqueConstraint(fields=["site", "code"], name="uq_location_site_code"),
        ]

    def __str__(self) -> str:
        return f"{self.site.code}/{self.code}"
