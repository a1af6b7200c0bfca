# am_core/sites/admin.py
from django.contrib import admin

from am_core.sites.models import Location, Site


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "site_type", "is_active")
    search_fields = ("code", "name")
    list_filter = ("site_type", "is_active")


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "site", "location_type", "is_active")
    search_fields = ("code", "name", "site__code")
    list_filter = ("location_type", "is_active")
