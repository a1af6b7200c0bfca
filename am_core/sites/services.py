# am_core/sites/services.py
from __future__ import annotations

import logging
from typing import Any, Dict
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError, Q

from am_core.assets.models import Asset
from am_core.common.db import atomic_operation
from am_core.common.exceptions import InvalidStateError, NotFoundError, ValidationError
from am_core.common.validation import raise_if_invalid, require_choice, require_text
from am_core.movements.models import Movement
from am_core.sites.models import Location, LocationType, Site, SiteType

logger = logging.getLogger(__name__)

SITE_EDITABLE_FIELDS = ("code", "name", "site_type", "address", "is_active")
LOCATION_EDITABLE_FIELDS = ("code", "name", "location_type", "is_active")


def _lock(model, pk, label: str):
    try:
        return model.objects.select_for_update().get(pk=pk)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError(f"{label} not found.", **{f"{label.lower()}_id": str(pk)})


def _reject_unknown(changes: Dict[str, Any], allowed) -> None:
    unknown = sorted(set(changes) - set(allowed))
    if unknown:
        raise ValidationError(unknown[0], "Field cannot be edited.")


def _site_in_use(site_id) -> bool:
    return (
        Asset.objects.filter(site_id=site_id).exists()
        or Movement.objects.filter(Q(from_site_id=site_id) | Q(to_site_id=site_id)).exists()
    )


def _location_in_use(location_id) -> bool:
    return (
        Asset.objects.filter(location_id=location_id).exists()
        or Movement.objects.filter(Q(from_location_id=location_id) | Q(to_location_id=location_id)).exists()
    )


class SiteService:
    """
    Site master data. Codes are what "SITE/LOC" labels are built from, so a
    code is frozen once anything points at the site.
    """

    @staticmethod
    @atomic_operation
    def create(
        *,
        actor_id: str,
        code: str,
        name: str,
        site_type: str = SiteType.OFFICE,
        address: str = "",
        is_active: bool = True,
    ) -> Site:
        code = (code or "").strip()
        raise_if_invalid(
            require_text(code, "code", "Site code is required."),
            require_text(name, "name", "Site name is required."),
            require_choice(site_type, SiteType.values, "site_type"),
        )
        if Site.objects.filter(code__iexact=code).exists():
            raise ValidationError("code", "Site code already exists.")

        site = Site.objects.create(
            code=code,
            name=name.strip(),
            site_type=site_type,
            address=address or "",
            is_active=is_active,
        )
        logger.info("site %s created by %s", site.code, actor_id)
        return site

    @staticmethod
    @atomic_operation
    def update(*, site_id: UUID, actor_id: str, changes: Dict[str, Any]) -> Site:
        _reject_unknown(changes, SITE_EDITABLE_FIELDS)
        site = _lock(Site, site_id, "Site")

        checks = []
        if "name" in changes:
            checks.append(require_text(changes["name"], "name", "Site name is required."))
        if "site_type" in changes:
            checks.append(require_choice(changes["site_type"], SiteType.values, "site_type"))
        if "code" in changes:
            changes = {**changes, "code": (changes["code"] or "").strip()}
            checks.append(require_text(changes["code"], "code", "Site code is required."))
        raise_if_invalid(*checks)

        new_code = changes.get("code")
        if new_code is not None and new_code != site.code:
            if Site.objects.filter(code__iexact=new_code).exclude(pk=site.pk).exists():
                raise ValidationError("code", "Site code already exists.")
            if _site_in_use(site.pk):
                raise ValidationError("code", "Site code cannot change while assets or movements reference it.")

        for key, value in changes.items():
            setattr(site, key, value)
        site.save()
        logger.info("site %s updated by %s (%s)", site.code, actor_id, ", ".join(sorted(changes)))
        return site

    @staticmethod
    @atomic_operation
    def delete(*, site_id: UUID, actor_id: str) -> None:
        site = _lock(Site, site_id, "Site")

        location_count = site.locations.count()
        if location_count:
            raise InvalidStateError(f"Cannot delete site. It has {location_count} locations.")
        asset_count = Asset.objects.filter(site_id=site.pk).count()
        if asset_count:
            raise InvalidStateError(f"Cannot delete site. It has {asset_count} assets assigned to it.")

        try:
            site.delete()
        except ProtectedError:
            raise InvalidStateError("Cannot delete site. It is referenced by movements.")
        logger.info("site %s deleted by %s", site.code, actor_id)


class LocationService:
    @staticmethod
    @atomic_operation
    def create(
        *,
        actor_id: str,
        site_id: UUID,
        code: str,
        name: str,
        location_type: str = LocationType.ROOM,
        is_active: bool = True,
    ) -> Location:
        code = (code or "").strip()
        raise_if_invalid(
            require_text(code, "code", "Location code is required."),
            require_text(name, "name", "Location name is required."),
            require_choice(location_type, LocationType.values, "location_type"),
        )
        try:
            site = Site.objects.get(pk=site_id)
        except (Site.DoesNotExist, ValueError, DjangoValidationError):
            raise ValidationError("site_id", "Unknown site.")
        if site.locations.filter(code__iexact=code).exists():
            raise ValidationError("code", "Location code already exists in this site.")

        location = Location.objects.create(
            site=site,
            code=code,
            name=name.strip(),
            location_type=location_type,
            is_active=is_active,
        )
        logger.info("location %s/%s created by %s", site.code, location.code, actor_id)
        return location

    @staticmethod
    @atomic_operation
    def update(*, location_id: UUID, actor_id: str, changes: Dict[str, Any]) -> Location:
        _reject_unknown(changes, LOCATION_EDITABLE_FIELDS)
        location = _lock(Location, location_id, "Location")

        checks = []
        if "name" in changes:
            checks.append(require_text(changes["name"], "name", "Location name is required."))
        if "location_type" in changes:
            checks.append(require_choice(changes["location_type"], LocationType.values, "location_type"))
        if "code" in changes:
            changes = {**changes, "code": (changes["code"] or "").strip()}
            checks.append(require_text(changes["code"], "code", "Location code is required."))
        raise_if_invalid(*checks)

        new_code = changes.get("code")
        if new_code is not None and new_code != location.code:
            siblings = Location.objects.filter(site_id=location.site_id, code__iexact=new_code)
            if siblings.exclude(pk=location.pk).exists():
                raise ValidationError("code", "Location code already exists in this site.")
            if _location_in_use(location.pk):
                raise ValidationError(
                    "code", "Location code cannot change while assets or movements reference it."
                )

        for key, value in changes.items():
            setattr(location, key, value)
        location.save()
        logger.info("location %s updated by %s", location.pk, actor_id)
        return location

    @staticmethod
    @atomic_operation
    def delete(*, location_id: UUID, actor_id: str) -> None:
        location = _lock(Location, location_id, "Location")

        asset_count = Asset.objects.filter(location_id=location.pk).count()
        if asset_count:
            raise InvalidStateError(f"Cannot delete location. It has {asset_count} assets assigned to it.")

        try:
            location.delete()
        except ProtectedError:
            raise InvalidStateError("Cannot delete location. It is referenced by movements.")
        logger.info("location %s deleted by %s", location_id, actor_id)
