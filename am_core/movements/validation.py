# am_core/movements/validation.py
from __future__ import annotations

from am_core.assets.models import Asset, AssetStatus
from am_core.common.validation import OK, Invalid, Result
from am_core.movements.models import IN_FLIGHT_STATUSES, Movement, MovementType
from am_core.sites.locations import LocationRef


def validate_asset_movable(asset: Asset) -> Result:
    if asset.is_deleted:
        return Invalid("asset_id", "Asset has been deleted.")
    if asset.status == AssetStatus.RETIRED:
        return Invalid("asset_id", "Retired assets cannot be moved.")
    return OK


def validate_no_open_movement(asset: Asset) -> Result:
    if Movement.objects.alive().filter(asset=asset, status__in=IN_FLIGHT_STATUSES).exists():
        return Invalid("asset_id", "Asset already has an open movement.")
    return OK


def validate_destination(movement_type: str, to_location: LocationRef, to_custodian: str) -> Result:
    if movement_type == MovementType.DISPOSAL:
        return OK
    if to_location.is_empty and not (to_custodian or "").strip():
        return Invalid("to_location", "A destination location or custodian is required.")
    return OK
