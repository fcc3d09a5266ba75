"""Cloud regions, power grid zones and the lookups between them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, runtime_checkable

# Power grid zone identifiers, as the forecast provider names them.
CAISO_NORTH = "CAISO_NORTH"
PJM_DC = "PJM_DC"
DE = "DE"
NEM_NSW = "NEM_NSW"

POWER_ZONES = frozenset({CAISO_NORTH, PJM_DC, DE, NEM_NSW})


class CloudProvider(str, enum.Enum):
    """A cloud service provider."""

    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


@dataclass(frozen=True)
class CloudRegion:
    """A region within a cloud provider, such as ``us-west2``."""

    provider: CloudProvider
    name: str


# The identifiers users may give (``provider:region``) and the regions they stand for.
ALLOWED_CLOUD_REGIONS: dict[str, CloudRegion] = {
    "gcp:us-west2": CloudRegion(CloudProvider.GCP, "us-west2"),
    "gcp:us-east4": CloudRegion(CloudProvider.GCP, "us-east4"),
    "gcp:europe-west3": CloudRegion(CloudProvider.GCP, "europe-west3"),
    "gcp:australia-southeast1": CloudRegion(CloudProvider.GCP, "australia-southeast1"),
}

_CLOUD_REGION_TO_POWER_ZONE: dict[CloudRegion, str] = {
    CloudRegion(CloudProvider.GCP, "us-west2"): CAISO_NORTH,
    CloudRegion(CloudProvider.GCP, "us-east4"): PJM_DC,
    CloudRegion(CloudProvider.GCP, "europe-west3"): DE,
    CloudRegion(CloudProvider.GCP, "australia-southeast1"): NEM_NSW,
}


def is_valid_cloud_region(identifier: str) -> bool:
    """Tell whether ``identifier`` names a supported cloud region."""
    return identifier in ALLOWED_CLOUD_REGIONS


def get_cloud_region_from_string(identifier: str) -> Optional[CloudRegion]:
    """Return the cloud region named by ``identifier``, or None if unsupported."""
    return ALLOWED_CLOUD_REGIONS.get(identifier)


def cloud_region_to_power_zone(region: CloudRegion) -> Optional[str]:
    """Return the power zone that serves ``region``, or None if none is known."""
    return _CLOUD_REGION_TO_POWER_ZONE.get(region)


def cloud_region_string_to_power_zone(identifier: str) -> Optional[str]:
    """Validate a ``provider:region`` identifier and return its power zone, or None."""
    region = get_cloud_region_from_string(identifier)
    if region is None:
        return None
    return cloud_region_to_power_zone(region)


@runtime_checkable
class ZoneLookup(Protocol):
    """Anything that resolves a user-supplied zone identifier to a power zone."""

    def get_power_zone(self, zone_identifier: str) -> Optional[str]:
        """Return the power zone for ``zone_identifier``, or None if it is unknown."""
        ...


class SimpleZoneLookup(ZoneLookup):
    """Resolves identifiers through the built-in cloud region table."""

    def get_power_zone(self, zone_identifier: str) -> Optional[str]:
        return cloud_region_string_to_power_zone(zone_identifier)


class StaticZoneLookup(ZoneLookup):
    """Resolves identifiers through a fixed mapping given up front."""

    def __init__(self, mapping: Mapping[str, str]) -> None:
        self._mapping = dict(mapping)

    def get_power_zone(self, zone_identifier: str) -> Optional[str]:
        return self._mapping.get(zone_identifier)