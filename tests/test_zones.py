import pytest

from carbonkube.zones import (
    ALLOWED_CLOUD_REGIONS,
    CAISO_NORTH,
    DE,
    NEM_NSW,
    PJM_DC,
    POWER_ZONES,
    CloudProvider,
    CloudRegion,
    SimpleZoneLookup,
    StaticZoneLookup,
    cloud_region_string_to_power_zone,
    cloud_region_to_power_zone,
    get_cloud_region_from_string,
    is_valid_cloud_region,
)


@pytest.mark.parametrize(
    "identifier",
    ["gcp:us-west2", "gcp:us-east4", "gcp:europe-west3", "gcp:australia-southeast1"],
)
def test_allowed_identifiers_are_valid(identifier):
    assert is_valid_cloud_region(identifier) is True


@pytest.mark.parametrize(
    "identifier", ["gcp:us-west-2", "aws:us-east-1", "", "GCP:us-west2", "us-west2"]
)
def test_unknown_identifiers_are_rejected(identifier):
    assert is_valid_cloud_region(identifier) is False
    assert get_cloud_region_from_string(identifier) is None
    assert cloud_region_string_to_power_zone(identifier) is None


def test_region_from_string():
    region = get_cloud_region_from_string("gcp:europe-west3")
    assert region == CloudRegion(CloudProvider.GCP, "europe-west3")
    assert region.provider.value == "gcp"


@pytest.mark.parametrize(
    "identifier, zone",
    [
        ("gcp:us-west2", CAISO_NORTH),
        ("gcp:us-east4", PJM_DC),
        ("gcp:europe-west3", DE),
        ("gcp:australia-southeast1", NEM_NSW),
    ],
)
def test_string_to_power_zone(identifier, zone):
    assert cloud_region_string_to_power_zone(identifier) == zone
    assert SimpleZoneLookup().get_power_zone(identifier) == zone


def test_power_zone_values_returned_by_lookup():
    assert cloud_region_string_to_power_zone("gcp:us-west2") == "CAISO_NORTH"
    assert cloud_region_string_to_power_zone("gcp:us-east4") == "PJM_DC"
    assert cloud_region_string_to_power_zone("gcp:europe-west3") == "DE"
    assert cloud_region_string_to_power_zone("gcp:australia-southeast1") == "NEM_NSW"


def test_unmapped_region_has_no_zone():
    assert cloud_region_to_power_zone(CloudRegion(CloudProvider.AWS, "us-west2")) is None


def test_every_allowed_region_maps_to_a_known_zone():
    for region in ALLOWED_CLOUD_REGIONS.values():
        assert cloud_region_to_power_zone(region) in POWER_ZONES


def test_provider_from_value():
    assert CloudProvider("azure") is CloudProvider.AZURE
    with pytest.raises(ValueError):
        CloudProvider("oracle")


def test_simple_lookup_rejects_unknown():
    assert SimpleZoneLookup().get_power_zone("TestZone") is None


def test_static_lookup_uses_its_mapping():
    source = {"TestZone": "TEST_REGION"}
    lookup = StaticZoneLookup(source)
    source["Other"] = "OTHER"
    assert lookup.get_power_zone("TestZone") == "TEST_REGION"
    assert lookup.get_power_zone("Other") is None
    assert lookup.get_power_zone("gcp:us-west2") is None