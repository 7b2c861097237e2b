from __future__ import annotations

import pytest

from sunset.location import Location, LocationError, LocationProvider, LocationSource


def test_invalid_location_is_constructible():
    location = Location(999, 999)
    assert location.is_valid is False
    assert LocationProvider.is_valid_location(90, -180) is True
    assert LocationProvider.is_valid_location(-90.1, 0) is False


def test_search_by_name_and_alias():
    provider = LocationProvider()
    [tokyo] = provider.search("  Tokyo ")
    assert tokyo.name == "Tokyo, Japan"
    assert tokyo.timezone == "Asia/Tokyo"
    assert tokyo.source is LocationSource.search

    assert [place.name for place in provider.search("nyc")] == ["New York, NY"]
    assert provider.search("atlantis") == []
    assert provider.search("   ") == []


def test_manual_location_gets_a_default_name():
    provider = LocationProvider()
    location = provider.set_manual_location(47.6062, -122.3321)
    assert location.name == "47.6062, -122.3321"
    assert location.source is LocationSource.manual
    assert provider.recent_locations() == [location]


def test_manual_location_rejects_bad_coordinates():
    with pytest.raises(LocationError) as excinfo:
        LocationProvider().set_manual_location(120.0, 0.0)
    assert excinfo.value.fallback_required is False


def test_recent_locations_are_deduplicated_and_capped():
    provider = LocationProvider()
    for offset in range(7):
        provider.set_manual_location(10.0 + offset, 20.0)
    provider.set_manual_location(12.0004, 20.0, name="Again")

    recent = provider.recent_locations()
    assert len(recent) == 5
    assert recent[0].name == "Again"
    assert [round(item.latitude) for item in recent] == [12, 16, 15, 14, 13]


def test_current_location_without_sensor_or_history():
    with pytest.raises(LocationError):
        LocationProvider().current_location()


def test_current_location_falls_back_to_history():
    provider = LocationProvider()
    manual = provider.set_manual_location(51.5, -0.12, name="London")
    assert provider.current_location() == manual


def test_detected_location_is_cached():
    calls = []

    def detector():
        calls.append(1)
        return 35.0, 139.0

    provider = LocationProvider(detector)
    first = provider.current_location()
    second = provider.current_location()
    assert first == second
    assert first.source is LocationSource.geolocation
    assert len(calls) == 1


def test_detector_errors_are_described():
    def denied():
        raise LocationError("denied", code=1)

    with pytest.raises(LocationError) as excinfo:
        LocationProvider(denied).detect()
    assert str(excinfo.value) == "Location access denied by user"
    assert excinfo.value.code == 1


def test_watching_publishes_fixes():
    provider = LocationProvider()
    seen = []
    provider.start_watching(seen.append)
    provider.start_watching(lambda location: None)
    assert provider.watching

    fix = provider.publish(40.0, -3.7)
    assert seen == [fix]
    assert provider.current_location() == fix

    provider.stop_watching()
    provider.publish(41.0, -3.7)
    assert len(seen) == 1
    assert not provider.watching


def test_clear_forgets_everything():
    provider = LocationProvider()
    provider.set_manual_location(1.0, 2.0)
    provider.clear()
    assert provider.recent_locations() == []
    with pytest.raises(LocationError):
        provider.current_location()


def test_distance_between_neighbouring_cities():
    provider = LocationProvider()
    [seattle] = provider.search("seattle")
    [bellevue] = provider.search("bellevue")
    assert 5.0 < LocationProvider.distance_km(seattle, bellevue) < 15.0
    assert LocationProvider.distance_km(seattle, seattle) == pytest.approx(0.0)


def test_default_location_is_seattle():
    default = LocationProvider.default_location()
    assert (default.latitude, default.longitude) == (47.6062, -122.3321)
