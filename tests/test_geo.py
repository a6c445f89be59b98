"""
Tests for distance calculations and the home filter.
"""

import pytest
from datetime import datetime

from vacation_clusters.models import Photo, Coordinate
from vacation_clusters.geo import (
    haversine_distance,
    distance_km,
    km_to_miles,
    with_distance_from_home,
    KM_FROM_HOME,
)

CHICAGO = Coordinate(41.8781, -87.6298)
NEW_YORK = Coordinate(40.7128, -74.0060)


def photo(photo_id, location=None):
    return Photo(id=photo_id, creation_time=int(datetime(2024, 6, 1, 12).timestamp() * 1000), location=location)


class TestGPSDistance:
    """Test great-circle distance calculations."""

    def test_haversine_distance_same_point(self):
        """Distance between same point should be 0."""
        assert haversine_distance(40.7128, -74.0060, 40.7128, -74.0060) == 0.0

    def test_haversine_distance_known_distance(self):
        """Test with known distance between NYC and Times Square."""
        distance = haversine_distance(40.7128, -74.0060, 40.7589, -73.9851)
        assert 5.0 <= distance <= 6.0  # ~5.4 km

    def test_haversine_distance_is_symmetric(self):
        """Distance should not depend on argument order."""
        assert haversine_distance(0, 0, 10, 10) == pytest.approx(haversine_distance(10, 10, 0, 0))

    def test_one_degree_of_longitude_at_equator(self):
        """One degree at the equator is about 111 km with a 6371 km radius."""
        assert haversine_distance(0, 0, 0, 1) == pytest.approx(111.19, abs=0.01)

    def test_distance_km_between_coordinates(self):
        """Chicago to New York is about 1145 km."""
        assert distance_km(CHICAGO, NEW_YORK) == pytest.approx(1145, abs=10)

    def test_nan_propagates(self):
        """Invalid input is not validated; NaN flows through."""
        assert haversine_distance(float('nan'), 0, 0, 0) != haversine_distance(float('nan'), 0, 0, 0)

    def test_km_to_miles(self):
        """50 miles expressed in km converts back to 50 miles."""
        assert km_to_miles(KM_FROM_HOME) == pytest.approx(50.0)


class TestHomeFilter:
    """Test distance-from-home decoration and filtering."""

    def test_photos_near_home_are_dropped(self):
        """Photos within the home radius are not vacation photos."""
        near = photo("near", Coordinate(41.88, -87.63))
        result = with_distance_from_home([near], CHICAGO)
        assert result == []

    def test_photos_far_from_home_get_distance(self):
        """Far photos are kept with their distance from home in km."""
        far = photo("far", NEW_YORK)
        result = with_distance_from_home([far], CHICAGO)

        assert len(result) == 1
        assert result[0].distance_from_home == pytest.approx(distance_km(CHICAGO, NEW_YORK))
        assert far.distance_from_home is None  # input untouched

    def test_photos_without_location_are_kept(self):
        """Unlocated photos stay so that their location can be inferred later."""
        result = with_distance_from_home([photo("none")], CHICAGO)

        assert len(result) == 1
        assert result[0].location is None
        assert result[0].distance_from_home is None

    def test_custom_radius(self):
        """A zero radius keeps photos taken at home."""
        near = photo("near", CHICAGO)
        result = with_distance_from_home([near], CHICAGO, min_distance_km=0)
        assert [p.id for p in result] == ["near"]
