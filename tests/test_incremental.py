"""
Tests for re-clustering across load steps.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from vacation_clusters.models import Photo, Cluster, Coordinate, EditedLocation
from vacation_clusters.error_handling import ClusteringError
from vacation_clusters.incremental import (
    LoadMode,
    ClusteringState,
    merge_photo_batches,
    preserve_location_names,
    apply_edited_locations,
    recluster,
)

PARIS = Coordinate(48.8566, 2.3522)
ROME = Coordinate(41.9028, 12.4964)


def photo_at(photo_id, when, location=None):
    return Photo(id=photo_id, creation_time=int(when.timestamp() * 1000), location=location)


def paris_trip(day=1, month=5):
    start = datetime(2024, month, day, 10)
    return [photo_at(f"paris-{month}-{day}-{i}", start + timedelta(hours=i), PARIS) for i in range(3)]


def rome_trip(day=1, month=7):
    start = datetime(2024, month, day, 10)
    return [photo_at(f"rome-{month}-{day}-{i}", start + timedelta(hours=i), ROME) for i in range(3)]


class TestMergePhotoBatches:
    """Test how a fetched batch combines with known photos."""

    def test_initial_replaces(self):
        """An initial load ignores previously known photos."""
        old, new = paris_trip(), rome_trip()
        assert merge_photo_batches(old, new, LoadMode.INITIAL) == new

    def test_load_more_appends(self):
        """Load more keeps existing photos and appends the batch."""
        old, new = paris_trip(), rome_trip(month=1)
        assert merge_photo_batches(old, new, LoadMode.LOAD_MORE) == old + new

    def test_refresh_keeps_only_newer_photos(self):
        """Refresh takes photos strictly newer than the watermark, placed before existing ones."""
        old = paris_trip()
        watermark = max(p.creation_time for p in old)
        newer = rome_trip()
        fetched = newer + [old[-1]]

        result = merge_photo_batches(old, fetched, LoadMode.REFRESH, watermark)

        assert result == newer + old

    def test_refresh_with_nothing_new(self):
        """Refresh with no newer photos reports nothing to do."""
        old = paris_trip()
        watermark = max(p.creation_time for p in old)

        assert merge_photo_batches(old, old, LoadMode.REFRESH, watermark) is None

    def test_refresh_without_watermark_takes_everything(self):
        """Without a watermark every fetched photo counts as new."""
        new = rome_trip()
        assert merge_photo_batches([], new, LoadMode.REFRESH, None) == new

    def test_unknown_mode(self):
        """Anything but the three modes is an error."""
        with pytest.raises(ClusteringError):
            merge_photo_batches([], [], "sideways")


class TestPreserveLocationNames:
    """Test carrying names over between runs."""

    def test_name_carried_to_nearby_cluster(self):
        """A new cluster within 10 km of a named old one takes its name."""
        old = [Cluster(id="old", location=PARIS, location_name="Paris, France")]
        new = [Cluster(id="new", location=Coordinate(48.86, 2.35))]

        assert preserve_location_names(new, old) == 1
        assert new[0].location_name == "Paris, France"

    def test_far_cluster_not_named(self):
        """Clusters further than the threshold stay unnamed."""
        old = [Cluster(id="old", location=PARIS, location_name="Paris, France")]
        new = [Cluster(id="new", location=ROME)]

        assert preserve_location_names(new, old) == 0
        assert new[0].location_name is None

    def test_first_match_wins(self):
        """The first named old cluster in range is used."""
        old = [
            Cluster(id="a", location=PARIS, location_name="First"),
            Cluster(id="b", location=Coordinate(48.857, 2.353), location_name="Second"),
        ]
        new = [Cluster(id="new", location=PARIS)]

        preserve_location_names(new, old)
        assert new[0].location_name == "First"

    def test_unlocated_clusters_are_skipped(self):
        """Clusters without a location neither give nor take names."""
        old = [Cluster(id="u", location=None, location_name="Unknown Location")]
        new = [Cluster(id="u2", location=None), Cluster(id="p", location=PARIS)]

        assert preserve_location_names(new, old) == 0
        assert new[0].location_name is None
        assert new[1].location_name is None


class TestApplyEditedLocations:
    """Test overlaying user renames."""

    def test_edit_renames_trip_at_same_place(self):
        """A rename anchored near a trip's location replaces its name."""
        clusters = [Cluster(id="cluster-0", location=PARIS, location_name="Paris"),
                    Cluster(id="cluster-1", location=ROME, location_name="Rome")]
        edits = [EditedLocation("Honeymoon", Coordinate(41.9, 12.5))]

        result = apply_edited_locations(clusters, edits)

        assert result[0] is clusters[0]
        assert result[1].location_name == "Honeymoon"
        assert result[1].location == ROME
        assert clusters[1].location_name == "Rome"

    def test_edit_far_away_is_ignored(self):
        """A rename anchored 10 km or more away does not apply."""
        clusters = [Cluster(id="cluster-0", location=PARIS)]

        result = apply_edited_locations(clusters, [EditedLocation("Versailles", Coordinate(48.8049, 2.1204))])

        assert result[0].location_name is None

    def test_newest_edit_first(self):
        """With several renames in range the first one listed wins."""
        clusters = [Cluster(id="cluster-0", location=PARIS)]
        edits = [EditedLocation("Spring in Paris", PARIS), EditedLocation("Paris trip", PARIS)]

        assert apply_edited_locations(clusters, edits)[0].location_name == "Spring in Paris"

    def test_unknown_location_cluster_is_not_renamed(self):
        """Clusters without a location never match a rename."""
        clusters = [Cluster(id="unknown-location", location=None, location_name="Unknown Location")]

        result = apply_edited_locations(clusters, [EditedLocation("Somewhere", PARIS)])

        assert result[0].location_name == "Unknown Location"

    def test_no_edits(self):
        """No edits returns the clusters unchanged."""
        clusters = [Cluster(id="cluster-0", location=PARIS)]
        assert apply_edited_locations(clusters, []) is clusters

    def test_rename_follows_trip_after_load_more(self):
        """A rename stays on its trip when older photos shift the cluster ids."""
        state = recluster(ClusteringState(), paris_trip(month=6))
        paris = state.clusters[0]
        edits = [EditedLocation("Honeymoon", paris.location)]

        tokyo = [photo_at(f"tokyo-{i}", datetime(2024, 1, 5, 10 + i), Coordinate(35.6762, 139.6503)) for i in range(3)]
        state = recluster(state, tokyo, LoadMode.LOAD_MORE)
        result = apply_edited_locations(state.clusters, edits)

        by_place = {round(c.location.latitude): c for c in result}
        assert by_place[49].location_name == "Honeymoon"
        assert by_place[36].location_name is None
        assert by_place[49].id != paris.id


class TestRecluster:
    """Test a full load step."""

    def test_initial_load(self):
        """An initial load clusters the batch and sets the watermark."""
        photos = paris_trip() + rome_trip()

        state = recluster(ClusteringState(), photos)

        assert len(state.clusters) == 2
        assert state.photos == photos
        assert state.newest_photo_time == max(p.creation_time for p in photos)

    def test_load_more_accumulates(self):
        """Load more clusters the union of both batches."""
        first = recluster(ClusteringState(), paris_trip())
        second = recluster(first, rome_trip(month=1), LoadMode.LOAD_MORE)

        assert len(second.photos) == 6
        assert len(second.clusters) == 2

    def test_mode_may_be_given_as_string(self):
        """Plain string modes are accepted."""
        first = recluster(ClusteringState(), paris_trip())
        second = recluster(first, rome_trip(month=1), "load_more")
        assert len(second.clusters) == 2

    def test_invalid_mode(self):
        """An unknown mode is a clustering error."""
        with pytest.raises(ClusteringError):
            recluster(ClusteringState(), paris_trip(), "sideways")

    def test_refresh_with_nothing_new_skips_clustering(self):
        """A refresh with no newer photos returns the same state without re-clustering."""
        photos = paris_trip()
        state = recluster(ClusteringState(), photos)

        with patch("vacation_clusters.incremental.cluster_photos") as mock_cluster:
            result = recluster(state, photos, LoadMode.REFRESH)

        assert result is state
        mock_cluster.assert_not_called()

    def test_refresh_adds_new_photos(self):
        """A refresh clusters newer photos together with the known ones."""
        state = recluster(ClusteringState(), paris_trip())

        result = recluster(state, paris_trip() + rome_trip(), LoadMode.REFRESH)

        assert len(result.photos) == 6
        assert len(result.clusters) == 2
        assert result.newest_photo_time > state.newest_photo_time

    def test_names_survive_rerun(self):
        """Names from the previous run are carried to the same places."""
        state = recluster(ClusteringState(), paris_trip())
        state.clusters[0].location_name = "Paris, France"

        result = recluster(state, rome_trip(month=1), LoadMode.LOAD_MORE)

        names = {c.location_name for c in result.clusters}
        assert "Paris, France" in names

    def test_geocoder_names_unnamed_clusters(self):
        """The reverse geocoder is only asked about clusters without a name."""
        state = recluster(ClusteringState(), paris_trip())
        state.clusters[0].location_name = "Paris, France"
        calls = []

        def geocoder(coordinate):
            calls.append(coordinate)
            return "Rome, Lazio, Italy"

        result = recluster(state, rome_trip(month=1), LoadMode.LOAD_MORE, reverse_geocode=geocoder)

        assert len(calls) == 1
        assert {c.location_name for c in result.clusters} == {"Paris, France", "Rome, Lazio, Italy"}

    def test_geocoder_failure_does_not_fail_run(self):
        """A failing geocoder leaves clusters unnamed."""
        def geocoder(coordinate):
            raise RuntimeError("service unavailable")

        state = recluster(ClusteringState(), paris_trip(), reverse_geocode=geocoder)

        assert len(state.clusters) == 1
        assert state.clusters[0].location_name is None

    def test_empty_initial_load(self):
        """An empty first load yields an empty state."""
        state = recluster(ClusteringState(), [])

        assert state.clusters == []
        assert state.newest_photo_time is None
