"""
Tests for the photo/cluster cache and its SQLite store.
"""

import os
import tempfile
from datetime import datetime, timedelta

from vacation_clusters.models import Photo, Cluster, Coordinate, EditedLocation, UNKNOWN_LOCATION_ID
from vacation_clusters.incremental import ClusteringState, LoadMode, recluster
from vacation_clusters.database import Database
from vacation_clusters.cache import (
    CacheSnapshot,
    extract_photo_metadata,
    photo_from_metadata,
    extract_cluster_metadata,
    rebuild_clusters,
    snapshot_from_state,
    state_from_snapshot,
)

PARIS = Coordinate(48.8566, 2.3522)
ROME = Coordinate(41.9028, 12.4964)


def photo_at(photo_id, when, location=None):
    return Photo(id=photo_id, creation_time=int(when.timestamp() * 1000), location=location)


def sample_photos():
    start = datetime(2024, 5, 1, 10)
    return [
        photo_at("p1", start, PARIS),
        photo_at("p2", start + timedelta(hours=1)),  # inferred from p1
        photo_at("p3", start + timedelta(days=1), PARIS),
        photo_at("r1", datetime(2024, 7, 1, 12), ROME),
        photo_at("u1", datetime(2024, 9, 1, 12)),
    ]


class TestCacheRecords:
    """Test flattening photos and clusters."""

    def test_photo_metadata(self):
        """Photo records convert to plain dicts and back."""
        photo = Photo(id="a", creation_time=1717236000000, location=PARIS,
                      distance_from_home=120.5, location_inferred=True)

        data = extract_photo_metadata(photo)

        assert data["location"] == {"latitude": PARIS.latitude, "longitude": PARIS.longitude}
        assert photo_from_metadata(data) == photo

    def test_photo_metadata_without_location(self):
        """Missing or null coordinates restore as no location."""
        data = {"id": "a", "creation_time": 1, "location": {"latitude": None, "longitude": None}}
        assert photo_from_metadata(data).location is None

    def test_cluster_metadata_stores_photo_ids(self):
        """Clusters reference photos by id only."""
        photos = [photo_at("a", datetime(2024, 5, 1, 10), PARIS), photo_at("b", datetime(2024, 5, 1, 11), PARIS)]
        cluster = Cluster(id="cluster-0", photos=photos, start_date=datetime(2024, 5, 1),
                          end_date=datetime(2024, 5, 1), location=PARIS, location_name="Paris", days=1)

        data = extract_cluster_metadata(cluster)

        assert data["photo_ids"] == ["a", "b"]
        assert data["start_date"] == "2024-05-01T00:00:00"

        rebuilt = rebuild_clusters([data], {p.id: p for p in photos})
        assert rebuilt == [cluster]

    def test_rebuild_skips_missing_photos(self):
        """Ids no longer in the photo table are dropped from the cluster."""
        data = {"id": "c", "photo_ids": ["a", "gone"], "start_date": None, "end_date": None}
        photo = photo_at("a", datetime(2024, 5, 1, 10))

        rebuilt = rebuild_clusters([data], {"a": photo})
        assert [p.id for p in rebuilt[0].photos] == ["a"]


class TestSnapshots:
    """Test converting between clustering state and cache snapshots."""

    def test_snapshot_keeps_inferred_locations(self):
        """The stored photo table carries the locations used by the clusters."""
        state = recluster(ClusteringState(), sample_photos())

        snapshot = snapshot_from_state(state, home=Coordinate(40.0, -74.0))

        by_id = {p.id: p for p in snapshot.photos}
        assert by_id["p2"].location_inferred is True
        assert by_id["p2"].location == PARIS
        assert snapshot.newest_photo_time == state.newest_photo_time
        assert snapshot.last_updated is not None

    def test_restored_state_drops_inferred_locations(self):
        """Inferred locations are re-derived on the next run, not treated as observed."""
        state = recluster(ClusteringState(), sample_photos())

        restored = state_from_snapshot(snapshot_from_state(state))

        by_id = {p.id: p for p in restored.photos}
        assert by_id["p2"].location is None
        assert by_id["p2"].location_inferred is False
        assert by_id["p1"].location == PARIS
        assert restored.clusters == state.clusters

    def test_restored_state_supports_refresh(self):
        """A restored state refreshes against its stored watermark."""
        state = recluster(ClusteringState(), sample_photos())
        restored = state_from_snapshot(snapshot_from_state(state))

        assert recluster(restored, sample_photos(), LoadMode.REFRESH) is restored


class TestDatabase:
    """Test the SQLite cache store."""

    def setup_method(self):
        with tempfile.NamedTemporaryFile(delete=False, suffix='.db') as tmp:
            self.db_path = tmp.name
        self.db = Database(self.db_path)

    def teardown_method(self):
        if os.path.exists(self.db_path):
            os.unlink(self.db_path)

    def test_empty_cache(self):
        """Nothing saved yet loads as None."""
        assert self.db.load_snapshot() is None

    def test_save_and_load_snapshot(self):
        """A saved snapshot loads back with clusters in the same order."""
        state = recluster(ClusteringState(), sample_photos())
        home = Coordinate(40.0, -74.0)
        snapshot = snapshot_from_state(state, home=home)

        self.db.save_snapshot(snapshot)
        loaded = self.db.load_snapshot()

        assert loaded.home == home
        assert loaded.newest_photo_time == snapshot.newest_photo_time
        assert loaded.last_updated == snapshot.last_updated
        assert [c.id for c in loaded.clusters] == [c.id for c in state.clusters]
        assert loaded.clusters[-1].id == UNKNOWN_LOCATION_ID
        assert loaded.clusters == state.clusters
        assert len(loaded.photos) == len(sample_photos())

    def test_save_replaces_previous_snapshot(self):
        """Saving again replaces what was cached."""
        self.db.save_snapshot(snapshot_from_state(recluster(ClusteringState(), sample_photos())))
        smaller = recluster(ClusteringState(), [photo_at("r1", datetime(2024, 7, 1, 12), ROME)])

        self.db.save_snapshot(snapshot_from_state(smaller))
        loaded = self.db.load_snapshot()

        assert [p.id for p in loaded.photos] == ["r1"]
        assert len(loaded.clusters) == 1
        assert loaded.home is None

    def test_get_photo(self):
        """Photos can be looked up by id."""
        self.db.save_snapshot(snapshot_from_state(recluster(ClusteringState(), sample_photos())))

        assert self.db.get_photo("p1").location == PARIS
        assert self.db.get_photo("missing") is None

    def test_edited_locations(self):
        """Renames are stored by place; renaming the same place again replaces the old rename."""
        self.db.save_edited_location(EditedLocation("Paris trip", PARIS))
        self.db.save_edited_location(EditedLocation("Rome", ROME))
        self.db.save_edited_location(EditedLocation("Spring in Paris", Coordinate(48.86, 2.35)))

        edits = self.db.get_edited_locations()

        assert edits == [EditedLocation("Spring in Paris", Coordinate(48.86, 2.35)), EditedLocation("Rome", ROME)]

    def test_clear_cache(self):
        """Clearing removes the snapshot and the edits."""
        self.db.save_snapshot(snapshot_from_state(recluster(ClusteringState(), sample_photos())))
        self.db.save_edited_location(EditedLocation("Paris trip", PARIS))

        self.db.clear_cache()

        assert self.db.load_snapshot() is None
        assert self.db.get_edited_locations() == []
