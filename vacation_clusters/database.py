import json
import os
import sqlite3
import time
from typing import List, Optional

from vacation_clusters.models import Photo, Cluster, Coordinate, EditedLocation
from vacation_clusters.cache import (
    CacheSnapshot, extract_photo_metadata, photo_from_metadata,
    extract_cluster_metadata, rebuild_clusters,
)
from vacation_clusters.geo import distance_km
from vacation_clusters.incremental import NAME_MATCH_KM
from vacation_clusters.error_handling import DatabaseError, logger

DATABASE_PATH = os.getenv("VACATION_CLUSTERS_DB", "vacation_clusters.db")

class Database:
    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path
        self.init_db()

    def get_connection(self):
        return sqlite3.connect(self.db_path)

    def init_db(self):
        """Initialize database tables"""
        with self.get_connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS photos (
                    id TEXT PRIMARY KEY,
                    creation_time INTEGER NOT NULL,
                    latitude REAL,
                    longitude REAL,
                    distance_from_home REAL,
                    location_inferred BOOLEAN DEFAULT FALSE
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS clusters (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    photo_ids TEXT NOT NULL,
                    start_date TEXT,
                    end_date TEXT,
                    latitude REAL,
                    longitude REAL,
                    location_name TEXT,
                    is_vacation BOOLEAN DEFAULT FALSE,
                    days INTEGER DEFAULT 0
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS cache_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS location_edits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    location_name TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL
                )
            ''')
            conn.commit()

    # Photo operations
    def _insert_photos(self, conn, photos: List[Photo]):
        rows = []
        for photo in photos:
            data = extract_photo_metadata(photo)
            location = data["location"] or {}
            rows.append((data["id"], data["creation_time"], location.get("latitude"),
                         location.get("longitude"), data["distance_from_home"], data["location_inferred"]))
        conn.executemany('''
            INSERT OR REPLACE INTO photos (id, creation_time, latitude, longitude, distance_from_home, location_inferred)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', rows)

    @staticmethod
    def _row_to_photo(row) -> Photo:
        return photo_from_metadata({
            "id": row[0],
            "creation_time": row[1],
            "location": {"latitude": row[2], "longitude": row[3]},
            "distance_from_home": row[4],
            "location_inferred": row[5],
        })

    def get_photo(self, photo_id: str) -> Optional[Photo]:
        with self.get_connection() as conn:
            row = conn.execute('SELECT * FROM photos WHERE id = ?', (photo_id,)).fetchone()
            if row:
                return self._row_to_photo(row)
            return None

    def get_all_photos(self) -> List[Photo]:
        with self.get_connection() as conn:
            rows = conn.execute('SELECT * FROM photos ORDER BY creation_time').fetchall()
            return [self._row_to_photo(row) for row in rows]

    # Cluster operations
    def _insert_clusters(self, conn, clusters: List[Cluster]):
        rows = []
        for position, cluster in enumerate(clusters):
            data = extract_cluster_metadata(cluster)
            location = data["location"] or {}
            rows.append((data["id"], position, json.dumps(data["photo_ids"]), data["start_date"],
                         data["end_date"], location.get("latitude"), location.get("longitude"),
                         data["location_name"], data["is_vacation"], data["days"]))
        conn.executemany('''
            INSERT INTO clusters (id, position, photo_ids, start_date, end_date, latitude, longitude, location_name, is_vacation, days)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', rows)

    def get_cluster_metadata(self) -> List[dict]:
        with self.get_connection() as conn:
            rows = conn.execute('''
                SELECT id, photo_ids, start_date, end_date, latitude, longitude, location_name, is_vacation, days
                FROM clusters ORDER BY position
            ''').fetchall()
        return [{
            "id": row[0],
            "photo_ids": json.loads(row[1]),
            "start_date": row[2],
            "end_date": row[3],
            "location": {"latitude": row[4], "longitude": row[5]},
            "location_name": row[6],
            "is_vacation": bool(row[7]),
            "days": row[8],
        } for row in rows]

    def get_all_clusters(self) -> List[Cluster]:
        photos_by_id = {p.id: p for p in self.get_all_photos()}
        return rebuild_clusters(self.get_cluster_metadata(), photos_by_id)

    # Snapshot operations
    def save_snapshot(self, snapshot: CacheSnapshot):
        """Replace the cached photos, clusters and watermark with ``snapshot``."""
        state = {
            "home": json.dumps({"latitude": snapshot.home.latitude, "longitude": snapshot.home.longitude})
                    if snapshot.home else None,
            "newest_photo_time": str(snapshot.newest_photo_time) if snapshot.newest_photo_time is not None else None,
            "last_updated": str(snapshot.last_updated or int(time.time() * 1000)),
        }
        try:
            with self.get_connection() as conn:
                conn.execute('DELETE FROM photos')
                conn.execute('DELETE FROM clusters')
                conn.execute('DELETE FROM cache_state')
                self._insert_photos(conn, snapshot.photos)
                self._insert_clusters(conn, snapshot.clusters)
                conn.executemany('INSERT INTO cache_state (key, value) VALUES (?, ?)', list(state.items()))
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to save cache snapshot: {e}") from e

        logger.info(f"Saved to cache: {len(snapshot.photos)} photos, {len(snapshot.clusters)} clusters")

    def load_snapshot(self) -> Optional[CacheSnapshot]:
        """Load the cached snapshot, or None if nothing has been saved yet."""
        try:
            with self.get_connection() as conn:
                state = dict(conn.execute('SELECT key, value FROM cache_state').fetchall())
            if not state:
                return None
            clusters = self.get_all_clusters()
            photos = self.get_all_photos()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to load cache snapshot: {e}") from e

        home = None
        if state.get("home"):
            home_data = json.loads(state["home"])
            home = Coordinate(home_data["latitude"], home_data["longitude"])

        newest = state.get("newest_photo_time")
        last_updated = state.get("last_updated")
        logger.info(f"Loaded from cache: {len(photos)} photos, {len(clusters)} clusters")
        return CacheSnapshot(
            photos=photos,
            clusters=clusters,
            home=home,
            newest_photo_time=int(newest) if newest is not None else None,
            last_updated=int(last_updated) if last_updated is not None else None,
        )

    def clear_cache(self):
        with self.get_connection() as conn:
            conn.execute('DELETE FROM photos')
            conn.execute('DELETE FROM clusters')
            conn.execute('DELETE FROM cache_state')
            conn.execute('DELETE FROM location_edits')
            conn.commit()

    # Edited location operations
    def save_edited_location(self, edit: EditedLocation, threshold_km: float = NAME_MATCH_KM):
        """Store a rename, replacing any earlier rename of the same place."""
        with self.get_connection() as conn:
            rows = conn.execute('SELECT id, latitude, longitude FROM location_edits').fetchall()
            replaced = [(row[0],) for row in rows
                        if distance_km(edit.location, Coordinate(row[1], row[2])) < threshold_km]
            conn.executemany('DELETE FROM location_edits WHERE id = ?', replaced)
            conn.execute('''
                INSERT INTO location_edits (location_name, latitude, longitude)
                VALUES (?, ?, ?)
            ''', (edit.location_name, edit.location.latitude, edit.location.longitude))
            conn.commit()

    def get_edited_locations(self) -> List[EditedLocation]:
        """All renames, newest first."""
        with self.get_connection() as conn:
            rows = conn.execute(
                'SELECT location_name, latitude, longitude FROM location_edits ORDER BY id DESC'
            ).fetchall()
        return [EditedLocation(location_name=row[0], location=Coordinate(row[1], row[2])) for row in rows]
