"""
Flat cache representation of photos and clusters.

Photos are stored once, keyed by id; clusters store their scalar fields plus
the ids of their photos and are rebuilt by resolving those ids.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from vacation_clusters.models import Photo, Cluster, Coordinate
from vacation_clusters.incremental import ClusteringState

@dataclass
class CacheSnapshot:
    photos: List[Photo] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    home: Optional[Coordinate] = None
    newest_photo_time: Optional[int] = None
    last_updated: Optional[int] = None  # milliseconds since epoch

def _coordinate_to_dict(coordinate: Optional[Coordinate]) -> Optional[Dict[str, float]]:
    if coordinate is None:
        return None
    return {"latitude": coordinate.latitude, "longitude": coordinate.longitude}

def _coordinate_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[Coordinate]:
    if not data or data.get("latitude") is None or data.get("longitude") is None:
        return None
    return Coordinate(float(data["latitude"]), float(data["longitude"]))

def extract_photo_metadata(photo: Photo) -> Dict[str, Any]:
    return {
        "id": photo.id,
        "creation_time": photo.creation_time,
        "location": _coordinate_to_dict(photo.location),
        "distance_from_home": photo.distance_from_home,
        "location_inferred": photo.location_inferred,
    }

def photo_from_metadata(data: Mapping[str, Any]) -> Photo:
    return Photo(
        id=data["id"],
        creation_time=int(data["creation_time"]),
        location=_coordinate_from_dict(data.get("location")),
        distance_from_home=data.get("distance_from_home"),
        location_inferred=bool(data.get("location_inferred", False)),
    )

def extract_cluster_metadata(cluster: Cluster) -> Dict[str, Any]:
    """Cluster scalars plus photo ids; photo records live in the photo table."""
    return {
        "id": cluster.id,
        "photo_ids": [p.id for p in cluster.photos],
        "start_date": cluster.start_date.isoformat() if cluster.start_date else None,
        "end_date": cluster.end_date.isoformat() if cluster.end_date else None,
        "location": _coordinate_to_dict(cluster.location),
        "location_name": cluster.location_name,
        "is_vacation": cluster.is_vacation,
        "days": cluster.days,
    }

def rebuild_clusters(cluster_metadata: List[Mapping[str, Any]],
                     photos_by_id: Mapping[str, Photo]) -> List[Cluster]:
    """Rebuild clusters from cached metadata, skipping photo ids no longer in the table."""
    clusters = []
    for data in cluster_metadata:
        start_date = data.get("start_date")
        end_date = data.get("end_date")
        clusters.append(Cluster(
            id=data["id"],
            photos=[photos_by_id[pid] for pid in data.get("photo_ids", []) if pid in photos_by_id],
            start_date=datetime.fromisoformat(start_date) if start_date else None,
            end_date=datetime.fromisoformat(end_date) if end_date else None,
            location=_coordinate_from_dict(data.get("location")),
            location_name=data.get("location_name"),
            is_vacation=bool(data.get("is_vacation", False)),
            days=int(data.get("days", 0)),
        ))
    return clusters

def _observed(photo: Photo) -> Photo:
    if not photo.location_inferred:
        return photo
    return replace(photo, location=None, distance_from_home=None, location_inferred=False)

def snapshot_from_state(state: ClusteringState, home: Optional[Coordinate] = None) -> CacheSnapshot:
    """
    Snapshot a clustering state for storage.

    The photo table is taken from the cluster members so that inferred
    locations are stored alongside the clusters that used them.
    """
    photos = [p for cluster in state.clusters for p in cluster.photos]
    return CacheSnapshot(
        photos=photos,
        clusters=list(state.clusters),
        home=home,
        newest_photo_time=state.newest_photo_time,
        last_updated=int(time.time() * 1000),
    )

def state_from_snapshot(snapshot: CacheSnapshot) -> ClusteringState:
    """Restore a clustering state; inferred locations are dropped from the photo list so they are re-derived."""
    return ClusteringState(
        photos=[_observed(p) for p in snapshot.photos],
        clusters=list(snapshot.clusters),
        newest_photo_time=snapshot.newest_photo_time,
    )
