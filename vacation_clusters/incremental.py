"""
Re-clustering as new photos arrive.

Every run clusters the full accumulated photo set from scratch; what carries
over between runs is the photo list, the refresh watermark, and place names
matched to new clusters by proximity.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence

from vacation_clusters.models import Photo, Cluster, Coordinate, EditedLocation
from vacation_clusters.geo import distance_km
from vacation_clusters.clustering import cluster_photos
from vacation_clusters.geocoding import ReverseGeocoder, geocode_clusters
from vacation_clusters.error_handling import ClusteringError, logger
from vacation_clusters.app_insights import app_insights

NAME_MATCH_KM = 10.0

class LoadMode(str, Enum):
    INITIAL = "initial"
    LOAD_MORE = "load_more"
    REFRESH = "refresh"

@dataclass
class ClusteringState:
    """What a host session keeps between clustering runs."""
    photos: List[Photo] = field(default_factory=list)  # observed records, never inferred
    clusters: List[Cluster] = field(default_factory=list)
    newest_photo_time: Optional[int] = None

def merge_photo_batches(existing: List[Photo], fetched: List[Photo], mode: LoadMode,
                        newest_photo_time: Optional[int] = None) -> Optional[List[Photo]]:
    """
    Combine a freshly fetched batch with the photos already known.

    Returns:
        The photo set to cluster, or None when a refresh found nothing newer
        than ``newest_photo_time``
    """
    if mode == LoadMode.INITIAL:
        return list(fetched)
    if mode == LoadMode.LOAD_MORE:
        return list(existing) + list(fetched)
    if mode == LoadMode.REFRESH:
        if newest_photo_time is None:
            new_photos = list(fetched)
        else:
            new_photos = [p for p in fetched if p.creation_time > newest_photo_time]
        if not new_photos:
            return None
        logger.info(f"Found {len(new_photos)} new photos")
        return new_photos + list(existing)
    raise ClusteringError(f"Unknown load mode: {mode!r}")

def preserve_location_names(new_clusters: List[Cluster], old_clusters: List[Cluster],
                            threshold_km: float = NAME_MATCH_KM) -> int:
    """
    Carry place names over from a previous run to clusters at the same place.

    A new cluster takes the name of the first named old cluster strictly
    within ``threshold_km``. Two different places closer than that share a
    name; keep the threshold small.

    Returns:
        Number of clusters that received a name
    """
    named_old = [c for c in old_clusters if c.location is not None and c.location_name]
    preserved = 0

    for new_cluster in new_clusters:
        if new_cluster.location is None:
            continue
        for old_cluster in named_old:
            if distance_km(new_cluster.location, old_cluster.location) < threshold_km:
                new_cluster.location_name = old_cluster.location_name
                preserved += 1
                break

    if preserved:
        logger.info(f"Preserved {preserved} location names from previous clusters")
    return preserved

def find_edit(location: Coordinate, edits: Sequence[EditedLocation],
              threshold_km: float = NAME_MATCH_KM) -> Optional[EditedLocation]:
    """First edit anchored strictly within ``threshold_km`` of ``location``."""
    for edit in edits:
        if distance_km(location, edit.location) < threshold_km:
            return edit
    return None

def apply_edited_locations(clusters: List[Cluster], edits: Sequence[EditedLocation],
                           threshold_km: float = NAME_MATCH_KM) -> List[Cluster]:
    """
    Overlay user-entered place names onto clusters at the same place.

    Edits are matched by location rather than cluster id, because ids are
    reassigned on every run. ``edits`` should be ordered newest first.
    """
    if not edits:
        return clusters

    result = []
    for cluster in clusters:
        edit = find_edit(cluster.location, edits, threshold_km) if cluster.location is not None else None
        if edit is None:
            result.append(cluster)
        else:
            result.append(replace(cluster, location_name=edit.location_name))
    return result

def recluster(state: ClusteringState, fetched: List[Photo],
              mode: LoadMode = LoadMode.INITIAL,
              reverse_geocode: Optional[ReverseGeocoder] = None,
              name_match_km: float = NAME_MATCH_KM) -> ClusteringState:
    """
    Run the clustering pipeline for one load step.

    Args:
        state: State from the previous run (an empty state for the first load)
        fetched: Photos fetched by the host for this step
        mode: How ``fetched`` relates to ``state.photos``
        reverse_geocode: Optional place-name lookup for clusters left unnamed
        name_match_km: Radius for carrying names over from ``state.clusters``

    Returns:
        ClusteringState: The new state, or ``state`` itself when a refresh
        found no new photos
    """
    try:
        mode = LoadMode(mode)
    except ValueError as e:
        raise ClusteringError(f"Unknown load mode: {mode!r}") from e

    all_photos = merge_photo_batches(state.photos, fetched, mode, state.newest_photo_time)
    if all_photos is None:
        logger.info("No new photos found, keeping existing clusters")
        return state

    started = time.perf_counter()
    clusters = cluster_photos(all_photos)

    if state.clusters:
        preserve_location_names(clusters, state.clusters, name_match_km)

    if reverse_geocode is not None:
        geocode_stats = geocode_clusters(clusters, reverse_geocode)
        app_insights.track_geocode_failures(geocode_stats["failed"])

    newest = max((p.creation_time for p in all_photos), default=state.newest_photo_time)
    inferred = sum(1 for c in clusters for p in c.photos if p.location_inferred)

    app_insights.track_photos_clustered(len(all_photos))
    app_insights.track_clusters_created(len(clusters))
    app_insights.track_locations_inferred(inferred)
    app_insights.track_processing_time(time.perf_counter() - started)

    logger.info(f"Re-clustered ({mode.value}): {len(all_photos)} photos -> {len(clusters)} clusters")
    return ClusteringState(photos=all_photos, clusters=clusters, newest_photo_time=newest)
