import math
from dataclasses import replace
from collections import defaultdict
from typing import List, Tuple, Dict, Optional
from datetime import datetime, timedelta

from vacation_clusters.models import (
    Photo, Cluster, Coordinate, DayBucket, UNKNOWN_LOCATION_ID, UNKNOWN_LOCATION_NAME
)
from vacation_clusters.geo import distance_km
from vacation_clusters.inference import infer_missing_locations
from vacation_clusters.error_handling import logger

CLUSTER_THRESHOLD_KM = 50.0
MERGE_THRESHOLD_KM = 50.0
MAX_DAY_GAP = 1
ONE_DAY = timedelta(days=1)

def _mean_coordinate(locations: List[Coordinate]) -> Coordinate:
    return Coordinate(
        latitude=sum(loc.latitude for loc in locations) / len(locations),
        longitude=sum(loc.longitude for loc in locations) / len(locations),
    )

def bucket_photos_by_day(photos: List[Photo]) -> Tuple[List[DayBucket], List[Photo]]:
    """
    Group located photos by local calendar day.

    Returns:
        Tuple of (day buckets sorted by date, photos that have no location)
    """
    day_groups: Dict[datetime, List[Photo]] = defaultdict(list)
    unlocated = []

    for photo in photos:
        if photo.location is None:
            unlocated.append(photo)
            continue
        day = datetime.combine(photo.creation_datetime.date(), datetime.min.time())
        day_groups[day].append(photo)

    buckets = [
        DayBucket(
            date=day,
            photos=day_photos,
            centroid=_mean_coordinate([p.location for p in day_photos]),
        )
        for day, day_photos in day_groups.items()
    ]
    buckets.sort(key=lambda b: b.date)
    return buckets, unlocated

def most_common_location(locations: List[Coordinate],
                         threshold_km: float = CLUSTER_THRESHOLD_KM) -> Optional[Coordinate]:
    """
    Centroid of the largest group of nearby locations.

    Each location joins the first group whose running centroid is within
    ``threshold_km``, otherwise it starts a new group.
    """
    if not locations:
        return None
    if len(locations) == 1:
        return locations[0]

    groups: List[List[Coordinate]] = []
    for loc in locations:
        for group in groups:
            if distance_km(loc, _mean_coordinate(group)) <= threshold_km:
                group.append(loc)
                break
        else:
            groups.append([loc])

    largest = groups[0]
    for group in groups[1:]:
        if len(group) > len(largest):
            largest = group

    return _mean_coordinate(largest)

def aggregate_day_buckets(buckets: List[DayBucket],
                          threshold_km: float = CLUSTER_THRESHOLD_KM,
                          max_day_gap: int = MAX_DAY_GAP) -> List[Cluster]:
    """
    Greedily fold date-sorted day buckets into trip clusters.

    A bucket joins the first existing cluster (in creation order) that is within
    ``threshold_km`` of the bucket centroid and whose end date is at most
    ``max_day_gap`` days away. The location used for matching is the
    centroid of the day that started the cluster; once the fold is done,
    clusters spanning several days are relocated to their most common location.
    """
    clusters: List[Cluster] = []
    day_locations: List[List[Coordinate]] = []

    for bucket in buckets:
        for cluster, locations in zip(clusters, day_locations):
            distance = distance_km(bucket.centroid, cluster.location)
            day_gap = abs(bucket.date - cluster.end_date) / ONE_DAY

            if distance <= threshold_km and day_gap <= max_day_gap:
                cluster.photos.extend(bucket.photos)
                if bucket.date > cluster.end_date:
                    cluster.end_date = bucket.date
                locations.append(bucket.centroid)
                break
        else:
            clusters.append(Cluster(
                id=f"cluster-{len(clusters)}",
                photos=list(bucket.photos),
                start_date=bucket.date,
                end_date=bucket.date,
                location=bucket.centroid,
            ))
            day_locations.append([bucket.centroid])

    for cluster, locations in zip(clusters, day_locations):
        if len(locations) > 1:
            cluster.location = most_common_location(locations, threshold_km)

    return clusters

def build_unknown_location_cluster(photos: List[Photo]) -> Optional[Cluster]:
    if not photos:
        return None

    times = [p.creation_datetime for p in photos]
    return Cluster(
        id=UNKNOWN_LOCATION_ID,
        photos=list(photos),
        start_date=min(times),
        end_date=max(times),
        location=None,
        location_name=UNKNOWN_LOCATION_NAME,
    )

def finalize_cluster(cluster: Cluster) -> Cluster:
    """Sort photos by time and recompute the derived ``days`` and ``is_vacation`` fields."""
    cluster.photos.sort(key=lambda p: p.creation_time)
    cluster.days = math.ceil((cluster.end_date - cluster.start_date) / ONE_DAY) + 1
    cluster.is_vacation = len(cluster.photos) >= 3
    return cluster

def dates_overlap_or_adjacent(start1: datetime, end1: datetime,
                              start2: datetime, end2: datetime) -> bool:
    # Pad the first range by a day each side so back-to-back trips count as adjacent
    return start1 - ONE_DAY <= end2 and end1 + ONE_DAY >= start2

def _should_merge(a: Cluster, b: Cluster, threshold_km: float) -> bool:
    if distance_km(a.location, b.location) > threshold_km:
        return False
    return dates_overlap_or_adjacent(a.start_date, a.end_date, b.start_date, b.end_date)

def _merge_pair(a: Cluster, b: Cluster) -> Cluster:
    merged = replace(
        a,
        photos=a.photos + b.photos,
        start_date=min(a.start_date, b.start_date),
        end_date=max(a.end_date, b.end_date),
        location_name=a.location_name or b.location_name,
    )
    return finalize_cluster(merged)

def merge_clusters(clusters: List[Cluster],
                   threshold_km: float = MERGE_THRESHOLD_KM) -> List[Cluster]:
    """
    Merge clusters at the same place whose date ranges overlap or touch.

    Repeats full pair scans until nothing merges; every merge restarts the
    scan. The surviving cluster keeps its own location. The unknown-location
    cluster is never merged. Returns a new list.
    """
    result = list(clusters)
    merged = True

    while merged:
        merged = False
        for i in range(len(result)):
            if result[i].location is None:
                continue
            for j in range(i + 1, len(result)):
                if result[j].location is None:
                    continue
                if _should_merge(result[i], result[j], threshold_km):
                    logger.debug(f"Merging {result[j].id} into {result[i].id}")
                    result[i] = _merge_pair(result[i], result[j])
                    del result[j]
                    merged = True
                    break
            if merged:
                break

    return result

def sort_clusters(clusters: List[Cluster]) -> List[Cluster]:
    """Most recent trips first; the unknown-location cluster always goes last."""
    known = [c for c in clusters if not c.is_unknown_location]
    unknown = [c for c in clusters if c.is_unknown_location]
    known.sort(key=lambda c: c.end_date, reverse=True)
    return known + unknown

def cluster_photos(photos: List[Photo],
                   cluster_threshold_km: float = CLUSTER_THRESHOLD_KM,
                   merge_threshold_km: float = MERGE_THRESHOLD_KM) -> List[Cluster]:
    """
    Cluster photos into trips by location and time.

    Args:
        photos: Photos in any order; records are not modified
        cluster_threshold_km: Distance for folding consecutive days into one trip
        merge_threshold_km: Distance for consolidating overlapping trips

    Returns:
        List[Cluster]: Trips, most recent first, unknown-location cluster last
    """
    if not photos:
        return []

    logger.info(f"Starting clustering for {len(photos)} photos")

    with_inferred = infer_missing_locations(photos)
    buckets, unlocated = bucket_photos_by_day(with_inferred)
    clusters = aggregate_day_buckets(buckets, cluster_threshold_km)

    unknown = build_unknown_location_cluster(unlocated)
    if unknown is not None:
        clusters.append(unknown)

    for cluster in clusters:
        finalize_cluster(cluster)

    merged = merge_clusters(clusters, merge_threshold_km)
    result = sort_clusters(merged)

    logger.info(f"Clustering completed: {len(photos)} photos in {len(result)} clusters "
                f"({len(buckets)} days, {len(unlocated)} without location)")
    return result
