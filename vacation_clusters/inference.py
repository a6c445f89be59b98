from dataclasses import replace
from typing import List, Optional

from vacation_clusters.models import Photo
from vacation_clusters.geo import distance_km
from vacation_clusters.error_handling import logger


TIME_WINDOW_MS = 4 * 60 * 60 * 1000
SAME_PLACE_KM = 48.0

def _nearest_located(photos: List[Photo], start: int, step: int) -> Optional[Photo]:
    index = start
    while 0 <= index < len(photos):
        if photos[index].location is not None:
            return photos[index]
        index += step
    return None

def _choose_source(photo: Photo, prev: Optional[Photo], nxt: Optional[Photo],
                   time_window_ms: int, same_place_km: float) -> Optional[Photo]:
    prev_in_window = prev is not None and photo.creation_time - prev.creation_time <= time_window_ms
    next_in_window = nxt is not None and nxt.creation_time - photo.creation_time <= time_window_ms

    if prev_in_window and next_in_window:
        # Neighbours in different places means we may be in transit
        if distance_km(prev.location, nxt.location) > same_place_km:
            return None
        prev_gap = photo.creation_time - prev.creation_time
        next_gap = nxt.creation_time - photo.creation_time
        return prev if prev_gap <= next_gap else nxt
    if prev_in_window:
        return prev
    if next_in_window:
        return nxt
    return None

def infer_missing_locations(photos: List[Photo],
                            time_window_ms: int = TIME_WINDOW_MS,
                            same_place_km: float = SAME_PLACE_KM) -> List[Photo]:
    """
    Fill in missing locations from the temporally nearest located photos.

    Returns a new list sorted by creation time. Photos that receive a location
    are replaced by copies with ``location_inferred=True``; the input records
    are left untouched. A photo inferred earlier in the pass counts as a
    located neighbour for the photos after it.

    Args:
        photos: Photos in any order
        time_window_ms: Maximum time distance to a neighbour used as a source
        same_place_km: Maximum distance between the two neighbours for them to
            be considered the same place

    Returns:
        List[Photo]: Time-sorted photos with inferred locations where possible
    """
    result = sorted(photos, key=lambda p: p.creation_time)
    inferred_count = 0

    for i, photo in enumerate(result):
        if photo.location is not None:
            continue

        prev = _nearest_located(result, i - 1, -1)
        nxt = _nearest_located(result, i + 1, 1)
        source = _choose_source(photo, prev, nxt, time_window_ms, same_place_km)

        if source is not None:
            result[i] = replace(
                photo,
                location=source.location,
                distance_from_home=source.distance_from_home,
                location_inferred=True,
            )
            inferred_count += 1

    if inferred_count > 0:
        logger.info(f"Inferred location for {inferred_count} photos")

    return result
