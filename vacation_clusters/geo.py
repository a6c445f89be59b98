import math
from dataclasses import replace
from typing import List

from vacation_clusters.models import Coordinate, Photo
from vacation_clusters.error_handling import logger

EARTH_RADIUS_KM = 6371.0
KM_PER_MILE = 1.60934
MILES_FROM_HOME = 50
KM_FROM_HOME = MILES_FROM_HOME * KM_PER_MILE

def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    # Convert degrees to radians
    lat1_rad, lon1_rad = math.radians(lat1), math.radians(lon1)
    lat2_rad, lon2_rad = math.radians(lat2), math.radians(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = math.sin(dlat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return c * EARTH_RADIUS_KM

def distance_km(a: Coordinate, b: Coordinate) -> float:
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)

def km_to_miles(km: float) -> float:
    return km / KM_PER_MILE

def with_distance_from_home(photos: List[Photo], home: Coordinate,
                            min_distance_km: float = KM_FROM_HOME) -> List[Photo]:
    """
    Decorate photos with their distance from home and drop the ones taken near home.

    Photos without a location are kept (they may be inferred later) with
    ``distance_from_home`` left unset.
    """
    kept = []
    no_location = 0
    too_close = 0

    for photo in photos:
        if photo.location is None:
            no_location += 1
            kept.append(replace(photo, distance_from_home=None))
            continue

        distance = distance_km(home, photo.location)
        if distance < min_distance_km:
            too_close += 1
            continue

        kept.append(replace(photo, distance_from_home=distance))

    logger.info(f"Home filter: {len(photos)} photos, no location: {no_location}, "
                f"too close (<{min_distance_km:.1f}km): {too_close}, kept: {len(kept)}")
    return kept
