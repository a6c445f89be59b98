"""
Place-name lookups for trip clusters.

The clustering core only needs a callable ``Coordinate -> Optional[str]``;
``NominatimGeocoder`` is the implementation the app uses, backed by the
OpenStreetMap Nominatim HTTP API.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

import requests

from vacation_clusters.models import Cluster, Coordinate
from vacation_clusters.error_handling import GeocodingError, logger


ReverseGeocoder = Callable[[Coordinate], Optional[str]]

NOMINATIM_URL = "https://nominatim.openstreetmap.org"
DEFAULT_USER_AGENT = "vacation-clusters/0.1"
GEOCODE_BATCH_SIZE = 5

def format_place_name(address: Dict[str, str]) -> Optional[str]:
    """
    Build a "City, Region, Country" label from a Nominatim address block.

    Args:
        address: The ``address`` object of a Nominatim result

    Returns:
        The label, or None if the address has none of the parts
    """
    name = (address.get("city") or address.get("town") or address.get("village")
            or address.get("suburb") or address.get("county"))
    region = address.get("state") or address.get("region")
    country = address.get("country") or address.get("country_code")

    parts = [part for part in (name, region, country) if part]
    return ", ".join(parts) if parts else None

class NominatimGeocoder:
    """Reverse and forward geocoding against a Nominatim server."""

    def __init__(self, base_url: str = NOMINATIM_URL,
                 user_agent: Optional[str] = None,
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = (
            user_agent or os.getenv("NOMINATIM_USER_AGENT", DEFAULT_USER_AGENT)
        )

    def _get(self, path: str, params: dict):
        try:
            response = self.session.get(f"{self.base_url}/{path}", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise GeocodingError(f"Nominatim {path} request failed: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Nominatim {path} returned invalid JSON: {e}") from e

    def reverse(self, coordinate: Coordinate) -> Optional[str]:
        data = self._get("reverse", {
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "format": "jsonv2",
            "zoom": 10,
            "addressdetails": 1,
        })
        if not data or "error" in data:
            return None
        return format_place_name(data.get("address", {}))

    def search(self, query: str, limit: int = 5) -> List[Tuple[str, Coordinate]]:
        """Look up places by free-text name; used to pick a home location."""
        results = self._get("search", {"q": query, "format": "jsonv2", "limit": limit})
        return [
            (item["display_name"], Coordinate(float(item["lat"]), float(item["lon"])))
            for item in results or []
        ]

    def __call__(self, coordinate: Coordinate) -> Optional[str]:
        return self.reverse(coordinate)

def geocode_clusters(clusters: List[Cluster], reverse_geocode: ReverseGeocoder,
                     batch_size: int = GEOCODE_BATCH_SIZE) -> Dict[str, int]:
    """
    Name every located, still-unnamed cluster with a reverse geocoder.

    Lookups run concurrently in fixed-size batches. A failed lookup leaves the
    cluster unnamed so a later pass can try again; it never fails the run.

    Returns:
        Dict with ``requested``, ``named`` and ``failed`` counts
    """
    pending = [c for c in clusters if c.location is not None and not c.location_name]
    stats = {"requested": len(pending), "named": 0, "failed": 0}
    if not pending:
        return stats

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(pending), batch_size):
            batch = pending[start:start + batch_size]
            futures = [(cluster, executor.submit(reverse_geocode, cluster.location)) for cluster in batch]

            for cluster, future in futures:
                try:
                    name = future.result()
                except Exception as e:
                    logger.warning(f"Geocoding failed for {cluster.id}: {e}")
                    stats["failed"] += 1
                    continue

                if name:
                    cluster.location_name = name
                    stats["named"] += 1
                    logger.info(f"Location name for {cluster.id}: {name}")

    logger.info(f"Geocoding complete: {stats}")
    return stats
