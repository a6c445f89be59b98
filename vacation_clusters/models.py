from typing import List, Optional
from dataclasses import dataclass, field
from datetime import datetime

UNKNOWN_LOCATION_ID = "unknown-location"
UNKNOWN_LOCATION_NAME = "Unknown Location"

@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""
    latitude: float
    longitude: float

@dataclass
class Photo:
    """A photo record as enumerated by the host, optionally decorated with a location."""
    id: str
    creation_time: int  # milliseconds since epoch
    location: Optional[Coordinate] = None
    distance_from_home: Optional[float] = None  # km
    location_inferred: bool = False

    @property
    def creation_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.creation_time / 1000.0)

@dataclass
class Cluster:
    """Represents a trip: photos grouped by location and contiguous days."""
    id: str = ""
    photos: List[Photo] = field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[Coordinate] = None
    location_name: Optional[str] = None
    is_vacation: bool = False
    days: int = 0

    @property
    def is_unknown_location(self) -> bool:
        return self.id == UNKNOWN_LOCATION_ID

@dataclass
class DayBucket:
    """One calendar day's located photos and their centroid."""
    date: datetime
    photos: List[Photo] = field(default_factory=list)
    centroid: Optional[Coordinate] = None

@dataclass
class EditedLocation:
    """A user-entered place name, anchored at the location of the trip it was given to."""
    location_name: str
    location: Coordinate
