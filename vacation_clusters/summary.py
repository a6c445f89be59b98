from typing import List

import pandas as pd

from vacation_clusters.models import Cluster
from vacation_clusters.geo import km_to_miles

CLUSTER_COLUMNS = ['Cluster ID', 'Location', 'Photos', 'Days', 'Vacation',
                   'Start', 'End', 'Latitude', 'Longitude', 'Max Miles From Home']

def clusters_to_dataframe(clusters: List[Cluster]) -> pd.DataFrame:
    """One row per cluster, in the given order, for tables and maps."""
    rows = []
    for cluster in clusters:
        distances = [p.distance_from_home for p in cluster.photos if p.distance_from_home is not None]
        rows.append({
            'Cluster ID': cluster.id,
            'Location': cluster.location_name,
            'Photos': len(cluster.photos),
            'Days': cluster.days,
            'Vacation': cluster.is_vacation,
            'Start': cluster.start_date,
            'End': cluster.end_date,
            'Latitude': cluster.location.latitude if cluster.location else None,
            'Longitude': cluster.location.longitude if cluster.location else None,
            'Max Miles From Home': round(km_to_miles(max(distances)), 1) if distances else None,
        })
    return pd.DataFrame(rows, columns=CLUSTER_COLUMNS)

def available_years(clusters: List[Cluster]) -> List[int]:
    """Years that have at least one located trip, newest first."""
    years = {c.end_date.year for c in clusters if not c.is_unknown_location and c.end_date}
    return sorted(years, reverse=True)

def clusters_for_year(clusters: List[Cluster], year: int) -> List[Cluster]:
    # A trip belongs to the year it ended in
    return [c for c in clusters if not c.is_unknown_location and c.end_date and c.end_date.year == year]
