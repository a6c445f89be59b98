#!/usr/bin/env python3
"""Debug script to check the cached photos and trips."""

from pathlib import Path

from vacation_clusters.database import Database, DATABASE_PATH

db_path = Path(DATABASE_PATH)

if not db_path.exists():
    print("❌ Database file not found!")
    exit(1)

snapshot = Database(str(db_path)).load_snapshot()
if snapshot is None:
    print("❌ Cache is empty!")
    exit(1)

print(f"📸 Photos in cache: {len(snapshot.photos)}")
print(f"🗺️ Clusters in cache: {len(snapshot.clusters)}")
print(f"🏠 Home: {snapshot.home}")
print(f"🕒 Newest photo time: {snapshot.newest_photo_time}")

inferred = sum(1 for p in snapshot.photos if p.location_inferred)
print(f"📌 Inferred locations: {inferred}")

if snapshot.clusters:
    print(f"\n📋 First {min(len(snapshot.clusters), 10)} clusters:")
    for cluster in snapshot.clusters[:10]:
        start = cluster.start_date.date() if cluster.start_date else None
        print(f"  {cluster.id}: {cluster.location_name or 'Unnamed'} | "
              f"{len(cluster.photos)} photos | {cluster.days} days from {start} | "
              f"vacation={cluster.is_vacation}")
