#!/usr/bin/env python3
"""
Report how many photos in a folder carry GPS and capture-time EXIF data.
"""

import sys
from pathlib import Path

from vacation_clusters.photo_metadata import extract_exif_metadata, SUPPORTED_EXTENSIONS
from vacation_clusters.error_handling import PhotoMetadataError

def main():
    sample_dir = Path(sys.argv[1] if len(sys.argv) > 1 else "Sample_Images")

    if not sample_dir.exists():
        print(f"❌ {sample_dir} folder not found!")
        return

    images = sorted(p for p in sample_dir.iterdir() if p.suffix.lower() in SUPPORTED_EXTENSIONS)
    total = len(images)
    if total == 0:
        print("❌ No photos found!")
        return

    print(f"📸 Checking {total} photos...\n")

    with_gps = 0
    with_datetime = 0
    unreadable = []

    for i, img_path in enumerate(images):
        try:
            taken_at, location = extract_exif_metadata(str(img_path))
        except PhotoMetadataError as e:
            unreadable.append((img_path.name, str(e)))
            continue

        with_gps += location is not None
        with_datetime += taken_at is not None

        # Detail for the first 10
        if i < 10:
            gps = f"✅ GPS: ({location.latitude:.4f}, {location.longitude:.4f})" if location else "❌ No GPS"
            when = f"✅ DateTime: {taken_at}" if taken_at else "❌ No DateTime"
            print(f"  {img_path.name}: {gps} | {when}")

    print(f"\n📈 Summary:")
    print(f"  Total photos: {total}")
    print(f"  With GPS data: {with_gps} ({with_gps/total*100:.1f}%)")
    print(f"  With DateTime: {with_datetime} ({with_datetime/total*100:.1f}%)")
    print(f"  Unreadable: {len(unreadable)}")

    for name, error in unreadable[:10]:
        print(f"    - {name}: {error}")

if __name__ == "__main__":
    main()
