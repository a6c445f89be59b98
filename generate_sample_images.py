#!/usr/bin/env uv run --script
# /// script
# requires-python = ">=3.8"
# dependencies = [
#     "requests",
#     "pillow",
#     "piexif",
# ]
# ///
"""
generate_sample_images.py

Generates a sample photo library: a few multi-day trips away from home,
photos taken at home, and some photos with their GPS stripped so location
inference has something to do. Uses Lorem Picsum for free random images.
"""

import os
import random
import requests
from io import BytesIO
from PIL import Image, ImageDraw
from datetime import datetime, timedelta
import piexif

OUTPUT_DIR = "Sample_Images"
IMAGE_SIZE = (800, 600)  # width, height
PHOTOS_PER_DAY = (3, 8)
MISSING_GPS_RATE = 0.15

HOME = {"lat": 41.8781, "lon": -87.6298, "name": "Chicago"}

TRIPS = [
    {"lat": 40.7128, "lon": -74.0060, "name": "New York", "start": datetime(2025, 3, 14), "days": 4},
    {"lat": 36.1699, "lon": -115.1398, "name": "Las Vegas", "start": datetime(2025, 6, 2), "days": 3},
    {"lat": 21.3069, "lon": -157.8583, "name": "Honolulu", "start": datetime(2025, 8, 20), "days": 7},
    {"lat": 40.7128, "lon": -74.0060, "name": "New York", "start": datetime(2025, 12, 27), "days": 2},
]

def fetch_image(url):
    """Fetch a random image, or draw a placeholder if the service is unreachable."""
    try:
        response = requests.get(url, timeout=10)
        response.raise_for_status()
        return Image.open(BytesIO(response.content)).convert("RGB")
    except requests.RequestException as e:
        print(f"Falling back to placeholder image: {e}")
        image = Image.new("RGB", IMAGE_SIZE, color=tuple(random.randint(0, 255) for _ in range(3)))
        ImageDraw.Draw(image).text((20, 20), url, fill="white")
        return image

def _deg_to_dms(deg):
    """Convert degrees to DMS rational."""
    d = int(deg)
    m = int((deg - d) * 60)
    s = (deg - d - m/60) * 3600
    return ((d, 1), (m, 1), (int(s * 100), 100))

def create_exif(lat, lon, dt):
    """Create EXIF bytes with a capture time and, if lat is given, a GPS position."""
    exif_dict = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}
    exif_dict["Exif"][piexif.ExifIFD.DateTimeOriginal] = dt.strftime("%Y:%m:%d %H:%M:%S")

    if lat is not None:
        exif_dict["GPS"][piexif.GPSIFD.GPSLatitudeRef] = 'N' if lat >= 0 else 'S'
        exif_dict["GPS"][piexif.GPSIFD.GPSLatitude] = _deg_to_dms(abs(lat))
        exif_dict["GPS"][piexif.GPSIFD.GPSLongitudeRef] = 'E' if lon >= 0 else 'W'
        exif_dict["GPS"][piexif.GPSIFD.GPSLongitude] = _deg_to_dms(abs(lon))

    return piexif.dump(exif_dict)

def shots_for_place(place, start, days):
    """Yield (lat, lon, datetime) for every photo taken at a place over some days."""
    for day in range(days):
        day_start = start + timedelta(days=day, hours=9)
        for _ in range(random.randint(*PHOTOS_PER_DAY)):
            dt = day_start + timedelta(minutes=random.randint(0, 12 * 60))
            lat = place["lat"] + random.uniform(-0.05, 0.05)
            lon = place["lon"] + random.uniform(-0.05, 0.05)
            if random.random() < MISSING_GPS_RATE:
                lat = lon = None
            yield lat, lon, dt

def main():
    os.makedirs(OUTPUT_DIR, exist_ok=True)

    shots = list(shots_for_place(HOME, datetime(2025, 1, 5), 3))
    for trip in TRIPS:
        shots.extend(shots_for_place(trip, trip["start"], trip["days"]))
    shots.sort(key=lambda shot: shot[2])

    for i, (lat, lon, dt) in enumerate(shots):
        print(f"Generating image {i+1}/{len(shots)}")
        img = fetch_image(f"https://picsum.photos/{IMAGE_SIZE[0]}/{IMAGE_SIZE[1]}?random={i}")

        filepath = os.path.join(OUTPUT_DIR, f"image_{i+1:03d}.jpg")
        img.save(filepath, "JPEG", exif=create_exif(lat, lon, dt))

    print(f"Done! Home is {HOME['name']} ({HOME['lat']}, {HOME['lon']})")

if __name__ == "__main__":
    main()
