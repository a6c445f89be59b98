"""
Reading photo records (capture time and GPS position) from image files.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, List, MutableMapping, Optional, Tuple

from PIL import Image
from PIL.ExifTags import TAGS, GPSTAGS

from vacation_clusters.models import Photo, Coordinate
from vacation_clusters.error_handling import (
    PhotoMetadataError, PHOTO_EXTENSIONS, safe_file_operation, validate_image_file, logger
)


EXIF_IFD = 0x8769
GPS_IFD = 0x8825
EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
SUPPORTED_EXTENSIONS = PHOTO_EXTENSIONS
SCAN_BATCH_SIZE = 15

def _as_text(value) -> str:
    return value.decode('utf-8').strip('\x00') if isinstance(value, bytes) else str(value)

def _dms_to_decimal(dms, ref) -> float:
    degrees = float(dms[0]) + float(dms[1]) / 60 + float(dms[2]) / 3600
    return -degrees if _as_text(ref).upper() in ('S', 'W') else degrees

def _parse_datetime(exif, exif_ifd) -> Optional[datetime]:
    # DateTimeOriginal lives in the Exif IFD, DateTime in the main IFD
    candidates = []
    for tag_id, value in exif_ifd.items():
        if TAGS.get(tag_id) == "DateTimeOriginal":
            candidates.insert(0, value)
    for tag_id, value in exif.items():
        if TAGS.get(tag_id) == "DateTime":
            candidates.append(value)

    for value in candidates:
        try:
            return datetime.strptime(_as_text(value), EXIF_DATETIME_FORMAT)
        except ValueError:
            logger.debug(f"Ignoring malformed EXIF date: {value!r}")
    return None

def _parse_gps(gps_ifd) -> Optional[Coordinate]:
    gps_data = {GPSTAGS.get(tag_id, tag_id): value for tag_id, value in gps_ifd.items()}
    if 'GPSLatitude' not in gps_data or 'GPSLongitude' not in gps_data:
        return None

    latitude = _dms_to_decimal(gps_data['GPSLatitude'], gps_data.get('GPSLatitudeRef', 'N'))
    longitude = _dms_to_decimal(gps_data['GPSLongitude'], gps_data.get('GPSLongitudeRef', 'E'))
    return Coordinate(latitude, longitude)

def _read_exif(file_path: Path) -> Tuple[Optional[datetime], Optional[Coordinate]]:
    with Image.open(file_path) as image:
        exif = image.getexif()
        if not exif:
            return None, None
        taken_at = _parse_datetime(exif, exif.get_ifd(EXIF_IFD))
        location = _parse_gps(exif.get_ifd(GPS_IFD))
    return taken_at, location

def extract_exif_metadata(file_path: str) -> Tuple[Optional[datetime], Optional[Coordinate]]:
    """
    Read the capture time and GPS position of a photo.

    Args:
        file_path: Path to the image file

    Returns:
        Tuple of (capture time or None, coordinate or None)

    Raises:
        PhotoMetadataError: If the file is missing, unsupported or unreadable
    """
    validate_image_file(file_path)
    return safe_file_operation(_read_exif, Path(file_path))

def read_photo(file_path: str, photo_id: Optional[str] = None) -> Photo:
    """
    Build a Photo from a file, using the modification time when EXIF has no date.

    The id defaults to the absolute path of the file.
    """
    path = Path(file_path)
    taken_at, location = extract_exif_metadata(str(path))
    if taken_at is None:
        taken_at = datetime.fromtimestamp(safe_file_operation(lambda: path.stat().st_mtime))

    return Photo(
        id=photo_id or path.resolve().as_posix(),
        creation_time=int(taken_at.timestamp() * 1000),
        location=location,
    )

def scan_photo_folder(folder: str,
                      uri_cache: Optional[MutableMapping[str, str]] = None,
                      batch_size: int = SCAN_BATCH_SIZE,
                      on_progress: Optional[Callable[[int, int], None]] = None) -> List[Photo]:
    """
    Read every supported photo under ``folder`` in parallel batches.

    Unreadable files are skipped with a warning. Photo ids are absolute paths,
    so two folders holding the same file names never collide; when
    ``uri_cache`` is given it is filled with id -> path.
    """
    root = Path(folder)
    if not root.is_dir():
        raise PhotoMetadataError(f"Not a directory: {folder}")

    files = sorted(p for p in root.rglob('*') if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS)
    photos = []
    skipped = 0

    def process(path: Path) -> Optional[Photo]:
        try:
            return read_photo(str(path))
        except PhotoMetadataError as e:
            logger.warning(f"Skipping {path}: {e}")
            return None

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(files), batch_size):
            batch = files[start:start + batch_size]
            for path, photo in zip(batch, executor.map(process, batch)):
                if photo is None:
                    skipped += 1
                    continue
                photos.append(photo)
                if uri_cache is not None:
                    uri_cache[photo.id] = str(path.resolve())

            if on_progress:
                on_progress(min(start + batch_size, len(files)), len(files))

    logger.info(f"Scanned {len(files)} files in {folder}: {len(photos)} photos, {skipped} skipped")
    return photos
