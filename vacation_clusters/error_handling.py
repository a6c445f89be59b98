"""
Logging setup and the exception types shared by the vacation_clusters package.
"""

import logging
import os
import sys
from typing import Optional
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
PHOTO_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.tiff', '.tif', '.webp'}

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``vacation_clusters`` logger.

    Calling it again replaces the handlers, so the Streamlit app can re-run
    the module without duplicating every log line.

    Args:
        log_level: Level name; unknown names fall back to INFO
        log_file: Optional file that receives the same records as stdout
    """
    package_logger = logging.getLogger('vacation_clusters')
    level = getattr(logging, log_level.upper(), None)
    package_logger.setLevel(level if isinstance(level, int) else logging.INFO)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    package_logger.addHandler(stdout_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger

logger = setup_logging(
    os.getenv("VACATION_CLUSTERS_LOG_LEVEL", "INFO"),
    os.getenv("VACATION_CLUSTERS_LOG_FILE"),
)

class VacationClustersError(Exception):
    """Base class for every error raised by this package."""
    pass

class PhotoMetadataError(VacationClustersError):
    """A photo file is missing, unsupported, or its EXIF block cannot be decoded."""
    pass

class DatabaseError(VacationClustersError):
    """The sqlite cache could not be read or written."""
    pass

class ClusteringError(VacationClustersError):
    """The clustering pipeline was driven with invalid arguments (e.g. an unknown load mode)."""
    pass

class GeocodingError(VacationClustersError):
    """A place-name lookup failed."""
    pass

def handle_error(error: Exception, context: str = "", raise_error: bool = True):
    """
    Log an error with its traceback, then re-raise it unless told not to.

    Args:
        error: The exception being handled
        context: What was being done, e.g. "scanning uploads"
        raise_error: Re-raise after logging
    """
    message = f"{context} failed: {error}" if context else f"Unexpected error: {error}"
    logger.error(message, exc_info=error)

    if raise_error:
        raise error

def validate_image_file(file_path: str) -> bool:
    """
    Check that ``file_path`` is an existing file with a photo extension.

    Raises:
        PhotoMetadataError: If it is not
    """
    path = Path(file_path)

    if not path.exists():
        raise PhotoMetadataError(f"Photo not found: {file_path}")
    if not path.is_file():
        raise PhotoMetadataError(f"Not a file: {file_path}")
    if path.suffix.lower() not in PHOTO_EXTENSIONS:
        raise PhotoMetadataError(f"Unsupported photo format: {path.suffix or '(none)'}")

    return True

def safe_file_operation(operation_func, *args, **kwargs):
    """
    Run a photo-reading callable, turning I/O and decoding failures into PhotoMetadataError.
    """
    try:
        return operation_func(*args, **kwargs)
    except FileNotFoundError as e:
        raise PhotoMetadataError(f"Photo disappeared while reading: {e}") from e
    except PermissionError as e:
        raise PhotoMetadataError(f"No permission to read photo: {e}") from e
    except OSError as e:
        # Pillow's UnidentifiedImageError is an OSError
        raise PhotoMetadataError(f"Could not open photo: {e}") from e
    except (ValueError, TypeError, KeyError) as e:
        raise PhotoMetadataError(f"Malformed EXIF data: {e}") from e
