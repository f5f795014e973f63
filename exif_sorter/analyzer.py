"""Metadata extractor module - reads the embedded EXIF capture time and filesystem timestamps of a file."""

import os
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional
import logging

from PIL import Image, ExifTags, UnidentifiedImageError
import pillow_heif

from exif_sorter.errors import ExtractionIOError, NoEmbeddedMetadata

# Register HEIF opener with Pillow
pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

# Capture-time tags, most authoritative first
CAPTURE_TIME_TAGS = (
    ExifTags.Base.DateTimeOriginal,
    ExifTags.Base.DateTimeDigitized,
)


class ExtractedMetadata:
    """Raw dates read from one file. Nothing here is parsed or validated yet."""

    def __init__(
        self,
        embedded_capture_time: Optional[str],
        fs_created: Optional[datetime],
        fs_modified: Optional[datetime],
        image_number: Optional[int] = None,
    ):
        self.embedded_capture_time = embedded_capture_time
        self.fs_created = fs_created
        self.fs_modified = fs_modified
        self.image_number = image_number

    def __repr__(self):
        return (
            f"ExtractedMetadata(capture={self.embedded_capture_time!r}, "
            f"created={self.fs_created}, modified={self.fs_modified}, number={self.image_number})"
        )


def creation_timestamp(stat: os.stat_result) -> float:
    """
    Creation time of a file in seconds since the epoch.

    Platforms without a birth time report the modification time instead.
    """
    birthtime = getattr(stat, 'st_birthtime', None)
    if birthtime is not None:
        return birthtime
    if os.name == 'nt':
        return stat.st_ctime
    return stat.st_mtime


def _to_datetime(timestamp: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(timestamp)
    except (OverflowError, OSError, ValueError) as e:
        logger.debug(f"Unusable filesystem timestamp {timestamp}: {e}")
        return None


def _clean_exif_text(value) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='replace')
    if not isinstance(value, str):
        return None
    value = value.replace('\x00', '').strip()
    return value or None


def read_embedded_metadata(fh: BinaryIO, file_path: Path):
    """
    Read capture time and image number from the image's EXIF block.

    Args:
        fh: Open binary handle positioned at the start of the file
        file_path: Path of the file, used for messages

    Returns:
        (capture_time_text, image_number) - capture time is the unparsed EXIF string

    Raises:
        NoEmbeddedMetadata: If the file has no readable container or no capture time
    """
    try:
        with Image.open(fh) as image:
            exif = image.getexif()
            exif_ifd = exif.get_ifd(ExifTags.IFD.Exif) if exif else {}
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        raise NoEmbeddedMetadata(file_path, e)

    # Some writers put Exif-IFD tags into IFD0, so look there second
    capture_time = None
    for tag in CAPTURE_TIME_TAGS:
        capture_time = _clean_exif_text(exif_ifd.get(tag)) or _clean_exif_text(exif.get(tag))
        if capture_time:
            break

    image_number = exif_ifd.get(ExifTags.Base.ImageNumber, exif.get(ExifTags.Base.ImageNumber))
    if not isinstance(image_number, int):
        image_number = None

    if capture_time is None:
        raise NoEmbeddedMetadata(file_path)

    return capture_time, image_number


def extract_metadata(file_path: Path) -> ExtractedMetadata:
    """
    Extract embedded and filesystem dates from a file.

    A missing or broken EXIF block is not an error - the capture time is
    simply None. The file is only ever read.

    Args:
        file_path: Path to the file

    Returns:
        ExtractedMetadata for the file

    Raises:
        ExtractionIOError: If the file cannot be opened or stat'ed
    """
    try:
        with open(file_path, 'rb') as fh:
            stat = os.fstat(fh.fileno())
            try:
                capture_time, image_number = read_embedded_metadata(fh, file_path)
            except NoEmbeddedMetadata as e:
                logger.debug(f"No EXIF capture time in {file_path} ({e})")
                capture_time, image_number = None, None
    except OSError as e:
        raise ExtractionIOError(file_path, e) from e

    return ExtractedMetadata(
        embedded_capture_time=capture_time,
        fs_created=_to_datetime(creation_timestamp(stat)),
        fs_modified=_to_datetime(stat.st_mtime),
        image_number=image_number,
    )
