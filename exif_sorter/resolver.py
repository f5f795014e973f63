"""Date resolver module - picks one calendar date per file from the embedded and filesystem dates."""

from datetime import date, datetime
from pathlib import Path
from typing import List, NamedTuple, Optional
import logging

from exif_sorter.analyzer import ExtractedMetadata
from exif_sorter.errors import DateParseError, DateResolutionExhausted, SorterError
from exif_sorter.record import DateSource

logger = logging.getLogger(__name__)

# EXIF 2.3 DateTimeOriginal layout, the only one accepted
EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


class ResolvedDate(NamedTuple):
    date: date
    source: DateSource
    diagnostics: List[SorterError]


def parse_capture_time(raw: str) -> datetime:
    """
    Strictly parse an EXIF capture timestamp ("YYYY:MM:DD HH:MM:SS").

    Raises:
        ValueError: If `raw` does not match the format exactly
    """
    return datetime.strptime(raw, EXIF_DATETIME_FORMAT)


def resolve_date(metadata: ExtractedMetadata, file_path: Path) -> ResolvedDate:
    """
    Resolve the date of a file.

    Priority: EXIF capture time -> filesystem creation -> filesystem modification.
    A capture time that fails to parse is reported in the diagnostics even
    when a lower tier supplies the date.

    Args:
        metadata: Output of extract_metadata for the file
        file_path: Path of the file, for error context

    Returns:
        ResolvedDate with the date, the tier it came from and any diagnostics

    Raises:
        DateResolutionExhausted: If no tier yields a date
    """
    diagnostics: List[SorterError] = []
    parse_error: Optional[DateParseError] = None

    if metadata.embedded_capture_time is not None:
        try:
            taken = parse_capture_time(metadata.embedded_capture_time)
            return ResolvedDate(taken.date(), DateSource.EMBEDDED, diagnostics)
        except ValueError as e:
            parse_error = DateParseError(file_path, metadata.embedded_capture_time, e)
            diagnostics.append(parse_error)
            logger.warning(f"{file_path}: {parse_error.reason}, falling back to filesystem dates")

    if metadata.fs_created is not None:
        return ResolvedDate(metadata.fs_created.date(), DateSource.FS_CREATED, diagnostics)

    if metadata.fs_modified is not None:
        return ResolvedDate(metadata.fs_modified.date(), DateSource.FS_MODIFIED, diagnostics)

    raise DateResolutionExhausted(file_path, parse_error)
