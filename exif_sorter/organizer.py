"""Date organizer module - plans the date-based target folder (YYYY-MM-DD) and filename for each record."""

from datetime import date
from pathlib import Path
from typing import Iterable, Tuple
import logging

from exif_sorter.namer import sequence_filename
from exif_sorter.record import ImageRecord, RecordStatus

logger = logging.getLogger(__name__)


def get_date_folder(day: date) -> str:
    """
    Generate folder name based on date (YYYY-MM-DD format).

    Args:
        day: Resolved date of a photo

    Returns:
        Folder name, e.g. '2024-01-31'
    """
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def plan_target(
    record: ImageRecord,
    target_dir: Path,
    use_subdirectory: bool = True,
    rename_by_sequence: bool = False,
) -> Tuple[Path, str]:
    """
    Compute the provisional target of a resolved record. Does not touch the filesystem.

    Args:
        record: Record with a resolved date
        target_dir: Base destination folder
        use_subdirectory: Group into one folder per day
        rename_by_sequence: Name the file after its EXIF image number when present

    Returns:
        (target_directory, target_filename)
    """
    if record.resolved_date is None:
        raise ValueError(f"Cannot plan {record.source_path} without a resolved date")

    directory = Path(target_dir)
    if use_subdirectory:
        directory = directory / get_date_folder(record.resolved_date)

    filename = record.filename
    if rename_by_sequence:
        image_number = getattr(record.metadata, 'image_number', None)
        if image_number is not None:
            filename = sequence_filename(image_number, record.extension)

    return directory, filename


def organize_by_date(
    records: Iterable[ImageRecord],
    target_dir: Path,
    use_subdirectory: bool = True,
    rename_by_sequence: bool = False,
) -> int:
    """
    Plan targets for every resolved record that has none yet.

    Returns:
        Number of records planned
    """
    planned = 0
    for record in records:
        if record.status is not RecordStatus.RESOLVED or record.target_directory is not None:
            continue
        directory, filename = plan_target(record, target_dir, use_subdirectory, rename_by_sequence)
        record.set_target(directory, filename)
        planned += 1
        logger.debug(f"Organized {record.filename} -> {record.target_path}")

    logger.info(f"Organized {planned} photos by date")
    return planned
