"""Name generator module - sequence-based filenames and deterministic disambiguation of colliding targets."""

import os
import re
from pathlib import Path
from typing import Iterable, List, Set
import logging

from exif_sorter.errors import MoveIOError
from exif_sorter.record import ImageRecord

logger = logging.getLogger(__name__)

# Safety limit for suffix search
MAX_SUFFIX = 99999


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to be filesystem-safe.

    Removes or replaces invalid characters.

    Args:
        filename: Original filename (without extension)

    Returns:
        Sanitized filename
    """
    # Replace invalid characters with underscore
    invalid_chars = r'[<>:"/\\|?*]'
    sanitized = re.sub(invalid_chars, '_', filename)

    # Remove leading/trailing dots and spaces
    sanitized = sanitized.strip('. ')

    # Limit length (keep reasonable)
    if len(sanitized) > 200:
        sanitized = sanitized[:200]

    return sanitized


def sequence_filename(image_number: int, extension: str) -> str:
    """
    Build a filename from the EXIF image number.

    Format: IMG_0042.ext
    """
    return sanitize_filename(f"IMG_{image_number:04d}") + extension


def suffixed_name(filename: str, counter: int) -> str:
    """photo.jpg, 2 -> photo_2.jpg"""
    path = Path(filename)
    return f"{path.stem}_{counter}{path.suffix}"


def _is_foreign_file(path: Path, record: ImageRecord) -> bool:
    """True if something other than the record's own source sits at `path`."""
    if not os.path.lexists(path):
        return False
    return os.path.realpath(path) != os.path.realpath(record.source_path)


def next_free_name(path: Path, taken: Set[Path], check_disk: bool) -> Path:
    """
    Find the first `<stem>_<n><ext>` (n >= 1) next to `path` that is not taken.

    Args:
        path: Colliding target path
        taken: Paths already claimed or reserved in the batch
        check_disk: Also skip names that exist on disk

    Returns:
        Path that is free
    """
    for counter in range(1, MAX_SUFFIX + 1):
        candidate = path.parent / suffixed_name(path.name, counter)
        if candidate in taken:
            continue
        if check_disk and os.path.lexists(candidate):
            continue
        return candidate
    raise RuntimeError(f"No free name found for {path} after {MAX_SUFFIX} attempts")


def resolve_collisions(records: Iterable[ImageRecord], check_disk: bool = True) -> int:
    """
    Give every planned record a unique target path.

    Records are visited in traversal order. The first record claiming a
    path keeps it, later ones get `_1`, `_2`, ... appended to the stem. With
    `check_disk`, a file already present at the target (other than the
    record's own source) counts as an earlier claimant. Running this twice
    renames nothing the second time.

    Args:
        records: The batch, in traversal order
        check_disk: Treat existing files on disk as collisions (off for dry runs)

    Returns:
        Number of records renamed
    """
    candidates: List[ImageRecord] = [r for r in records if r.is_active and r.target_path is not None]
    # Unrenamed targets stay reserved for their owners
    taken = {r.target_path for r in candidates}
    claimed: Set[Path] = set()
    renamed = 0

    for record in candidates:
        path = record.target_path
        if path not in claimed and not (check_disk and _is_foreign_file(path, record)):
            claimed.add(path)
            continue

        if record.target_filename != record.planned_filename:
            # already disambiguated once and colliding again
            error = MoveIOError(record.source_path, path)
            logger.error(f"{record.source_path}: {error.reason}")
            record.fail(error)
            continue

        new_path = next_free_name(path, taken, check_disk)
        record.rename_target(new_path.name)
        claimed.add(new_path)
        taken.add(new_path)
        renamed += 1
        logger.debug(f"Made filename unique: {path.name} -> {new_path.name}")

    logger.info(f"Resolved {renamed} target name collisions")
    return renamed
