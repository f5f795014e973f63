"""File mover module - moves one record to its final target, or previews the move in dry-run mode."""

import os
from pathlib import Path
import logging

from exif_sorter.errors import MoveIOError
from exif_sorter.record import ImageRecord, MoveResult, RecordStatus

logger = logging.getLogger(__name__)

REASON_DRY_RUN = "dry run"
REASON_IN_PLACE = "already in place"


def move_record(record: ImageRecord, dry_run: bool = True) -> MoveResult:
    """
    Move a planned record to its target path.

    The move is a single rename, so it either happens completely or not at
    all. An existing file at the target is never overwritten. Failures are
    recorded on the record and returned, not raised.

    Args:
        record: Record with a finalized target
        dry_run: Only report the planned move

    Returns:
        MoveResult describing what happened
    """
    target = record.target_path
    if target is None:
        raise ValueError(f"{record.source_path} has no target to move to")

    if os.path.realpath(record.source_path) == os.path.realpath(target):
        logger.debug(f"Skipping {record.source_path}: {REASON_IN_PLACE}")
        return MoveResult(record.source_path, target, performed=False, reason=REASON_IN_PLACE)

    if dry_run:
        logger.info(f"Dry run: would move {record.source_path} -> {target}")
        return MoveResult(record.source_path, target, performed=False, reason=REASON_DRY_RUN)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        if os.path.lexists(target):
            raise MoveIOError(record.source_path, target)
        record.source_path.rename(target)
    except MoveIOError as e:
        return _failed(record, target, e)
    except OSError as e:
        return _failed(record, target, MoveIOError(record.source_path, target, e))

    record.advance(RecordStatus.MOVED)
    logger.debug(f"Moved {record.source_path} -> {target}")
    return MoveResult(record.source_path, target, performed=True)


def _failed(record: ImageRecord, target: Path, error: MoveIOError) -> MoveResult:
    logger.error(f"Failed to move {record.source_path} to {target}: {error.reason}")
    record.fail(error)
    return MoveResult(record.source_path, target, performed=False, reason=error.reason)
