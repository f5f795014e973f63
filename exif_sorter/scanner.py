"""Photo scanner module - walks the source tree depth-first and yields candidate image files."""

import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple
import logging

from exif_sorter.config import DEFAULT_EXTENSIONS

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Path, OSError], None]


def is_within(path: Path, parent: Path) -> bool:
    """Return True if `path` is `parent` or one of its descendants."""
    return path == parent or parent in path.parents


def _real(path: Path) -> Path:
    return Path(os.path.realpath(path))


def iter_source_files(
    source_path: Path,
    exclude: Optional[Path] = None,
    extensions: Optional[Iterable[str]] = DEFAULT_EXTENSIONS,
    ignore_hidden: bool = True,
    on_error: Optional[ErrorCallback] = None,
) -> Iterator[Path]:
    """
    Lazily walk `source_path` depth-first and yield image files.

    Entries of each directory are visited in name order, files before
    subdirectories. A directory that cannot be listed is reported through
    `on_error` and skipped; its siblings are still visited. Every call
    returns a fresh generator.

    Args:
        source_path: Root folder to walk
        exclude: Folder whose subtree is never entered (e.g. the target folder)
        extensions: Lowercase extensions to accept, None accepts every file
        ignore_hidden: Skip files and folders whose name starts with '.'
        on_error: Called with (directory, error) for unreadable directories

    Yields:
        Path for every matching file
    """
    exts = None if extensions is None else {e.lower() for e in extensions}
    excluded = _real(exclude) if exclude is not None else None

    if excluded is not None and is_within(_real(source_path), excluded):
        logger.info(f"Source {source_path} lies inside excluded folder {exclude}, nothing to scan")
        return

    yield from _walk(Path(source_path), excluded, exts, ignore_hidden, on_error)


def _walk(directory: Path, excluded, exts, ignore_hidden: bool, on_error) -> Iterator[Path]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        logger.warning(f"Skipping unreadable folder {directory}: {e}")
        if on_error is not None:
            on_error(directory, e)
        return

    subdirs = []
    for entry in entries:
        if ignore_hidden and entry.name.startswith('.'):
            continue

        path = Path(entry.path)
        try:
            if entry.is_dir(follow_symlinks=False):
                if excluded is not None and is_within(_real(path), excluded):
                    logger.debug(f"Excluding target folder {path}")
                    continue
                subdirs.append(path)
                continue
            if entry.is_symlink() and entry.is_dir():
                logger.debug(f"Not following directory symlink {path}")
                continue
            # broken symlinks are kept so extraction can report them
            if not (entry.is_file() or entry.is_symlink()):
                continue
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            continue

        if exts is not None and path.suffix.lower() not in exts:
            continue

        logger.debug(f"Found image: {path}")
        yield path

    for subdir in subdirs:
        yield from _walk(subdir, excluded, exts, ignore_hidden, on_error)


def scan_folder(source_path: Path, **kwargs) -> Tuple[List[Path], List[Path]]:
    """
    Collect all image files below `source_path`.

    Accepts the keyword arguments of iter_source_files except `on_error`.

    Returns:
        (files, skipped_directories)
    """
    skipped: List[Path] = []
    files = list(iter_source_files(
        source_path,
        on_error=lambda directory, _: skipped.append(directory),
        **kwargs,
    ))
    logger.info(f"Scanned {source_path}: found {len(files)} image files, skipped {len(skipped)} folders")
    return files, skipped
